"""Session entry point: one turn per call, one in-flight turn per session."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage

from reflectAgent.context.store import ConversationStore
from reflectAgent.context.summarizer import ConversationSummarizer
from reflectAgent.context.window import SlidingWindowManager
from reflectAgent.graph.builder import Node, build_driver
from reflectAgent.graph.routing import Phase
from reflectAgent.graph.state import AgentState, build_snapshot, initial_turn_state, restore_step_results
from reflectAgent.persistence.session_store import SessionStore
from reflectAgent.utils.error_handler import SessionBusyError
from reflectAgent.utils.logging_utils import log_agent_response, log_error, log_user_message
from reflectAgent.utils.message_utils import stringify_content

LOGGER = logging.getLogger("reflectAgent.session")

MODES = ("chat", "agent")


@dataclass
class SessionNodes:
    """Node callables shared by every session."""

    planner: Node
    executor: Node
    approval: Node
    reflector: Node
    chat_agent: Node
    tools: Node


def extract_response(turn_messages: List[BaseMessage], error: Optional[str]) -> str:
    """Last non-empty assistant or tool text of the turn, else the error."""
    for message in reversed(turn_messages):
        if isinstance(message, (AIMessage, ToolMessage)):
            text = stringify_content(message.content).strip()
            if text:
                return text
    return error or ""


class SessionManager:
    """Runs user turns against persisted sessions.

    A turn loads the bounded context (summary + sliding window), stores the
    user message, drives the state machine, persists what the turn produced,
    saves a snapshot and schedules background summarization.
    """

    def __init__(
        self,
        *,
        nodes: SessionNodes,
        window: SlidingWindowManager,
        summarizer: ConversationSummarizer,
        session_store: SessionStore,
        max_iterations: int = 10,
        max_retries: int = 3,
    ) -> None:
        self.nodes = nodes
        self.window = window
        self.summarizer = summarizer
        self.session_store = session_store
        self.max_iterations = max_iterations
        self.max_retries = max_retries
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def store(self) -> ConversationStore:
        return self.window.store

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        return self._locks.setdefault(session_id, asyncio.Lock())

    def _build_driver(self, mode: str, session_id: str):
        def checkpoint(state: AgentState) -> None:
            self.session_store.save(session_id, build_snapshot(state))

        if mode == "agent":
            return build_driver(
                mode="agent",
                planner=self.nodes.planner,
                executor=self.nodes.executor,
                approval=self.nodes.approval,
                reflector=self.nodes.reflector,
                max_iterations=self.max_iterations,
                checkpoint=checkpoint,
            )
        return build_driver(
            mode="chat",
            executor=self.nodes.chat_agent,
            approval=self.nodes.approval,
            tools=self.nodes.tools,
            max_iterations=self.max_iterations,
            checkpoint=checkpoint,
        )

    @staticmethod
    def _error_result(error: str) -> Dict[str, Any]:
        return {"response": error, "iterations": 0, "plan": None, "step_results": {}, "error": error}

    @classmethod
    def _session_error(cls, error: Exception) -> Dict[str, Any]:
        result = cls._error_result(f"Session error: {error}")
        result["error"] = str(error)
        return result

    async def chat(self, session_id: str, mode: str, message: str) -> Dict[str, Any]:
        """Process one user message.

        Returns:
            dict with ``response``, ``iterations``, ``plan``, ``step_results`` and ``error``

        Raises:
            SessionBusyError: Another turn for this session is still running
            ValueError: Unknown mode
        """
        if mode not in MODES:
            raise ValueError(f"Unknown mode: {mode} (expected one of {', '.join(MODES)})")

        lock = self._lock_for(session_id)
        if lock.locked():
            raise SessionBusyError(session_id)

        async with lock:
            log_user_message(LOGGER, message)
            try:
                snapshot = self.session_store.load(session_id)
                if snapshot and snapshot.get("pending_tool_call"):
                    pending = snapshot["pending_tool_call"]
                    error = (
                        f"Session {session_id} is waiting for approval of {pending.get('name')}; "
                        "call resume() to continue it"
                    )
                    LOGGER.warning(error)
                    return self._error_result(error)

                history = self.window.build_context(session_id)
                base_count = self.store.get_message_count(session_id)
                user_message = HumanMessage(content=message)
                self.window.persist_messages(session_id, [user_message])
            except Exception as e:
                log_error(LOGGER, e, f"starting turn for session {session_id}")
                return self._session_error(e)

            state = initial_turn_state(
                session_id=session_id,
                mode=mode,
                history=history,
                user_message=user_message,
                max_iterations=self.max_iterations,
                max_retries=self.max_retries,
                base_message_count=base_count,
                total_iterations=int((snapshot or {}).get("total_iterations") or 0),
            )

            driver = self._build_driver(mode, session_id)
            try:
                final_state = await driver.run(state)
                return self._finish_turn(session_id, final_state)
            except Exception as e:
                log_error(LOGGER, e, f"running turn for session {session_id}")
                return self._session_error(e)

    async def resume(self, session_id: str) -> Dict[str, Any]:
        """Continue a turn that was suspended at the approval gate (e.g. after a crash)."""

        lock = self._lock_for(session_id)
        if lock.locked():
            raise SessionBusyError(session_id)

        async with lock:
            try:
                snapshot = self.session_store.load(session_id)
                if not snapshot or not snapshot.get("pending_tool_call"):
                    return self._error_result(f"Session {session_id} has no pending approval to resume")

                mode = snapshot.get("mode") or "agent"
                turn_messages = list(snapshot.get("turn_messages") or [])
                pending_name = snapshot["pending_tool_call"].get("name")
                LOGGER.info(f"Resuming session {session_id} at approval of {pending_name}")

                # The user message was stored when the turn started, so it is already in the window
                history = self.window.build_context(session_id)
                state = AgentState(
                    session_id=session_id,
                    mode=mode,
                    phase=Phase.AWAITING_APPROVAL.value,
                    messages=[*history, *turn_messages[1:]],
                    turn_messages=turn_messages,
                    base_message_count=int(snapshot.get("message_count") or 0) - len(turn_messages),
                    plan=snapshot.get("plan"),
                    current_step=int(snapshot.get("current_step") or 0),
                    step_results=restore_step_results(snapshot.get("step_results")),
                    reflection=snapshot.get("reflection"),
                    reflections=[],
                    pending_tool_call=snapshot.get("pending_tool_call"),
                    iterations=int(snapshot.get("iterations") or 0),
                    total_iterations=int(snapshot.get("total_iterations") or 0),
                    max_iterations=self.max_iterations,
                    max_retries=self.max_retries,
                    error=snapshot.get("error"),
                )
            except Exception as e:
                log_error(LOGGER, e, f"loading session {session_id} for resume")
                return self._session_error(e)

            driver = self._build_driver(mode, session_id)
            try:
                final_state = await driver.run(state, start=Phase.AWAITING_APPROVAL)
                return self._finish_turn(session_id, final_state)
            except Exception as e:
                log_error(LOGGER, e, f"resuming session {session_id}")
                return self._session_error(e)

    def _finish_turn(self, session_id: str, state: AgentState) -> Dict[str, Any]:
        turn_messages = state.get("turn_messages", [])
        self.window.persist_messages(session_id, turn_messages[1:])

        snapshot = build_snapshot(state)
        snapshot["pending_tool_call"] = None
        snapshot["turn_messages"] = []
        self.session_store.save(session_id, snapshot)

        self.summarizer.summarize_in_background(session_id)

        error = state.get("error")
        response = extract_response(turn_messages, error)
        log_agent_response(LOGGER, response)
        return {
            "response": response,
            "iterations": state.get("iterations", 0),
            "plan": state.get("plan"),
            "step_results": dict(state.get("step_results") or {}),
            "error": error,
        }

    # ========== Session administration ==========

    def list_sessions(self) -> List[Dict[str, Any]]:
        return [
            {
                "session_id": session_id,
                "mode": mode,
                "created_at": created_at,
                "updated_at": updated_at,
                "message_count": message_count,
            }
            for session_id, mode, created_at, updated_at, message_count in self.session_store.list_sessions()
        ]

    def get_session_info(self, session_id: str) -> Optional[Dict[str, Any]]:
        snapshot = self.session_store.load(session_id)
        if snapshot is None:
            return None
        summary = self.store.get_summary(session_id)
        plan = snapshot.get("plan") or {}
        return {
            "session_id": session_id,
            "mode": snapshot.get("mode"),
            "phase": snapshot.get("phase"),
            "goal": plan.get("goal"),
            "current_step": snapshot.get("current_step", 0),
            "total_steps": len(plan.get("steps") or []),
            "iterations": snapshot.get("iterations", 0),
            "total_iterations": snapshot.get("total_iterations", 0),
            "error": snapshot.get("error"),
            "pending_tool_call": snapshot.get("pending_tool_call"),
            "message_count": self.store.get_message_count(session_id),
            "unsummarized_count": self.store.get_message_count(session_id, exclude_summarized=True),
            "summarized_count": summary.messages_count if summary else 0,
            "saved_at": snapshot.get("saved_at"),
        }

    def delete_session(self, session_id: str) -> bool:
        """Remove the snapshot and the conversation log. True if anything existed."""
        lock = self._locks.get(session_id)
        if lock is not None and lock.locked():
            raise SessionBusyError(session_id)
        had_messages = self.store.get_message_count(session_id) > 0
        removed = self.session_store.delete(session_id)
        self.store.delete_conversation(session_id)
        self._locks.pop(session_id, None)
        return removed or had_messages

    async def close(self) -> None:
        await self.summarizer.wait_idle()
