"""Shared state definition for the orchestration loop."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, TypedDict

from langchain_core.messages import BaseMessage

SessionMode = Literal["chat", "agent"]


class StepResult(TypedDict, total=False):
    success: bool
    output: Optional[str]
    error: Optional[str]
    retries: int


class PendingToolCall(TypedDict):
    id: str
    name: str
    args: Dict[str, Any]
    step_id: Optional[int]


class AgentState(TypedDict, total=False):
    """State of one session while a turn runs through the driver.

    ``messages`` is what nodes see (bounded history + this turn). ``turn_messages``
    holds only what this turn produced, starting with the user's message; it is
    persisted to the memory store when the turn ends.
    """

    # ========== Session ==========
    session_id: str
    mode: SessionMode
    phase: str

    # ========== Messages ==========
    messages: List[BaseMessage]
    turn_messages: List[BaseMessage]
    base_message_count: int  # Stored messages before this turn

    # ========== Plan / execution ==========
    plan: Optional[Dict[str, Any]]
    current_step: int
    step_results: Dict[int, StepResult]
    reflection: Optional[Dict[str, Any]]
    reflections: List[Dict[str, Any]]
    pending_tool_call: Optional[PendingToolCall]

    # ========== Execution control ==========
    iterations: int
    total_iterations: int
    max_iterations: int
    max_retries: int
    error: Optional[str]


SNAPSHOT_KEYS = (
    "mode",
    "phase",
    "plan",
    "current_step",
    "step_results",
    "reflection",
    "pending_tool_call",
    "iterations",
    "total_iterations",
    "error",
    "turn_messages",
)


def initial_turn_state(
    *,
    session_id: str,
    mode: SessionMode,
    history: List[BaseMessage],
    user_message: BaseMessage,
    max_iterations: int,
    max_retries: int,
    base_message_count: int = 0,
    total_iterations: int = 0,
) -> AgentState:
    """Fresh state for a new user turn. Turn-local counters start at zero."""

    return AgentState(
        session_id=session_id,
        mode=mode,
        phase="",
        messages=[*history, user_message],
        turn_messages=[user_message],
        base_message_count=base_message_count,
        plan=None,
        current_step=0,
        step_results={},
        reflection=None,
        reflections=[],
        pending_tool_call=None,
        iterations=0,
        total_iterations=total_iterations,
        max_iterations=max_iterations,
        max_retries=max_retries,
        error=None,
    )


def apply_updates(state: AgentState, updates: Dict[str, Any]) -> AgentState:
    """Merge a node's updates into the state.

    ``messages`` are appended (to both the visible history and this turn's
    log), ``step_results`` are merged per step id, everything else replaces.
    """

    merged: Dict[str, Any] = dict(state)
    for key, value in (updates or {}).items():
        if key == "messages":
            merged["messages"] = [*merged.get("messages", []), *value]
            merged["turn_messages"] = [*merged.get("turn_messages", []), *value]
        elif key == "step_results":
            merged["step_results"] = {**merged.get("step_results", {}), **value}
        else:
            merged[key] = value
    return AgentState(**merged)


def build_snapshot(state: AgentState) -> Dict[str, Any]:
    """Persistable view of the state (what a crash-resume needs)."""

    snapshot = {key: state.get(key) for key in SNAPSHOT_KEYS}
    snapshot["session_id"] = state.get("session_id")
    snapshot["message_count"] = state.get("base_message_count", 0) + len(state.get("turn_messages", []))
    snapshot["saved_at"] = datetime.now(timezone.utc).isoformat()
    return snapshot


def restore_step_results(raw: Optional[Dict[Any, Any]]) -> Dict[int, StepResult]:
    """JSON turns integer step ids into strings; turn them back."""

    return {int(key): value for key, value in (raw or {}).items()}
