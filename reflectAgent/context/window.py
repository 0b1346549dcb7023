"""Sliding window over the conversation log.

The model only ever sees:
    [system prompt] + [summary of older messages] + [last N unsummarized messages]

The window is taken from unsummarized messages only, so it never overlaps the
part of the log the summary already covers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

from reflectAgent.context.store import ConversationStore, ConversationSummary, StoredMessage
from reflectAgent.utils.message_utils import clean_message_history, stringify_content

LOGGER = logging.getLogger("reflectAgent.memory")

SUMMARY_HEADER = "Previous Conversation Context"


@dataclass
class WindowContext:
    """Bounded view of a session's history."""

    messages: List[BaseMessage] = field(default_factory=list)
    summary: Optional[ConversationSummary] = None
    total_count: int = 0
    records: List[StoredMessage] = field(default_factory=list)


def message_to_record(message: BaseMessage) -> Dict[str, Any]:
    """Map a LangChain message to ConversationStore.append_message kwargs."""

    content = stringify_content(message.content)
    if isinstance(message, HumanMessage):
        return {"role": "user", "content": content}
    if isinstance(message, ToolMessage):
        return {
            "role": "tool",
            "content": content,
            "tool_call_id": message.tool_call_id,
            "name": getattr(message, "name", None),
        }
    if isinstance(message, AIMessage):
        tool_calls = [
            {"id": tc.get("id"), "name": tc.get("name"), "args": tc.get("args", {})}
            for tc in (message.tool_calls or [])
        ]
        return {"role": "assistant", "content": content, "tool_calls": tool_calls or None}
    return {"role": "system", "content": content}


def record_to_message(record: StoredMessage) -> BaseMessage:
    """Rebuild a LangChain message from a stored row."""

    if record.role == "user":
        return HumanMessage(content=record.content)
    if record.role == "assistant":
        if record.tool_calls:
            return AIMessage(
                content=record.content,
                tool_calls=[
                    {"id": tc.get("id"), "name": tc.get("name"), "args": tc.get("args") or {}}
                    for tc in record.tool_calls
                ],
            )
        return AIMessage(content=record.content)
    if record.role == "tool":
        return ToolMessage(
            content=record.content,
            tool_call_id=record.tool_call_id or "unknown",
            name=record.name or "",
        )
    return SystemMessage(content=record.content)


def summary_to_message(summary: ConversationSummary) -> SystemMessage:
    return SystemMessage(
        content=(
            f"## {SUMMARY_HEADER}\n"
            f"The following summarizes {summary.messages_count} earlier messages of this conversation:\n\n"
            f"{summary.content}"
        )
    )


class SlidingWindowManager:
    """Loads bounded context from, and persists turns to, a ConversationStore."""

    def __init__(self, store: ConversationStore, window_size: int = 10) -> None:
        self.store = store
        self.window_size = window_size

    def get_recent_messages(self, session_id: str) -> WindowContext:
        """Return the last ``window_size`` unsummarized messages plus the summary.

        Read-only: calling it twice without writes yields the same result.
        """
        records = self.store.get_messages(
            session_id,
            limit=self.window_size,
            exclude_summarized=True,
            order="desc",
        )
        records.reverse()
        return WindowContext(
            messages=[record_to_message(record) for record in records],
            summary=self.store.get_summary(session_id),
            total_count=self.store.get_message_count(session_id),
            records=records,
        )

    def build_context(self, session_id: str, system_prompt: Optional[str] = None) -> List[BaseMessage]:
        """Assemble the message list sent to the model."""

        window = self.get_recent_messages(session_id)
        context: List[BaseMessage] = []
        if system_prompt:
            context.append(SystemMessage(content=system_prompt))
        if window.summary:
            context.append(summary_to_message(window.summary))
        context.extend(clean_message_history(window.messages))
        return context

    def persist_messages(self, session_id: str, messages: Sequence[BaseMessage]) -> List[StoredMessage]:
        stored = []
        for message in messages:
            record = message_to_record(message)
            stored.append(self.store.append_message(session_id, **record))
        if stored:
            LOGGER.debug(f"Persisted {len(stored)} messages for session {session_id}")
        return stored
