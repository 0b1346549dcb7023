"""Utilities for cleaning and processing message histories."""

from __future__ import annotations

from typing import Any, List, Optional, Set

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage


def stringify_content(content: Any) -> str:
    """Flatten LangChain message content (str or content blocks) to plain text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return "" if content is None else str(content)


def _tool_call_id(tc: Any) -> Optional[str]:
    return tc.get("id") if isinstance(tc, dict) else getattr(tc, "id", None)


def clean_message_history(messages: List[BaseMessage]) -> List[BaseMessage]:
    """Make a history safe to send to an OpenAI-compatible API.

    Removes AI messages whose tool_calls were never answered, and ToolMessages
    whose originating AI message is not present (e.g. cut off by the window).

    Args:
        messages: List of conversation messages

    Returns:
        Cleaned list
    """
    answered_call_ids: Set[str] = set()
    for msg in messages:
        if isinstance(msg, ToolMessage):
            call_id = getattr(msg, "tool_call_id", None)
            if call_id:
                answered_call_ids.add(call_id)

    cleaned: List[BaseMessage] = []
    issued_call_ids: Set[str] = set()
    for msg in messages:
        if isinstance(msg, AIMessage):
            tool_calls = getattr(msg, "tool_calls", None) or []
            if tool_calls:
                ids = [_tool_call_id(tc) for tc in tool_calls]
                if any(tc_id and tc_id not in answered_call_ids for tc_id in ids):
                    continue
                issued_call_ids.update(tc_id for tc_id in ids if tc_id)
        elif isinstance(msg, ToolMessage):
            if getattr(msg, "tool_call_id", None) not in issued_call_ids:
                continue

        cleaned.append(msg)

    return cleaned


def last_human_text(messages: List[BaseMessage]) -> Optional[str]:
    """Return the content of the latest HumanMessage, or None."""
    for msg in reversed(messages):
        if isinstance(msg, HumanMessage):
            return stringify_content(msg.content)
    return None
