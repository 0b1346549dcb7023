"""Rolling conversation summarization.

Once a session accumulates ``threshold`` unsummarized messages, everything
except the most recent ``keep_recent`` is condensed into the session's summary
(merged with any previous summary) and flagged as summarized.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Set

from langchain_core.messages import HumanMessage

from reflectAgent.context.store import ConversationStore, ConversationSummary, StoredMessage
from reflectAgent.models.gateway import ModelGateway
from reflectAgent.utils.logging_utils import log_error

LOGGER = logging.getLogger("reflectAgent.summarizer")

SUMMARIZATION_PROMPT = """You are a conversation summarizer. Create a concise but comprehensive summary of the conversation below.

Guidelines:
- Preserve key decisions made during the conversation
- Keep track of important information shared by the user (names, preferences, goals)
- Note any ongoing tasks or objectives
- Maintain the context the assistant needs to keep helping effectively
- Be concise but don't lose critical details
- Write in past tense, as if describing what happened

Conversation:
{conversation}

Summary:"""

ROLE_LABELS = {
    "user": "User",
    "assistant": "Assistant",
    "system": "System",
    "tool": "Tool Result",
}

MAX_MESSAGE_CHARS = 500


def format_messages_for_summary(messages: List[StoredMessage]) -> str:
    lines = []
    for msg in messages:
        label = ROLE_LABELS.get(msg.role, msg.role)
        content = msg.content[:MAX_MESSAGE_CHARS]
        suffix = "..." if len(msg.content) > MAX_MESSAGE_CHARS else ""
        lines.append(f"{label}: {content}{suffix}")
    return "\n\n".join(lines)


class ConversationSummarizer:
    """Folds older messages of a session into its summary."""

    def __init__(
        self,
        store: ConversationStore,
        gateway: ModelGateway,
        *,
        threshold: int = 20,
        keep_recent: int = 10,
        enabled: bool = True,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.threshold = threshold
        self.keep_recent = keep_recent
        self.enabled = enabled
        self._locks: Dict[str, asyncio.Lock] = {}
        self._tasks: Set[asyncio.Task] = set()

    def should_summarize(self, session_id: str) -> bool:
        if not self.enabled:
            return False
        return self.store.get_message_count(session_id, exclude_summarized=True) >= self.threshold

    async def summarize(
        self,
        session_id: str,
        *,
        threshold: Optional[int] = None,
        keep_recent: Optional[int] = None,
    ) -> Optional[ConversationSummary]:
        """Summarize all but the most recent messages.

        Returns:
            The new summary, or None when there was nothing to summarize

        Raises:
            ModelInvocationError: The summarizer model call failed (nothing is written)
        """
        threshold = self.threshold if threshold is None else threshold
        keep_recent = self.keep_recent if keep_recent is None else keep_recent

        lock = self._locks.setdefault(session_id, asyncio.Lock())
        async with lock:
            unsummarized = self.store.get_messages(session_id, exclude_summarized=True, order="asc")
            if len(unsummarized) < threshold:
                LOGGER.debug(f"Not enough messages to summarize ({len(unsummarized)}/{threshold})")
                return None

            to_summarize = unsummarized[: max(len(unsummarized) - keep_recent, 0)]
            if not to_summarize:
                return None

            LOGGER.info(f"Summarizing {len(to_summarize)} messages for session {session_id}")
            prompt = SUMMARIZATION_PROMPT.format(conversation=format_messages_for_summary(to_summarize))
            existing = self.store.get_summary(session_id)
            if existing:
                prompt = f"**Previous Summary:**\n{existing.content}\n\n" + prompt

            response = await self.gateway.complete([HumanMessage(content=prompt)])
            content = response.text.strip()
            if not content:
                LOGGER.warning("Summarizer returned empty text, keeping previous summary")
                return None

            total = (existing.messages_count if existing else 0) + len(to_summarize)
            summary = self.store.save_summary(session_id, content, total, to_summarize[-1].id)
            self.store.mark_summarized(msg.id for msg in to_summarize)
            LOGGER.info(f"Summarized {len(to_summarize)} messages (total covered: {total})")
            return summary

    async def _run_background(self, session_id: str) -> None:
        try:
            if self.should_summarize(session_id):
                await self.summarize(session_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_error(LOGGER, e, context=f"background summarization for session {session_id}")

    def summarize_in_background(self, session_id: str) -> Optional[asyncio.Task]:
        """Schedule summarization without waiting for it. Failures are logged only."""
        if not self.enabled:
            return None
        task = asyncio.create_task(self._run_background(session_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for scheduled background summarizations (used at shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
