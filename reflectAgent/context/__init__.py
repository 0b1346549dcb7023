"""Conversation memory: message log, sliding window and rolling summary."""

from .store import ConversationStore, ConversationSummary, StoredMessage, estimate_tokens
from .summarizer import ConversationSummarizer
from .window import (
    SlidingWindowManager,
    WindowContext,
    message_to_record,
    record_to_message,
)

__all__ = [
    "ConversationStore",
    "ConversationSummary",
    "ConversationSummarizer",
    "SlidingWindowManager",
    "StoredMessage",
    "WindowContext",
    "estimate_tokens",
    "message_to_record",
    "record_to_message",
]
