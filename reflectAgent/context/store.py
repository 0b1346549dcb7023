"""SQLite-backed conversation memory (messages + rolling summary)."""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

LOGGER = logging.getLogger("reflectAgent.memory")

MESSAGE_ROLES = ("user", "assistant", "system", "tool")


def estimate_tokens(text: str) -> int:
    """Rough token estimate (about four characters per token)."""
    return (len(text) + 3) // 4


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class StoredMessage:
    """A message row. Immutable once written except for the summarized flag."""

    id: int
    session_id: str
    role: str
    content: str
    tool_calls: Optional[List[Dict[str, Any]]]
    tool_call_id: Optional[str]
    name: Optional[str]
    token_count: int
    summarized: bool
    created_at: str


@dataclass(frozen=True)
class ConversationSummary:
    session_id: str
    content: str
    messages_count: int
    last_message_id: Optional[int]
    updated_at: str


class ConversationStore:
    """Append-only message log with one upserted summary per session.

    Each call opens its own connection; a process-wide lock serializes access
    so concurrent sessions can share one database file.
    """

    def __init__(self, db_path: str = "data/memory.db"):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file
        """
        db_dir = os.path.dirname(db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)

        self.db_path = db_path
        self._lock = threading.Lock()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        with self._lock:
            conn = self._connect()
            try:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS conversation_message (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        session_id TEXT NOT NULL,
                        role TEXT NOT NULL,
                        content TEXT NOT NULL,
                        tool_calls TEXT,
                        tool_call_id TEXT,
                        name TEXT,
                        token_count INTEGER DEFAULT 0,
                        summarized INTEGER NOT NULL DEFAULT 0,
                        created_at TEXT NOT NULL
                    )
                """)
                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_message_session
                    ON conversation_message (session_id, summarized, id)
                """)
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS conversation_summary (
                        session_id TEXT PRIMARY KEY,
                        content TEXT NOT NULL,
                        messages_count INTEGER NOT NULL DEFAULT 0,
                        last_message_id INTEGER,
                        updated_at TEXT NOT NULL
                    )
                """)
                conn.commit()
            finally:
                conn.close()

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> StoredMessage:
        return StoredMessage(
            id=row["id"],
            session_id=row["session_id"],
            role=row["role"],
            content=row["content"],
            tool_calls=json.loads(row["tool_calls"]) if row["tool_calls"] else None,
            tool_call_id=row["tool_call_id"],
            name=row["name"],
            token_count=row["token_count"] or 0,
            summarized=bool(row["summarized"]),
            created_at=row["created_at"],
        )

    def append_message(
        self,
        session_id: str,
        role: str,
        content: str,
        *,
        tool_calls: Optional[List[Dict[str, Any]]] = None,
        tool_call_id: Optional[str] = None,
        name: Optional[str] = None,
    ) -> StoredMessage:
        """Append one message to a session's log.

        Raises:
            ValueError: Unknown role
        """
        if role not in MESSAGE_ROLES:
            raise ValueError(f"Unknown message role: {role}")

        created_at = _now()
        tokens = estimate_tokens(content)
        tool_calls_json = json.dumps(tool_calls, ensure_ascii=False, default=str) if tool_calls else None

        with self._lock:
            conn = self._connect()
            try:
                cursor = conn.execute(
                    """INSERT INTO conversation_message
                       (session_id, role, content, tool_calls, tool_call_id, name, token_count, summarized, created_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?)""",
                    (session_id, role, content, tool_calls_json, tool_call_id, name, tokens, created_at),
                )
                conn.commit()
                message_id = cursor.lastrowid
            finally:
                conn.close()

        return StoredMessage(
            id=message_id,
            session_id=session_id,
            role=role,
            content=content,
            tool_calls=tool_calls or None,
            tool_call_id=tool_call_id,
            name=name,
            token_count=tokens,
            summarized=False,
            created_at=created_at,
        )

    def get_messages(
        self,
        session_id: str,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
        exclude_summarized: bool = False,
        order: str = "asc",
    ) -> List[StoredMessage]:
        """Fetch messages of a session ordered by insertion.

        Args:
            session_id: Session identifier
            limit: Maximum rows (None for all)
            offset: Rows to skip in the requested order
            exclude_summarized: Skip messages already folded into the summary
            order: "asc" (oldest first) or "desc" (newest first)
        """
        direction = "DESC" if order.lower() == "desc" else "ASC"
        query = "SELECT * FROM conversation_message WHERE session_id = ?"
        params: List[Any] = [session_id]
        if exclude_summarized:
            query += " AND summarized = 0"
        query += f" ORDER BY id {direction}"
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])
        elif offset:
            query += " LIMIT -1 OFFSET ?"
            params.append(offset)

        with self._lock:
            conn = self._connect()
            try:
                rows = conn.execute(query, params).fetchall()
            finally:
                conn.close()
        return [self._row_to_message(row) for row in rows]

    def get_message_count(self, session_id: str, exclude_summarized: bool = False) -> int:
        query = "SELECT COUNT(*) FROM conversation_message WHERE session_id = ?"
        if exclude_summarized:
            query += " AND summarized = 0"
        with self._lock:
            conn = self._connect()
            try:
                return conn.execute(query, (session_id,)).fetchone()[0]
            finally:
                conn.close()

    def get_summary(self, session_id: str) -> Optional[ConversationSummary]:
        with self._lock:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT * FROM conversation_summary WHERE session_id = ?", (session_id,)
                ).fetchone()
            finally:
                conn.close()
        if row is None:
            return None
        return ConversationSummary(
            session_id=row["session_id"],
            content=row["content"],
            messages_count=row["messages_count"],
            last_message_id=row["last_message_id"],
            updated_at=row["updated_at"],
        )

    def save_summary(
        self,
        session_id: str,
        content: str,
        messages_count: int,
        last_message_id: Optional[int],
    ) -> ConversationSummary:
        """Insert or replace the session's summary."""
        updated_at = _now()
        with self._lock:
            conn = self._connect()
            try:
                conn.execute(
                    """INSERT INTO conversation_summary (session_id, content, messages_count, last_message_id, updated_at)
                       VALUES (?, ?, ?, ?, ?)
                       ON CONFLICT(session_id) DO UPDATE SET
                           content = excluded.content,
                           messages_count = excluded.messages_count,
                           last_message_id = excluded.last_message_id,
                           updated_at = excluded.updated_at""",
                    (session_id, content, messages_count, last_message_id, updated_at),
                )
                conn.commit()
            finally:
                conn.close()
        return ConversationSummary(session_id, content, messages_count, last_message_id, updated_at)

    def mark_summarized(self, message_ids: Iterable[int]) -> int:
        """Set the summarized flag on the given messages. The flag is never cleared."""
        ids = list(message_ids)
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)
        with self._lock:
            conn = self._connect()
            try:
                cursor = conn.execute(
                    f"UPDATE conversation_message SET summarized = 1 WHERE id IN ({placeholders})",
                    ids,
                )
                conn.commit()
                return cursor.rowcount
            finally:
                conn.close()

    def delete_conversation(self, session_id: str) -> None:
        with self._lock:
            conn = self._connect()
            try:
                conn.execute("DELETE FROM conversation_message WHERE session_id = ?", (session_id,))
                conn.execute("DELETE FROM conversation_summary WHERE session_id = ?", (session_id,))
                conn.commit()
            finally:
                conn.close()
        LOGGER.info(f"Deleted conversation log for session {session_id}")

    def list_conversations(self) -> List[tuple]:
        """List sessions with messages.

        Returns:
            List of (session_id, message_count, last_message_at) tuples, most recent first
        """
        with self._lock:
            conn = self._connect()
            try:
                rows = conn.execute(
                    """SELECT session_id, COUNT(*), MAX(created_at)
                       FROM conversation_message
                       GROUP BY session_id
                       ORDER BY MAX(id) DESC"""
                ).fetchall()
            finally:
                conn.close()
        return [tuple(row) for row in rows]
