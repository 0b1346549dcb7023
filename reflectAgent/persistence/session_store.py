"""SQLite storage for orchestration snapshots.

A snapshot captures everything needed to continue a session after a crash:
mode, phase, plan, current step, step results, iteration counters, last error,
the pending tool call (if suspended at the approval gate) and the messages
produced so far in the in-flight turn.
"""

from __future__ import annotations

import json
import os
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from langchain_core.messages import BaseMessage

from reflectAgent.context.store import StoredMessage
from reflectAgent.context.window import message_to_record, record_to_message


class SessionStore:
    """Simple SQLite store for saving and loading session snapshots."""

    def __init__(self, db_path: str = "data/sessions.db"):
        """Initialize the session store.

        Args:
            db_path: Path to SQLite database file
        """
        db_dir = os.path.dirname(db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)

        self.db_path = db_path
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self):
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    session_id TEXT PRIMARY KEY,
                    mode TEXT NOT NULL,
                    state_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    message_count INTEGER DEFAULT 0
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def save(self, session_id: str, snapshot: Dict[str, Any]):
        """Upsert a session snapshot.

        Args:
            session_id: Unique session identifier
            snapshot: Snapshot dictionary (may contain LangChain messages)
        """
        state_json = self._serialize_state(snapshot)
        message_count = int(snapshot.get("message_count") or 0)
        mode = snapshot.get("mode") or "agent"
        now = datetime.now(timezone.utc).isoformat()

        with self._lock:
            conn = sqlite3.connect(self.db_path)
            try:
                conn.execute(
                    """INSERT INTO sessions (session_id, mode, state_json, created_at, updated_at, message_count)
                       VALUES (?, ?, ?, ?, ?, ?)
                       ON CONFLICT(session_id) DO UPDATE SET
                           mode = excluded.mode,
                           state_json = excluded.state_json,
                           updated_at = excluded.updated_at,
                           message_count = excluded.message_count""",
                    (session_id, mode, state_json, now, now, message_count),
                )
                conn.commit()
            finally:
                conn.close()

    def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Load a session snapshot, or None if not found."""
        with self._lock:
            conn = sqlite3.connect(self.db_path)
            try:
                row = conn.execute(
                    "SELECT state_json FROM sessions WHERE session_id = ?",
                    (session_id,)
                ).fetchone()
            finally:
                conn.close()

        if row:
            return self._deserialize_state(row[0])
        return None

    def list_sessions(self) -> List[tuple]:
        """List all saved sessions.

        Returns:
            List of (session_id, mode, created_at, updated_at, message_count) tuples
        """
        with self._lock:
            conn = sqlite3.connect(self.db_path)
            try:
                return conn.execute(
                    """SELECT session_id, mode, created_at, updated_at, message_count
                       FROM sessions
                       ORDER BY updated_at DESC"""
                ).fetchall()
            finally:
                conn.close()

    def delete(self, session_id: str) -> bool:
        """Delete a session snapshot. Returns True if a row was removed."""
        with self._lock:
            conn = sqlite3.connect(self.db_path)
            try:
                cursor = conn.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))
                conn.commit()
                return cursor.rowcount > 0
            finally:
                conn.close()

    def _serialize_state(self, state: Dict[str, Any]) -> str:
        """Serialize a snapshot to JSON, converting LangChain messages to tagged dicts."""

        def serialize_obj(obj):
            if isinstance(obj, BaseMessage):
                return {"__type__": "message", **message_to_record(obj)}
            if isinstance(obj, dict):
                return {str(k): serialize_obj(v) for k, v in obj.items()}
            if isinstance(obj, (list, tuple)):
                return [serialize_obj(item) for item in obj]
            return obj

        return json.dumps(serialize_obj(state), ensure_ascii=False, default=str)

    def _deserialize_state(self, state_json: str) -> Dict[str, Any]:
        """Deserialize a snapshot, rebuilding tagged messages."""

        def deserialize_obj(obj):
            if isinstance(obj, dict):
                if obj.get("__type__") == "message":
                    return record_to_message(
                        StoredMessage(
                            id=0,
                            session_id="",
                            role=obj.get("role", "system"),
                            content=obj.get("content", ""),
                            tool_calls=obj.get("tool_calls"),
                            tool_call_id=obj.get("tool_call_id"),
                            name=obj.get("name"),
                            token_count=0,
                            summarized=False,
                            created_at="",
                        )
                    )
                return {k: deserialize_obj(v) for k, v in obj.items()}
            if isinstance(obj, list):
                return [deserialize_obj(item) for item in obj]
            return obj

        return deserialize_obj(json.loads(state_json))
