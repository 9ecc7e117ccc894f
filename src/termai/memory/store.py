from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any

from termai.errors import RecordNotFoundError
from termai.models import (
    Message,
    Role,
    Session,
    tool_calls_from_json,
    tool_calls_to_json,
    tool_results_from_json,
    tool_results_to_json,
    utc_now,
)


class MemoryStore:
    """SQLite-backed record store for sessions and messages.

    Pure persistence: callers own ids, events and business rules.
    """

    def __init__(self, db_path: str):
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.execute("PRAGMA synchronous = NORMAL")
        self._initialize_schema()

    def close(self) -> None:
        self._conn.close()

    def execute(self, query: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        return self._conn.execute(query, params)

    def commit(self) -> None:
        self._conn.commit()

    # Sessions

    def create_session(self, session_id: str, title: str, parent_session_id: str | None = None) -> Session:
        now = utc_now()
        self._conn.execute(
            """
            INSERT INTO sessions (id, parent_session_id, title, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (session_id, parent_session_id, title, now, now),
        )
        self._conn.commit()
        return self.get_session_by_id(session_id)

    def get_session_by_id(self, session_id: str) -> Session:
        row = self._conn.execute("SELECT * FROM sessions WHERE id = ? LIMIT 1", (session_id,)).fetchone()
        if row is None:
            raise RecordNotFoundError("session", session_id)
        return _session_from_row(row)

    def list_sessions(self) -> list[Session]:
        rows = self._conn.execute(
            "SELECT * FROM sessions WHERE parent_session_id IS NULL ORDER BY created_at DESC, rowid DESC"
        ).fetchall()
        return [_session_from_row(row) for row in rows]

    def update_session(self, session: Session) -> Session:
        cursor = self._conn.execute(
            """
            UPDATE sessions
            SET title = ?, prompt_tokens = ?, completion_tokens = ?, cost = ?, updated_at = ?
            WHERE id = ?
            """,
            (session.title, session.prompt_tokens, session.completion_tokens, session.cost, utc_now(), session.id),
        )
        self._conn.commit()
        if cursor.rowcount == 0:
            raise RecordNotFoundError("session", session.id)
        return self.get_session_by_id(session.id)

    def delete_session(self, session_id: str) -> None:
        cursor = self._conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        self._conn.commit()
        if cursor.rowcount == 0:
            raise RecordNotFoundError("session", session_id)

    # Messages

    def create_message(self, message: Message) -> Message:
        now = utc_now()
        row = self._conn.execute(
            "SELECT COALESCE(MAX(seq), 0) AS max_seq FROM messages WHERE session_id = ?",
            (message.session_id,),
        ).fetchone()
        next_seq = int(row["max_seq"]) + 1
        self._conn.execute(
            """
            INSERT INTO messages (
                id, session_id, seq, role, content, thinking, tool_calls_json, tool_results_json,
                finished, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message.id,
                message.session_id,
                next_seq,
                message.role.value,
                message.content,
                message.thinking,
                tool_calls_to_json(message.tool_calls),
                tool_results_to_json(message.tool_results),
                1 if message.finished else 0,
                now,
                now,
            ),
        )
        self._conn.execute(
            "UPDATE sessions SET message_count = message_count + 1, updated_at = ? WHERE id = ?",
            (now, message.session_id),
        )
        self._conn.commit()
        return self.get_message(message.id)

    def get_message(self, message_id: str) -> Message:
        row = self._conn.execute("SELECT * FROM messages WHERE id = ? LIMIT 1", (message_id,)).fetchone()
        if row is None:
            raise RecordNotFoundError("message", message_id)
        return _message_from_row(row)

    def list_messages_by_session(self, session_id: str) -> list[Message]:
        rows = self._conn.execute(
            "SELECT * FROM messages WHERE session_id = ? ORDER BY seq ASC",
            (session_id,),
        ).fetchall()
        return [_message_from_row(row) for row in rows]

    def update_message(self, message: Message) -> Message:
        cursor = self._conn.execute(
            """
            UPDATE messages
            SET content = ?, thinking = ?, tool_calls_json = ?, tool_results_json = ?, finished = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                message.content,
                message.thinking,
                tool_calls_to_json(message.tool_calls),
                tool_results_to_json(message.tool_results),
                1 if message.finished else 0,
                utc_now(),
                message.id,
            ),
        )
        self._conn.commit()
        if cursor.rowcount == 0:
            raise RecordNotFoundError("message", message.id)
        return self.get_message(message.id)

    def delete_message(self, message_id: str) -> None:
        row = self._conn.execute("SELECT session_id FROM messages WHERE id = ? LIMIT 1", (message_id,)).fetchone()
        if row is None:
            raise RecordNotFoundError("message", message_id)
        self._conn.execute("DELETE FROM messages WHERE id = ?", (message_id,))
        self._conn.execute(
            "UPDATE sessions SET message_count = MAX(message_count - 1, 0), updated_at = ? WHERE id = ?",
            (utc_now(), row["session_id"]),
        )
        self._conn.commit()

    def delete_session_messages(self, session_id: str) -> None:
        self._conn.execute("DELETE FROM messages WHERE session_id = ?", (session_id,))
        self._conn.execute(
            "UPDATE sessions SET message_count = 0, updated_at = ? WHERE id = ?",
            (utc_now(), session_id),
        )
        self._conn.commit()

    def _initialize_schema(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS sessions (
                id TEXT PRIMARY KEY,
                parent_session_id TEXT NULL REFERENCES sessions(id) ON DELETE CASCADE,
                title TEXT NOT NULL DEFAULT '',
                message_count INTEGER NOT NULL DEFAULT 0 CHECK (message_count >= 0),
                prompt_tokens INTEGER NOT NULL DEFAULT 0 CHECK (prompt_tokens >= 0),
                completion_tokens INTEGER NOT NULL DEFAULT 0 CHECK (completion_tokens >= 0),
                cost REAL NOT NULL DEFAULT 0.0 CHECK (cost >= 0.0),
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS messages (
                id TEXT PRIMARY KEY,
                session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
                seq INTEGER NOT NULL,
                role TEXT NOT NULL CHECK (role IN ('user', 'assistant', 'tool')),
                content TEXT NOT NULL DEFAULT '',
                thinking TEXT NOT NULL DEFAULT '',
                tool_calls_json TEXT NOT NULL DEFAULT '[]',
                tool_results_json TEXT NOT NULL DEFAULT '[]',
                finished INTEGER NOT NULL DEFAULT 0 CHECK (finished IN (0, 1)),
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE(session_id, seq)
            );

            CREATE INDEX IF NOT EXISTS idx_messages_session_seq
                ON messages(session_id, seq);
            CREATE INDEX IF NOT EXISTS idx_sessions_parent
                ON sessions(parent_session_id);
            """
        )
        self._conn.commit()


def _session_from_row(row: sqlite3.Row) -> Session:
    return Session(
        id=row["id"],
        parent_session_id=row["parent_session_id"],
        title=row["title"],
        message_count=int(row["message_count"]),
        prompt_tokens=int(row["prompt_tokens"]),
        completion_tokens=int(row["completion_tokens"]),
        cost=float(row["cost"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _message_from_row(row: sqlite3.Row) -> Message:
    return Message(
        id=row["id"],
        session_id=row["session_id"],
        role=Role(row["role"]),
        content=row["content"],
        thinking=row["thinking"],
        tool_calls=tool_calls_from_json(row["tool_calls_json"]),
        tool_results=tool_results_from_json(row["tool_results_json"]),
        finished=bool(row["finished"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
