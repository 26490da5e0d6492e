"""SQLite-backed conversation history store."""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import assert_never

from pydantic import TypeAdapter, ValidationError

from termai.errors import PersistenceError, ThreadNotFoundError
from termai.models.messages import (
    AssistantMessage,
    Message,
    SystemMessage,
    ToolCallMessage,
    ToolCallRequest,
    ToolCallResponse,
    ToolMessage,
    UserMessage,
)
from termai.models.thread import Thread
from termai.utils.ids import new_id
from termai.utils.logging import get_logger

logger = get_logger(__name__)

RECENT_THREADS_LIMIT = 30

SCHEMA = """
CREATE TABLE IF NOT EXISTS threads (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    thread_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY (thread_id) REFERENCES threads (id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_messages_thread_position ON messages (thread_id, position);
"""

_calls_adapter = TypeAdapter(list[ToolCallRequest])
_results_adapter = TypeAdapter(list[ToolCallResponse])


def default_thread_name(now: datetime | None = None) -> str:
    return f"Thread-{(now or datetime.now(UTC)).strftime('%Y%m%d%H%M%S')}"


def serialize_message(message: Message) -> str:
    """Encode message content for storage; structured payloads become JSON text."""
    match message:
        case SystemMessage() | UserMessage() | AssistantMessage():
            return message.content
        case ToolCallMessage():
            return _calls_adapter.dump_json(message.calls).decode()
        case ToolMessage():
            return _results_adapter.dump_json(message.results).decode()
        case _:
            assert_never(message)


def deserialize_message(role: str, content: str) -> Message:
    """Rebuild a message from a stored row.

    Rows that cannot be decoded come back as an assistant message holding the
    raw text rather than failing the whole read.
    """
    try:
        match role:
            case "system":
                return SystemMessage(content=content)
            case "user":
                return UserMessage(content=content)
            case "assistant":
                return AssistantMessage(content=content)
            case "tool_call":
                return ToolCallMessage(calls=_calls_adapter.validate_json(content))
            case "tool":
                return ToolMessage(results=_results_adapter.validate_json(content))
    except ValidationError as e:
        logger.warning(f"Malformed stored {role} message, treating as text: {e}")
        return AssistantMessage(content=content)

    logger.warning(f"Unknown stored message role {role!r}, treating as text")
    return AssistantMessage(content=content)


class SQLiteThreadRepository:
    """Persists threads and their messages in a single SQLite database."""

    def __init__(self, db_path: Path | str):
        """Open (and if needed create) the database.

        Args:
            db_path: Database file, or ``":memory:"``

        Raises:
            PersistenceError: If the database cannot be opened
        """
        self.db_path = str(db_path)
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._con = sqlite3.connect(self.db_path, check_same_thread=False, timeout=5.0)
            self._con.row_factory = sqlite3.Row
            self._con.execute("PRAGMA foreign_keys = ON")
            self._con.executescript(SCHEMA)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to open thread database at {self.db_path}: {e}")
            raise PersistenceError(f"Failed to open thread database: {e}") from e
        logger.debug(f"Thread database ready at {self.db_path}")

    @contextmanager
    def _transaction(self, action: str) -> Iterator[sqlite3.Connection]:
        try:
            with self._con:
                yield self._con
        except sqlite3.Error as e:
            logger.error(f"Failed to {action}: {e}")
            raise PersistenceError(f"Failed to {action}: {e}") from e

    def close(self) -> None:
        self._con.close()

    def create(self, name: str | None = None) -> Thread:
        now = datetime.now(UTC)
        thread = Thread(id=new_id(), name=name or default_thread_name(now), created_at=now, updated_at=now)
        with self._transaction("create thread") as con:
            con.execute(
                "INSERT INTO threads (id, name, created_at, updated_at) VALUES (?, ?, ?, ?)",
                (thread.id, thread.name, now.isoformat(), now.isoformat()),
            )
        logger.info(f"Created thread {thread.id} ({thread.name})")
        return thread

    def get(self, thread_id: str) -> Thread | None:
        with self._transaction("load thread") as con:
            row = con.execute("SELECT * FROM threads WHERE id = ?", (thread_id,)).fetchone()
            if row is None:
                return None
            message_rows = con.execute(
                "SELECT role, content FROM messages WHERE thread_id = ? ORDER BY position",
                (thread_id,),
            ).fetchall()

        return self._thread_from_row(
            row, [deserialize_message(message["role"], message["content"]) for message in message_rows]
        )

    def update(self, thread_id: str, messages: list[Message]) -> Thread:
        """Replace the full message sequence of a thread atomically.

        Raises:
            ThreadNotFoundError: If the thread does not exist
            PersistenceError: On any database failure; the stored thread is left unchanged
        """
        now = datetime.now(UTC).isoformat()
        with self._transaction("update thread") as con:
            cursor = con.execute("UPDATE threads SET updated_at = ? WHERE id = ?", (now, thread_id))
            if cursor.rowcount == 0:
                raise ThreadNotFoundError(thread_id)
            con.execute("DELETE FROM messages WHERE thread_id = ?", (thread_id,))
            con.executemany(
                "INSERT INTO messages (id, thread_id, position, role, content, created_at) VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (new_id(), thread_id, position, message.role, serialize_message(message), now)
                    for position, message in enumerate(messages)
                ],
            )

        logger.debug(f"Saved {len(messages)} messages to thread {thread_id}")
        thread = self.get(thread_id)
        if thread is None:
            raise ThreadNotFoundError(thread_id)
        return thread

    def rename(self, thread_id: str, name: str) -> Thread:
        with self._transaction("rename thread") as con:
            cursor = con.execute(
                "UPDATE threads SET name = ?, updated_at = ? WHERE id = ?",
                (name, datetime.now(UTC).isoformat(), thread_id),
            )
            if cursor.rowcount == 0:
                raise ThreadNotFoundError(thread_id)

        thread = self.get(thread_id)
        if thread is None:
            raise ThreadNotFoundError(thread_id)
        return thread

    def delete(self, thread_id: str) -> bool:
        """Delete a thread and its messages; False when no such thread exists."""
        with self._transaction("delete thread") as con:
            cursor = con.execute("DELETE FROM threads WHERE id = ?", (thread_id,))
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info(f"Deleted thread {thread_id}")
        return deleted

    @staticmethod
    def _thread_from_row(row: sqlite3.Row, messages: list[Message]) -> Thread:
        return Thread(
            id=row["id"],
            name=row["name"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            messages=messages,
        )

    def list(self) -> list[Thread]:
        """Most recently updated threads first, without their messages."""
        with self._transaction("list threads") as con:
            rows = con.execute(
                "SELECT * FROM threads ORDER BY updated_at DESC LIMIT ?", (RECENT_THREADS_LIMIT,)
            ).fetchall()
        return [self._thread_from_row(row, []) for row in rows]
