"""Concrete implementations for the message store."""

import logging
import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from .errors import StoreError
from .models import ChatMessage

logger = logging.getLogger(__name__)


class Store(ABC):
    """Interface for persisting message history.

    Messages belong to a user and are returned in ascending creation order.
    There is deliberately no update or delete operation.
    """

    @abstractmethod
    def list_messages(self, user_id: str) -> List[ChatMessage]:
        """Returns every message of ``user_id``, oldest first.

        Raises
        ------
        StoreError
            If the backend cannot be read.
        """
        pass

    @abstractmethod
    def append_message(self, user_id: str, role: str, content: str) -> ChatMessage:
        """Inserts one message and returns the persisted record.

        The returned message carries the id and timestamp assigned by the
        backend.

        Raises
        ------
        StoreError
            If the insert is rejected.
        """
        pass


class InMemory(Store):
    """Keeps messages in a per-user dictionary for the lifetime of the process."""

    def __init__(self):
        self._messages: Dict[str, List[ChatMessage]] = {}
        self._lock = threading.Lock()

    def list_messages(self, user_id: str) -> List[ChatMessage]:
        with self._lock:
            return list(self._messages.get(user_id, []))

    def append_message(self, user_id: str, role: str, content: str) -> ChatMessage:
        with self._lock:
            history = self._messages.setdefault(user_id, [])
            created_at = datetime.now(timezone.utc)
            # Clock adjustments must not break ordering.
            if history and created_at < history[-1].created_at:
                created_at = history[-1].created_at
            message = ChatMessage(role=role, content=content, created_at=created_at)
            history.append(message)
        return message


class SQLite(Store):
    """Persists messages to a local SQLite database."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._create_tables()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Yields a connection inside a transaction and closes it afterwards."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _create_tables(self) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS messages (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        role TEXT NOT NULL,
                        content TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    )
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_messages_user_created "
                    "ON messages (user_id, created_at)"
                )
        except sqlite3.Error as e:
            raise StoreError(f"Could not initialise {self.db_path}: {e}") from e

    def list_messages(self, user_id: str) -> List[ChatMessage]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT id, role, content, created_at FROM messages "
                    "WHERE user_id = ? ORDER BY created_at ASC, rowid ASC",
                    (user_id,),
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Could not load messages: {e}") from e
        return [ChatMessage(**dict(row)) for row in rows]

    def append_message(self, user_id: str, role: str, content: str) -> ChatMessage:
        message = ChatMessage(role=role, content=content, id=str(uuid.uuid4()))
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO messages (id, user_id, role, content, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (
                        message.id,
                        user_id,
                        message.role,
                        message.content,
                        message.created_at.isoformat(),
                    ),
                )
        except sqlite3.Error as e:
            raise StoreError(f"Could not save message: {e}") from e
        return message


class Supabase(Store):
    """Persists messages to a Supabase (PostgREST) table.

    Parameters
    ----------
    url : str, optional
        Supabase project URL. Ignored when ``client`` is given.
    key : str, optional
        Supabase API key. Ignored when ``client`` is given.
    table : str, default="messages"
        Table with ``id, user_id, role, content, created_at`` columns. ``id``
        and ``created_at`` are expected to have server-side defaults.
    client : supabase.Client, optional
        An existing client. It must not be used for signing users in, or
        queries would run as whoever signed in last.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        table: str = "messages",
        client: Optional[Any] = None,
    ):
        if client is None:
            from supabase import create_client

            client = create_client(url, key)
        self.client = client
        self.table = table

    def _execute(self, query, action: str):
        import httpx
        from postgrest.exceptions import APIError

        try:
            return query.execute()
        except (APIError, httpx.HTTPError) as e:
            logger.error("Supabase %s failed: %s", action, e)
            raise StoreError(f"Could not {action}: {e}") from e

    def list_messages(self, user_id: str) -> List[ChatMessage]:
        query = (
            self.client.table(self.table)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=False)
        )
        response = self._execute(query, "load messages")
        return [ChatMessage.model_validate(row) for row in response.data or []]

    def append_message(self, user_id: str, role: str, content: str) -> ChatMessage:
        query = self.client.table(self.table).insert(
            {"user_id": user_id, "role": role, "content": content}
        )
        response = self._execute(query, "save message")
        if not response.data:
            raise StoreError("Could not save message: insert returned no row")
        return ChatMessage.model_validate(response.data[0])
