"""In-memory chat session storage."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from ..music.models import ChatSession, Message, NewMessage

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TITLE = "New Music Session"


class SessionStore:
    """Hold chat sessions for the lifetime of the process.

    Sessions are immutable snapshots; every append swaps in a new snapshot,
    so objects already handed to callers never change underneath them.
    Lookups on unknown ids return ``None``.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._sessions: dict[str, ChatSession] = {}

    async def create_session(self, title: Optional[str] = None) -> ChatSession:
        session = ChatSession(
            id=str(uuid.uuid4()),
            title=(title or "").strip() or DEFAULT_SESSION_TITLE,
            created_at=datetime.now(timezone.utc),
        )
        async with self._lock:
            self._sessions[session.id] = session
        logger.debug("Created chat session %s", session.id)
        return session

    async def get(self, session_id: str) -> Optional[ChatSession]:
        async with self._lock:
            return self._sessions.get(session_id)

    async def list_all(self) -> list[ChatSession]:
        """Return sessions ordered newest-created first."""
        async with self._lock:
            sessions = list(enumerate(self._sessions.values()))
        # Insertion order breaks ties between identical timestamps.
        ordered = sorted(
            sessions, key=lambda item: (item[1].created_at, item[0]), reverse=True
        )
        return [session for _, session in ordered]

    async def delete(self, session_id: str) -> None:
        async with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.debug("Deleted chat session %s", session_id)

    async def get_message(
        self, session_id: str, message_id: str
    ) -> Optional[Message]:
        session = await self.get(session_id)
        if session is None:
            return None
        return session.find_message(message_id)

    async def append_message(
        self, session_id: str, message: NewMessage
    ) -> Optional[ChatSession]:
        """Append ``message`` and return the updated snapshot.

        Assistant messages carrying generation metadata add its cost to the
        session's running total.
        """

        stored = Message(
            id=str(uuid.uuid4()),
            role=message.role,
            content=message.content,
            timestamp=datetime.now(timezone.utc),
            music_url=message.music_url,
            metadata=message.metadata,
        )

        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                logger.info("Cannot append to unknown chat session %s", session_id)
                return None

            total_cost = session.total_cost
            if stored.role == "assistant" and stored.metadata and stored.metadata.cost:
                total_cost += stored.metadata.cost

            updated = replace(
                session,
                messages=(*session.messages, stored),
                total_cost=total_cost,
            )
            self._sessions[session_id] = updated
        return updated


__all__ = ["DEFAULT_SESSION_TITLE", "SessionStore"]
