"""Session & context store.

Sessions are keyed by (user, label) and keep a trailing window of turns.
Context merges are serialized per session with an asyncio lock, so two
overlapping requests on the same session cannot lose each other's facts.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from vidya.config import SessionConfig
from vidya.models import Session, Turn

if TYPE_CHECKING:
    from collections.abc import Callable

    from vidya.sessions.context import ContextFacts

logger = logging.getLogger(__name__)


class SessionStore:
    """In-memory session store.

    Args:
        config: Session configuration (turn cap, event reference TTL)
        clock: Returns the current UTC time, injectable for tests
    """

    def __init__(
        self,
        config: SessionConfig | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.config = config or SessionConfig()
        self._clock = clock
        self._sessions: dict[tuple[str, str], Session] = {}
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    def _lock_for(self, key: tuple[str, str]) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def get_or_create(
        self,
        user_id: str,
        label: str,
        device_info: dict[str, Any] | None = None,
    ) -> Session:
        """Return the session for (user, label), creating it on first use."""
        key = (user_id, label)
        session = self._sessions.get(key)
        if session is None:
            now = self._clock()
            session = Session(user_id=user_id, label=label, created_at=now, updated_at=now)
            self._sessions[key] = session
            logger.info(f"Created session {label!r} for user {user_id}")
        if device_info:
            session.metadata.setdefault("device_info", {}).update(device_info)
        return session

    async def get(self, user_id: str, label: str) -> Session | None:
        return self._sessions.get((user_id, label))

    async def append_turn(self, session: Session, role: str, text: str, language: str = "en") -> Turn:
        """Append a turn, dropping the oldest turns beyond the cap."""
        turn = Turn(role=role, text=text, language=language, timestamp=self._clock())
        async with self._lock_for(session.key):
            session.turns.append(turn)
            overflow = len(session.turns) - self.config.max_turns
            if overflow > 0:
                del session.turns[:overflow]
            session.updated_at = turn.timestamp
        return turn

    def recent_turns(self, session: Session, limit: int | None = None) -> list[Turn]:
        """The last ``limit`` turns, oldest first."""
        limit = self.config.history_window if limit is None else limit
        if limit <= 0:
            return []
        return list(session.turns[-limit:])

    async def merge_context(self, session: Session, facts: ContextFacts) -> None:
        """Merge extracted facts into the session context.

        Set-valued facts are unioned; scalar facts are overwritten when the
        new value is present.
        """
        if facts.is_empty():
            return
        async with self._lock_for(session.key):
            context = session.context
            if facts.department:
                context.department = facts.department
            if facts.year:
                context.year = facts.year
            if facts.name:
                context.name = facts.name
            context.interests |= facts.interests
            context.recent_topics |= facts.topics
            context.goals |= facts.goals
            context.challenges |= facts.challenges
            session.updated_at = self._clock()

    async def set_preferences(self, session: Session, preferences: dict[str, str]) -> None:
        async with self._lock_for(session.key):
            session.context.preferences.update(preferences)

    def remember_event(self, session: Session, title: str) -> None:
        """Record the event the user was last shown."""
        session.last_event_title = title
        session.last_event_at = self._clock()

    def last_event(self, session: Session) -> str | None:
        """Last referenced event title, None once it has expired."""
        if session.last_event_title is None:
            return None
        ttl = self.config.event_reference_ttl_seconds
        if ttl is not None and session.last_event_at is not None:
            if self._clock() - session.last_event_at > timedelta(seconds=ttl):
                logger.debug(f"Event reference {session.last_event_title!r} expired")
                session.last_event_title = None
                session.last_event_at = None
                return None
        return session.last_event_title

    def add_memory_summary(self, session: Session, summary: str, keep: int = 5) -> None:
        session.memory_summaries.append(summary)
        del session.memory_summaries[:-keep]

    def __len__(self) -> int:
        return len(self._sessions)
