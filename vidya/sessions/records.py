"""Per-user records next to the session: tasks, student profiles, chat logs."""

from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, time, timedelta
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from vidya.models import Corpus, EvidenceDocument, StudentProfile, TaskItem

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from vidya.index.documents import InMemoryDocumentStore
    from vidya.index.similarity import IndexSet

logger = logging.getLogger(__name__)

MAX_TASK_TITLE = 120


def next_midnight(moment: datetime) -> datetime:
    """Start of the day after ``moment``, in ``moment``'s timezone."""
    return datetime.combine(moment.date() + timedelta(days=1), time.min, tzinfo=moment.tzinfo)


def _normalize(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", " ", text.lower()).strip()


class TaskStore:
    """In-memory to-do items that expire at the next local midnight.

    Args:
        clock: Returns the current local time, injectable for tests
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock
        self._tasks: dict[str, list[TaskItem]] = {}

    def _active(self, user_id: str) -> list[TaskItem]:
        now = self._clock()
        tasks = [task for task in self._tasks.get(user_id, []) if task.expires_at > now]
        self._tasks[user_id] = tasks
        return tasks

    async def add_many(self, user_id: str, titles: Iterable[str]) -> list[TaskItem]:
        """Create one task per title."""
        now = self._clock()
        created = [
            TaskItem(
                user_id=user_id,
                title=title[:MAX_TASK_TITLE],
                expires_at=next_midnight(now),
                created_at=now,
            )
            for title in titles
            if title.strip()
        ]
        self._active(user_id).extend(created)
        if created:
            logger.info(f"Created {len(created)} task(s) for user {user_id}")
        return created

    async def list(self, user_id: str) -> list[TaskItem]:
        """Active tasks, newest first."""
        return sorted(self._active(user_id), key=lambda task: task.created_at, reverse=True)

    async def open_tasks(self, user_id: str) -> list[TaskItem]:
        return [task for task in await self.list(user_id) if not task.completed]

    def _mark(self, task: TaskItem) -> None:
        task.completed = True
        task.completed_at = self._clock()

    async def complete_matching(self, user_id: str, names: Iterable[str], message: str) -> list[TaskItem]:
        """Complete tasks named in ``names``, or the best match in ``message``.

        A name matches a task when the normalized strings are equal or one
        contains the other. With no name matches, the open task whose
        normalized title appears in the message (longest first) is completed.
        """
        open_tasks = await self.open_tasks(user_id)
        completed: list[TaskItem] = []

        for name in names:
            wanted = _normalize(name)
            if not wanted:
                continue
            for task in open_tasks:
                title = _normalize(task.title)
                if task.completed or not title:
                    continue
                if title == wanted or wanted in title or title in wanted:
                    self._mark(task)
                    completed.append(task)
                    break

        if not completed and open_tasks:
            normalized_message = _normalize(message)
            scored = sorted(
                (task for task in open_tasks if _normalize(task.title) in normalized_message),
                key=lambda task: len(_normalize(task.title)),
                reverse=True,
            )
            if scored and len(_normalize(scored[0].title)) >= 2:
                self._mark(scored[0])
                completed.append(scored[0])

        return completed

    async def complete_all(self, user_id: str) -> int:
        open_tasks = await self.open_tasks(user_id)
        for task in open_tasks:
            self._mark(task)
        return len(open_tasks)


@runtime_checkable
class ProfileDirectory(Protocol):
    """Looks up roster facts about students."""

    async def get(self, user_id: str) -> StudentProfile | None:
        ...

    async def find_by_registration(self, registration_number: str) -> StudentProfile | None:
        ...


class InMemoryProfileDirectory:
    """Profiles keyed by user id and registration number."""

    def __init__(self, profiles: Iterable[StudentProfile] = ()) -> None:
        self._by_user: dict[str, StudentProfile] = {}
        for profile in profiles:
            self.add(profile)

    def add(self, profile: StudentProfile) -> None:
        self._by_user[profile.user_id] = profile

    def all(self) -> list[StudentProfile]:
        return list(self._by_user.values())

    async def get(self, user_id: str) -> StudentProfile | None:
        return self._by_user.get(user_id)

    async def find_by_registration(self, registration_number: str) -> StudentProfile | None:
        wanted = registration_number.strip().upper()
        for profile in self._by_user.values():
            if profile.registration_number and profile.registration_number.upper() == wanted:
                return profile
        return None


def profile_document(profile: StudentProfile) -> EvidenceDocument:
    """User-profile corpus document for ``profile``."""
    return EvidenceDocument(
        id=f"profile:{profile.user_id}",
        corpus=Corpus.USER_PROFILE,
        title=profile.name,
        body=profile.to_text(),
        metadata={"user_id": profile.user_id},
    )


class ChatLogRecorder:
    """Appends answered turns to the chat-history corpus.

    The chat-history index is invalidated once every ``batch_size``
    appends rather than on each one.

    Args:
        store: Document store holding the chat-history corpus
        index_set: Index set to invalidate
        batch_size: Appends between invalidations
        window: Chat-history documents kept per user
    """

    def __init__(
        self,
        store: InMemoryDocumentStore,
        index_set: IndexSet,
        batch_size: int = 10,
        window: int = 200,
    ) -> None:
        self.store = store
        self.index_set = index_set
        self.batch_size = batch_size
        self.window = window
        self._pending = 0
        self._by_user: dict[str, list[str]] = {}

    def record(self, user_id: str, session_label: str, question: str, answer: str) -> EvidenceDocument:
        document = EvidenceDocument(
            id=f"chat:{uuid.uuid4().hex}",
            corpus=Corpus.CHAT_HISTORY,
            title=question,
            body=answer,
            metadata={"user_id": user_id, "session_label": session_label},
        )
        self.store.add(document, notify=False)

        ids = self._by_user.setdefault(user_id, [])
        ids.append(document.id)
        while len(ids) > self.window:
            self.store.remove(Corpus.CHAT_HISTORY, ids.pop(0), notify=False)

        self._pending += 1
        if self._pending >= self.batch_size:
            self.flush()
        return document

    def flush(self) -> None:
        """Invalidate the chat-history index if appends are pending."""
        if self._pending:
            logger.debug(f"Invalidating chat history index after {self._pending} appends")
            self._pending = 0
            self.index_set.invalidate(Corpus.CHAT_HISTORY)
