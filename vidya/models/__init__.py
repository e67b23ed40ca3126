"""Vidya data models."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class Corpus(str, Enum):
    """Evidence corpora, one similarity index each."""

    KNOWLEDGE = "knowledge"
    FAQ = "faq"
    EVENT = "event"
    CHAT_HISTORY = "chat_history"
    USER_PROFILE = "user_profile"


class SourceTag(str, Enum):
    """Branch that produced an answer."""

    GREETING = "greeting"
    SCHEDULE = "schedule"
    TODO = "todo"
    EVENT = "event"
    CONCERN = "concern"
    REGULATION = "regulation"
    KNOWLEDGE = "knowledge"
    WEB = "web"
    GENERATION = "generation"
    PROFILE = "profile"
    UTILITY = "utility"
    SCOPE = "scope"


class ConcernType(str, Enum):
    """Distress categories, in escalating priority."""

    NONE = "none"
    ACADEMIC_STRESS = "academic_stress"
    ANXIETY = "anxiety"
    DEPRESSION = "depression"
    SELF_HARM = "self_harm"
    SUICIDE = "suicide"


class ConcernSeverity(str, Enum):
    """Severity ladder for concern records."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def bumped(self) -> ConcernSeverity:
        """Return the next severity up, saturating at critical."""
        return _SEVERITY_ORDER[min(self.rank + 1, len(_SEVERITY_ORDER) - 1)]


_SEVERITY_ORDER = [
    ConcernSeverity.LOW,
    ConcernSeverity.MEDIUM,
    ConcernSeverity.HIGH,
    ConcernSeverity.CRITICAL,
]


@dataclass
class EvidenceDocument:
    """A retrievable unit of text from one corpus.

    Attributes:
        id: Stable document identifier
        corpus: Corpus the document belongs to
        title: Title, question, event name or user message
        body: Content, answer, description or assistant reply
        metadata: Corpus-specific fields (category, owner, user_id, date)
        updated_at: Last ingestion time
    """

    id: str
    corpus: Corpus
    title: str
    body: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class Turn:
    """One conversational turn."""

    role: str  # "user" | "assistant"
    text: str
    language: str = "en"
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "text": self.text,
            "language": self.language,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class UserContext:
    """Facts extracted from a user's messages."""

    department: str | None = None
    year: str | None = None
    name: str | None = None
    interests: set[str] = field(default_factory=set)
    recent_topics: set[str] = field(default_factory=set)
    goals: set[str] = field(default_factory=set)
    challenges: set[str] = field(default_factory=set)
    preferences: dict[str, str] = field(default_factory=dict)


@dataclass
class Session:
    """Bounded per-user, per-label conversational memory.

    Attributes:
        user_id: Owning user
        label: Session label chosen by the client
        turns: Trailing window of turns, oldest first
        context: Extracted user facts
        metadata: Device info and other client-provided details
        last_event_title: Title of the last event shown in this session
        last_event_at: When ``last_event_title`` was recorded
        memory_summaries: Short summaries of long conversations
    """

    user_id: str
    label: str
    turns: list[Turn] = field(default_factory=list)
    context: UserContext = field(default_factory=UserContext)
    metadata: dict[str, Any] = field(default_factory=dict)
    last_event_title: str | None = None
    last_event_at: datetime | None = None
    memory_summaries: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def key(self) -> tuple[str, str]:
        return (self.user_id, self.label)


@dataclass(frozen=True)
class ConcernAssessment:
    """Result of concern classification."""

    concern_type: ConcernType = ConcernType.NONE
    severity: ConcernSeverity = ConcernSeverity.LOW
    keywords: tuple[str, ...] = ()

    @property
    def is_concern(self) -> bool:
        return self.concern_type is not ConcernType.NONE


@dataclass
class ConcernRecord:
    """Escalation record emitted once per flagged message."""

    user_id: str
    session_label: str
    concern_type: ConcernType
    severity: ConcernSeverity
    original_message: str
    assistant_response: str
    keywords: list[str] = field(default_factory=list)
    conversation: list[dict[str, Any]] = field(default_factory=list)
    registration_number: str | None = None
    turn_index: int = 0
    is_resolved: bool = False
    follow_up_required: bool = True
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for sinks and webhooks."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "registration_number": self.registration_number,
            "session_label": self.session_label,
            "turn_index": self.turn_index,
            "concern_type": self.concern_type.value,
            "severity": self.severity.value,
            "original_message": self.original_message,
            "assistant_response": self.assistant_response,
            "keywords": list(self.keywords),
            "conversation": list(self.conversation),
            "is_resolved": self.is_resolved,
            "follow_up_required": self.follow_up_required,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class TaskItem:
    """A short-lived to-do item."""

    user_id: str
    title: str
    expires_at: datetime
    completed: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    created_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None


@dataclass
class StudentProfile:
    """Roster facts about one student."""

    user_id: str
    name: str
    registration_number: str | None = None
    department: str | None = None
    year: str | None = None
    section: str | None = None
    email: str | None = None
    phone: str | None = None
    extra: dict[str, str] = field(default_factory=dict)

    def to_text(self) -> str:
        """Render the profile the way it is indexed and shown."""
        lines = [f"Name: {self.name}"]
        for label, value in (
            ("Registration Number", self.registration_number),
            ("Department", self.department),
            ("Year", self.year),
            ("Section", self.section),
            ("Email", self.email),
            ("Phone", self.phone),
        ):
            if value:
                lines.append(f"{label}: {value}")
        lines.extend(f"{key}: {value}" for key, value in self.extra.items())
        return "\n".join(lines)


@dataclass
class ChatResponse:
    """Answer returned to the routing layer for one inbound message."""

    answer: str
    source_tag: SourceTag
    language: str = "en"
    concern: ConcernAssessment | None = None

    @property
    def concern_flag(self) -> bool:
        return self.concern is not None and self.concern.is_concern

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "answer": self.answer,
            "source_tag": self.source_tag.value,
            "language": self.language,
        }
        if self.concern_flag and self.concern is not None:
            result["concern"] = {
                "type": self.concern.concern_type.value,
                "severity": self.concern.severity.value,
                "keywords": list(self.concern.keywords),
            }
        return result
