"""Session memory, context extraction and per-user records."""

from vidya.sessions.context import ContextFacts, extract_context
from vidya.sessions.records import (
    ChatLogRecorder,
    InMemoryProfileDirectory,
    ProfileDirectory,
    TaskStore,
)
from vidya.sessions.store import SessionStore

__all__ = [
    "ChatLogRecorder",
    "ContextFacts",
    "InMemoryProfileDirectory",
    "ProfileDirectory",
    "SessionStore",
    "TaskStore",
    "extract_context",
]
