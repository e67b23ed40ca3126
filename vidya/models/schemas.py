"""Pydantic validation schemas for inbound messages.

Messages are validated before any external call is made so that empty,
oversized or wrongly-addressed requests never reach a provider.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from vidya.errors import InvalidMessageError

MAX_MESSAGE_CHARS = 4000

_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_.:@-]{1,128}$")


class MessageRequest(BaseModel):
    """Validation schema for one inbound chat message."""

    user_id: str = Field(..., description="Opaque user identifier")
    session_label: str = Field("default", description="Client-chosen session label")
    text: str = Field(..., description="Message text as typed by the user")
    preferred_language: str | None = Field(
        None,
        description="Language code or English language name the user prefers",
    )
    device_info: dict[str, Any] = Field(default_factory=dict)

    @field_validator("user_id", "session_label")
    @classmethod
    def validate_identifier(cls, value: str) -> str:
        """Identifiers are short tokens without whitespace."""
        value = value.strip()
        if not _IDENTIFIER_PATTERN.match(value):
            raise ValueError("must be 1-128 characters of letters, digits or _.:@-")
        return value

    @field_validator("text")
    @classmethod
    def validate_text(cls, value: str) -> str:
        """Reject empty and oversized messages."""
        stripped = value.strip()
        if not stripped:
            raise ValueError("Message cannot be empty")
        if len(stripped) > MAX_MESSAGE_CHARS:
            raise ValueError(f"Message is longer than {MAX_MESSAGE_CHARS} characters")
        return stripped


_FIELD_MESSAGES = {
    "text": "Please type a message so I can help you.",
    "user_id": "I couldn't tell who is asking. Please sign in again.",
    "session_label": "That conversation could not be opened. Please start a new chat.",
}


def validate_message(**values: Any) -> MessageRequest:
    """Validate inbound values, converting pydantic errors.

    Raises:
        InvalidMessageError: With a user-facing message for the first bad field
    """
    try:
        return MessageRequest(**values)
    except ValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first.get("loc") else None
        detail = str(first.get("msg", "invalid value"))
        if field == "text" and "longer than" in detail:
            user_message = f"That message is too long. Please keep it under {MAX_MESSAGE_CHARS} characters."
        else:
            user_message = _FIELD_MESSAGES.get(field or "", "That message could not be processed.")
        raise InvalidMessageError(user_message, field=field) from e
