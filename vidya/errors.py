"""Error taxonomy for the Vidya assistant core."""

from __future__ import annotations


class VidyaError(Exception):
    """Base class for all Vidya errors."""


class ExternalServiceError(VidyaError):
    """A translation, embedding, search, fetch or generation call failed.

    Always recovered locally by the caller with a documented fallback.
    """

    def __init__(self, service: str, message: str) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service
        self.message = message


class NotFoundError(VidyaError):
    """A session, profile or per-user document does not exist."""

    def __init__(self, entity: str, key: str) -> None:
        super().__init__(f"{entity} not found: {key}")
        self.entity = entity
        self.key = key


class InvalidMessageError(VidyaError):
    """Inbound message rejected before any external call.

    Attributes:
        user_message: Text safe to show to the end user
    """

    def __init__(self, user_message: str, field: str | None = None) -> None:
        super().__init__(user_message)
        self.user_message = user_message
        self.field = field


class ConcernDetectionFailure(VidyaError):
    """Concern classification raised instead of returning an assessment."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
