"""Concern escalation sinks.

The core only emits ``ConcernRecord`` objects; storage and moderation are
owned by whoever consumes them. ``LoggingConcernSink`` writes one JSON
event per record for SIEM-style collection and ``WebhookConcernSink``
posts the record to moderation webhooks.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import httpx

from vidya.models import ConcernSeverity

if TYPE_CHECKING:
    from collections.abc import Sequence

    from vidya.models import ConcernRecord

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    ConcernSeverity.LOW: logging.INFO,
    ConcernSeverity.MEDIUM: logging.WARNING,
    ConcernSeverity.HIGH: logging.ERROR,
    ConcernSeverity.CRITICAL: logging.CRITICAL,
}


@runtime_checkable
class ConcernSink(Protocol):
    """Consumes emitted concern records."""

    async def emit(self, record: ConcernRecord) -> None:
        ...


class LoggingConcernSink:
    """Writes concern records as structured JSON log events."""

    def __init__(self, event_logger: logging.Logger | None = None) -> None:
        self.logger = event_logger or logging.getLogger("vidya.concerns")

    async def emit(self, record: ConcernRecord) -> None:
        event = {
            "timestamp": datetime.now(UTC).isoformat(),
            "severity": record.severity.value.upper(),
            "event_type": f"concern_{record.concern_type.value}",
            "message": f"Concerning message from user {record.user_id}",
            "context": {
                "record_id": record.id,
                "user_id": record.user_id,
                "registration_number": record.registration_number,
                "session_label": record.session_label,
                "turn_index": record.turn_index,
                "keywords": list(record.keywords),
                "follow_up_required": record.follow_up_required,
            },
        }
        self.logger.log(_LOG_LEVELS[record.severity], json.dumps(event))


class WebhookConcernSink:
    """Posts concern records to moderation webhooks."""

    def __init__(
        self,
        webhook_urls: Sequence[str],
        client: httpx.AsyncClient,
        timeout: float = 5.0,
    ) -> None:
        self.webhook_urls = list(webhook_urls)
        self.client = client
        self.timeout = timeout

    async def _post(self, url: str, record: ConcernRecord) -> bool:
        try:
            response = await self.client.post(url, json=record.to_dict(), timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"❌ Concern webhook {url} failed for record {record.id}: {e}")
            return False
        logger.info(f"✅ Concern record {record.id} delivered to {url}")
        return True

    async def emit(self, record: ConcernRecord) -> None:
        if not self.webhook_urls:
            return
        results = await asyncio.gather(*(self._post(url, record) for url in self.webhook_urls))
        if not any(results):
            logger.critical(
                f"🔴 Concern record {record.id} ({record.concern_type.value}/{record.severity.value}) "
                "was not delivered to any webhook"
            )


class CompositeConcernSink:
    """Fans a record out to several sinks; one failing sink does not stop the rest."""

    def __init__(self, sinks: Sequence[ConcernSink]) -> None:
        self.sinks = list(sinks)

    async def emit(self, record: ConcernRecord) -> None:
        results = await asyncio.gather(
            *(sink.emit(record) for sink in self.sinks),
            return_exceptions=True,
        )
        for sink, result in zip(self.sinks, results, strict=False):
            if isinstance(result, Exception):
                logger.error(
                    f"❌ Concern sink {type(sink).__name__} failed for record {record.id}: "
                    f"{type(result).__name__}: {result}"
                )
