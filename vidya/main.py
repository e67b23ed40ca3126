"""Vidya main entry point."""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx
import yaml

from vidya.assistant import Assistant
from vidya.composer import ResponseComposer
from vidya.config import VidyaConfig, get_config
from vidya.index import IndexSet, InMemoryDocumentStore, load_corpus_file
from vidya.integrations.concerns import (
    CompositeConcernSink,
    ConcernSink,
    LoggingConcernSink,
    WebhookConcernSink,
)
from vidya.integrations.generation import GeminiGenerationClient, GenerationClient
from vidya.integrations.web import DuckDuckGoSearch, PageFetcher
from vidya.models import StudentProfile
from vidya.observability import setup_telemetry, shutdown_telemetry
from vidya.processing import EmbeddingService
from vidya.query import EvidenceRetriever
from vidya.resilience import ProviderHealth
from vidya.sessions import ChatLogRecorder, InMemoryProfileDirectory, SessionStore, TaskStore
from vidya.sessions.records import profile_document
from vidya.translation import TranslationService
from vidya.translation.providers import (
    GoogleTranslateProvider,
    LibreTranslateProvider,
    ModelTranslationProvider,
    TranslationProvider,
)

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)


def load_profiles_file(path: str | Path) -> list[StudentProfile]:
    """Load student profiles from a YAML list of mappings.

    Raises:
        ValueError: If the file is not a list of mappings
    """
    with open(Path(path).expanduser()) as f:
        raw = yaml.safe_load(f) or []
    if not isinstance(raw, list) or not all(isinstance(entry, dict) for entry in raw):
        raise ValueError(f"Profiles file {path} must be a list of mappings")

    profiles = []
    for entry in raw:
        extra = {str(key): str(value) for key, value in (entry.pop("extra", None) or {}).items()}
        profiles.append(StudentProfile(**{key: str(value) for key, value in entry.items()}, extra=extra))
    logger.info(f"Loaded {len(profiles)} student profiles from {path}")
    return profiles


class VidyaApplication:
    """Vidya application with lifecycle management.

    Builds every component from one ``VidyaConfig`` and shares a single
    HTTP client between the translation, web and webhook adapters.

    Attributes:
        config: Resolved configuration
        documents: Evidence documents per corpus
        index_set: Similarity indexes over ``documents``
        assistant: Message orchestrator, available after ``start``
        shutdown_event: Event for graceful shutdown
    """

    def __init__(
        self,
        config: VidyaConfig | None = None,
        generation: GenerationClient | None = None,
        client: httpx.AsyncClient | None = None,
        offline: bool = False,
    ) -> None:
        """Initialize the application.

        Args:
            config: Configuration, loaded from the environment when omitted
            generation: Generation client, Gemini-backed when omitted
            client: Shared HTTP client, created (and owned) when omitted
            offline: Use no network collaborators at all (no generation,
                remote translation, web search or webhooks)
        """
        self.config = config or get_config()
        self.offline = offline
        self.shutdown_event = asyncio.Event()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(follow_redirects=True)
        if offline:
            self.generation: GenerationClient | None = None
        else:
            self.generation = generation if generation is not None else GeminiGenerationClient(self.config.generation)

        self.health = ProviderHealth(
            failure_threshold=self.config.translation.breaker_failure_threshold,
            cooldown=self.config.translation.breaker_cooldown_seconds,
            endpoint_ttl=self.config.translation.endpoint_ttl_seconds,
        )
        self.translation = TranslationService(self._translation_providers(), self.health, self.config.translation)

        self.documents = InMemoryDocumentStore()
        self.embeddings = EmbeddingService(self.config.embedding)
        self.index_set = IndexSet(self.documents, self.embeddings)
        self.documents.subscribe(self.index_set.invalidate)

        self.profiles = InMemoryProfileDirectory()
        self.sessions = SessionStore(self.config.sessions)
        self.tasks = TaskStore()
        self.chat_log = ChatLogRecorder(
            self.documents,
            self.index_set,
            batch_size=self.config.sessions.chat_index_batch,
            window=self.config.sessions.chat_log_window,
        )
        self.assistant: Assistant | None = None

        logger.info(
            f"Initialized Vidya for {self.config.institution_name} "
            f"(providers={[provider.name for provider in self.translation.providers]})"
        )

    def _translation_providers(self) -> list[TranslationProvider]:
        settings = self.config.translation
        available: dict[str, TranslationProvider] = {}
        if self.generation is not None:
            available["model"] = ModelTranslationProvider(self.generation, timeout=settings.model_timeout)
        if settings.google_api_key and not self.offline:
            available["google"] = GoogleTranslateProvider(
                settings.google_api_key,
                self.client,
                timeout=settings.google_timeout,
            )
        if settings.libre_enabled and not self.offline:
            available["libre"] = LibreTranslateProvider(
                settings.candidate_endpoints(),
                self.health,
                self.client,
                api_key=settings.libre_api_key,
                request_timeout=settings.libre_request_timeout,
                probe_timeout=settings.libre_probe_timeout,
                total_budget=settings.libre_total_budget,
            )
        return [available[name] for name in settings.provider_order if name in available]

    def _concern_sink(self) -> ConcernSink:
        sinks: list[ConcernSink] = [LoggingConcernSink()]
        if self.config.concerns.webhook_urls and not self.offline:
            sinks.append(
                WebhookConcernSink(
                    self.config.concerns.webhook_urls,
                    self.client,
                    timeout=self.config.concerns.webhook_timeout,
                )
            )
        return CompositeConcernSink(sinks)

    # =========================================================================
    # Data loading
    # =========================================================================

    def load_corpus(self, path: str | Path) -> None:
        """Add documents from a YAML corpus file."""
        load_corpus_file(path, self.documents)

    def load_profiles(self, path: str | Path) -> None:
        """Add student profiles from a YAML file to the directory and the profile corpus."""
        profiles = load_profiles_file(path)
        for profile in profiles:
            self.profiles.add(profile)
        self.documents.add_many(profile_document(profile) for profile in profiles)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> Assistant:
        """Build the assistant; safe to call more than once."""
        if self.assistant is not None:
            return self.assistant

        environment = self.config.environment
        setup_telemetry(
            service_name="vidya",
            environment=environment,
            otlp_endpoint=self.config.otlp_endpoint,
            enable_console_export=self.config.debug,
            sample_rate=1.0 if environment == "development" else 0.1,
        )

        await self.embeddings.initialize()

        retrieval = self.config.retrieval
        retriever = EvidenceRetriever(
            self.index_set,
            self.translation,
            web_search=None if self.offline else DuckDuckGoSearch(self.client, instant_timeout=retrieval.source_timeout),
            page_fetcher=None if self.offline else PageFetcher(self.client, max_chars=retrieval.url_content_chars),
            profiles=self.profiles,
            config=retrieval,
        )
        composer = ResponseComposer(
            self.generation,
            assistant_name=self.config.assistant_name,
            institution_name=self.config.institution_name,
            config=retrieval,
        )
        self.assistant = Assistant(
            config=self.config,
            translation=self.translation,
            retriever=retriever,
            index_set=self.index_set,
            documents=self.documents,
            sessions=self.sessions,
            tasks=self.tasks,
            composer=composer,
            profiles=self.profiles,
            concern_sink=self._concern_sink(),
            chat_log=self.chat_log,
        )
        logger.info("✅ Vidya assistant ready")
        return self.assistant

    async def start(self) -> None:
        """Start Vidya and wait for a shutdown signal."""
        logger.info("Starting Vidya application")
        await self.initialize()

        logger.info("Setting up signal handlers for graceful shutdown")
        signal.signal(signal.SIGTERM, self._handle_shutdown)
        signal.signal(signal.SIGINT, self._handle_shutdown)

        logger.info("✅ Vidya application started successfully")
        logger.info(f"   Working language: {self.translation.working_language}")
        logger.info(f"   Embedding backend: {self.embeddings.backend}")
        logger.info(f"   Web search: {'enabled' if self.config.retrieval.include_web_search else 'on request'}")

        try:
            await self.shutdown_event.wait()
        except asyncio.CancelledError:
            logger.info("Application cancelled")

    def _handle_shutdown(self, signum: int, _frame: Any = None) -> None:
        """Handle shutdown signal.

        Args:
            signum: Signal number (SIGINT or SIGTERM)
            _frame: Current stack frame (unused)
        """
        signal_name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
        logger.info(f"Received {signal_name} signal, initiating graceful shutdown")
        self.shutdown_event.set()

    async def stop(self) -> None:
        """Flush pending chat-log appends and release the HTTP client."""
        logger.info("Stopping Vidya application")
        self.chat_log.flush()
        if self._owns_client:
            await self.client.aclose()
        if self.assistant is not None:
            shutdown_telemetry()
        self.shutdown_event.set()
        logger.info("✅ Vidya application shutdown complete")

    async def __aenter__(self) -> VidyaApplication:
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()
