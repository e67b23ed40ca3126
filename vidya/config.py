"""Vidya configuration management with environment variable overrides.

Configuration values are resolved in this order:
1. YAML config file, when one is passed to ``get_config``
2. Environment variables (VIDYA_*, nested with ``__``)
3. Pydantic defaults (lowest priority)

Example:
    VIDYA_TRANSLATION__GOOGLE_API_KEY=... overrides ``translation.google_api_key``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

KNOWN_TRANSLATION_PROVIDERS = ("model", "google", "libre")

DEFAULT_LIBRE_ENDPOINTS = [
    "https://translate.astian.org",
    "https://translate.argosopentech.com",
    "https://lt.vern.cc",
    "https://libretranslate.de",
    "https://libretranslate.com",
]


def normalize_endpoint(url: str) -> str:
    """Reduce a LibreTranslate URL to its base.

    ``https://host/translate/`` and ``https://host/languages`` both become
    ``https://host``.
    """
    base = url.strip().rstrip("/")
    for suffix in ("/translate", "/languages", "/detect"):
        if base.endswith(suffix):
            base = base[: -len(suffix)]
    return base.rstrip("/")


class TranslationConfig(BaseModel):
    """Translation layer configuration.

    Attributes:
        working_language: Pivot language all indexes are built in
        default_language: Language assumed when detection finds nothing
        supported_languages: Language codes the assistant converses in
        provider_order: Provider preference, tried strictly in sequence
        model_timeout: Per-attempt timeout for the model provider
        google_api_key: Enables the Google provider when set
        libre_url: Operator-configured LibreTranslate instance, tried first
        libre_endpoints: Public fallback instances
        libre_request_timeout: Per-request timeout against one instance
        libre_probe_timeout: Timeout of the ``/languages`` health probe
        libre_total_budget: Wall-clock budget for one Libre translate call
        endpoint_ttl_seconds: How long a healthy endpoint stays cached
        breaker_failure_threshold: Consecutive failures that open a breaker
        breaker_cooldown_seconds: Open-breaker cooldown before a retry
    """

    working_language: str = "en"
    default_language: str = "en"
    supported_languages: list[str] = Field(
        default_factory=lambda: ["en", "hi", "te", "gu", "ta", "kn"]
    )
    provider_order: list[str] = Field(default_factory=lambda: ["model", "google", "libre"])

    model_timeout: float = 8.0

    google_api_key: str | None = Field(
        default_factory=lambda: os.getenv("GOOGLE_TRANSLATE_API_KEY")
    )
    google_timeout: float = 5.0

    libre_enabled: bool = True
    libre_url: str | None = Field(default_factory=lambda: os.getenv("LIBRETRANSLATE_URL"))
    libre_api_key: str | None = Field(default_factory=lambda: os.getenv("LIBRETRANSLATE_API_KEY"))
    libre_endpoints: list[str] = Field(default_factory=lambda: list(DEFAULT_LIBRE_ENDPOINTS))
    libre_request_timeout: float = 1.5
    libre_probe_timeout: float = 2.0
    libre_total_budget: float = 4.0

    endpoint_ttl_seconds: float = 300.0
    breaker_failure_threshold: int = Field(default=3, ge=1)
    breaker_cooldown_seconds: float = 600.0

    @field_validator("provider_order")
    @classmethod
    def validate_provider_order(cls, value: list[str]) -> list[str]:
        """Reject unknown provider names."""
        unknown = [name for name in value if name not in KNOWN_TRANSLATION_PROVIDERS]
        if unknown:
            raise ValueError(f"Unknown translation providers: {unknown}")
        return value

    @model_validator(mode="after")
    def working_language_supported(self) -> "TranslationConfig":
        """Make sure the pivot language is one the assistant speaks."""
        if self.working_language not in self.supported_languages:
            self.supported_languages = [self.working_language, *self.supported_languages]
        return self

    def candidate_endpoints(self) -> list[str]:
        """Ordered, de-duplicated LibreTranslate base URLs."""
        raw = [self.libre_url, *self.libre_endpoints] if self.libre_url else self.libre_endpoints
        seen: set[str] = set()
        endpoints: list[str] = []
        for url in raw:
            if not url:
                continue
            base = normalize_endpoint(url)
            if base and base not in seen:
                seen.add(base)
                endpoints.append(base)
        return endpoints


class EmbeddingConfig(BaseModel):
    """Embedding backend configuration.

    Attributes:
        backend: ``hashing`` (local feature hashing) or ``sentence-transformers``
        model_name: Model used by the sentence-transformers backend
        dimension: Vector dimension
    """

    backend: Literal["hashing", "sentence-transformers"] = "hashing"
    model_name: str = "all-MiniLM-L6-v2"
    dimension: int = Field(default=384, ge=16)


class RetrievalConfig(BaseModel):
    """Evidence fan-out limits."""

    max_knowledge: int = 3
    max_faqs: int = 2
    max_events: int = 2
    max_chat_logs: int = 2
    max_profiles: int = 1
    max_web_results: int = 3
    max_urls: int = 2
    url_content_chars: int = 1000
    min_similarity: float = 0.2
    direct_answer_similarity: float = 0.45
    source_timeout: float = 5.0
    include_web_search: bool = False
    fetch_urls: bool = True


class SessionConfig(BaseModel):
    """Conversational memory configuration.

    Attributes:
        max_turns: Trailing window of turns kept per session
        history_window: Turns handed to the generation capability
        event_reference_ttl_seconds: Lifetime of the last referenced event,
            ``None`` keeps it until overwritten
        summary_after_turns: Session length that triggers memory summaries
        chat_log_window: Chat-history documents kept per user
        chat_index_batch: Chat-log appends between chat-history invalidations
    """

    max_turns: int = Field(default=50, ge=1)
    history_window: int = 10
    event_reference_ttl_seconds: float | None = 1800.0
    summary_after_turns: int = 40
    chat_log_window: int = 200
    chat_index_batch: int = Field(default=10, ge=1)


class GenerationConfig(BaseModel):
    """Generation capability configuration."""

    provider: Literal["gemini"] = "gemini"
    model: str = "gemini-1.5-flash"
    api_key: str | None = Field(default_factory=lambda: os.getenv("GEMINI_API_KEY"))
    timeout: float = 15.0
    temperature: float = 0.7
    max_output_tokens: int = 1024


class ConcernConfig(BaseModel):
    """Concern escalation configuration."""

    webhook_urls: list[str] = Field(default_factory=list)
    webhook_timeout: float = 5.0
    history_turns: int = 10


class VidyaConfig(BaseSettings):
    """Main Vidya configuration.

    Attributes:
        assistant_name: Persona name used in replies and prompts
        institution_name: Institution the assistant serves
        translation: Translation layer configuration
        embedding: Embedding backend configuration
        retrieval: Evidence fan-out configuration
        sessions: Session memory configuration
        generation: Generation capability configuration
        concerns: Concern escalation configuration
        metrics_enabled: Expose Prometheus metrics
        metrics_port: Port for the Prometheus HTTP endpoint
        otlp_endpoint: Optional OTLP collector for traces
    """

    assistant_name: str = "Vidya"
    institution_name: str = "the university"

    translation: TranslationConfig = Field(default_factory=TranslationConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    sessions: SessionConfig = Field(default_factory=SessionConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    concerns: ConcernConfig = Field(default_factory=ConcernConfig)

    debug: bool = False
    environment: str = Field(default_factory=lambda: os.getenv("VIDYA_ENVIRONMENT", "development"))

    # Monitoring
    metrics_enabled: bool = True
    metrics_port: int = 9090
    otlp_endpoint: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        env_prefix="vidya_",
        extra="ignore",
    )


def load_config_from_file(config_path: str) -> dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Configuration dictionary, empty when the file is missing or invalid
    """
    path = Path(config_path).expanduser()
    if not path.exists():
        logger.warning(f"Config file not found: {config_path}")
        return {}

    try:
        with open(path) as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load config from {config_path}: {e}")
        return {}

    if not isinstance(config, dict):
        logger.error(f"Config file {config_path} must contain a mapping")
        return {}

    logger.info(f"Loaded configuration from {config_path}")
    return config


def get_config(config_path: str | None = None) -> VidyaConfig:
    """Get configuration instance.

    Args:
        config_path: Optional path to YAML config file

    Returns:
        VidyaConfig instance
    """
    if config_path:
        file_config = load_config_from_file(config_path)
        return VidyaConfig(**file_config)

    return VidyaConfig()
