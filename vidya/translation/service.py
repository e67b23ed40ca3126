"""Resilient multi-provider translation.

``TranslationService.translate`` never raises. Providers are tried
strictly in sequence, each behind its own circuit breaker and timeout,
and the original text is returned when none of them produces a result.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from vidya.config import TranslationConfig
from vidya.monitoring import metrics
from vidya.observability import add_span_attributes, traced
from vidya.resilience.circuit_breaker import CircuitBreakerError
from vidya.translation.detection import detect_heuristic, detect_script
from vidya.translation.languages import normalize_language
from vidya.translation.segments import has_translatable_text, protect, restore

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from vidya.resilience.provider_health import ProviderHealth
    from vidya.translation.providers import TranslationProvider

logger = logging.getLogger(__name__)


class TranslationService:
    """Translation with ordered providers, breakers and origin-text fallback.

    Args:
        providers: Providers in preference order
        health: Shared breaker and endpoint state
        config: Translation configuration
    """

    def __init__(
        self,
        providers: Sequence[TranslationProvider],
        health: ProviderHealth,
        config: TranslationConfig | None = None,
    ) -> None:
        self.providers = list(providers)
        self.health = health
        self.config = config or TranslationConfig()
        logger.info(
            f"TranslationService initialized with providers: "
            f"{[provider.name for provider in self.providers] or 'none'}"
        )

    @property
    def working_language(self) -> str:
        return self.config.working_language

    def is_supported(self, language: str | None) -> bool:
        code = normalize_language(language)
        return code is not None and code in self.config.supported_languages

    @traced("translation.translate")
    async def translate(self, text: str, source_lang: str | None, target_lang: str) -> str:
        """Translate ``text`` from ``source_lang`` to ``target_lang``.

        Args:
            text: Text to translate
            source_lang: Source language code, None or ``"auto"`` to detect
            target_lang: Target language code

        Returns:
            Translated text with protected segments restored, or ``text``
            unchanged when no translation is needed or every provider failed
        """
        if not text or not text.strip():
            return text

        source = normalize_language(source_lang) if source_lang not in (None, "auto") else None
        target = normalize_language(target_lang)
        if target is None:
            logger.warning(f"Unsupported target language {target_lang!r}, returning original text")
            return text
        if source == target:
            return text

        masked, segments = protect(text)
        if not has_translatable_text(masked, segments):
            return text

        add_span_attributes(
            {
                "translation.source": source or "auto",
                "translation.target": target,
                "translation.protected_segments": len(segments),
            }
        )

        for provider in self.providers:
            breaker = self.health.breaker(provider.name, call_timeout=provider.timeout)
            try:
                result = await breaker.call(provider.translate, masked, source, target)
            except CircuitBreakerError:
                logger.debug(f"Skipping translation provider '{provider.name}' (circuit open)")
                metrics.translation_attempts_total.labels(provider=provider.name, status="rejected").inc()
                continue
            except Exception as e:
                logger.warning(
                    f"⚠️ Translation via '{provider.name}' failed ({source or 'auto'}->{target}): "
                    f"{e.__class__.__name__}: {e}"
                )
                metrics.translation_attempts_total.labels(provider=provider.name, status="error").inc()
                continue

            if not result or not result.strip():
                logger.warning(f"⚠️ Translation via '{provider.name}' returned empty text")
                metrics.translation_attempts_total.labels(provider=provider.name, status="empty").inc()
                continue

            missing = segments.missing_from(result)
            if missing:
                logger.warning(
                    f"Provider '{provider.name}' dropped {len(missing)} protected segment(s): "
                    f"{[segments.segments[i] for i in missing]}"
                )
            metrics.translation_attempts_total.labels(provider=provider.name, status="success").inc()
            return restore(result, segments)

        logger.warning(
            f"⚠️ All translation providers failed ({source or 'auto'}->{target}), "
            "returning original text"
        )
        metrics.translation_fallbacks_total.inc()
        return text

    async def translate_fields(
        self,
        fields: Mapping[str, str],
        source_lang: str | None,
        target_lang: str,
    ) -> dict[str, str]:
        """Translate each field independently, one call per field."""
        translated: dict[str, str] = {}
        for key, value in fields.items():
            translated[key] = await self.translate(value, source_lang, target_lang)
        return translated

    @traced("translation.detect")
    async def detect_language(self, text: str) -> str:
        """Best-effort language detection.

        Providers that support detection are asked in preference order,
        then the script and romanized-keyword heuristics decide.

        Returns:
            A supported language code, the default language when unsure
        """
        default = self.config.default_language
        if not text or not text.strip():
            return default

        for provider in self.providers:
            breaker = self.health.breaker(provider.name, call_timeout=provider.timeout)
            try:
                detected = await breaker.call(provider.detect, text)
            except CircuitBreakerError:
                continue
            except Exception as e:
                logger.debug(f"Detection via '{provider.name}' failed: {e.__class__.__name__}: {e}")
                continue

            code = normalize_language(detected)
            if code and code in self.config.supported_languages:
                # Providers tend to call romanized Hindi "en"; trust the script check instead
                if code == default and detect_script(text):
                    continue
                if code == default:
                    romanized = detect_heuristic(text, default)
                    if romanized != default:
                        return romanized
                return code

        detected = detect_heuristic(text, default)
        return detected if detected in self.config.supported_languages else default
