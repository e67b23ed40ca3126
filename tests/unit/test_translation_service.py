"""Tests for the resilient translation service."""

from __future__ import annotations

import pytest

from vidya.config import TranslationConfig
from vidya.errors import ExternalServiceError
from vidya.resilience import ProviderHealth
from vidya.translation import TranslationService


class FakeProvider:
    """Scriptable provider that records its calls."""

    def __init__(self, name: str, reply: str | None = None, fail: bool = False, detected: str | None = None) -> None:
        self.name = name
        self.timeout = 1.0
        self.reply = reply
        self.fail = fail
        self.detected = detected
        self.calls: list[tuple[str, str | None, str]] = []

    async def translate(self, text: str, source: str | None, target: str) -> str:
        self.calls.append((text, source, target))
        if self.fail:
            raise ExternalServiceError(self.name, "down")
        if self.reply is not None:
            return self.reply
        return f"[{target}] {text}"

    async def detect(self, text: str) -> str | None:
        return self.detected


def _service(*providers: FakeProvider, threshold: int = 3) -> TranslationService:
    return TranslationService(
        list(providers),
        ProviderHealth(failure_threshold=threshold),
        TranslationConfig(google_api_key=None, libre_url=None),
    )


class TestTranslate:
    """Test suite for TranslationService.translate."""

    @pytest.mark.asyncio
    async def test_identity_skips_providers(self) -> None:
        provider = FakeProvider("model")
        service = _service(provider)

        assert await service.translate("hello", "en", "en") == "hello"
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_protected_segments_survive(self) -> None:
        """Times and acronyms reach the provider as placeholders and come back verbatim."""
        provider = FakeProvider("model")
        service = _service(provider)

        result = await service.translate("Library open 9 AM - 5 PM", "en", "te")

        assert provider.calls == [("Library open __T0__", "en", "te")]
        assert result == "[te] Library open 9 AM - 5 PM"

    @pytest.mark.asyncio
    async def test_only_protected_text_skips_providers(self) -> None:
        provider = FakeProvider("model")
        service = _service(provider)

        assert await service.translate("9 AM - 5 PM", "en", "hi") == "9 AM - 5 PM"
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_falls_through_to_next_provider(self) -> None:
        first = FakeProvider("model", fail=True)
        second = FakeProvider("google", reply="नमस्ते")
        service = _service(first, second)

        assert await service.translate("hello", "en", "hi") == "नमस्ते"
        assert len(first.calls) == 1
        assert len(second.calls) == 1

    @pytest.mark.asyncio
    async def test_empty_result_is_a_failure(self) -> None:
        first = FakeProvider("model", reply="  ")
        second = FakeProvider("libre", reply="hola")
        service = _service(first, second)

        assert await service.translate("hello", "en", "es") == "hola"

    @pytest.mark.asyncio
    async def test_all_providers_fail_returns_original(self) -> None:
        service = _service(FakeProvider("model", fail=True), FakeProvider("libre", fail=True))

        assert await service.translate("hello", "en", "hi") == "hello"

    @pytest.mark.asyncio
    async def test_open_breaker_skips_provider(self) -> None:
        """After the failure threshold a provider is no longer called."""
        failing = FakeProvider("model", fail=True)
        service = _service(failing, threshold=2)

        for _ in range(3):
            assert await service.translate("hello", "en", "hi") == "hello"

        assert len(failing.calls) == 2

    @pytest.mark.asyncio
    async def test_unknown_target_returns_original(self) -> None:
        provider = FakeProvider("model")
        service = _service(provider)

        assert await service.translate("hello", "en", "xx") == "hello"
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_translate_fields(self) -> None:
        service = _service(FakeProvider("model"))

        fields = await service.translate_fields({"title": "Tech Fest", "body": "Annual fest"}, "en", "hi")

        assert fields == {"title": "[hi] Tech Fest", "body": "[hi] Annual fest"}


class TestDetectLanguage:
    """Test suite for TranslationService.detect_language."""

    @pytest.mark.asyncio
    async def test_heuristics_without_providers(self) -> None:
        service = _service()

        assert await service.detect_language("नमस्ते") == "hi"
        assert await service.detect_language("library eppudu teravata") == "te"
        assert await service.detect_language("where is the library") == "en"
        assert await service.detect_language("") == "en"

    @pytest.mark.asyncio
    async def test_provider_english_overridden_by_romanized(self) -> None:
        """Providers calling romanized Telugu English are second-guessed."""
        service = _service(FakeProvider("libre", detected="en"))

        assert await service.detect_language("library eppudu teravata") == "te"

    @pytest.mark.asyncio
    async def test_provider_result_used(self) -> None:
        service = _service(FakeProvider("google", detected="ta"))

        assert await service.detect_language("some text") == "ta"

    @pytest.mark.asyncio
    async def test_unsupported_provider_result_ignored(self) -> None:
        service = _service(FakeProvider("google", detected="fr"))

        assert await service.detect_language("bonjour") == "en"

    def test_is_supported(self) -> None:
        service = _service()

        assert service.is_supported("Telugu")
        assert not service.is_supported("fr")
        assert not service.is_supported(None)
