"""Tests for translation providers over mocked HTTP."""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest

from vidya.errors import ExternalServiceError
from vidya.resilience import ProviderHealth
from vidya.translation.providers import (
    GoogleTranslateProvider,
    LibreTranslateProvider,
    ModelTranslationProvider,
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestModelTranslationProvider:
    """Test suite for the generation-backed provider."""

    @pytest.mark.asyncio
    async def test_translate_strips_output(self) -> None:
        generator = AsyncMock()
        generator.generate.return_value = "  లైబ్రరీ __T0__ తెరిచి ఉంటుంది  "
        provider = ModelTranslationProvider(generator)

        result = await provider.translate("Library is open __T0__", "en", "te")

        assert result == "లైబ్రరీ __T0__ తెరిచి ఉంటుంది"
        prompt = generator.generate.await_args.args[0][0].text
        assert "from English to Telugu" in prompt
        assert "__T0__" in prompt

    @pytest.mark.asyncio
    async def test_empty_output_fails(self) -> None:
        generator = AsyncMock()
        generator.generate.return_value = "   "
        provider = ModelTranslationProvider(generator)

        with pytest.raises(ExternalServiceError):
            await provider.translate("hello", "en", "hi")

    @pytest.mark.asyncio
    async def test_detect_is_unsupported(self) -> None:
        provider = ModelTranslationProvider(AsyncMock())

        assert await provider.detect("hello") is None


class TestGoogleTranslateProvider:
    """Test suite for the Google REST provider."""

    @pytest.mark.asyncio
    async def test_translate(self) -> None:
        seen: dict[str, str] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.url.params["key"]
            seen["path"] = request.url.path
            return httpx.Response(200, json={"data": {"translations": [{"translatedText": "नमस्ते"}]}})

        async with _client(handler) as client:
            provider = GoogleTranslateProvider("secret", client)
            result = await provider.translate("hello", "en", "hi")

        assert result == "नमस्ते"
        assert seen == {"key": "secret", "path": "/language/translate/v2"}

    @pytest.mark.asyncio
    async def test_detect(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("/detect")
            return httpx.Response(200, json={"data": {"detections": [[{"language": "te"}]]}})

        async with _client(handler) as client:
            provider = GoogleTranslateProvider("secret", client)
            assert await provider.detect("eppudu") == "te"

    @pytest.mark.asyncio
    async def test_http_error(self) -> None:
        async with _client(lambda request: httpx.Response(403, json={"error": "forbidden"})) as client:
            provider = GoogleTranslateProvider("secret", client)
            with pytest.raises(ExternalServiceError):
                await provider.translate("hello", "en", "hi")

    @pytest.mark.asyncio
    async def test_malformed_response(self) -> None:
        async with _client(lambda request: httpx.Response(200, json={"data": {}})) as client:
            provider = GoogleTranslateProvider("secret", client)
            with pytest.raises(ExternalServiceError):
                await provider.translate("hello", "en", "hi")


class TestLibreTranslateProvider:
    """Test suite for LibreTranslate failover."""

    @pytest.fixture
    def health(self) -> ProviderHealth:
        return ProviderHealth()

    @pytest.mark.asyncio
    async def test_fails_over_to_healthy_endpoint(self, health: ProviderHealth) -> None:
        """An endpoint answering HTML to the probe is skipped."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "a.test":
                return httpx.Response(200, text="<html><body>parked</body></html>", headers={"content-type": "text/html"})
            if request.url.path == "/languages":
                return httpx.Response(200, json=[{"code": "en"}, {"code": "hi"}])
            return httpx.Response(200, json={"translatedText": "नमस्ते"})

        async with _client(handler) as client:
            provider = LibreTranslateProvider(["https://a.test", "https://b.test"], health, client)
            result = await provider.translate("hello", "en", "hi")

        assert result == "नमस्ते"
        assert health.preferred_endpoint("libre") == "https://b.test"
        assert health.cached_probe("https://a.test") is False

    @pytest.mark.asyncio
    async def test_html_translation_is_rejected(self, health: ProviderHealth) -> None:
        """HTML returned as a translation triggers failover."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/languages":
                return httpx.Response(200, json=[{"code": "en"}])
            if request.url.host == "a.test":
                return httpx.Response(200, json={"translatedText": "<!DOCTYPE html><html></html>"})
            return httpx.Response(200, json={"translatedText": "hola"})

        async with _client(handler) as client:
            provider = LibreTranslateProvider(["https://a.test", "https://b.test"], health, client)
            assert await provider.translate("hello", "en", "es") == "hola"

        assert health.cached_probe("https://a.test") is False

    @pytest.mark.asyncio
    async def test_preferred_endpoint_tried_first(self, health: ProviderHealth) -> None:
        """The cached healthy endpoint leads the candidate order."""
        health.compare_and_set_endpoint("libre", None, "https://b.test")
        hosts: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            if request.url.path == "/languages":
                return httpx.Response(200, json=[])
            return httpx.Response(200, json={"translatedText": "bonjour"})

        async with _client(handler) as client:
            provider = LibreTranslateProvider(["https://a.test", "https://b.test"], health, client)
            await provider.translate("hello", "en", "fr")

        assert hosts == ["b.test", "b.test"]

    @pytest.mark.asyncio
    async def test_all_endpoints_fail(self, health: ProviderHealth) -> None:
        async with _client(lambda request: httpx.Response(503)) as client:
            provider = LibreTranslateProvider(["https://a.test", "https://b.test"], health, client)
            with pytest.raises(ExternalServiceError):
                await provider.translate("hello", "en", "hi")

        assert health.preferred_endpoint("libre") is None

    @pytest.mark.asyncio
    async def test_detect(self, health: ProviderHealth) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/languages":
                return httpx.Response(200, json=[])
            return httpx.Response(200, json=[{"language": "ta", "confidence": 90}])

        async with _client(handler) as client:
            provider = LibreTranslateProvider(["https://a.test"], health, client)
            assert await provider.detect("vanakkam") == "ta"
