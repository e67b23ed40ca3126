"""Translation providers.

Every provider translates already-masked text (see ``segments``) and
raises ``ExternalServiceError`` when it cannot produce a usable result.
Retrying, breaker bookkeeping and the origin-text fallback live in
``TranslationService``.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from vidya.errors import ExternalServiceError
from vidya.models import Turn
from vidya.monitoring import metrics
from vidya.translation.languages import language_name

if TYPE_CHECKING:
    from vidya.integrations.generation import GenerationClient
    from vidya.resilience.provider_health import ProviderHealth

logger = logging.getLogger(__name__)

GOOGLE_TRANSLATE_URL = "https://translation.googleapis.com/language/translate/v2"

_HTML_PATTERN = re.compile(r"<\s*(?:!doctype|html|head|body|script|div)\b", re.IGNORECASE)

MODEL_PROMPT = (
    "Translate the following text from {source} to {target}. "
    "Preserve numbers, dates, times (e.g., 8:00 A.M. to 10:00 P.M.), names, and acronyms exactly. "
    "Keep every token of the form __T0__ unchanged. "
    "Do not add extra commentary.\n\nText:\n{text}"
)


@runtime_checkable
class TranslationProvider(Protocol):
    """A single translation backend."""

    name: str
    timeout: float

    async def translate(self, text: str, source: str | None, target: str) -> str:
        """Translate ``text``; ``source`` None means auto-detect."""
        ...

    async def detect(self, text: str) -> str | None:
        """Detect the language of ``text``; None when unsupported."""
        ...


def _looks_like_html(text: str) -> bool:
    return bool(_HTML_PATTERN.search(text))


class ModelTranslationProvider:
    """Translation through the generation capability.

    Preferred first because it keeps wording consistent with the rest of
    the conversation.
    """

    name = "model"

    def __init__(self, generator: GenerationClient, timeout: float = 8.0) -> None:
        self.generator = generator
        self.timeout = timeout

    async def translate(self, text: str, source: str | None, target: str) -> str:
        prompt = MODEL_PROMPT.format(
            source=language_name(source) if source else "the detected language",
            target=language_name(target),
            text=text,
        )
        result = (await self.generator.generate([Turn(role="user", text=prompt)])).strip()
        if not result:
            raise ExternalServiceError(self.name, "empty translation")
        return result

    async def detect(self, text: str) -> str | None:
        return None


class GoogleTranslateProvider:
    """Google Cloud Translation v2 REST provider."""

    name = "google"

    def __init__(
        self,
        api_key: str,
        client: httpx.AsyncClient,
        timeout: float = 5.0,
        url: str = GOOGLE_TRANSLATE_URL,
    ) -> None:
        self.api_key = api_key
        self.client = client
        self.timeout = timeout
        self.url = url

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self.client.post(
                f"{self.url}{path}",
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalServiceError(self.name, f"{e.__class__.__name__}: {e}") from e
        if not isinstance(body, dict) or "data" not in body:
            raise ExternalServiceError(self.name, "malformed response")
        return body["data"]

    async def translate(self, text: str, source: str | None, target: str) -> str:
        payload: dict[str, Any] = {"q": text, "target": target, "format": "text"}
        if source:
            payload["source"] = source
        data = await self._post("", payload)
        try:
            translated = data["translations"][0]["translatedText"]
        except (KeyError, IndexError, TypeError) as e:
            raise ExternalServiceError(self.name, "response without translatedText") from e
        if not isinstance(translated, str) or not translated.strip():
            raise ExternalServiceError(self.name, "empty translation")
        return translated

    async def detect(self, text: str) -> str | None:
        data = await self._post("/detect", {"q": text})
        try:
            language = data["detections"][0][0]["language"]
        except (KeyError, IndexError, TypeError) as e:
            raise ExternalServiceError(self.name, "response without detections") from e
        return language if isinstance(language, str) else None


class LibreTranslateProvider:
    """LibreTranslate provider with endpoint probing and in-call failover.

    Candidate endpoints are tried in order, starting with the endpoint
    that last answered correctly. Each endpoint is probed with
    ``GET /languages`` (result cached for the health TTL) before it is
    used. A failing or malformed endpoint is demoted and the next
    candidate is tried within the same call, bounded by a total budget.
    """

    name = "libre"

    def __init__(
        self,
        endpoints: list[str],
        health: ProviderHealth,
        client: httpx.AsyncClient,
        api_key: str | None = None,
        request_timeout: float = 1.5,
        probe_timeout: float = 2.0,
        total_budget: float = 4.0,
    ) -> None:
        self.endpoints = endpoints
        self.health = health
        self.client = client
        self.api_key = api_key
        self.request_timeout = request_timeout
        self.probe_timeout = probe_timeout
        self.total_budget = total_budget
        # Breaker timeout: the whole failover walk must fit
        self.timeout = total_budget + probe_timeout

    def candidates(self) -> list[str]:
        """Endpoints in try order, cached healthy endpoint first."""
        preferred = self.health.preferred_endpoint(self.name)
        if preferred is None:
            return list(self.endpoints)
        return [preferred, *(url for url in self.endpoints if url != preferred)]

    async def probe(self, url: str) -> bool:
        """Check ``url`` with ``GET /languages``, caching the outcome."""
        cached = self.health.cached_probe(url)
        if cached is not None:
            return cached

        healthy = False
        try:
            response = await self.client.get(f"{url}/languages", timeout=self.probe_timeout)
            if response.is_success and "json" in response.headers.get("content-type", ""):
                healthy = isinstance(response.json(), list)
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Probe of {url} failed: {e.__class__.__name__}: {e}")

        self.health.record_probe(url, healthy)
        if not healthy:
            logger.info(f"LibreTranslate endpoint unhealthy: {url}")
        return healthy

    async def _post(self, url: str, path: str, form: dict[str, str], timeout: float) -> Any:
        if self.api_key:
            form = {**form, "api_key": self.api_key}
        response = await self.client.post(f"{url}{path}", data=form, timeout=timeout)
        response.raise_for_status()
        if "json" not in response.headers.get("content-type", ""):
            raise ExternalServiceError(self.name, f"{url} answered with non-JSON content")
        return response.json()

    async def _walk(self, path: str, form: dict[str, str], parse: Any) -> Any:
        """Try candidates in order until ``parse`` accepts a response."""
        deadline = self.health.now() + self.total_budget
        observed = self.health.preferred_endpoint(self.name)
        last_error = "no candidate endpoints"

        for url in self.candidates():
            remaining = deadline - self.health.now()
            if remaining <= 0:
                last_error = f"budget of {self.total_budget}s exhausted"
                break
            if not await self.probe(url):
                continue

            try:
                body = await self._post(url, path, form, timeout=min(self.request_timeout, remaining))
                result = parse(body)
            except (httpx.HTTPError, ValueError, ExternalServiceError) as e:
                last_error = f"{url}: {e.__class__.__name__}: {e}"
                logger.warning(f"⚠️ LibreTranslate {path} failed on {url}, failing over: {e}")
                metrics.endpoint_failovers_total.labels(provider=self.name).inc()
                self.health.record_probe(url, False)
                if observed == url:
                    self.health.demote_endpoint(self.name, url)
                    observed = None
                continue

            if self.health.compare_and_set_endpoint(self.name, expected=observed, new=url):
                observed = url
            return result

        raise ExternalServiceError(self.name, last_error)

    async def translate(self, text: str, source: str | None, target: str) -> str:
        def parse(body: Any) -> str:
            translated = body.get("translatedText") if isinstance(body, dict) else None
            if not isinstance(translated, str) or not translated.strip():
                raise ExternalServiceError(self.name, "response without translatedText")
            if _looks_like_html(translated):
                raise ExternalServiceError(self.name, "HTML returned as translation")
            return translated

        form = {"q": text, "source": source or "auto", "target": target, "format": "text"}
        return await self._walk("/translate", form, parse)

    async def detect(self, text: str) -> str | None:
        def parse(body: Any) -> str | None:
            if isinstance(body, list) and body and isinstance(body[0], dict):
                language = body[0].get("language")
                return language if isinstance(language, str) else None
            raise ExternalServiceError(self.name, "malformed detect response")

        return await self._walk("/detect", {"q": text}, parse)
