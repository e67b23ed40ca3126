"""Web search and page-fetch collaborators over httpx.

``DuckDuckGoSearch`` asks the Instant Answer API first and falls back to
the HTML results page. ``PageFetcher`` downloads a page and reduces it
to plain text within a character budget.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass
from typing import Protocol, runtime_checkable
from urllib.parse import parse_qs, urlparse

import httpx

from vidya.errors import ExternalServiceError

logger = logging.getLogger(__name__)

INSTANT_ANSWER_URL = "https://api.duckduckgo.com/"
HTML_SEARCH_URL = "https://html.duckduckgo.com/html/"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)

_RESULT_LINK = re.compile(
    r'<a[^>]*class="result__a"[^>]*href="([^"]*)"[^>]*>(.*?)</a>',
    re.IGNORECASE | re.DOTALL,
)
_RESULT_SNIPPET = re.compile(
    r'<(?:a|div|td)[^>]*class="result__snippet"[^>]*>(.*?)</(?:a|div|td)>',
    re.IGNORECASE | re.DOTALL,
)
_TAG = re.compile(r"<[^>]+>")
_NON_CONTENT_BLOCK = re.compile(
    r"<(script|style|noscript|svg|head|nav|footer)\b[^>]*>.*?</\1\s*>",
    re.IGNORECASE | re.DOTALL,
)
_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
_BLOCK_BREAK = re.compile(r"</?(?:p|div|br|li|h[1-6]|tr|section|article)\b[^>]*>", re.IGNORECASE)
_SPACES = re.compile(r"[ \t\r\f\v]+")
_BLANK_LINES = re.compile(r"\n\s*\n+")


@dataclass(frozen=True)
class WebResult:
    """One web search hit."""

    title: str
    url: str
    snippet: str


@dataclass(frozen=True)
class PageExtract:
    """Plain text fetched from a web result."""

    url: str
    title: str
    content: str


@runtime_checkable
class WebSearch(Protocol):
    async def search(self, query: str, max_results: int) -> list[WebResult]:
        ...


@runtime_checkable
class PageFetch(Protocol):
    async def fetch_text(self, url: str) -> str:
        ...


def strip_tags(fragment: str) -> str:
    """Remove markup and decode entities from an HTML fragment."""
    return html.unescape(_TAG.sub("", fragment)).strip()


def _resolve_redirect(href: str) -> str:
    """Unwrap DuckDuckGo ``/l/?uddg=`` redirect links."""
    href = html.unescape(href)
    if href.startswith("//"):
        href = f"https:{href}"
    parsed = urlparse(href)
    if parsed.path.startswith("/l/"):
        target = parse_qs(parsed.query).get("uddg")
        if target:
            return target[0]
    return href


class DuckDuckGoSearch:
    """Keyless web search against DuckDuckGo."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        instant_timeout: float = 5.0,
        html_timeout: float = 10.0,
    ) -> None:
        self.client = client
        self.instant_timeout = instant_timeout
        self.html_timeout = html_timeout

    async def search(self, query: str, max_results: int = 3) -> list[WebResult]:
        """Search the web.

        Args:
            query: Search query
            max_results: Maximum results to return

        Returns:
            Up to ``max_results`` results

        Raises:
            ExternalServiceError: If both search endpoints fail
        """
        if max_results <= 0 or not query.strip():
            return []

        instant_error: Exception | None = None
        try:
            results = await self._instant_answer(query, max_results)
            if results:
                return results
        except (httpx.HTTPError, ValueError) as e:
            instant_error = e
            logger.info(f"DuckDuckGo Instant Answer failed: {e.__class__.__name__}: {e}")

        try:
            return await self._html_results(query, max_results)
        except httpx.HTTPError as e:
            raise ExternalServiceError(
                "web_search",
                f"html search failed ({e.__class__.__name__}: {e}); instant answer: {instant_error}",
            ) from e

    async def _instant_answer(self, query: str, max_results: int) -> list[WebResult]:
        response = await self.client.get(
            INSTANT_ANSWER_URL,
            params={"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"},
            timeout=self.instant_timeout,
        )
        response.raise_for_status()
        data = response.json()

        results: list[WebResult] = []
        abstract = (data.get("AbstractText") or "").strip()
        if abstract:
            results.append(
                WebResult(
                    title=data.get("Heading") or abstract[:100],
                    url=data.get("AbstractURL") or str(httpx.URL("https://duckduckgo.com/", params={"q": query})),
                    snippet=abstract,
                )
            )

        topics = list(data.get("RelatedTopics") or [])
        while topics and len(results) < max_results:
            topic = topics.pop(0)
            if "Topics" in topic:
                topics[:0] = topic["Topics"]
                continue
            text = (topic.get("Text") or "").strip()
            url = topic.get("FirstURL") or ""
            if text and url:
                results.append(WebResult(title=text.split(" - ")[0][:100], url=url, snippet=text))

        return results[:max_results]

    async def _html_results(self, query: str, max_results: int) -> list[WebResult]:
        response = await self.client.get(
            HTML_SEARCH_URL,
            params={"q": query},
            headers={"User-Agent": USER_AGENT},
            timeout=self.html_timeout,
        )
        response.raise_for_status()
        page = response.text

        snippets = [strip_tags(match) for match in _RESULT_SNIPPET.findall(page)]
        results: list[WebResult] = []
        for position, (href, raw_title) in enumerate(_RESULT_LINK.findall(page)):
            title = strip_tags(raw_title)
            url = _resolve_redirect(href)
            if not title or not url:
                continue
            snippet = snippets[position] if position < len(snippets) else ""
            results.append(WebResult(title=title, url=url, snippet=snippet or "No description available"))
            if len(results) >= max_results:
                break

        logger.debug(f"DuckDuckGo HTML search returned {len(results)} results for {query!r}")
        return results


def extract_text(page: str) -> str:
    """Reduce an HTML page to readable text."""
    page = _COMMENT.sub(" ", page)
    page = _NON_CONTENT_BLOCK.sub(" ", page)
    page = _BLOCK_BREAK.sub("\n", page)
    text = html.unescape(_TAG.sub(" ", page))
    lines = [_SPACES.sub(" ", line).strip() for line in text.split("\n")]
    return _BLANK_LINES.sub("\n\n", "\n".join(line for line in lines if line)).strip()


class PageFetcher:
    """Fetches a URL and extracts bounded plain text."""

    def __init__(self, client: httpx.AsyncClient, timeout: float = 5.0, max_chars: int = 1000) -> None:
        self.client = client
        self.timeout = timeout
        self.max_chars = max_chars

    async def fetch_text(self, url: str) -> str:
        """Fetch ``url`` and return at most ``max_chars`` of text.

        Returns:
            Extracted text; empty for non-text content

        Raises:
            ExternalServiceError: If the request fails
        """
        try:
            response = await self.client.get(
                url,
                headers={"User-Agent": USER_AGENT},
                timeout=self.timeout,
                follow_redirects=True,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ExternalServiceError("page_fetch", f"{url}: {e.__class__.__name__}: {e}") from e

        content_type = response.headers.get("content-type", "")
        if "html" in content_type:
            text = extract_text(response.text)
        elif content_type.startswith("text/"):
            text = _SPACES.sub(" ", response.text).strip()
        else:
            logger.debug(f"Skipping {url}: unsupported content type {content_type!r}")
            return ""

        return text[: self.max_chars]
