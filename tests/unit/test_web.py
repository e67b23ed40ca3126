"""Tests for web search and page fetching over mocked HTTP."""

from __future__ import annotations

import httpx
import pytest

from vidya.errors import ExternalServiceError
from vidya.integrations.web import DuckDuckGoSearch, PageFetcher, extract_text, strip_tags

HTML_RESULTS = """
<div class="result">
  <a rel="nofollow" class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.edu%2Fadmissions&amp;rut=x">Admissions <b>2025</b></a>
  <a class="result__snippet" href="#">Apply online before <b>March 31</b>.</a>
</div>
<div class="result">
  <a rel="nofollow" class="result__a" href="https://example.org/fees">Fee structure</a>
  <a class="result__snippet" href="#">Tuition &amp; hostel fees.</a>
</div>
"""


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestDuckDuckGoSearch:
    """Test suite for DuckDuckGoSearch."""

    @pytest.mark.asyncio
    async def test_instant_answer(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.host == "api.duckduckgo.com"
            return httpx.Response(
                200,
                json={
                    "Heading": "JNTU Hyderabad",
                    "AbstractText": "A public university in Telangana.",
                    "AbstractURL": "https://en.wikipedia.org/wiki/JNTUH",
                    "RelatedTopics": [
                        {"Text": "Kukatpally - a neighbourhood", "FirstURL": "https://duckduckgo.com/Kukatpally"},
                        {"Topics": [{"Text": "Engineering - a field", "FirstURL": "https://duckduckgo.com/Eng"}]},
                    ],
                },
            )

        async with _client(handler) as client:
            results = await DuckDuckGoSearch(client).search("jntuh", max_results=3)

        assert [result.title for result in results] == ["JNTU Hyderabad", "Kukatpally", "Engineering"]
        assert results[0].url == "https://en.wikipedia.org/wiki/JNTUH"

    @pytest.mark.asyncio
    async def test_html_fallback(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "api.duckduckgo.com":
                return httpx.Response(200, json={"AbstractText": "", "RelatedTopics": []})
            return httpx.Response(200, text=HTML_RESULTS, headers={"content-type": "text/html"})

        async with _client(handler) as client:
            results = await DuckDuckGoSearch(client).search("admissions", max_results=5)

        assert len(results) == 2
        assert results[0].title == "Admissions 2025"
        assert results[0].url == "https://example.edu/admissions"
        assert results[0].snippet == "Apply online before March 31."
        assert results[1].snippet == "Tuition & hostel fees."

    @pytest.mark.asyncio
    async def test_both_endpoints_fail(self) -> None:
        async with _client(lambda request: httpx.Response(500)) as client:
            with pytest.raises(ExternalServiceError):
                await DuckDuckGoSearch(client).search("anything")

    @pytest.mark.asyncio
    async def test_empty_query(self) -> None:
        async with _client(lambda request: httpx.Response(500)) as client:
            assert await DuckDuckGoSearch(client).search("   ") == []


class TestPageFetcher:
    """Test suite for PageFetcher."""

    @pytest.mark.asyncio
    async def test_html_is_reduced_to_text(self) -> None:
        page = (
            "<html><head><title>x</title><script>var a = 1;</script></head>"
            "<body><nav>Menu</nav><h1>Library</h1><p>Open 8:00 A.M. to 10:00 P.M.</p></body></html>"
        )

        async with _client(lambda request: httpx.Response(200, text=page, headers={"content-type": "text/html"})) as client:
            text = await PageFetcher(client).fetch_text("https://example.edu/library")

        assert text == "Library\nOpen 8:00 A.M. to 10:00 P.M."

    @pytest.mark.asyncio
    async def test_max_chars(self) -> None:
        async with _client(lambda request: httpx.Response(200, text="a " * 100, headers={"content-type": "text/plain"})) as client:
            text = await PageFetcher(client, max_chars=10).fetch_text("https://example.edu/a.txt")

        assert len(text) == 10

    @pytest.mark.asyncio
    async def test_binary_content_skipped(self) -> None:
        response = httpx.Response(200, content=b"%PDF-1.4", headers={"content-type": "application/pdf"})
        async with _client(lambda request: response) as client:
            assert await PageFetcher(client).fetch_text("https://example.edu/a.pdf") == ""

    @pytest.mark.asyncio
    async def test_http_error(self) -> None:
        async with _client(lambda request: httpx.Response(404)) as client:
            with pytest.raises(ExternalServiceError):
                await PageFetcher(client).fetch_text("https://example.edu/missing")


def test_strip_tags_and_extract_text() -> None:
    assert strip_tags("<b>Fees</b> &amp; dues") == "Fees & dues"
    assert extract_text("<div>One</div><!-- hidden --><div>Two</div>") == "One\nTwo"
