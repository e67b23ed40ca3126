"""Evidence fan-out retriever.

One query is searched concurrently against every corpus index. Each
source is capped and timed out on its own, and a failing source only
empties its own slot in the bundle. Web search runs only when every
structured source came back empty, or when the caller asks for it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from vidya.config import RetrievalConfig
from vidya.index.documents import document_text
from vidya.integrations.web import PageExtract, WebResult
from vidya.models import Corpus, EvidenceDocument
from vidya.monitoring import metrics
from vidya.observability import add_span_attributes, record_counter, record_histogram, traced
from vidya.query.aggregator import RANKED_SOURCES, EvidenceAggregator
from vidya.sessions.records import profile_document

if TYPE_CHECKING:
    from vidya.index.similarity import IndexSet
    from vidya.integrations.web import PageFetch, WebSearch
    from vidya.sessions.records import ProfileDirectory
    from vidya.translation.service import TranslationService

logger = logging.getLogger(__name__)


def _fields_for(document: EvidenceDocument) -> dict[str, str]:
    if document.corpus is Corpus.FAQ:
        return {"question": document.title, "answer": document.body}
    if document.corpus is Corpus.EVENT:
        return {"title": document.title, "description": document.body}
    if document.corpus is Corpus.CHAT_HISTORY:
        return {"user": document.title, "assistant": document.body}
    if document.corpus is Corpus.USER_PROFILE:
        return {"name": document.title, "details": document.body}
    return {"title": document.title, "content": document.body}


@dataclass(frozen=True)
class EvidenceItem:
    """A scored document with display fields.

    Attributes:
        corpus: Source corpus
        document: Underlying document
        score: Cosine similarity to the query
        fields: Display fields, translated when a target language was set
    """

    corpus: Corpus
    document: EvidenceDocument
    score: float
    fields: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_document(cls, document: EvidenceDocument, score: float) -> EvidenceItem:
        return cls(document.corpus, document, score, _fields_for(document))

    @property
    def heading(self) -> str:
        return next(iter(self.fields.values()), self.document.title)

    @property
    def text(self) -> str:
        values = list(self.fields.values())
        return values[1] if len(values) > 1 else self.document.body


@dataclass
class RetrievalOptions:
    """Per-call retrieval bounds and behavior."""

    max_knowledge: int = 3
    max_faqs: int = 2
    max_events: int = 2
    max_chat_logs: int = 2
    max_profiles: int = 1
    max_web_results: int = 3
    max_urls: int = 2
    url_content_chars: int = 1000
    min_similarity: float = 0.2
    source_timeout: float = 5.0
    include_web_search: bool = False
    fetch_urls: bool = True
    user_id: str | None = None
    query_language: str | None = None
    target_language: str | None = None

    @classmethod
    def from_config(cls, config: RetrievalConfig, **overrides: Any) -> RetrievalOptions:
        values = {
            name: getattr(config, name)
            for name in (
                "max_knowledge",
                "max_faqs",
                "max_events",
                "max_chat_logs",
                "max_profiles",
                "max_web_results",
                "max_urls",
                "url_content_chars",
                "min_similarity",
                "source_timeout",
                "include_web_search",
                "fetch_urls",
            )
        }
        values.update(overrides)
        return cls(**values)

    def limit_for(self, corpus: Corpus) -> int:
        return {
            Corpus.KNOWLEDGE: self.max_knowledge,
            Corpus.FAQ: self.max_faqs,
            Corpus.EVENT: self.max_events,
            Corpus.CHAT_HISTORY: self.max_chat_logs,
            Corpus.USER_PROFILE: self.max_profiles,
        }[corpus]


@dataclass
class EvidenceBundle:
    """Evidence gathered for one query."""

    query: str
    by_corpus: dict[Corpus, list[EvidenceItem]] = field(default_factory=dict)
    web: list[WebResult] = field(default_factory=list)
    pages: list[PageExtract] = field(default_factory=list)
    failed_sources: list[str] = field(default_factory=list)
    language: str = "en"

    def items(self, corpus: Corpus) -> list[EvidenceItem]:
        return self.by_corpus.get(corpus, [])

    @property
    def faqs(self) -> list[EvidenceItem]:
        return self.items(Corpus.FAQ)

    @property
    def knowledge(self) -> list[EvidenceItem]:
        return self.items(Corpus.KNOWLEDGE)

    @property
    def events(self) -> list[EvidenceItem]:
        return self.items(Corpus.EVENT)

    @property
    def chat_history(self) -> list[EvidenceItem]:
        return self.items(Corpus.CHAT_HISTORY)

    @property
    def profiles(self) -> list[EvidenceItem]:
        return self.items(Corpus.USER_PROFILE)

    @property
    def has_structured_results(self) -> bool:
        return any(self.by_corpus.values())

    @property
    def has_ranked_results(self) -> bool:
        """Whether any FAQ, knowledge or event evidence matched the query."""
        return any(self.items(corpus) for corpus in RANKED_SOURCES)

    @property
    def is_empty(self) -> bool:
        return not self.has_structured_results and not self.web


class EvidenceRetriever:
    """Concurrent evidence retrieval over the index set and the web.

    Args:
        index_set: Similarity indexes per corpus
        translation: Translation service for query and field localization
        web_search: Optional web search collaborator
        page_fetcher: Optional page-fetch collaborator
        profiles: Optional directory used to pin the current user's profile
        config: Default retrieval limits
    """

    def __init__(
        self,
        index_set: IndexSet,
        translation: TranslationService,
        web_search: WebSearch | None = None,
        page_fetcher: PageFetch | None = None,
        profiles: ProfileDirectory | None = None,
        config: RetrievalConfig | None = None,
    ) -> None:
        self.index_set = index_set
        self.translation = translation
        self.web_search = web_search
        self.page_fetcher = page_fetcher
        self.profiles = profiles
        self.config = config or RetrievalConfig()

    def default_options(self, **overrides: Any) -> RetrievalOptions:
        return RetrievalOptions.from_config(self.config, **overrides)

    @traced("retrieval.retrieve")
    async def retrieve(self, query: str, options: RetrievalOptions | None = None) -> EvidenceBundle:
        """Gather evidence for ``query``.

        Steps:
            1. Translate the query to the working language if needed
            2. Fan out searches to every corpus concurrently
            3. Treat failed or timed-out sources as empty
            4. Search the web if no FAQ, knowledge or event matched (or on request)
            5. Fetch text for the top web results
            6. Translate display fields to the target language if needed

        Args:
            query: User query
            options: Retrieval bounds, configuration defaults when omitted

        Returns:
            Evidence bundle; never raises for source failures
        """
        options = options or self.default_options()
        started = time.perf_counter()
        working = self.translation.working_language

        search_query = query
        if options.query_language and options.query_language != working:
            search_query = await self.translation.translate(query, options.query_language, working)

        bundle = EvidenceBundle(query=search_query, language=working)
        corpora = list(Corpus)
        results = await asyncio.gather(
            *(self._search_source(corpus, search_query, options) for corpus in corpora),
            return_exceptions=True,
        )

        for corpus, result in zip(corpora, results, strict=False):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(f"Evidence source {corpus.value} failed: {type(result).__name__}: {result}")
                metrics.retrieval_source_failures_total.labels(
                    source=corpus.value, error_type=type(result).__name__
                ).inc()
                bundle.failed_sources.append(corpus.value)
                bundle.by_corpus[corpus] = []
            else:
                bundle.by_corpus[corpus] = result
                metrics.retrieval_results_total.labels(source=corpus.value).inc(len(result))

        if bundle.failed_sources:
            logger.warning(
                f"{len(bundle.failed_sources)} evidence sources failed: {bundle.failed_sources}. "
                "Continuing with the rest."
            )

        if self.web_search is not None and (options.include_web_search or not bundle.has_ranked_results):
            bundle.web = await self._search_web(search_query, options, bundle)
            if bundle.web and options.fetch_urls and self.page_fetcher is not None:
                bundle.pages = await self._fetch_pages(bundle.web, options)

        if options.target_language and options.target_language != working:
            await self._localize(bundle, options.target_language)

        elapsed = time.perf_counter() - started
        metrics.retrieval_duration_seconds.observe(elapsed)
        record_counter("retrieval.calls", 1, {"web_search": "yes" if bundle.web else "no"})
        record_histogram("retrieval.evidence.items", sum(len(items) for items in bundle.by_corpus.values()))
        add_span_attributes(
            {
                "retrieval.primary_source": EvidenceAggregator.primary_source(bundle) or "none",
                "retrieval.failed_sources": len(bundle.failed_sources),
                "retrieval.web_results": len(bundle.web),
            }
        )
        logger.info(
            f"Retrieved evidence in {elapsed:.3f}s: "
            + ", ".join(f"{corpus.value}={len(items)}" for corpus, items in bundle.by_corpus.items())
            + f", web={len(bundle.web)}"
        )
        return bundle

    async def _search_source(
        self,
        corpus: Corpus,
        query: str,
        options: RetrievalOptions,
    ) -> list[EvidenceItem]:
        """Search one corpus with timeout protection.

        Raises:
            TimeoutError: If the source exceeds ``source_timeout``
            Exception: If the index build or search fails
        """
        limit = options.limit_for(corpus)
        if limit <= 0:
            return []

        biased = options.user_id is not None and corpus is Corpus.CHAT_HISTORY
        fetch = limit * 2 if biased else limit

        try:
            hits = await asyncio.wait_for(
                self.index_set.search(corpus, query, fetch),
                timeout=options.source_timeout,
            )
        except TimeoutError:
            logger.warning(f"Evidence source {corpus.value} timed out after {options.source_timeout}s")
            raise

        items = [
            EvidenceItem.from_document(hit.document, hit.score)
            for hit in hits
            if hit.score >= options.min_similarity
        ]

        if options.user_id is not None and corpus is Corpus.CHAT_HISTORY:
            own = [item for item in items if item.document.metadata.get("user_id") == options.user_id]
            others = [item for item in items if item.document.metadata.get("user_id") != options.user_id]
            items = EvidenceAggregator.merge_unique([own, others], limit)
        elif options.user_id is not None and corpus is Corpus.USER_PROFILE:
            items = await self._pin_own_profile(items, options.user_id, limit)

        logger.debug(f"Source {corpus.value} returned {len(items)} items")
        return items[:limit]

    async def _pin_own_profile(
        self,
        items: list[EvidenceItem],
        user_id: str,
        limit: int,
    ) -> list[EvidenceItem]:
        own = [item for item in items if item.document.metadata.get("user_id") == user_id]
        if not own and self.profiles is not None:
            profile = await self.profiles.get(user_id)
            if profile is not None:
                own = [EvidenceItem.from_document(profile_document(profile), 1.0)]
        return EvidenceAggregator.merge_unique([own, items], limit)

    async def _search_web(
        self,
        query: str,
        options: RetrievalOptions,
        bundle: EvidenceBundle,
    ) -> list[WebResult]:
        assert self.web_search is not None
        try:
            results = await asyncio.wait_for(
                self.web_search.search(query, options.max_web_results),
                timeout=options.source_timeout * 2,
            )
        except Exception as e:
            logger.warning(f"Web search failed: {type(e).__name__}: {e}")
            metrics.retrieval_source_failures_total.labels(source="web", error_type=type(e).__name__).inc()
            bundle.failed_sources.append("web")
            return []
        metrics.retrieval_results_total.labels(source="web").inc(len(results))
        return results[: options.max_web_results]

    async def _fetch_pages(self, results: list[WebResult], options: RetrievalOptions) -> list[PageExtract]:
        assert self.page_fetcher is not None
        targets = results[: options.max_urls]
        texts = await asyncio.gather(
            *(
                asyncio.wait_for(self.page_fetcher.fetch_text(result.url), timeout=options.source_timeout)
                for result in targets
            ),
            return_exceptions=True,
        )

        pages: list[PageExtract] = []
        for result, text in zip(targets, texts, strict=False):
            if isinstance(text, BaseException):
                if not isinstance(text, Exception):
                    raise text
                logger.info(f"Could not fetch {result.url}: {type(text).__name__}: {text}")
                continue
            if text:
                pages.append(PageExtract(url=result.url, title=result.title, content=text[: options.url_content_chars]))
        return pages

    async def _localize(self, bundle: EvidenceBundle, target: str) -> None:
        """Translate every display field independently."""
        working = self.translation.working_language
        for corpus, items in bundle.by_corpus.items():
            localized: list[EvidenceItem] = []
            for item in items:
                fields = await self.translation.translate_fields(item.fields, working, target)
                localized.append(replace(item, fields=fields))
            bundle.by_corpus[corpus] = localized

        web: list[WebResult] = []
        for result in bundle.web:
            fields = await self.translation.translate_fields(
                {"title": result.title, "snippet": result.snippet}, working, target
            )
            web.append(WebResult(title=fields["title"], url=result.url, snippet=fields["snippet"]))
        bundle.web = web

        pages: list[PageExtract] = []
        for page in bundle.pages:
            content = await self.translation.translate(page.content, working, target)
            pages.append(PageExtract(url=page.url, title=page.title, content=content))
        bundle.pages = pages
        bundle.language = target


def evidence_text(item: EvidenceItem) -> str:
    """Indexed text of an item, used when quoting evidence in prompts."""
    return document_text(item.document)
