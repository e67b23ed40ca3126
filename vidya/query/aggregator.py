"""Evidence aggregation: de-duplication and fixed source priority."""

from __future__ import annotations

import typing as t

from vidya.models import Corpus

if t.TYPE_CHECKING:
    from vidya.query.retriever import EvidenceBundle, EvidenceItem

# Merge priority, highest first. Web results always rank after these.
SOURCE_PRIORITY: tuple[Corpus, ...] = (
    Corpus.FAQ,
    Corpus.KNOWLEDGE,
    Corpus.EVENT,
    Corpus.CHAT_HISTORY,
    Corpus.USER_PROFILE,
)

WEB_SOURCE = "web"

# Corpora ranked purely by similarity to the query. Chat history and profiles
# are biased toward the current user, so they do not gate the web fallback.
RANKED_SOURCES: tuple[Corpus, ...] = (Corpus.FAQ, Corpus.KNOWLEDGE, Corpus.EVENT)


class EvidenceAggregator:
    """Merges per-source evidence into one prioritized view."""

    @staticmethod
    def merge_unique(
        result_sets: list[list[EvidenceItem]],
        limit: int,
    ) -> list[EvidenceItem]:
        """Concatenate result sets, keeping the first occurrence of each document.

        Steps:
            1. Flatten in the order given (earlier sets win)
            2. Drop repeated document ids
            3. Truncate to ``limit``

        Args:
            result_sets: Result lists, highest precedence first
            limit: Maximum number of items

        Returns:
            De-duplicated items
        """
        seen: set[str] = set()
        merged: list[EvidenceItem] = []
        for result_set in result_sets:
            for item in result_set:
                if item.document.id in seen:
                    continue
                seen.add(item.document.id)
                merged.append(item)
        return merged[:limit]

    @staticmethod
    def prioritized(bundle: EvidenceBundle) -> list[EvidenceItem]:
        """All structured evidence ordered by source priority, then score."""
        ordered: list[EvidenceItem] = []
        for corpus in SOURCE_PRIORITY:
            items = sorted(bundle.items(corpus), key=lambda item: item.score, reverse=True)
            ordered.extend(items)
        return ordered

    @staticmethod
    def primary_source(bundle: EvidenceBundle) -> str | None:
        """Highest-priority source with any evidence.

        Returns:
            Corpus value, ``"web"``, or None when the bundle is empty
        """
        for corpus in SOURCE_PRIORITY:
            if bundle.items(corpus):
                return corpus.value
        if bundle.web:
            return WEB_SOURCE
        return None
