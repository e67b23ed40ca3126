"""Distress concern classification.

Keyword and phrase membership over escalating lists. Every list is
checked; the concern type comes from the highest-priority list with a
hit, and the severity is that list's base severity, bumped one level
when more than one distinct keyword matched across all lists.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from vidya.models import ConcernAssessment, ConcernSeverity, ConcernType


@dataclass(frozen=True)
class ConcernList:
    """Keywords for one concern type."""

    concern_type: ConcernType
    severity: ConcernSeverity
    keywords: tuple[str, ...]


# Highest priority first
CONCERN_LISTS: tuple[ConcernList, ...] = (
    ConcernList(
        ConcernType.SUICIDE,
        ConcernSeverity.CRITICAL,
        (
            "kill myself",
            "end my life",
            "suicide",
            "suicidal",
            "want to die",
            "not worth living",
            "better off dead",
            "end it all",
            "take my life",
            "overdose",
            "jump off",
            "hang myself",
            "no point living",
            "no point in living",
            "life is meaningless",
            "can't go on",
            "everyone would be better without me",
        ),
    ),
    ConcernList(
        ConcernType.SELF_HARM,
        ConcernSeverity.HIGH,
        ("cut myself", "hurt myself", "self harm", "self-harm", "burn myself"),
    ),
    ConcernList(
        ConcernType.DEPRESSION,
        ConcernSeverity.MEDIUM,
        (
            "depressed",
            "depression",
            "sad all the time",
            "hopeless",
            "worthless",
            "nothing matters",
            "crying",
            "empty inside",
            "numb",
            "can't feel",
            "all alone",
            "isolated",
        ),
    ),
    ConcernList(
        ConcernType.ANXIETY,
        ConcernSeverity.MEDIUM,
        ("anxiety", "anxious", "panic", "overwhelmed", "stressed", "can't cope"),
    ),
    ConcernList(
        ConcernType.ACADEMIC_STRESS,
        ConcernSeverity.MEDIUM,
        (
            "failing",
            "can't pass",
            "academic probation",
            "expelled",
            "drop out",
            "parents will kill me",
            "disappointed",
            "ashamed",
            "embarrassed",
            "waste of money",
            "waste of time",
            "not smart enough",
            "stupid",
        ),
    ),
)

_APOSTROPHES = str.maketrans({"’": "'", "‘": "'", "`": "'"})


def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    # "can't" also matches "cant", "self harm" also matches "self  harm"
    body = re.escape(keyword).replace("'", "'?").replace(r"\ ", r"\s+")
    return re.compile(rf"(?<![a-z0-9]){body}(?![a-z0-9])")


def normalize_message(message: str) -> str:
    return " ".join(message.translate(_APOSTROPHES).lower().split())


class ConcernClassifier:
    """Deterministic keyword classifier for distress language."""

    def __init__(self, lists: tuple[ConcernList, ...] = CONCERN_LISTS) -> None:
        self.lists = lists
        self._patterns = [
            [(keyword, _keyword_pattern(keyword)) for keyword in concern_list.keywords]
            for concern_list in lists
        ]

    def classify(self, message: str) -> ConcernAssessment:
        """Classify ``message``.

        Args:
            message: Raw or translated message text

        Returns:
            Assessment; ``ConcernType.NONE`` when no keyword matched
        """
        text = normalize_message(message)
        if not text:
            return ConcernAssessment()

        matched: list[str] = []
        winner: ConcernList | None = None
        for concern_list, patterns in zip(self.lists, self._patterns, strict=True):
            hits = [keyword for keyword, pattern in patterns if pattern.search(text)]
            if hits and winner is None:
                winner = concern_list
            matched.extend(keyword for keyword in hits if keyword not in matched)

        if winner is None:
            return ConcernAssessment()

        severity = winner.severity
        if len(matched) > 1:
            severity = severity.bumped()
        return ConcernAssessment(
            concern_type=winner.concern_type,
            severity=severity,
            keywords=tuple(matched),
        )
