"""Model-free language detection heuristics."""

from __future__ import annotations

import logging
import re
from collections import Counter

from vidya.translation.languages import ROMANIZED_LEXICON, UNICODE_BLOCKS

logger = logging.getLogger(__name__)

_WORD_PATTERN = re.compile(r"[a-z]+")


def detect_script(text: str) -> str | None:
    """Detect a language from its Unicode block.

    Args:
        text: Text to inspect

    Returns:
        Language code of the dominant non-Latin script, or None
    """
    counts: Counter[str] = Counter()
    for ch in text:
        point = ord(ch)
        if point < 0x0900:
            continue
        for code, (start, end) in UNICODE_BLOCKS.items():
            if start <= point <= end:
                counts[code] += 1
                break

    if not counts:
        return None
    return counts.most_common(1)[0][0]


def detect_romanized(text: str) -> str | None:
    """Detect romanized Indian-language text by keyword hits.

    A language wins with at least two keyword hits, or with a single hit
    when no other language scores as high.

    Args:
        text: Latin-script text

    Returns:
        Language code, or None when no language qualifies
    """
    words = _WORD_PATTERN.findall(text.lower())
    if not words:
        return None

    scores = {
        code: sum(1 for word in words if word in lexicon)
        for code, lexicon in ROMANIZED_LEXICON.items()
    }
    best = max(scores.values())
    if best == 0:
        return None

    leaders = [code for code, score in scores.items() if score == best]
    if len(leaders) > 1:
        logger.debug(f"Romanized detection tie between {leaders} at {best} hits")
    if best >= 2:
        # Ties resolve in lexicon order
        return leaders[0]
    return leaders[0] if len(leaders) == 1 else None


def detect_heuristic(text: str, default: str = "en") -> str:
    """Script block first, then romanized lexicon, else ``default``."""
    return detect_script(text) or detect_romanized(text) or default
