"""Protected-segment masking for translation.

Times, time ranges, dates and acronyms are swapped for opaque placeholder
tokens before text is sent to a translation provider, then put back
verbatim afterwards. ``restore(*protect(text)) == text`` holds for any
input.

Example:
    >>> masked, segments = protect("Open 8:00 A.M. to 10:00 P.M. at CSE block")
    >>> masked
    'Open __T0__ at __T1__ block'
    >>> restore(masked, segments)
    'Open 8:00 A.M. to 10:00 P.M. at CSE block'
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_MERIDIEM = r"(?:A\.M\.|P\.M\.|A\.M|P\.M|AM|PM)"
_CLOCK = r"\d{1,2}(?::\d{2})?"
_JOINER = r"(?:to|-|–|—)"

# Alternatives are listed in precedence order; at any position the first
# alternative that matches wins.
_PROTECTED_PATTERN = re.compile(
    "|".join(
        [
            # Time range with a meridiem on the closing end
            rf"(?P<range>(?i:\b{_CLOCK}\s?{_MERIDIEM}?\s?{_JOINER}\s?{_CLOCK}\s?{_MERIDIEM})(?![A-Za-z]))",
            # 24-hour range
            rf"(?P<range24>\b\d{{1,2}}:\d{{2}}\s?{_JOINER}\s?\d{{1,2}}:\d{{2}}\b)",
            # Clock time with meridiem, or bare HH:MM
            rf"(?P<time>(?i:\b{_CLOCK}\s?{_MERIDIEM})(?![A-Za-z])|\b\d{{1,2}}:\d{{2}}\b)",
            # Numeric date or bare year
            r"(?P<date>\b(?:\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}|\d{4})\b)",
            # Upper-case acronym
            r"(?P<acronym>\b[A-Z]{2,6}\b)",
        ]
    )
)

_MARKER_CANDIDATES = ("T", "TX", "TXQ", "TXQZ")


@dataclass
class SegmentMap:
    """Placeholder id to original literal for one translate round trip.

    Attributes:
        marker: Letters between the underscores of every placeholder
        segments: Placeholder id to the literal it replaced
        kinds: Placeholder id to the pattern that matched
    """

    marker: str = "T"
    segments: dict[int, str] = field(default_factory=dict)
    kinds: dict[int, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.segments)

    def placeholder(self, segment_id: int) -> str:
        return f"__{self.marker}{segment_id}__"

    @property
    def pattern(self) -> re.Pattern[str]:
        return re.compile(rf"__{re.escape(self.marker)}(\d+)__")

    def missing_from(self, text: str) -> list[int]:
        """Ids whose placeholder a provider dropped from ``text``."""
        present = {int(match) for match in self.pattern.findall(text)}
        return [segment_id for segment_id in self.segments if segment_id not in present]


def _choose_marker(text: str) -> str:
    for candidate in _MARKER_CANDIDATES:
        if f"__{candidate}" not in text:
            return candidate
    # Longer markers until one does not occur in the input
    candidate = _MARKER_CANDIDATES[-1]
    while f"__{candidate}" in text:
        candidate += "X"
    return candidate


def protect(text: str) -> tuple[str, SegmentMap]:
    """Mask protected spans in ``text``.

    Args:
        text: Text about to be translated

    Returns:
        Tuple of (masked text, segment map)
    """
    segment_map = SegmentMap(marker=_choose_marker(text))

    def _replace(match: re.Match[str]) -> str:
        segment_id = len(segment_map.segments)
        segment_map.segments[segment_id] = match.group(0)
        kind = match.lastgroup or "segment"
        segment_map.kinds[segment_id] = "range" if kind == "range24" else kind
        return segment_map.placeholder(segment_id)

    masked = _PROTECTED_PATTERN.sub(_replace, text)
    return masked, segment_map


def restore(masked_text: str, segment_map: SegmentMap) -> str:
    """Replace every known placeholder with its original literal."""
    if not segment_map.segments:
        return masked_text

    def _replace(match: re.Match[str]) -> str:
        literal = segment_map.segments.get(int(match.group(1)))
        return literal if literal is not None else match.group(0)

    return segment_map.pattern.sub(_replace, masked_text)


def has_translatable_text(masked_text: str, segment_map: SegmentMap) -> bool:
    """Whether anything besides placeholders, digits and punctuation remains."""
    remainder = segment_map.pattern.sub(" ", masked_text)
    return any(ch.isalpha() for ch in remainder)
