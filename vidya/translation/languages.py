"""Supported languages, script ranges and romanized keyword lexicons."""

from __future__ import annotations

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "hi": "Hindi",
    "te": "Telugu",
    "gu": "Gujarati",
    "ta": "Tamil",
    "kn": "Kannada",
}

# Inclusive Unicode block per non-Latin script
UNICODE_BLOCKS: dict[str, tuple[int, int]] = {
    "hi": (0x0900, 0x097F),
    "gu": (0x0A80, 0x0AFF),
    "ta": (0x0B80, 0x0BFF),
    "te": (0x0C00, 0x0C7F),
    "kn": (0x0C80, 0x0CFF),
}

ROMANIZED_LEXICON: dict[str, frozenset[str]] = {
    "hi": frozenset(
        ["kya", "kaise", "kab", "kyun", "haan", "nahi", "shukriya", "dhanyavad", "namaste"]
    ),
    "te": frozenset(
        [
            "eppudu",
            "ela",
            "ekkada",
            "em",
            "emi",
            "le",
            "ledu",
            "namaskaram",
            "meeru",
            "teravata",
            "terustundi",
            "terucukuntundi",
        ]
    ),
    "ta": frozenset(
        ["eppo", "eppothu", "eppadi", "enna", "illai", "nandri", "vanakkam", "unga"]
    ),
    "gu": frozenset(
        ["kyare", "kem", "kevi", "nathi", "dhanyavaad", "namaskar", "tamne", "shu"]
    ),
    "kn": frozenset(
        ["yavaga", "hegide", "elli", "illa", "dhanyavada", "namaskara", "neevu"]
    ),
}

_NAME_TO_CODE = {name.lower(): code for code, name in LANGUAGE_NAMES.items()}


def normalize_language(value: str | None) -> str | None:
    """Map a code, locale or English language name to a known code.

    ``"hi"``, ``"hi-IN"``, ``"HI"`` and ``"Hindi"`` all map to ``"hi"``.

    Returns:
        Language code, or None when the value is empty or unknown
    """
    if not value:
        return None
    cleaned = value.strip().lower().replace("_", "-")
    if not cleaned:
        return None
    if cleaned in _NAME_TO_CODE:
        return _NAME_TO_CODE[cleaned]
    code = cleaned.split("-", 1)[0]
    return code if code in LANGUAGE_NAMES else None


def language_name(code: str) -> str:
    """English display name for a code, the code itself when unknown."""
    return LANGUAGE_NAMES.get(code, code)
