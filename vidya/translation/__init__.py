"""Translation layer: protected segments, providers and the resilient service."""

from vidya.translation.languages import LANGUAGE_NAMES, language_name, normalize_language
from vidya.translation.segments import SegmentMap, protect, restore
from vidya.translation.service import TranslationService

__all__ = [
    "LANGUAGE_NAMES",
    "SegmentMap",
    "TranslationService",
    "language_name",
    "normalize_language",
    "protect",
    "restore",
]
