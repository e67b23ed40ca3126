"""Tests for language heuristics and language names."""

from __future__ import annotations

import pytest

from vidya.translation.detection import detect_heuristic, detect_romanized, detect_script
from vidya.translation.languages import language_name, normalize_language


class TestDetectScript:
    """Test suite for Unicode block detection."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("नमस्ते", "hi"),
            ("మీరు ఎలా ఉన్నారు", "te"),
            ("வணக்கம்", "ta"),
            ("નમસ્તે", "gu"),
            ("ನಮಸ್ಕಾರ", "kn"),
        ],
    )
    def test_scripts(self, text: str, expected: str) -> None:
        assert detect_script(text) == expected

    def test_latin_text(self) -> None:
        assert detect_script("hello there") is None


class TestDetectRomanized:
    """Test suite for romanized keyword detection."""

    def test_two_hits_win(self) -> None:
        """Two Telugu keywords decide the language."""
        assert detect_romanized("library eppudu teravata") == "te"

    def test_single_unique_hit(self) -> None:
        """One hit is enough when no other language matches."""
        assert detect_romanized("kya library open hai") == "hi"

    def test_single_hit_tie(self) -> None:
        """A one-hit tie is not decisive."""
        assert detect_romanized("kya enna") is None

    def test_no_hits(self) -> None:
        assert detect_romanized("when does the library open") is None

    def test_heuristic_default(self) -> None:
        """Undecided text falls back to the default."""
        assert detect_heuristic("kya enna", default="en") == "en"
        assert detect_heuristic("नमस्ते") == "hi"


class TestLanguageNames:
    """Test suite for language normalization."""

    @pytest.mark.parametrize("value", ["hi", "HI", "hi-IN", "hi_IN", "Hindi", " hindi "])
    def test_normalize_variants(self, value: str) -> None:
        assert normalize_language(value) == "hi"

    @pytest.mark.parametrize("value", [None, "", "fr", "klingon"])
    def test_normalize_unknown(self, value: str | None) -> None:
        assert normalize_language(value) is None

    def test_language_name(self) -> None:
        assert language_name("te") == "Telugu"
        assert language_name("xx") == "xx"
