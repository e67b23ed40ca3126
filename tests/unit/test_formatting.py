"""Tests for answer formatting and preferences."""

from __future__ import annotations

from vidya.composer import apply_length_preference, apply_style_preference, format_response, with_greeting
from vidya.composer.formatting import MORE_DETAILS_PROMPT, with_source


class TestFormatResponse:
    """Test suite for format_response."""

    def test_normalizes_lists_and_callouts(self) -> None:
        text = "• one\n* two\n1) first\n\n\n\nNote: bring your ID card  \r\n"

        assert format_response(text) == "- one\n- two\n1. first\n\n**Note:** bring your ID card"

    def test_plain_text_unchanged(self) -> None:
        assert format_response("The library opens at 8:00 A.M.") == "The library opens at 8:00 A.M."


class TestPreferences:
    """Test suite for length and style preferences."""

    def test_short_keeps_three_sentences(self) -> None:
        assert apply_length_preference("One. Two! Three? Four.", "short") == "One. Two! Three?"

    def test_long_adds_prompt_once(self) -> None:
        longer = apply_length_preference("Details.", "long")

        assert longer == f"Details.\n\n{MORE_DETAILS_PROMPT}"
        assert apply_length_preference(longer, "long") == longer

    def test_no_preference(self) -> None:
        assert apply_length_preference("One. Two. Three. Four.", None) == "One. Two. Three. Four."

    def test_formal_drops_decorative_emoji(self) -> None:
        assert apply_style_preference("Great job! 👋 Keep going ✅", "formal") == "Great job! Keep going"
        assert apply_style_preference("Great job! 👋", "casual") == "Great job! 👋"


class TestDecorations:
    """Test suite for greeting and source decorations."""

    def test_greeting(self) -> None:
        assert with_greeting("How can I help?", "Ravi", "CSE") == (
            "Hello Ravi from the CSE department! 👋 How can I help?"
        )
        assert with_greeting("How can I help?", None) == "Hello Student! 👋 How can I help?"

    def test_source_label(self) -> None:
        assert with_source("Answer", "faq") == "Answer\n\n[Source: university FAQ]"
        assert with_source("Answer", None) == "Answer"
