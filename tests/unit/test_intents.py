"""Tests for the intent ladder and detail extraction."""

from __future__ import annotations

import pytest

from vidya.classification import (
    Intent,
    IntentClassifier,
    IntentRule,
    MessageSignals,
    extract_registration_number,
    extract_task_titles,
)
from vidya.classification.intents import event_title, greeting_kind, regulation_code


class TestIntentClassifier:
    """Test suite for IntentClassifier."""

    @pytest.fixture
    def classifier(self) -> IntentClassifier:
        return IntentClassifier()

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("what's my schedule for today", Intent.SCHEDULE),
            ("today's timetable please", Intent.SCHEDULE),
            ("hello!", Intent.GREETING),
            ("good morning", Intent.GREETING),
            ("thanks", Intent.GREETING),
            ("clear all my tasks", Intent.TASK_CLEAR),
            ("I finished the assignment", Intent.TASK_COMPLETE),
            ("show my todos", Intent.TASK_LIST),
            ("what are my tasks", Intent.TASK_LIST),
            ('homework: "Math Unit 3", "DSA Sheet 2"', Intent.TASK_CREATE),
            ("add assignment DBMS record", Intent.TASK_CREATE),
            ("tell me about the event: Tech Fest", Intent.EVENT_DETAIL),
            ("any upcoming events?", Intent.EVENT_LIST),
            ("what's the time", Intent.UTILITY_TIME),
            ("what is the date today", Intent.UTILITY_DATE),
            ("any study tips for exams?", Intent.STUDY_TIPS),
            ("my reg no is 21A91A0501", Intent.PERSONAL_DATA),
            ("what are my marks", Intent.PERSONAL_DATA),
            ("what are the R22 regulations", Intent.REGULATION),
            ("play some music", Intent.OUT_OF_SCOPE),
            ("library timings", Intent.DEFAULT),
            ("who won the cricket match", Intent.DEFAULT),
        ],
    )
    def test_ladder(self, classifier: IntentClassifier, text: str, expected: Intent) -> None:
        assert classifier.classify(MessageSignals(text)) == expected

    def test_completion_needs_open_tasks_or_vocabulary(self, classifier: IntentClassifier) -> None:
        """"mark X as done" only completes a task when the user has open tasks."""
        text = "mark Maths as done"

        assert classifier.classify(MessageSignals(text, has_open_tasks=True)) == Intent.TASK_COMPLETE
        assert classifier.classify(MessageSignals(text)) != Intent.TASK_COMPLETE

    def test_event_follow_up_needs_reference(self, classifier: IntentClassifier) -> None:
        """Follow-ups resolve only while an event reference is live."""
        text = "give me more details"

        assert classifier.classify(MessageSignals(text, has_event_reference=True)) == Intent.EVENT_FOLLOW_UP
        assert classifier.classify(MessageSignals(text)) != Intent.EVENT_FOLLOW_UP

    def test_course_context_needs_department(self, classifier: IntentClassifier) -> None:
        text = "do you know my course"

        assert classifier.classify(MessageSignals(text, has_department=True)) == Intent.COURSE_CONTEXT
        assert classifier.classify(MessageSignals(text)) == Intent.DEFAULT

    def test_first_matching_rule_wins(self) -> None:
        """Rules are evaluated in order."""
        classifier = IntentClassifier(
            (
                IntentRule(Intent.STUDY_TIPS, lambda s: "exam" in s.text),
                IntentRule(Intent.GREETING, lambda s: True),
            )
        )

        assert classifier.classify(MessageSignals("exam prep")) == Intent.STUDY_TIPS
        assert classifier.classify(MessageSignals("anything")) == Intent.GREETING

    def test_empty_ladder_falls_through(self) -> None:
        assert IntentClassifier(()).classify(MessageSignals("hello")) == Intent.DEFAULT


class TestDetailExtraction:
    """Test suite for intent detail helpers."""

    def test_greeting_kind(self) -> None:
        assert greeting_kind("Thanks!") == "thanks"
        assert greeting_kind("how are you?") == "how_are_you"
        assert greeting_kind("bye") == "bye"
        assert greeting_kind("hi, what are the library timings") is None

    def test_event_title(self) -> None:
        assert event_title("tell me about the event: Tech Fest?") == "Tech Fest"
        assert event_title("Tell me about the event Hackathon 2025") == "Hackathon 2025"
        assert event_title("tell me about the library") is None

    def test_regulation_code(self) -> None:
        assert regulation_code("R22 syllabus") == "R22"
        assert regulation_code("regulation 25 rules") == "R25"
        assert regulation_code("show regulations") == "general"
        assert regulation_code("hello") is None

    def test_registration_number(self) -> None:
        assert extract_registration_number("my reg no is 21A91A0501") == "21A91A0501"
        assert extract_registration_number("registration number: 21a91a0501") == "21A91A0501"
        assert extract_registration_number("what is my reg no") is None
        assert extract_registration_number("R22 regulations") is None


class TestExtractTaskTitles:
    """Test suite for extract_task_titles."""

    def test_quoted_items_win(self) -> None:
        assert extract_task_titles('homework: "Math Unit 3", "DSA Sheet 2" and more') == [
            "Math Unit 3",
            "DSA Sheet 2",
        ]

    def test_split_after_marker(self) -> None:
        assert extract_task_titles("homework: maths and physics lab") == ["maths", "physics lab"]

    def test_separators(self) -> None:
        """Semicolons and spaced dashes separate items; inner hyphens do not."""
        assert extract_task_titles("to-do: Maths - Physics; Chemistry") == ["Maths", "Physics", "Chemistry"]
        assert extract_task_titles("tasks: CN-lab record") == ["CN-lab record"]

    def test_leading_verb_removed(self) -> None:
        assert extract_task_titles("add assignment DBMS record") == ["assignment DBMS record"]

    def test_vocabulary_only_items_dropped(self) -> None:
        assert extract_task_titles("add homework") == []
        assert extract_task_titles("please add my tasks") == []
