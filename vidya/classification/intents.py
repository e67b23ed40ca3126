"""Intent ladder.

An ordered list of ``IntentRule(intent, predicate)`` pairs evaluated over
the working-language message. The first rule whose predicate holds wins.
Concern detection is not part of this ladder; it runs before it.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum


class Intent(str, Enum):
    """What the message asks for, in ladder order."""

    SCHEDULE = "schedule"
    GREETING = "greeting"
    TASK_CLEAR = "task_clear"
    TASK_COMPLETE = "task_complete"
    TASK_LIST = "task_list"
    TASK_CREATE = "task_create"
    EVENT_DETAIL = "event_detail"
    EVENT_FOLLOW_UP = "event_follow_up"
    EVENT_LIST = "event_list"
    UTILITY_TIME = "utility_time"
    UTILITY_DATE = "utility_date"
    STUDY_TIPS = "study_tips"
    COURSE_CONTEXT = "course_context"
    PERSONAL_DATA = "personal_data"
    REGULATION = "regulation"
    OUT_OF_SCOPE = "out_of_scope"
    DEFAULT = "default"


@dataclass(frozen=True)
class MessageSignals:
    """Message text plus the session facts some rules depend on.

    Attributes:
        text: Message in the working language
        has_event_reference: Session holds a live last-referenced event
        has_department: Session context knows the user's department
        has_open_tasks: User has incomplete tasks for today
    """

    text: str
    has_event_reference: bool = False
    has_department: bool = False
    has_open_tasks: bool = False


# =============================================================================
# Patterns
# =============================================================================

SCHEDULE_PATTERN = re.compile(
    r"(what'?s|what is|show|tell).*\b(schedule|timetable|routine)\b.*\b(today|now)\b"
    r"|\b(today'?s|today)\b.*\b(schedule|timetable|routine)\b",
    re.IGNORECASE,
)

GREETING_PATTERNS: dict[str, re.Pattern[str]] = {
    "hello": re.compile(
        r"^(hi|hello|hey|yo|hola|namaste|namaskar|vanakkam|salaam"
        r"|good (morning|afternoon|evening|night)|gm|gn)( there)?$",
        re.IGNORECASE,
    ),
    "how_are_you": re.compile(
        r"^(how are you|how r u|hru|what'?s up|wass?up|sup|how'?s it going"
        r"|how (is|are) it going|how are things|how you doing|how do you do)$",
        re.IGNORECASE,
    ),
    "thanks": re.compile(r"^(thank you|thanks|thank you so much|thanks a lot|thx|ty)$", re.IGNORECASE),
    "bye": re.compile(r"^(bye|goodbye|see you|take care|cya|good bye)$", re.IGNORECASE),
    "ack": re.compile(r"^(yes|no|ok|okay|sure|alright|k|kk|fine|great|cool)$", re.IGNORECASE),
}

TASK_VOCABULARY = re.compile(r"\b(homework|todos?|to-?dos?|tasks?|assignments?)\b", re.IGNORECASE)
TASK_CLEAR_PATTERNS = (
    re.compile(r"(delete|clear|complete|finish|mark)\s+(all|everything).*\b(todos?|to-?dos?|tasks?)\b", re.IGNORECASE),
    re.compile(r"(today|for today).*(delete|clear|complete|finish).*\b(todos?|to-?dos?|tasks?)\b", re.IGNORECASE),
)
TASK_COMPLETE_PATTERN = re.compile(
    r"\b(mark|set)\b.*\b(complete|completed|done)\b"
    r"|\b(completed|finished|done)\b"
    r"|\b(tick off|check off|i finished|i have finished|i am done with)\b",
    re.IGNORECASE,
)
TASK_LIST_PATTERN = re.compile(
    r"\b(show|list|view|see|display)\s+(me\s+)?(all\s+)?my\s+(todos?|to-?dos?|tasks|homework)\b"
    r"|\bwhat are my (todos?|to-?dos?|tasks)\b",
    re.IGNORECASE,
)
TASK_CREATE_HINT = re.compile(
    r"[\"“]|\b(homework|todos?|to-?dos?|tasks?|assignments?)\s*[:\-]|\b(add|create|new|remind me|note down)\b",
    re.IGNORECASE,
)
TASK_LIST_MARKERS = re.compile(r"homework\s*[:\-]|tasks?\s*[:\-]|to-?dos?\s*[:\-]|assignments?\s*[:\-]", re.IGNORECASE)
TASK_ITEM_SEPARATORS = re.compile(r"\band\b|,|\n|;|•|\s-\s", re.IGNORECASE)
TASK_VOCABULARY_ONLY = re.compile(
    r"^(?:(?:please|add|create|new|my|the|some|today'?s)\s+)*(homework|todos?|to-?dos?|tasks?|assignments?)$",
    re.IGNORECASE,
)
TASK_LEADING_VERB = re.compile(r"^(?:please\s+)?(?:add|create|new)\s+", re.IGNORECASE)

EVENT_DETAIL_PATTERN = re.compile(r"tell me about the event\s*:?\s*([^\n]+)", re.IGNORECASE)
EVENT_LIST_PATTERN = re.compile(r"\b(upcoming events?|events?)\b", re.IGNORECASE)
EVENT_FOLLOW_UP_PATTERN = re.compile(
    r"\b(give|explain|details|description|more about|tell me more)\b", re.IGNORECASE
)

TIME_PATTERN = re.compile(
    r"\b(what'?s|what is)\s+the\s+time\b|\btime now\b|\bcurrent time\b|\bwhat time is it\b", re.IGNORECASE
)
DATE_PATTERN = re.compile(
    r"\b(what'?s|what is)\s+(the\s+)?date\b|\btoday'?s date\b|\bcurrent date\b|\bwhat day is (it|today)\b",
    re.IGNORECASE,
)
STUDY_TIPS_PATTERN = re.compile(
    r"\b(study tips|how to study|focus better|time management|motivation)\b", re.IGNORECASE
)

COURSE_PATTERNS = re.compile(
    r"do you know my (course|branch)|what is my (course|branch)|\bmy (course|branch)\b"
    r"|\b(course|branch) details\b|\bwhich branch\b|\benrolled in\b",
    re.IGNORECASE,
)

REGISTRATION_PATTERN = re.compile(
    r"\b(?:reg|registration)(?:\s+|-|_|\.)?(?:no|num|number)?\.?(?:\s+|-|_)?(?:is)?(?:\s+|-|_|:)*\s*"
    r"([a-z0-9]*\d[a-z0-9]*)\b",
    re.IGNORECASE,
)
PERSONAL_DATA_PATTERNS = (
    re.compile(r"\bmy\s+(fee|fees|tuition|payment|balance|due|outstanding)\b", re.IGNORECASE),
    re.compile(r"\bhow\s+much\s+(fee|fees|tuition|payment|balance|due)\b.*\bi\b", re.IGNORECASE),
    re.compile(
        r"\bmy\s+(department|faculty|school|college|program|batch|semester|year|section|class)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\bmy\s+(grade|grades|mark|marks|score|scores|result|results|performance|attendance|record|records)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\bmy\s+(profile|account|details|information|info|data)\b", re.IGNORECASE),
    re.compile(r"\bmy\s+(reg|registration)(\s+|-|_|\.)?(no|num|number)?\b", re.IGNORECASE),
    re.compile(r"\bstudent\s+(details|info|information)\b", re.IGNORECASE),
    re.compile(r"\bwho\s+am\s+i\b|\bfind\s+me\b", re.IGNORECASE),
)

REGULATION_PATTERNS = {
    "R22": re.compile(r"\br\s?22\b|\bregulation\s+22\b", re.IGNORECASE),
    "R25": re.compile(r"\br\s?25\b|\bregulation\s+25\b", re.IGNORECASE),
    "general": re.compile(r"\bregulations?\b", re.IGNORECASE),
}

UNIVERSITY_KEYWORDS = (
    "university", "college", "student", "admission", "course", "program", "academic",
    "faculty", "campus", "library", "hostel", "placement", "exam", "semester", "degree",
    "bachelor", "master", "phd", "research", "thesis", "assignment", "project", "lab",
    "department", "engineering", "management", "pharmacy", "science", "technology",
    "education", "study", "scholarship", "fee", "tuition", "registration", "enrollment",
    "graduation", "convocation", "alumni", "career", "job", "internship", "training",
    "r22", "r25", "regulation", "syllabus", "curriculum", "jntu", "autonomous", "affiliated",
    "ugc", "aicte", "credit", "cgpa", "sgpa", "grade", "marking", "evaluation", "assessment",
    "internal", "external", "midterm", "final", "practical", "theory", "tutorial", "seminar",
    "workshop", "viva", "submission", "class", "timing", "canteen", "transport", "bus",
    "attendance", "result", "hall ticket", "certificate", "club", "sports",
)
_UNIVERSITY_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(keyword) for keyword in UNIVERSITY_KEYWORDS) + ")",
    re.IGNORECASE,
)
GENERAL_QUESTION_PATTERN = re.compile(
    r"\b(what is|what are|what's|how does|how do|how can|how to|why|when|where|who|which"
    r"|can you|could you|explain|define|tell me)\b",
    re.IGNORECASE,
)


# =============================================================================
# Predicates
# =============================================================================


def greeting_kind(text: str) -> str | None:
    """Greeting sub-kind for a whole-message greeting, None otherwise."""
    candidate = text.strip().rstrip("!.?").strip()
    for kind, pattern in GREETING_PATTERNS.items():
        if pattern.match(candidate):
            return kind
    return None


def is_university_related(text: str) -> bool:
    return _UNIVERSITY_PATTERN.search(text) is not None


def is_general_question(text: str) -> bool:
    return GENERAL_QUESTION_PATTERN.search(text) is not None or text.rstrip().endswith("?")


def _is_task_clear(signals: MessageSignals) -> bool:
    return any(pattern.search(signals.text) for pattern in TASK_CLEAR_PATTERNS)


def _is_task_complete(signals: MessageSignals) -> bool:
    if not TASK_COMPLETE_PATTERN.search(signals.text):
        return False
    return signals.has_open_tasks or TASK_VOCABULARY.search(signals.text) is not None


def _is_task_create(signals: MessageSignals) -> bool:
    return TASK_VOCABULARY.search(signals.text) is not None and TASK_CREATE_HINT.search(signals.text) is not None


def _is_event_follow_up(signals: MessageSignals) -> bool:
    return signals.has_event_reference and EVENT_FOLLOW_UP_PATTERN.search(signals.text) is not None


def _is_course_context(signals: MessageSignals) -> bool:
    return signals.has_department and COURSE_PATTERNS.search(signals.text) is not None


def _is_personal_data(signals: MessageSignals) -> bool:
    if extract_registration_number(signals.text):
        return True
    return any(pattern.search(signals.text) for pattern in PERSONAL_DATA_PATTERNS)


def _is_out_of_scope(signals: MessageSignals) -> bool:
    return not is_university_related(signals.text) and not is_general_question(signals.text)


@dataclass(frozen=True)
class IntentRule:
    """One rung of the ladder."""

    intent: Intent
    predicate: Callable[[MessageSignals], bool]


DEFAULT_RULES: tuple[IntentRule, ...] = (
    IntentRule(Intent.SCHEDULE, lambda s: SCHEDULE_PATTERN.search(s.text) is not None),
    IntentRule(Intent.GREETING, lambda s: greeting_kind(s.text) is not None),
    IntentRule(Intent.TASK_CLEAR, _is_task_clear),
    IntentRule(Intent.TASK_COMPLETE, _is_task_complete),
    IntentRule(Intent.TASK_LIST, lambda s: TASK_LIST_PATTERN.search(s.text) is not None),
    IntentRule(Intent.TASK_CREATE, _is_task_create),
    IntentRule(Intent.EVENT_DETAIL, lambda s: EVENT_DETAIL_PATTERN.search(s.text) is not None),
    IntentRule(Intent.EVENT_LIST, lambda s: EVENT_LIST_PATTERN.search(s.text) is not None),
    IntentRule(Intent.EVENT_FOLLOW_UP, _is_event_follow_up),
    IntentRule(Intent.UTILITY_TIME, lambda s: TIME_PATTERN.search(s.text) is not None),
    IntentRule(Intent.UTILITY_DATE, lambda s: DATE_PATTERN.search(s.text) is not None),
    IntentRule(Intent.STUDY_TIPS, lambda s: STUDY_TIPS_PATTERN.search(s.text) is not None),
    IntentRule(Intent.COURSE_CONTEXT, _is_course_context),
    IntentRule(Intent.PERSONAL_DATA, _is_personal_data),
    IntentRule(Intent.REGULATION, lambda s: regulation_code(s.text) is not None),
    IntentRule(Intent.OUT_OF_SCOPE, _is_out_of_scope),
)


class IntentClassifier:
    """Evaluates the ladder in order; falls through to ``Intent.DEFAULT``."""

    def __init__(self, rules: tuple[IntentRule, ...] = DEFAULT_RULES) -> None:
        self.rules = rules

    def classify(self, signals: MessageSignals) -> Intent:
        for rule in self.rules:
            if rule.predicate(signals):
                return rule.intent
        return Intent.DEFAULT


# =============================================================================
# Detail extraction
# =============================================================================


def event_title(text: str) -> str | None:
    """Event name from "tell me about the event: X"."""
    match = EVENT_DETAIL_PATTERN.search(text)
    if not match:
        return None
    title = match.group(1).strip().strip("\"'“”").rstrip("?.!").strip()
    return title or None


def regulation_code(text: str) -> str | None:
    """``"R22"``, ``"R25"``, ``"general"`` or None."""
    for code, pattern in REGULATION_PATTERNS.items():
        if pattern.search(text):
            return code
    return None


def extract_registration_number(text: str) -> str | None:
    match = REGISTRATION_PATTERN.search(text)
    return match.group(1).upper() if match else None


def extract_task_titles(text: str) -> list[str]:
    """Task titles named in a message.

    Quoted items win. Otherwise the text after the first ``homework:``,
    ``tasks:``, ``to-do:`` or ``assignments:`` marker (or the whole
    message) is split on ``and``, commas, semicolons, newlines and
    bullets. Items that are only task vocabulary are dropped.
    """
    quoted = [item.strip() for item in re.findall(r"[\"“]([^\"”]{1,120})[\"”]", text)]
    quoted = [item for item in quoted if item]
    if quoted:
        return quoted

    parts = TASK_LIST_MARKERS.split(text, maxsplit=1)
    payload = parts[1] if len(parts) > 1 else text

    titles: list[str] = []
    for raw in TASK_ITEM_SEPARATORS.split(payload):
        item = TASK_LEADING_VERB.sub("", raw.strip()).strip(" .!?:-")
        if not 2 <= len(item) <= 140:
            continue
        if TASK_VOCABULARY_ONLY.match(item):
            continue
        titles.append(item)
    return titles
