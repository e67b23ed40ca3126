"""Context extraction from message text.

Pure functions over the working-language message: keyword tables map
synonyms to canonical values for department, year, interests, goals,
challenges and topics, and a small pattern captures the user's name.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

# Longest synonyms first so "computer science and engineering" beats "computer science"
DEPARTMENTS: dict[str, str] = {
    "computer science and engineering": "Computer Science",
    "computer science engineering": "Computer Science Engineering",
    "computer science": "Computer Science",
    "cse": "Computer Science",
    "information technology": "Information Technology",
    "electronics and communication": "Electronics and Communication",
    "electronics": "Electronics and Communication",
    "ece": "Electronics and Communication",
    "electrical": "Electrical Engineering",
    "eee": "Electrical Engineering",
    "mechanical": "Mechanical Engineering",
    "mech": "Mechanical Engineering",
    "civil": "Civil Engineering",
    "management": "Management",
    "mba": "Management",
    "pharmacy": "Pharmacy",
    "b.pharm": "Pharmacy",
    "m.pharm": "Pharmacy",
}

YEAR_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\b(?:first|1st|1)\s+year\b", re.IGNORECASE), "First Year"),
    (re.compile(r"\b(?:second|2nd|2)\s+year\b", re.IGNORECASE), "Second Year"),
    (re.compile(r"\b(?:third|3rd|3)\s+year\b", re.IGNORECASE), "Third Year"),
    (re.compile(r"\b(?:fourth|4th|4)\s+year\b", re.IGNORECASE), "Fourth Year"),
    (re.compile(r"\b(?:final|last)\s+year\b", re.IGNORECASE), "Final Year"),
]

INTERESTS: dict[str, str] = {
    "programming": "programming",
    "coding": "programming",
    "software development": "software development",
    "web development": "web development",
    "mobile app": "mobile development",
    "data science": "data science",
    "machine learning": "machine learning",
    "ai": "artificial intelligence",
    "artificial intelligence": "artificial intelligence",
    "cybersecurity": "cybersecurity",
    "networking": "networking",
    "database": "database management",
    "cloud computing": "cloud computing",
    "blockchain": "blockchain",
    "gaming": "game development",
    "ui/ux": "UI/UX design",
    "robotics": "robotics",
    "iot": "Internet of Things",
    "embedded systems": "embedded systems",
    "marketing": "marketing",
    "finance": "finance",
    "entrepreneurship": "entrepreneurship",
}

GOALS: dict[str, str] = {
    "higher studies": "higher studies",
    "masters": "masters degree",
    "phd": "PhD",
    "research": "research career",
    "placement": "job placement",
    "internship": "internship",
    "startup": "startup/entrepreneurship",
    "government job": "government job",
    "abroad": "studying abroad",
    "gate": "GATE preparation",
    "cgpa": "improving CGPA",
    "certification": "certifications",
}

CHALLENGES: dict[str, str] = {
    "difficult": "academic difficulty",
    "struggling": "academic struggle",
    "failing": "academic performance",
    "low cgpa": "low CGPA",
    "exam stress": "exam stress",
    "time management": "time management",
    "backlog": "backlogs",
    "fees": "financial issues",
    "hostel": "hostel problems",
    "language": "language barriers",
}

TOPICS: dict[str, str] = {
    "assignment": "assignments",
    "exam": "exams",
    "project": "projects",
    "course": "courses",
    "syllabus": "syllabus",
    "grade": "grades",
    "placement": "placement",
    "internship": "internship",
    "library": "library",
    "hostel": "hostel",
    "fee": "fees",
    "scholarship": "scholarship",
    "timetable": "timetable",
    "event": "events",
}

_NAME_EXPLICIT = re.compile(r"\b(?:my name is|call me)\s+([A-Za-z]+(?:\s+[A-Z][a-z]+)?)", re.IGNORECASE)
_NAME_INTRO = re.compile(r"\b(?:I am|I'm|i am|i'm)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)")
_NOT_NAMES = frozenset(
    ["a", "an", "the", "in", "from", "studying", "doing", "not", "very", "so", "feeling", "fine", "good"]
)


def _mentions(text: str, keyword: str) -> bool:
    return re.search(rf"(?<![a-z0-9]){re.escape(keyword)}s?(?![a-z0-9])", text) is not None


def _collect(text: str, table: dict[str, str]) -> set[str]:
    return {value for keyword, value in table.items() if _mentions(text, keyword)}


@dataclass
class ContextFacts:
    """Facts extracted from one message."""

    department: str | None = None
    year: str | None = None
    name: str | None = None
    interests: set[str] = field(default_factory=set)
    goals: set[str] = field(default_factory=set)
    challenges: set[str] = field(default_factory=set)
    topics: set[str] = field(default_factory=set)

    def is_empty(self) -> bool:
        return not (
            self.department
            or self.year
            or self.name
            or self.interests
            or self.goals
            or self.challenges
            or self.topics
        )


def extract_name(message: str) -> str | None:
    """Capture a self-introduced name.

    "my name is ravi" and "call me Ravi" accept any case. "I am"/"I'm"
    require a capitalized word so that "I am stressed" is not a name.
    """
    for pattern in (_NAME_EXPLICIT, _NAME_INTRO):
        match = pattern.search(message)
        if match:
            words = [word for word in match.group(1).split() if word.lower() not in _NOT_NAMES]
            if words:
                return " ".join(word.capitalize() for word in words)
    return None


def extract_context(message: str) -> ContextFacts:
    """Extract user-context facts from ``message``."""
    lowered = message.lower()
    facts = ContextFacts()

    for keyword, department in DEPARTMENTS.items():
        if _mentions(lowered, keyword):
            facts.department = department
            break

    for pattern, year in YEAR_PATTERNS:
        if pattern.search(message):
            facts.year = year
            break

    facts.name = extract_name(message)
    facts.interests = _collect(lowered, INTERESTS)
    facts.goals = _collect(lowered, GOALS)
    facts.challenges = _collect(lowered, CHALLENGES)
    facts.topics = _collect(lowered, TOPICS) | facts.interests
    return facts
