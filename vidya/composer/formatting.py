"""Answer post-processing: layout cleanup and per-user preferences."""

from __future__ import annotations

import re

SOURCE_LABELS: dict[str, str] = {
    "faq": "university FAQ",
    "knowledge": "university documents",
    "event": "university events",
    "chat_history": "our previous conversations",
    "user_profile": "your student profile",
    "web": "web search",
}

MORE_DETAILS_PROMPT = "Would you like more details on any section?"

DECORATIVE_EMOJI = re.compile(
    "[\U0001F44B\U0001F60A\U0001F389\u2705\U0001F4DD\U0001F4A1\U0001F91D\U0001F499\U0001F614\U0001F917\U0001F44D]\ufe0f?"
    "|\u26a0\ufe0f?"
)

_BULLET = re.compile(r"^[ \t]*[•*][ \t]+", re.MULTILINE)
_NUMBERED = re.compile(r"^[ \t]*(\d+)[.)][ \t]+", re.MULTILINE)
_CALLOUT = re.compile(r"^(Important|Note|Remember|Please note):", re.MULTILINE | re.IGNORECASE)
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


def format_response(text: str) -> str:
    """Normalize list markers and whitespace.

    - ``•``/``*`` bullets become ``- ``
    - ``1)`` numbering becomes ``1.``
    - ``Note:``-style callouts are bolded
    - runs of three or more newlines collapse to one blank line
    """
    formatted = text.replace("\r\n", "\n")
    formatted = "\n".join(line.rstrip() for line in formatted.split("\n"))
    formatted = _BULLET.sub("- ", formatted)
    formatted = _NUMBERED.sub(lambda m: f"{m.group(1)}. ", formatted)
    formatted = _CALLOUT.sub(lambda m: f"**{m.group(1)}:**", formatted)
    formatted = re.sub(r"\n{3,}", "\n\n", formatted)
    return formatted.strip()


def apply_length_preference(text: str, preference: str | None) -> str:
    if preference == "short":
        sentences = _SENTENCE_END.split(text.strip())
        return " ".join(sentences[:3])
    if preference == "long" and "Would you like" not in text:
        return f"{text}\n\n{MORE_DETAILS_PROMPT}"
    return text


def apply_style_preference(text: str, style: str | None) -> str:
    """``formal`` drops decorative emoji; other styles leave text as is."""
    if style != "formal":
        return text
    stripped = DECORATIVE_EMOJI.sub("", text)
    stripped = re.sub(r"[ \t]{2,}", " ", stripped)
    return "\n".join(line.strip() for line in stripped.split("\n")).strip()


def with_greeting(text: str, name: str | None, department: str | None = None) -> str:
    """Prefix the first answer of a session with a greeting."""
    department_text = f" from the {department} department" if department else ""
    return f"Hello {name or 'Student'}{department_text}! 👋 {text}"


def with_source(text: str, source: str | None) -> str:
    label = SOURCE_LABELS.get(source or "")
    if not label:
        return text
    return f"{text}\n\n[Source: {label}]"
