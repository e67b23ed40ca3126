"""Today's schedule from an uploaded timetable document.

Timetable text comes from OCR or document extraction and has no fixed
layout, so several strategies are tried in order:

1. Block form: a line holding only the day name, followed by its sessions
2. Table form: a header row of day names; today's column is read downwards
3. Day-token lines: every line naming today, with the day name removed
4. Time-like lines in a window around the first mention of today
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from vidya.models import Corpus, EvidenceDocument

if TYPE_CHECKING:
    from collections.abc import Iterable

MAX_SCHEDULE_LINES = 20

FULL_DAYS = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")
SHORT_DAYS = ("sun", "mon", "tue", "tues", "wed", "thu", "thur", "thurs", "fri", "sat")
DAY_TOKEN = re.compile(r"\b(" + "|".join(FULL_DAYS + SHORT_DAYS) + r")\b", re.IGNORECASE)
CELL_SPLIT = re.compile(r"\s{2,}|\t+|\s*\|\s*")
TIME_LIKE = re.compile(r"\b(\d{1,2}[:.][0-5]\d|period|slot)\b", re.IGNORECASE)


def _is_day_only(line: str) -> bool:
    token = line.lower().rstrip(":").strip()
    return token in FULL_DAYS or token in SHORT_DAYS


def _matches_day(token: str, full: str, short: str) -> bool:
    token = token.lower().rstrip(":").strip()
    return token == full or token == short or token.startswith(short) or full in token


def _block_form(lines: list[str], full: str, short: str) -> list[str]:
    collected: list[str] = []
    collecting = False
    for line in lines:
        if _is_day_only(line):
            if collected:
                break
            collecting = _matches_day(line, full, short)
            continue
        if collecting:
            if DAY_TOKEN.search(line):
                break
            collected.append(line)
    return collected


def _table_form(raw_lines: list[str], full: str, short: str) -> list[str]:
    for index, raw in enumerate(raw_lines):
        if len(DAY_TOKEN.findall(raw)) < 2:
            continue
        cells = [cell.strip() for cell in CELL_SPLIT.split(raw.strip()) if cell.strip()]
        column = next((i for i, cell in enumerate(cells) if _matches_day(cell, full, short)), None)
        if column is None:
            continue
        picked: list[str] = []
        for row in raw_lines[index + 1 : index + 40]:
            if not row.strip():
                continue
            if DAY_TOKEN.search(row):
                break
            row_cells = [cell.strip() for cell in CELL_SPLIT.split(row.strip())]
            if len(row_cells) > column and len(row_cells[column]) > 1:
                picked.append(row_cells[column])
        if picked:
            return picked
    return []


def _day_token_lines(lines: list[str], full: str, short: str) -> list[str]:
    token = re.compile(rf"\b({full}|{short})\b:?", re.IGNORECASE)
    results = []
    for line in lines:
        if token.search(line):
            remainder = " ".join(token.sub("", line).split()).strip(" -:|")
            if remainder:
                results.append(remainder)
    return results


def _time_window(raw_text: str, full: str, short: str) -> list[str]:
    match = re.search(rf"\b({full}|{short})\b", raw_text, re.IGNORECASE)
    if not match:
        return []
    window = raw_text[max(0, match.start() - 500) : match.start() + 800]
    return [line.strip() for line in window.splitlines() if TIME_LIKE.search(line)][:12]


def extract_day_section(text: str, weekday: str) -> list[str]:
    """Lines of ``text`` that describe ``weekday`` (e.g. ``"Monday"``)."""
    if not text or not weekday:
        return []
    full = weekday.lower()
    short = full[:3]
    raw_lines = [line for line in text.splitlines() if line.strip()]
    lines = [" ".join(line.split()) for line in raw_lines]

    for section in (
        _block_form(lines, full, short),
        _table_form(raw_lines, full, short),
        _day_token_lines(lines, full, short),
        _time_window(text, full, short),
    ):
        if section:
            return section
    return []


def latest_timetable(documents: Iterable[EvidenceDocument], user_id: str) -> EvidenceDocument | None:
    """Newest processed timetable document owned by ``user_id``."""
    candidates = [
        document
        for document in documents
        if document.corpus is Corpus.KNOWLEDGE
        and document.metadata.get("category") == "timetable"
        and str(document.metadata.get("owner", "")) == user_id
        and document.metadata.get("status", "processed") == "processed"
        and document.body
    ]
    return max(candidates, key=lambda document: document.updated_at, default=None)


def format_schedule(weekday: str, lines: list[str]) -> str:
    numbered = "\n".join(f"{i}. {line}" for i, line in enumerate(lines[:MAX_SCHEDULE_LINES], start=1))
    return f"Your schedule for {weekday} is:\n\n{numbered}"
