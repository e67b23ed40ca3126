"""Concern and intent classification."""

from vidya.classification.concern import ConcernClassifier
from vidya.classification.intents import (
    Intent,
    IntentClassifier,
    IntentRule,
    MessageSignals,
    extract_registration_number,
    extract_task_titles,
)

__all__ = [
    "ConcernClassifier",
    "Intent",
    "IntentClassifier",
    "IntentRule",
    "MessageSignals",
    "extract_registration_number",
    "extract_task_titles",
]
