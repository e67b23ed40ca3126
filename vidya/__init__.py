"""Vidya - multilingual knowledge retrieval and conversation orchestration.

Vidya answers campus questions by fanning out over several evidence
corpora, translating between Indian languages without corrupting times,
dates and acronyms, and escalating messages that indicate distress.
"""

__version__ = "0.1.0"
