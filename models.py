from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Phase(str, Enum):
    LOADING = "loading"
    SHOWING_RULES = "showing_rules"
    ACTIVE = "active"
    COMPLETE = "complete"
    REVIEWING = "reviewing"
    LOAD_ERROR = "load_error"


class CompletionReason(str, Enum):
    ALL_QUESTIONS_FINISHED = "all_questions_finished"
    USER_EXITED = "user_exited"
    TIME_EXPIRED = "time_expired"
    TOO_MANY_WARNINGS = "too_many_warnings"


class Outcome(str, Enum):
    ANSWERED = "answered"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Question:
    position: int
    prompt: str
    correct_answer: str
    # informational only, as reported by the supply
    category: Optional[str] = None
    difficulty: Optional[str] = None


@dataclass
class Attempt:
    """
    Recorded outcome for one question. Only `enrichment` is ever set after
    creation.
    """

    question_position: int
    prompt: str
    user_answer: str
    is_correct: bool
    correct_answer: str
    outcome: Outcome
    enrichment: Optional[str] = None
