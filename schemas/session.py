# schemas/session.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from models import CompletionReason, Phase
from schemas.attempts import AttemptOut
from schemas.questions import QuestionOut

# ---------- Requests ----------


class AnswerRequest(BaseModel):
    answer: str


# ---------- Session snapshot ----------


class SessionOut(BaseModel):
    generation: int
    phase: Phase
    completion_reason: Optional[CompletionReason] = None
    load_error: Optional[str] = None
    total_questions: int
    current_position: int
    question: Optional[QuestionOut] = None
    score: int
    time_remaining: int
    tab_warnings: int
    max_tab_warnings: int
    answered: List[int]
    attempts: List[AttemptOut]
    pending_enrichment: List[int]
    reviewing: Optional[AttemptOut] = None
    feedback: Optional[str] = None
    warning_message: Optional[str] = None
    is_winner: bool
    ended_early: bool


class SummaryOut(BaseModel):
    phase: Phase
    completion_reason: Optional[CompletionReason] = None
    score: int
    total_questions: int
    attempted: int
    is_winner: bool
    ended_early: bool
    attempts: List[AttemptOut]


class RulesOut(BaseModel):
    rules: List[str]
