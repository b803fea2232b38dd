from __future__ import annotations

from typing import Any, Callable, Dict

from fastapi import APIRouter, Depends, HTTPException

from deps.controller import get_controller
from driver import SessionController
from models import Attempt
from schemas.attempts import AttemptOut
from schemas.questions import QuestionOut
from schemas.session import AnswerRequest, RulesOut, SessionOut, SummaryOut
from session import (
    AlreadyAnswered,
    EmptyAnswer,
    InvalidPhase,
    NotAnswered,
    QuizSession,
    SessionError,
    UnknownAttempt,
)

router = APIRouter(prefix="/session", tags=["session"])

_STATUS_BY_ERROR = {
    UnknownAttempt: 404,
    EmptyAnswer: 422,
    InvalidPhase: 409,
    AlreadyAnswered: 409,
    NotAnswered: 409,
}


def _run(op: Callable[..., Any], *args: Any) -> Any:
    try:
        return op(*args)
    except SessionError as e:
        status = _STATUS_BY_ERROR.get(type(e), 409)
        raise HTTPException(status_code=status, detail={"error": type(e).__name__, "message": str(e)})


def _attempt_out(a: Attempt) -> AttemptOut:
    return AttemptOut.model_validate(a)


def _question_out(s: QuizSession) -> QuestionOut | None:
    q = s.current_question
    if q is None:
        return None
    attempt = s.attempt_for(q.position)
    return QuestionOut(
        position=q.position,
        number=q.position + 1,
        prompt=q.prompt,
        category=q.category,
        difficulty=q.difficulty,
        answered=attempt is not None,
        attempt=_attempt_out(attempt) if attempt is not None else None,
    )


def _snapshot(c: SessionController) -> Dict[str, Any]:
    s = c.session
    reviewing = s.attempt_for(s.reviewing_position) if s.reviewing_position is not None else None
    return {
        "generation": s.generation,
        "phase": s.phase,
        "completion_reason": s.completion_reason,
        "load_error": s.load_error,
        "total_questions": s.total_questions,
        "current_position": s.current_position,
        "question": _question_out(s),
        "score": s.score,
        "time_remaining": s.time_remaining,
        "tab_warnings": s.tab_warnings,
        "max_tab_warnings": s.max_tab_warnings,
        "answered": sorted(s.answered),
        "attempts": [_attempt_out(a) for a in s.attempts],
        "pending_enrichment": sorted(s.pending_enrichment),
        "reviewing": _attempt_out(reviewing) if reviewing is not None else None,
        "feedback": s.feedback,
        "warning_message": s.warning_message,
        "is_winner": s.is_winner,
        "ended_early": s.ended_early,
    }


@router.get("", response_model=SessionOut)
async def get_session(c: SessionController = Depends(get_controller)):
    return _snapshot(c)


@router.get("/rules", response_model=RulesOut)
async def get_rules(c: SessionController = Depends(get_controller)):
    return {"rules": c.rules()}


@router.get("/summary", response_model=SummaryOut)
async def get_summary(c: SessionController = Depends(get_controller)):
    s = c.session
    attempts = s.attempts
    return {
        "phase": s.phase,
        "completion_reason": s.completion_reason,
        "score": s.score,
        "total_questions": s.total_questions,
        "attempted": len(attempts),
        "is_winner": s.is_winner,
        "ended_early": s.ended_early,
        "attempts": [_attempt_out(a) for a in attempts],
    }


@router.post("/restart", response_model=SessionOut)
async def restart(c: SessionController = Depends(get_controller)):
    await c.restart()
    return _snapshot(c)


@router.post("/start", response_model=SessionOut)
async def start(c: SessionController = Depends(get_controller)):
    _run(c.start)
    return _snapshot(c)


@router.post("/answer", response_model=SessionOut)
async def submit_answer(req: AnswerRequest, c: SessionController = Depends(get_controller)):
    _run(c.submit_answer, req.answer)
    return _snapshot(c)


@router.post("/skip", response_model=SessionOut)
async def skip(c: SessionController = Depends(get_controller)):
    _run(c.skip)
    return _snapshot(c)


@router.post("/advance", response_model=SessionOut)
async def advance(c: SessionController = Depends(get_controller)):
    _run(c.advance)
    return _snapshot(c)


@router.post("/retreat", response_model=SessionOut)
async def retreat(c: SessionController = Depends(get_controller)):
    _run(c.retreat)
    return _snapshot(c)


@router.post("/exit", response_model=SessionOut)
async def exit_quiz(c: SessionController = Depends(get_controller)):
    _run(c.exit)
    return _snapshot(c)


@router.post("/visibility-lost", response_model=SessionOut)
async def visibility_lost(c: SessionController = Depends(get_controller)):
    # fire-and-forget from the page; ignored unless a quiz is running
    c.report_visibility_lost()
    return _snapshot(c)


@router.post("/review/{position}", response_model=SessionOut)
async def enter_review(position: int, c: SessionController = Depends(get_controller)):
    _run(c.enter_review, position)
    return _snapshot(c)


@router.delete("/review", response_model=SessionOut)
async def exit_review(c: SessionController = Depends(get_controller)):
    _run(c.exit_review)
    return _snapshot(c)
