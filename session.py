"""Quiz session state machine.

One `QuizSession` holds every piece of state for a single playthrough:
questions, position, attempts, score, timer and tab-switch warnings. It is
plain synchronous code; the driver serializes calls and owns anything
asynchronous (timer task, enrichment fetches). A new instance is built on
every restart, so nothing is shared between playthroughs.

Invariants kept by every operation:
  - `answered` and the attempt index hold the same positions, one attempt each
  - `score` equals the number of correct attempts
  - `time_remaining` and `tab_warnings` never go below zero
  - `completion_reason` is set exactly when the session has completed
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence, Set

from marking import answers_match, feedback_for
from models import Attempt, CompletionReason, Outcome, Phase, Question

logger = logging.getLogger(__name__)

# (generation, question position, ordered query candidates)
EnrichmentRequest = Callable[[int, int, List[str]], None]

DEFAULT_TIME_BUDGET_S = 300
DEFAULT_MAX_TAB_WARNINGS = 3


class SessionError(Exception):
    """Caller misuse. The session is left unchanged."""


class InvalidPhase(SessionError):
    pass


class AlreadyAnswered(SessionError):
    pass


class NotAnswered(SessionError):
    pass


class UnknownAttempt(SessionError):
    pass


class EmptyAnswer(SessionError):
    pass


class QuizSession:
    def __init__(
        self,
        generation: int = 0,
        *,
        time_budget_s: int = DEFAULT_TIME_BUDGET_S,
        max_tab_warnings: int = DEFAULT_MAX_TAB_WARNINGS,
        request_enrichment: Optional[EnrichmentRequest] = None,
    ) -> None:
        self.generation = generation
        self.time_budget_s = time_budget_s
        self.max_tab_warnings = max_tab_warnings
        self._request_enrichment = request_enrichment

        self.phase = Phase.LOADING
        self.completion_reason: Optional[CompletionReason] = None
        self.load_error: Optional[str] = None

        self.questions: List[Question] = []
        self.current_position = 0
        self.answered: Set[int] = set()
        self.score = 0
        self.time_remaining = time_budget_s
        self.tab_warnings = 0

        self._attempts: List[Attempt] = []
        self._by_position: Dict[int, Attempt] = {}
        self.pending_enrichment: Set[int] = set()
        self.reviewing_position: Optional[int] = None

        # transient, per-question UI fields
        self.feedback: Optional[str] = None
        self.warning_message: Optional[str] = None

    # --- Read-only views ----------------------------------------------------------

    @property
    def attempts(self) -> List[Attempt]:
        return list(self._attempts)

    def attempt_for(self, position: int) -> Optional[Attempt]:
        return self._by_position.get(position)

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Optional[Question]:
        if not self.questions:
            return None
        return self.questions[self.current_position]

    @property
    def is_winner(self) -> bool:
        return bool(self.questions) and self.score == len(self.questions)

    @property
    def ended_early(self) -> bool:
        return (
            self.completion_reason is not None
            and self.completion_reason != CompletionReason.ALL_QUESTIONS_FINISHED
        )

    @property
    def is_active(self) -> bool:
        return self.phase == Phase.ACTIVE

    # --- Guards -------------------------------------------------------------------

    def _require(self, *phases: Phase) -> None:
        if self.phase not in phases:
            wanted = " or ".join(p.value for p in phases)
            raise InvalidPhase(f"not allowed while {self.phase.value} (needs {wanted})")

    def _complete(self, reason: CompletionReason) -> None:
        self.phase = Phase.COMPLETE
        self.completion_reason = reason
        self.feedback = None
        logger.info(
            "session %s complete: %s (score %s/%s)",
            self.generation,
            reason.value,
            self.score,
            len(self.questions),
        )

    # --- Loading ------------------------------------------------------------------

    def load(self, questions: Sequence[Question]) -> None:
        self._require(Phase.LOADING)
        if not questions:
            raise ValueError("a session needs at least one question")
        self.questions = list(questions)
        self.phase = Phase.SHOWING_RULES

    def fail_load(self, message: str) -> None:
        self._require(Phase.LOADING)
        self.load_error = message
        self.phase = Phase.LOAD_ERROR

    def start(self) -> None:
        self._require(Phase.SHOWING_RULES)
        self.current_position = 0
        self.answered.clear()
        self._attempts.clear()
        self._by_position.clear()
        self.score = 0
        self.tab_warnings = 0
        self.time_remaining = self.time_budget_s
        self.feedback = None
        self.warning_message = None
        self.phase = Phase.ACTIVE

    # --- Active play --------------------------------------------------------------

    def _record(self, attempt: Attempt) -> Attempt:
        pos = attempt.question_position
        self._attempts.append(attempt)
        self._by_position[pos] = attempt
        self.answered.add(pos)
        if attempt.is_correct:
            self.score += 1
        return attempt

    def submit_answer(self, text: str) -> Attempt:
        self._require(Phase.ACTIVE)
        pos = self.current_position
        if pos in self.answered:
            raise AlreadyAnswered(f"question {pos + 1} has already been answered")
        if not text or not text.strip():
            raise EmptyAnswer("Please type an answer, or skip the question.")

        q = self.questions[pos]
        is_correct = answers_match(text, q.correct_answer)
        attempt = self._record(
            Attempt(
                question_position=pos,
                prompt=q.prompt,
                user_answer=text.strip(),
                is_correct=is_correct,
                correct_answer=q.correct_answer,
                outcome=Outcome.ANSWERED,
            )
        )
        self.feedback = feedback_for(is_correct, q.correct_answer)
        self._enrich(attempt)
        return attempt

    def skip(self) -> Attempt:
        self._require(Phase.ACTIVE)
        pos = self.current_position
        if pos in self.answered:
            raise AlreadyAnswered(f"question {pos + 1} has already been answered")

        q = self.questions[pos]
        attempt = self._record(
            Attempt(
                question_position=pos,
                prompt=q.prompt,
                user_answer="",
                is_correct=False,
                correct_answer=q.correct_answer,
                outcome=Outcome.SKIPPED,
            )
        )
        self.advance()
        return attempt

    def advance(self) -> None:
        self._require(Phase.ACTIVE)
        if self.current_position not in self.answered:
            raise NotAnswered("answer or skip this question before moving on")
        if self.current_position == len(self.questions) - 1:
            self._complete(CompletionReason.ALL_QUESTIONS_FINISHED)
            return
        self.current_position += 1
        self.feedback = None

    def retreat(self) -> None:
        self._require(Phase.ACTIVE)
        if self.current_position == 0:
            return
        self.current_position -= 1
        self.feedback = None

    def exit(self) -> None:
        self._require(Phase.ACTIVE, Phase.SHOWING_RULES)
        self._complete(CompletionReason.USER_EXITED)

    # --- Driver notifications -----------------------------------------------------

    def tick(self) -> bool:
        """Count down one second. Returns False when ignored (not active)."""
        if self.phase != Phase.ACTIVE:
            return False
        self.time_remaining = max(0, self.time_remaining - 1)
        if self.time_remaining == 0:
            self._complete(CompletionReason.TIME_EXPIRED)
        return True

    def report_visibility_lost(self) -> bool:
        if self.phase != Phase.ACTIVE:
            return False
        self.tab_warnings += 1
        self.warning_message = (
            f"Warning {self.tab_warnings} of {self.max_tab_warnings}: "
            "leaving the quiz tab is not allowed."
        )
        logger.info("session %s: visibility lost (%s)", self.generation, self.warning_message)
        if self.tab_warnings >= self.max_tab_warnings:
            self._complete(CompletionReason.TOO_MANY_WARNINGS)
        return True

    # --- Review -------------------------------------------------------------------

    def enter_review(self, position: int) -> Attempt:
        self._require(Phase.COMPLETE, Phase.REVIEWING)
        attempt = self._by_position.get(position)
        if attempt is None:
            raise UnknownAttempt(f"no attempt recorded for question {position + 1}")
        self.reviewing_position = position
        self.phase = Phase.REVIEWING
        if attempt.enrichment is None:
            self._enrich(attempt)
        return attempt

    def exit_review(self) -> None:
        self._require(Phase.REVIEWING)
        self.reviewing_position = None
        self.phase = Phase.COMPLETE

    # --- Enrichment ---------------------------------------------------------------

    def _enrich(self, attempt: Attempt) -> None:
        pos = attempt.question_position
        if self._request_enrichment is None or pos in self.pending_enrichment:
            return
        self.pending_enrichment.add(pos)
        self._request_enrichment(self.generation, pos, [attempt.correct_answer, attempt.prompt])

    def attach_enrichment(self, position: int, text: str) -> bool:
        self.pending_enrichment.discard(position)
        attempt = self._by_position.get(position)
        if attempt is None:
            return False
        attempt.enrichment = text
        return True

    def enrichment_failed(self, position: int) -> None:
        self.pending_enrichment.discard(position)


def quiz_rules(question_count: int, time_budget_s: int, max_tab_warnings: int) -> List[str]:
    minutes, seconds = divmod(time_budget_s, 60)
    budget = f"{minutes} minutes" if not seconds else f"{minutes}m {seconds}s"
    return [
        f"You will be presented with a series of {question_count} questions.",
        "Type your answer and submit it. Each question can be answered only once.",
        "You can skip a question, and move back and forth between questions.",
        "Your score is the number of correct answers.",
        "Additional information about the answer is shown after submission.",
        f"You have {budget} to finish the quiz.",
        "You cannot switch away from the quiz tab once the quiz has started.",
        f"If the switch count reaches {max_tab_warnings}, the quiz will end.",
        "You will be shown a summary of your answers at the end of the quiz.",
    ]
