import random

import pytest

from conftest import make_questions
from models import CompletionReason, Outcome, Phase, Question
from session import (
    AlreadyAnswered,
    EmptyAnswer,
    InvalidPhase,
    NotAnswered,
    QuizSession,
    UnknownAttempt,
    quiz_rules,
)


def _active(n=10, **kw) -> QuizSession:
    requests = kw.pop("requests", None)
    s = QuizSession(
        1,
        request_enrichment=(lambda g, p, c: requests.append((g, p, c))) if requests is not None else None,
        **kw,
    )
    s.load(make_questions(n))
    s.start()
    return s


def _check_invariants(s: QuizSession):
    positions = [a.question_position for a in s.attempts]
    assert len(positions) == len(set(positions))
    assert set(positions) == s.answered
    assert s.score == sum(1 for a in s.attempts if a.is_correct)
    assert 0 <= s.score <= s.total_questions
    assert s.time_remaining >= 0
    assert s.tab_warnings >= 0


# --- Loading / rules ---------------------------------------------------------------


def test_new_session_is_loading():
    s = QuizSession()
    assert s.phase == Phase.LOADING
    assert s.completion_reason is None
    assert s.current_question is None


def test_load_moves_to_rules():
    s = QuizSession()
    s.load(make_questions(3))
    assert s.phase == Phase.SHOWING_RULES
    assert s.total_questions == 3


def test_fail_load_is_terminal():
    s = QuizSession()
    s.fail_load("no questions")
    assert s.phase == Phase.LOAD_ERROR
    assert s.load_error == "no questions"
    with pytest.raises(InvalidPhase):
        s.start()
    with pytest.raises(InvalidPhase):
        s.load(make_questions(2))


def test_operations_before_start_are_rejected():
    s = QuizSession()
    s.load(make_questions(3))
    with pytest.raises(InvalidPhase):
        s.submit_answer("Paris")
    with pytest.raises(InvalidPhase):
        s.advance()
    assert s.tick() is False
    assert s.report_visibility_lost() is False
    assert s.time_remaining == s.time_budget_s
    assert s.tab_warnings == 0


def test_start_resets_counters():
    s = _active(time_budget_s=120)
    assert s.phase == Phase.ACTIVE
    assert s.current_position == 0
    assert s.score == 0
    assert s.tab_warnings == 0
    assert s.time_remaining == 120
    assert s.answered == set()


def test_rules_mention_limits():
    rules = quiz_rules(10, 300, 3)
    assert rules[0] == "You will be presented with a series of 10 questions."
    assert any("5 minutes" in r for r in rules)
    assert any("reaches 3" in r for r in rules)


# --- Answering ---------------------------------------------------------------------


def test_correct_answer_scores_and_requests_enrichment():
    requests = []
    s = _active(requests=requests)
    attempt = s.submit_answer("  paris ")
    assert attempt.is_correct is True
    assert attempt.outcome == Outcome.ANSWERED
    assert attempt.user_answer == "paris"
    assert attempt.enrichment is None
    assert s.score == 1
    assert s.answered == {0}
    assert s.feedback == "Correct!"
    assert requests == [(1, 0, ["Paris", "What is the capital of France?"])]
    assert s.pending_enrichment == {0}


def test_incorrect_answer():
    s = _active()
    attempt = s.submit_answer("Lyon")
    assert attempt.is_correct is False
    assert s.score == 0
    assert s.feedback == "Incorrect. The correct answer is Paris."


def test_second_submit_is_rejected_without_changes():
    s = _active()
    s.submit_answer("Paris")
    with pytest.raises(AlreadyAnswered):
        s.submit_answer("Paris")
    with pytest.raises(AlreadyAnswered):
        s.skip()
    assert s.score == 1
    assert len(s.attempts) == 1


def test_blank_answer_is_rejected():
    s = _active()
    with pytest.raises(EmptyAnswer):
        s.submit_answer("   ")
    assert s.answered == set()
    assert s.attempts == []


def test_article_stripping_scenario():
    s = QuizSession()
    s.load([Question(position=0, prompt="Where is the Mona Lisa?", correct_answer="Louvre")])
    s.start()
    assert s.submit_answer("the louvre").is_correct is True


def test_all_correct_is_a_win():
    s = _active()
    for q in make_questions(10):
        s.submit_answer(q.correct_answer.lower() if q.position % 2 else q.correct_answer)
        s.advance()
    assert s.phase == Phase.COMPLETE
    assert s.completion_reason == CompletionReason.ALL_QUESTIONS_FINISHED
    assert s.score == 10
    assert s.is_winner is True
    assert s.ended_early is False


# --- Navigation --------------------------------------------------------------------


def test_advance_requires_a_finalized_question():
    s = _active()
    with pytest.raises(NotAnswered):
        s.advance()
    assert s.current_position == 0


def test_advance_clears_feedback():
    s = _active()
    s.submit_answer("Paris")
    s.advance()
    assert s.current_position == 1
    assert s.feedback is None


def test_skip_records_and_advances():
    requests = []
    s = _active(requests=requests)
    attempt = s.skip()
    assert attempt.outcome == Outcome.SKIPPED
    assert attempt.is_correct is False
    assert attempt.user_answer == ""
    assert s.current_position == 1
    assert s.answered == {0}
    assert requests == []


def test_skip_last_question_completes():
    s = _active(n=2)
    s.skip()
    s.skip()
    assert s.phase == Phase.COMPLETE
    assert s.completion_reason == CompletionReason.ALL_QUESTIONS_FINISHED


def test_retreat_keeps_answers():
    s = _active()
    s.retreat()
    assert s.current_position == 0

    s.submit_answer("Paris")
    s.advance()
    s.retreat()
    assert s.current_position == 0
    assert 0 in s.answered
    assert s.attempt_for(0).user_answer == "Paris"
    with pytest.raises(AlreadyAnswered):
        s.submit_answer("Lyon")
    # an answered question can be moved past again
    s.advance()
    assert s.current_position == 1


def test_exit_keeps_attempts():
    s = _active()
    s.submit_answer("Paris")
    s.advance()
    s.exit()
    assert s.phase == Phase.COMPLETE
    assert s.completion_reason == CompletionReason.USER_EXITED
    assert s.ended_early is True
    assert len(s.attempts) == 1


def test_exit_from_rules_screen():
    s = QuizSession()
    s.load(make_questions(3))
    s.exit()
    assert s.completion_reason == CompletionReason.USER_EXITED
    assert s.attempts == []


# --- Timer & visibility ------------------------------------------------------------


def test_tick_decrements_by_one():
    s = _active(time_budget_s=5)
    for expected in (4, 3, 2, 1):
        assert s.tick() is True
        assert s.time_remaining == expected
        assert s.phase == Phase.ACTIVE


def test_time_expiry_completes_in_same_call():
    s = _active(time_budget_s=2)
    s.tick()
    s.tick()
    assert s.time_remaining == 0
    assert s.phase == Phase.COMPLETE
    assert s.completion_reason == CompletionReason.TIME_EXPIRED
    # stale tick after completion is ignored
    assert s.tick() is False
    assert s.time_remaining == 0


def test_third_visibility_loss_ends_quiz_mid_question():
    s = _active()
    # losses on questions 2, 4 and 5
    s.submit_answer("Paris")
    s.advance()
    s.report_visibility_lost()
    assert s.warning_message == "Warning 1 of 3: leaving the quiz tab is not allowed."
    s.submit_answer("Rome")
    s.advance()
    s.skip()
    s.report_visibility_lost()
    s.submit_answer("Cairo")
    s.advance()
    assert s.phase == Phase.ACTIVE
    s.report_visibility_lost()
    assert s.tab_warnings == 3
    assert s.phase == Phase.COMPLETE
    assert s.completion_reason == CompletionReason.TOO_MANY_WARNINGS
    with pytest.raises(InvalidPhase):
        s.submit_answer("Lima")
    assert s.report_visibility_lost() is False
    assert s.tab_warnings == 3


def test_winner_flag_follows_score():
    s = _active(n=2)
    assert s.is_winner is False
    s.submit_answer("Paris")
    s.advance()
    s.submit_answer("Rome")
    assert s.is_winner is True
    assert s.phase == Phase.ACTIVE


# --- Review ------------------------------------------------------------------------


def test_review_round_trip():
    requests = []
    s = _active(n=2, requests=requests)
    s.skip()
    s.submit_answer("Rome")
    s.advance()
    assert s.phase == Phase.COMPLETE

    s.attach_enrichment(1, "Rome is a city.")
    requests.clear()

    attempt = s.enter_review(1)
    assert s.phase == Phase.REVIEWING
    assert s.reviewing_position == 1
    assert attempt.enrichment == "Rome is a city."
    assert requests == []

    # skipped questions are enriched lazily on review
    s.enter_review(0)
    assert requests == [(1, 0, ["Paris", "What is the capital of France?"])]

    s.exit_review()
    assert s.phase == Phase.COMPLETE
    assert s.reviewing_position is None


def test_review_requires_a_recorded_attempt():
    s = _active(n=3)
    s.exit()
    with pytest.raises(UnknownAttempt):
        s.enter_review(0)
    assert s.phase == Phase.COMPLETE


def test_review_not_available_while_active():
    s = _active()
    s.submit_answer("Paris")
    with pytest.raises(InvalidPhase):
        s.enter_review(0)
    with pytest.raises(InvalidPhase):
        s.exit_review()


def test_pending_enrichment_is_not_requested_twice():
    requests = []
    s = _active(n=1, requests=requests)
    s.submit_answer("Paris")
    s.advance()
    s.enter_review(0)
    assert len(requests) == 1


def test_attach_enrichment_only_sets_enrichment():
    s = _active()
    attempt = s.submit_answer("Paris")
    assert s.attach_enrichment(0, "Paris is the capital of France.") is True
    assert attempt.enrichment == "Paris is the capital of France."
    assert attempt.is_correct is True
    assert s.pending_enrichment == set()
    assert s.attach_enrichment(5, "nothing recorded here") is False


# --- Invariants over random play ---------------------------------------------------


@pytest.mark.parametrize("seed", range(20))
def test_random_play_keeps_invariants(seed):
    rng = random.Random(seed)
    s = _active(time_budget_s=50, requests=[])
    answers = ["Paris", "Rome", "Tokyo", "Cairo", "wrong", "", "the lima"]
    ops = ["answer", "skip", "advance", "retreat", "tick", "visibility"]

    for _ in range(200):
        if s.phase != Phase.ACTIVE:
            break
        op = rng.choice(ops)
        score_before = s.score
        try:
            if op == "answer":
                already = s.current_position in s.answered
                try:
                    s.submit_answer(rng.choice(answers))
                except AlreadyAnswered:
                    assert already
                    assert s.score == score_before
                except EmptyAnswer:
                    pass
            elif op == "skip":
                s.skip()
            elif op == "advance":
                s.advance()
            elif op == "retreat":
                s.retreat()
            elif op == "tick":
                s.tick()
            else:
                # keep warnings rare so runs last
                if rng.random() < 0.2:
                    s.report_visibility_lost()
        except (AlreadyAnswered, NotAnswered):
            pass
        _check_invariants(s)
        if s.phase == Phase.ACTIVE:
            assert 0 <= s.current_position < s.total_questions
        else:
            assert s.completion_reason is not None
