from __future__ import annotations

import re

# --- Normalization policy ----------------------------------------------------------
# A leading definite article is ignored on both sides, so "the louvre" marks
# correct against "Louvre" and "Eiffel Tower" against "The Eiffel Tower".
_LEADING_ARTICLE_RE = re.compile(r"^the\s+")
_WS_RE = re.compile(r"\s+")

CORRECT_FEEDBACK = "Correct!"


def normalize_answer(s: str | None) -> str:
    """Trim, collapse runs of whitespace and case-fold."""
    if not s:
        return ""
    return _WS_RE.sub(" ", s.strip()).casefold()


def strip_article(s: str) -> str:
    return _LEADING_ARTICLE_RE.sub("", s, count=1)


def answers_match(user_answer: str, correct_answer: str) -> bool:
    user = strip_article(normalize_answer(user_answer))
    expected = strip_article(normalize_answer(correct_answer))
    if not user or not expected:
        return False
    return user == expected


def feedback_for(is_correct: bool, correct_answer: str) -> str:
    if is_correct:
        return CORRECT_FEEDBACK
    return f"Incorrect. The correct answer is {correct_answer}."
