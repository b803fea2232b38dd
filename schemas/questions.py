# schemas/questions.py
from typing import Optional

from pydantic import BaseModel

from schemas.attempts import AttemptOut


class QuestionOut(BaseModel):
    position: int
    number: int
    prompt: str
    category: Optional[str] = None
    difficulty: Optional[str] = None
    answered: bool
    # only revealed once the question is finalized
    attempt: Optional[AttemptOut] = None
