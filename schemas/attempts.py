from typing import Optional

from pydantic import BaseModel, ConfigDict

from models import Outcome


class AttemptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    question_position: int
    prompt: str
    user_answer: str
    is_correct: bool
    correct_answer: str
    outcome: Outcome
    # absent until the lookup resolves; may update on a later poll
    enrichment: Optional[str] = None
