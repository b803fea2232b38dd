from __future__ import annotations

import asyncio
import html
import json
import logging
import random
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

import httpx
from pydantic import BaseModel, ValidationError

from config import Settings
from models import Question

logger = logging.getLogger(__name__)


class LoadFailure(RuntimeError):
    """The question supply could not produce a usable batch."""


class QuestionLoader(Protocol):
    async def load(self) -> List[Question]: ...


# --- Raw record shapes -------------------------------------------------------------


class TriviaItemModel(BaseModel):
    question: str
    correct_answer: str
    category: Optional[str] = None
    difficulty: Optional[str] = None


class TriviaResponseModel(BaseModel):
    response_code: int
    results: List[TriviaItemModel] = []


class QuestionModel(BaseModel):
    prompt: str
    answer: str
    category: Optional[str] = None
    difficulty: Optional[str] = None


def _to_questions(items: Iterable[Any]) -> List[Question]:
    """Decode HTML entities and number the usable entries from 0."""
    out: List[Question] = []
    for it in items:
        if isinstance(it, TriviaItemModel):
            prompt, answer = it.question, it.correct_answer
        else:
            prompt, answer = it.prompt, it.answer
        prompt = html.unescape(prompt).strip()
        answer = html.unescape(answer).strip()
        if not prompt or not answer:
            continue
        out.append(
            Question(
                position=len(out),
                prompt=prompt,
                correct_answer=answer,
                category=html.unescape(it.category) if it.category else None,
                difficulty=it.difficulty,
            )
        )
    return out


# --- Remote supply -----------------------------------------------------------------


class OpenTriviaLoader:
    """Fetches one batch from an Open Trivia DB style endpoint. No retries."""

    def __init__(self, client: httpx.AsyncClient, settings: Settings) -> None:
        self.client = client
        self.url = settings.opentdb_url
        self.amount = settings.question_count
        self.difficulty = settings.difficulty
        self.question_type = settings.question_type

    async def load(self) -> List[Question]:
        params = {
            "amount": self.amount,
            "difficulty": self.difficulty,
            "type": self.question_type,
        }
        try:
            r = await self.client.get(self.url, params=params)
            r.raise_for_status()
            payload = TriviaResponseModel.model_validate(r.json())
        except httpx.HTTPError as e:
            logger.warning("question supply request failed: %s", e)
            raise LoadFailure(f"Could not reach the question service ({type(e).__name__}).") from e
        except (ValueError, ValidationError) as e:
            # ValueError covers a body that is not JSON at all
            logger.warning("question supply returned a malformed response: %s", e)
            raise LoadFailure("The question service returned a malformed response.") from e

        if payload.response_code != 0:
            raise LoadFailure(
                f"The question service reported an error (response_code={payload.response_code})."
            )

        questions = _to_questions(payload.results)
        if not questions:
            raise LoadFailure("The question service returned no questions.")
        return questions[: self.amount]


# --- Local supply ------------------------------------------------------------------


def _iter_jsonl(p: Path) -> Iterable[Dict[str, Any]]:
    with p.open("r", encoding="utf-8") as f:
        for line in f:
            s = line.strip()
            if not s or s.startswith("#") or s.startswith("//"):
                continue
            try:
                yield json.loads(s)
            except json.JSONDecodeError:
                # Skip malformed rows instead of failing the whole batch
                continue


def _iter_json(p: Path) -> Iterable[Dict[str, Any]]:
    with p.open("r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError:
            # Treat a broken JSON file as empty
            data = []
    if isinstance(data, list):
        for obj in data:
            yield obj


class FileQuestionLoader:
    """Reads questions from a directory of .json / .jsonl shards."""

    def __init__(self, settings: Settings, rng: Optional[random.Random] = None) -> None:
        self.data_dir = Path(settings.questions_dir)
        self.amount = settings.question_count
        self.shuffle = settings.shuffle
        self.rng = rng or random.Random()

    def _read_records(self) -> List[QuestionModel]:
        records: List[QuestionModel] = []
        for p in sorted(self.data_dir.rglob("*")):
            if not p.is_file():
                continue
            suf = p.suffix.lower()
            if suf == ".jsonl":
                source = _iter_jsonl(p)
            elif suf == ".json":
                source = _iter_json(p)
            else:
                continue

            for raw in source:
                if not isinstance(raw, dict):
                    continue
                try:
                    records.append(QuestionModel(**raw))
                except ValidationError:
                    # Skip invalid records
                    continue
        return records

    async def load(self) -> List[Question]:
        if not self.data_dir.is_dir():
            raise LoadFailure(f"Question directory not found: {self.data_dir}")
        try:
            records = await asyncio.to_thread(self._read_records)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("could not read question shards in %s: %s", self.data_dir, e)
            raise LoadFailure(f"Could not read questions from {self.data_dir}.") from e
        if self.shuffle:
            self.rng.shuffle(records)
        questions = _to_questions(records)[: self.amount]
        if not questions:
            raise LoadFailure("No usable questions were found.")
        return questions


def make_loader(settings: Settings, client: httpx.AsyncClient) -> QuestionLoader:
    if settings.question_source == "file":
        return FileQuestionLoader(settings)
    return OpenTriviaLoader(client, settings)
