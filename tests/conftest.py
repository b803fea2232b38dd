import asyncio
from typing import List, Optional

import httpx
import pytest

from bank import LoadFailure
from models import Question

CAPITALS = [
    ("What is the capital of France?", "Paris"),
    ("What is the capital of Italy?", "Rome"),
    ("What is the capital of Japan?", "Tokyo"),
    ("What is the capital of Egypt?", "Cairo"),
    ("What is the capital of Peru?", "Lima"),
    ("What is the capital of Kenya?", "Nairobi"),
    ("What is the capital of Canada?", "Ottawa"),
    ("What is the capital of Norway?", "Oslo"),
    ("What is the capital of Chile?", "Santiago"),
    ("What is the capital of Spain?", "Madrid"),
]


def make_questions(n: int = 10) -> List[Question]:
    return [
        Question(position=i, prompt=CAPITALS[i % len(CAPITALS)][0], correct_answer=CAPITALS[i % len(CAPITALS)][1])
        for i in range(n)
    ]


@pytest.fixture
def questions() -> List[Question]:
    return make_questions(10)


class FakeLoader:
    def __init__(self, questions: Optional[List[Question]] = None, error: Optional[str] = None):
        self.questions = questions if questions is not None else make_questions(10)
        self.error = error
        self.calls = 0

    async def load(self) -> List[Question]:
        self.calls += 1
        if self.error:
            raise LoadFailure(self.error)
        return list(self.questions)


class FakeFetcher:
    """Answers every lookup with a canned text built from the first candidate."""

    def __init__(self):
        self.calls: List[List[str]] = []

    async def fetch(self, candidates) -> str:
        self.calls.append(list(candidates))
        return f"About {candidates[0]}."


class GatedFetcher(FakeFetcher):
    """Holds every lookup until `release` is called."""

    def __init__(self):
        super().__init__()
        self._gate: Optional[asyncio.Event] = None
        self.text = ""

    async def fetch(self, candidates) -> str:
        self.calls.append(list(candidates))
        if self._gate is None:
            self._gate = asyncio.Event()
        await self._gate.wait()
        return self.text

    def release(self, text: str) -> None:
        self.text = text
        if self._gate is None:
            self._gate = asyncio.Event()
        self._gate.set()


# --- Fake upstream services for the HTTP app ----------------------------------------

TRIVIA_PAYLOAD = {
    "response_code": 0,
    "results": [
        {
            "category": "Geography",
            "type": "multiple",
            "difficulty": "medium",
            "question": prompt.replace("France", "&quot;France&quot;") if i == 0 else prompt,
            "correct_answer": answer,
            "incorrect_answers": ["A", "B", "C"],
        }
        for i, (prompt, answer) in enumerate(CAPITALS)
    ],
}


def fake_upstream(request: httpx.Request) -> httpx.Response:
    params = request.url.params
    if request.url.host == "opentdb.com":
        return httpx.Response(200, json=TRIVIA_PAYLOAD)
    if request.url.host == "en.wikipedia.org":
        if params.get("list") == "search":
            return httpx.Response(200, json={"query": {"search": [{"title": params["srsearch"]}]}})
        title = params.get("titles", "")
        return httpx.Response(200, json={"query": {"pages": {"1": {"title": title, "extract": f"{title} is a city."}}}})
    return httpx.Response(404)
