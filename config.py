from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

_BASE = Path(__file__).resolve().parent

OPENTDB_URL_DEFAULT = "https://opentdb.com/api.php"
WIKIPEDIA_API_URL_DEFAULT = "https://en.wikipedia.org/w/api.php"

# Dev server and the hosted quiz page
_CORS_DEFAULT = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    question_source: str = "opentdb"  # "opentdb" | "file"
    questions_dir: Path = _BASE / "data" / "questions"
    question_count: int = 10
    difficulty: str = "medium"
    question_type: str = "multiple"
    shuffle: bool = False
    time_budget_s: int = 300
    max_tab_warnings: int = 3
    tick_seconds: float = 1.0
    opentdb_url: str = OPENTDB_URL_DEFAULT
    wikipedia_api_url: str = WIKIPEDIA_API_URL_DEFAULT
    http_timeout_s: float = 10.0
    cors_origins: Tuple[str, ...] = tuple(_CORS_DEFAULT.split(","))


def load_settings() -> Settings:
    """
    Read settings from the environment at call time, so tests can
    monkeypatch variables before the app starts.
    """
    source = os.getenv("QUIZ_QUESTION_SOURCE", "opentdb").strip().lower() or "opentdb"
    if source not in ("opentdb", "file"):
        raise RuntimeError(f"QUIZ_QUESTION_SOURCE must be 'opentdb' or 'file', got {source!r}")

    questions_dir = os.getenv("QUIZ_QUESTIONS_DIR", "").strip()
    origins = os.getenv("CORS_ORIGINS", _CORS_DEFAULT)

    settings = Settings(
        question_source=source,
        questions_dir=Path(questions_dir) if questions_dir else Settings.questions_dir,
        question_count=_env_int("QUIZ_QUESTION_COUNT", 10),
        difficulty=os.getenv("QUIZ_DIFFICULTY", "medium"),
        question_type=os.getenv("QUIZ_QUESTION_TYPE", "multiple"),
        shuffle=_env_bool("QUIZ_SHUFFLE", False),
        time_budget_s=_env_int("QUIZ_TIME_BUDGET_S", 300),
        max_tab_warnings=_env_int("QUIZ_MAX_TAB_WARNINGS", 3),
        tick_seconds=_env_float("QUIZ_TICK_SECONDS", 1.0),
        opentdb_url=os.getenv("OPENTDB_URL", OPENTDB_URL_DEFAULT),
        wikipedia_api_url=os.getenv("WIKIPEDIA_API_URL", WIKIPEDIA_API_URL_DEFAULT),
        http_timeout_s=_env_float("HTTP_TIMEOUT_S", 10.0),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
    )

    if settings.question_count < 1:
        raise RuntimeError("QUIZ_QUESTION_COUNT must be at least 1.")
    if settings.time_budget_s < 1:
        raise RuntimeError("QUIZ_TIME_BUDGET_S must be at least 1.")
    if settings.max_tab_warnings < 1:
        raise RuntimeError("QUIZ_MAX_TAB_WARNINGS must be at least 1.")
    if settings.tick_seconds <= 0:
        raise RuntimeError("QUIZ_TICK_SECONDS must be positive.")
    return settings
