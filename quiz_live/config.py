"""Runtime settings for the quiz server, read from the environment."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import os
from pathlib import Path

from dotenv import load_dotenv

from quiz_live.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quiz_live.constants.quiz_constants import (
    ANSWER_GRACE_SECONDS,
    STORE_RETRY_BACKOFF_SECONDS,
)

_ENV_PREFIX = "QUIZ_LIVE_"
_TRUTHY = {"1", "true", "yes", "on"}


class AnswerTiming(str, Enum):
    """Who measures how long a participant took to answer.

    ``SERVER`` stamps each question when it goes live and rejects answers
    that arrive after the time limit plus a grace period. ``CLIENT`` trusts
    the ``timeToAnswer`` sent with the answer.
    """

    SERVER = "server"
    CLIENT = "client"


@dataclass(slots=True)
class Settings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    quiz_dir: Path | None = None
    answer_timing: AnswerTiming = AnswerTiming.SERVER
    answer_grace_seconds: float = ANSWER_GRACE_SECONDS
    auto_advance: bool = False
    store_retry_backoff_seconds: float = STORE_RETRY_BACKOFF_SECONDS
    log_level: str = "INFO"


def load_settings(env_file: str | os.PathLike[str] | None = None) -> Settings:
    """Build settings from ``QUIZ_LIVE_*`` variables, loading a ``.env`` file first."""
    load_dotenv(env_file)

    def env(name: str) -> str | None:
        value = os.environ.get(_ENV_PREFIX + name)
        return value.strip() if value and value.strip() else None

    settings = Settings()
    if (host := env("HOST")) is not None:
        settings.host = host
    if (port := env("PORT")) is not None:
        settings.port = _parse_int("PORT", port)
    if (quiz_dir := env("QUIZ_DIR")) is not None:
        settings.quiz_dir = Path(quiz_dir)
    if (timing := env("ANSWER_TIMING")) is not None:
        try:
            settings.answer_timing = AnswerTiming(timing.lower())
        except ValueError as exc:
            raise ValueError(f"{_ENV_PREFIX}ANSWER_TIMING must be 'server' or 'client', got {timing!r}") from exc
    if (grace := env("ANSWER_GRACE_SECONDS")) is not None:
        settings.answer_grace_seconds = _parse_float("ANSWER_GRACE_SECONDS", grace)
    if (auto_advance := env("AUTO_ADVANCE")) is not None:
        settings.auto_advance = auto_advance.lower() in _TRUTHY
    if (log_level := env("LOG_LEVEL")) is not None:
        settings.log_level = log_level.upper()
    return settings


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{_ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc


def _parse_float(name: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{_ENV_PREFIX}{name} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ValueError(f"{_ENV_PREFIX}{name} must not be negative")
    return value
