"""Shared fixtures for the quiz engine tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import random
from typing import Any

import pytest

from quiz_live.config import AnswerTiming, Settings
from quiz_live.core.models import Option, Question, QuestionType, Quiz
from quiz_live.core.name_assigner import NameAssigner
from quiz_live.core.services.quiz_store import QuizStore
from quiz_live.core.services.session_store import SessionStore
from quiz_live.core.session_gateway import SessionGateway

JOIN_CODE = "HFT9DD"


def make_quiz(join_code: str = JOIN_CODE, quiz_id: str = "quiz-1") -> Quiz:
    """Three questions: single choice, multiple choice, true/false."""
    return Quiz(
        id=quiz_id,
        title="General Knowledge",
        description="Test quiz",
        join_code=join_code,
        questions=[
            Question(
                id="q1",
                text="What is the capital of Australia?",
                question_type=QuestionType.SINGLE_CHOICE,
                time_limit_seconds=30,
                options=[
                    Option(id="o1", text="Sydney"),
                    Option(id="o2", text="Canberra", is_correct=True),
                    Option(id="o3", text="Melbourne"),
                    Option(id="o4", text="Perth"),
                ],
            ),
            Question(
                id="q2",
                text="Which numbers are prime?",
                question_type=QuestionType.MULTIPLE_CHOICE,
                time_limit_seconds=20,
                options=[
                    Option(id="o1", text="2", is_correct=True),
                    Option(id="o2", text="4"),
                    Option(id="o3", text="7", is_correct=True),
                ],
            ),
            Question(
                id="q3",
                text="Water boils at 100 C at sea level.",
                question_type=QuestionType.TRUE_FALSE,
                time_limit_seconds=15,
                options=[
                    Option(id="t", text="True", is_correct=True),
                    Option(id="f", text="False"),
                ],
            ),
        ],
    )


class RecordingConnection:
    """Stands in for a socket and records every event sent to it."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    async def send(self, event: str, data: Any) -> None:
        self.events.append((event, data))

    def of(self, event: str) -> list[Any]:
        return [data for name, data in self.events if name == event]

    def last(self, event: str) -> Any:
        matching = self.of(event)
        assert matching, f"no '{event}' event received; got {[name for name, _ in self.events]}"
        return matching[-1]


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def quiz() -> Quiz:
    return make_quiz()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def quiz_store() -> QuizStore:
    return QuizStore()


@pytest.fixture
def session_store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(answer_timing=AnswerTiming.SERVER, store_retry_backoff_seconds=0.0)


@pytest.fixture
def gateway(quiz_store, session_store, settings, clock) -> SessionGateway:
    return SessionGateway(
        quiz_store,
        session_store,
        settings=settings,
        name_assigner=NameAssigner(["Guest"], rng=random.Random(7)),
        clock=clock,
    )
