"""Domain models for the live quiz engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4


def new_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuestionType(str, Enum):
    """Answer shape of a question."""

    SINGLE_CHOICE = "SingleChoice"
    TRUE_FALSE = "TrueFalse"
    MULTIPLE_CHOICE = "MultipleChoice"

    @property
    def is_single_answer(self) -> bool:
        return self is not QuestionType.MULTIPLE_CHOICE


class SessionStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(slots=True)
class Option:
    """Selectable answer option. ``is_correct`` never leaves the server while live."""

    id: str
    text: str
    is_correct: bool = False

    def to_public_dict(self) -> dict[str, object]:
        return {"id": self.id, "text": self.text}


@dataclass(slots=True)
class Question:
    """Timed question with two or more options."""

    id: str
    text: str
    options: list[Option]
    question_type: QuestionType = QuestionType.SINGLE_CHOICE
    time_limit_seconds: int | None = None

    def correct_option_ids(self) -> list[str]:
        return [option.id for option in self.options if option.is_correct]

    def option_ids(self) -> set[str]:
        return {option.id for option in self.options}

    def to_public_dict(self) -> dict[str, object]:
        """Participant-facing view with correctness flags stripped."""
        return {
            "id": self.id,
            "text": self.text,
            "type": self.question_type.value,
            "options": [option.to_public_dict() for option in self.options],
        }


@dataclass(slots=True)
class Quiz:
    """Quiz definition owned by the quiz store."""

    id: str
    title: str
    questions: list[Question]
    join_code: str = ""
    description: str = ""

    def question_at(self, index: int) -> Question | None:
        if 0 <= index < len(self.questions):
            return self.questions[index]
        return None

    def to_public_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "joinCode": self.join_code,
            "questions": [question.to_public_dict() for question in self.questions],
        }


@dataclass(slots=True, frozen=True)
class AnswerRecord:
    """Immutable record of one scored answer."""

    question_id: str
    selected_option_ids: tuple[str, ...]
    time_to_answer: float
    is_correct: bool
    points: int
    submitted_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class Participant:
    """Player inside exactly one session."""

    id: str
    name: str
    join_order: int
    score: int = 0
    answers: list[AnswerRecord] = field(default_factory=list)

    def to_public_dict(self) -> dict[str, object]:
        return {"id": self.id, "name": self.name, "score": self.score}
