"""In-memory store of quiz definitions."""

from __future__ import annotations

import asyncio
import copy
import logging

from quiz_live.constants.quiz_constants import (
    DEFAULT_TIME_LIMIT_SECONDS,
    MIN_OPTIONS,
    TRUE_FALSE_OPTION_COUNT,
)
from quiz_live.core.errors import QuizNotFoundError, ValidationError
from quiz_live.core.join_codes import (
    generate_join_code,
    is_valid_join_code,
    normalize_join_code,
)
from quiz_live.core.models import Option, Question, QuestionType, Quiz, new_id

logger = logging.getLogger(__name__)


class QuizStore:
    """Validates and stores quizzes, handing out copies to callers."""

    def __init__(self) -> None:
        self._quizzes: dict[str, Quiz] = {}
        self._ids_by_code: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def add(self, quiz: Quiz) -> Quiz:
        """Validate and store a new quiz, assigning a join code when it has none."""
        async with self._lock:
            prepared = self._prepare_quiz(quiz)
            if prepared.id in self._quizzes:
                raise ValidationError(f"Quiz id {prepared.id} already exists.")
            if not prepared.join_code:
                prepared.join_code = generate_join_code(taken=self._ids_by_code)
            elif prepared.join_code in self._ids_by_code:
                raise ValidationError(f"Join code {prepared.join_code} is already in use.")
            self._quizzes[prepared.id] = prepared
            self._ids_by_code[prepared.join_code] = prepared.id
            logger.info("Stored quiz '%s' with join code %s", prepared.title, prepared.join_code)
            return copy.deepcopy(prepared)

    async def find_by_id(self, quiz_id: str) -> Quiz | None:
        quiz = self._quizzes.get(quiz_id)
        return copy.deepcopy(quiz) if quiz is not None else None

    async def find_by_join_code(self, join_code: str) -> Quiz | None:
        quiz_id = self._ids_by_code.get(normalize_join_code(join_code))
        if quiz_id is None:
            return None
        return await self.find_by_id(quiz_id)

    async def list_quizzes(self) -> list[Quiz]:
        return [copy.deepcopy(quiz) for quiz in self._quizzes.values()]

    async def update(self, quiz: Quiz) -> Quiz:
        """Replace title, description, and questions, keeping id and join code."""
        async with self._lock:
            existing = self._quizzes.get(quiz.id)
            if existing is None:
                raise QuizNotFoundError(quiz.id)
            prepared = self._prepare_quiz(quiz)
            prepared.join_code = existing.join_code
            self._quizzes[quiz.id] = prepared
            return copy.deepcopy(prepared)

    async def delete(self, quiz_id: str) -> None:
        async with self._lock:
            quiz = self._quizzes.pop(quiz_id, None)
            if quiz is None:
                raise QuizNotFoundError(quiz_id)
            self._ids_by_code.pop(quiz.join_code, None)

    def _prepare_quiz(self, quiz: Quiz) -> Quiz:
        """Validate and normalize a quiz before storage."""
        title = quiz.title.strip()
        if not title:
            raise ValidationError("Quiz title must not be empty.")
        if not quiz.questions:
            raise ValidationError("Quiz must contain at least one question.")

        join_code = normalize_join_code(quiz.join_code) if quiz.join_code else ""
        if join_code and not is_valid_join_code(join_code):
            raise ValidationError(f"Join code '{quiz.join_code}' must be six letters or digits.")

        questions = [self._prepare_question(q) for q in quiz.questions]
        question_ids = [q.id for q in questions]
        if len(set(question_ids)) != len(question_ids):
            raise ValidationError("Question ids must be unique within a quiz.")

        return Quiz(
            id=quiz.id or new_id(),
            title=title,
            description=quiz.description.strip(),
            join_code=join_code,
            questions=questions,
        )

    def _prepare_question(self, question: Question) -> Question:
        cleaned_text = question.text.strip()
        if not cleaned_text:
            raise ValidationError("Question text must not be empty.")

        options = self._validate_options(question)
        return Question(
            id=question.id or new_id(),
            text=cleaned_text,
            options=options,
            question_type=question.question_type,
            time_limit_seconds=self._normalize_time_limit(question),
        )

    @staticmethod
    def _validate_options(question: Question) -> list[Option]:
        if len(question.options) < MIN_OPTIONS:
            raise ValidationError("Each question must have at least two options.")
        if (
            question.question_type is QuestionType.TRUE_FALSE
            and len(question.options) != TRUE_FALSE_OPTION_COUNT
        ):
            raise ValidationError("True/false questions must have exactly two options.")

        cleaned = [
            Option(id=option.id or new_id(), text=option.text.strip(), is_correct=option.is_correct)
            for option in question.options
        ]
        if any(not option.text for option in cleaned):
            raise ValidationError("Option text cannot be empty.")
        if len({option.id for option in cleaned}) != len(cleaned):
            raise ValidationError("Option ids must be unique within a question.")

        correct_count = sum(1 for option in cleaned if option.is_correct)
        if correct_count == 0:
            raise ValidationError("Each question needs at least one correct option.")
        if question.question_type.is_single_answer and correct_count != 1:
            raise ValidationError(
                f"{question.question_type.value} questions must have exactly one correct option."
            )
        return cleaned

    @staticmethod
    def _normalize_time_limit(question: Question) -> int:
        time_limit_seconds = question.time_limit_seconds
        if time_limit_seconds is None:
            return DEFAULT_TIME_LIMIT_SECONDS[question.question_type]
        if not isinstance(time_limit_seconds, int) or isinstance(time_limit_seconds, bool):
            raise ValidationError("Time limit must be provided as an integer number of seconds.")
        if time_limit_seconds <= 0:
            raise ValidationError("Time limit must be a positive integer.")
        return time_limit_seconds
