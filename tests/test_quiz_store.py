"""Tests for quiz validation, join codes, and the in-memory stores."""

import asyncio
import itertools

import pytest

from conftest import make_quiz
from quiz_live.constants.quiz_constants import DEFAULT_TIME_LIMIT_SECONDS, JOIN_CODE_ALPHABET
from quiz_live.core.errors import QuizNotFoundError, ValidationError
from quiz_live.core.join_codes import generate_join_code, is_valid_join_code, normalize_join_code
from quiz_live.core.models import Option, Question, QuestionType
from quiz_live.core.services.game_session import GameSession
from quiz_live.core.services.quiz_store import QuizStore
from quiz_live.core.services.session_store import SessionStore


def run(coro):
    return asyncio.run(coro)


class TestJoinCodes:

    def test_generated_codes_use_the_alphabet(self):
        code = generate_join_code()
        assert len(code) == 6
        assert set(code) <= set(JOIN_CODE_ALPHABET)
        assert is_valid_join_code(code)

    def test_generation_skips_taken_codes(self):
        letters = itertools.cycle("AAAAAABBBBBB")
        code = generate_join_code(taken={"AAAAAA"}, choice=lambda alphabet: next(letters))
        assert code == "BBBBBB"

    def test_generation_gives_up(self):
        with pytest.raises(RuntimeError):
            generate_join_code(taken={"AAAAAA"}, choice=lambda alphabet: "A", max_attempts=3)

    @pytest.mark.parametrize("code,valid", [("HFT9DD", True), ("123456", True), ("hft9dd", False), ("ABC", False), ("ABC-12", False)])
    def test_validity(self, code, valid):
        assert is_valid_join_code(code) is valid

    def test_normalize(self):
        assert normalize_join_code(" hft9dd ") == "HFT9DD"


class TestQuizStore:

    def test_add_and_find_by_join_code_case_insensitive(self):
        store = QuizStore()
        run(store.add(make_quiz()))
        found = run(store.find_by_join_code("hft9dd"))
        assert found is not None
        assert found.id == "quiz-1"

    def test_find_missing_returns_none(self):
        store = QuizStore()
        assert run(store.find_by_join_code("NOPE00")) is None
        assert run(store.find_by_id("missing")) is None

    def test_returned_quiz_is_a_copy(self):
        store = QuizStore()
        run(store.add(make_quiz()))
        first = run(store.find_by_id("quiz-1"))
        first.questions[0].options[0].is_correct = True
        again = run(store.find_by_id("quiz-1"))
        assert again.questions[0].options[0].is_correct is False

    def test_join_code_assigned_when_missing(self):
        store = QuizStore()
        stored = run(store.add(make_quiz(join_code="")))
        assert is_valid_join_code(stored.join_code)
        assert run(store.find_by_join_code(stored.join_code)).id == stored.id

    def test_duplicate_join_code_rejected(self):
        store = QuizStore()
        run(store.add(make_quiz()))
        with pytest.raises(ValidationError):
            run(store.add(make_quiz(quiz_id="quiz-2")))

    def test_invalid_join_code_rejected(self):
        with pytest.raises(ValidationError):
            run(QuizStore().add(make_quiz(join_code="AB-1")))

    def test_default_time_limit_by_type(self):
        quiz = make_quiz()
        for question in quiz.questions:
            question.time_limit_seconds = None
        stored = run(QuizStore().add(quiz))
        assert [q.time_limit_seconds for q in stored.questions] == [
            DEFAULT_TIME_LIMIT_SECONDS[QuestionType.SINGLE_CHOICE],
            DEFAULT_TIME_LIMIT_SECONDS[QuestionType.MULTIPLE_CHOICE],
            DEFAULT_TIME_LIMIT_SECONDS[QuestionType.TRUE_FALSE],
        ]

    def test_empty_quiz_rejected(self):
        quiz = make_quiz()
        quiz.questions = []
        with pytest.raises(ValidationError):
            run(QuizStore().add(quiz))

    def test_update_keeps_join_code(self):
        store = QuizStore()
        run(store.add(make_quiz()))
        edited = make_quiz(join_code="")
        edited.title = "Renamed"
        updated = run(store.update(edited))
        assert updated.title == "Renamed"
        assert updated.join_code == "HFT9DD"

    def test_update_and_delete_missing(self):
        store = QuizStore()
        with pytest.raises(QuizNotFoundError):
            run(store.update(make_quiz()))
        with pytest.raises(QuizNotFoundError):
            run(store.delete("quiz-1"))

    def test_delete_frees_join_code(self):
        store = QuizStore()
        run(store.add(make_quiz()))
        run(store.delete("quiz-1"))
        assert run(store.find_by_join_code("HFT9DD")) is None
        assert run(store.list_quizzes()) == []


class TestQuestionValidation:

    def _quiz_with(self, question):
        quiz = make_quiz()
        quiz.questions = [question]
        return quiz

    def test_needs_two_options(self):
        question = Question(id="q", text="?", options=[Option(id="a", text="A", is_correct=True)])
        with pytest.raises(ValidationError):
            run(QuizStore().add(self._quiz_with(question)))

    def test_needs_a_correct_option(self):
        question = Question(id="q", text="?", options=[Option(id="a", text="A"), Option(id="b", text="B")])
        with pytest.raises(ValidationError):
            run(QuizStore().add(self._quiz_with(question)))

    def test_single_choice_needs_exactly_one_correct(self):
        question = Question(
            id="q",
            text="?",
            options=[Option(id="a", text="A", is_correct=True), Option(id="b", text="B", is_correct=True)],
        )
        with pytest.raises(ValidationError):
            run(QuizStore().add(self._quiz_with(question)))

    def test_multiple_choice_allows_several_correct(self):
        question = Question(
            id="q",
            text="?",
            question_type=QuestionType.MULTIPLE_CHOICE,
            options=[Option(id="a", text="A", is_correct=True), Option(id="b", text="B", is_correct=True)],
        )
        stored = run(QuizStore().add(self._quiz_with(question)))
        assert stored.questions[0].correct_option_ids() == ["a", "b"]

    def test_true_false_needs_two_options(self):
        question = Question(
            id="q",
            text="?",
            question_type=QuestionType.TRUE_FALSE,
            options=[
                Option(id="a", text="A", is_correct=True),
                Option(id="b", text="B"),
                Option(id="c", text="C"),
            ],
        )
        with pytest.raises(ValidationError):
            run(QuizStore().add(self._quiz_with(question)))

    def test_rejects_duplicate_option_ids(self):
        question = Question(
            id="q",
            text="?",
            options=[Option(id="a", text="A", is_correct=True), Option(id="a", text="B")],
        )
        with pytest.raises(ValidationError):
            run(QuizStore().add(self._quiz_with(question)))

    def test_rejects_non_positive_time_limit(self):
        quiz = make_quiz()
        quiz.questions[0].time_limit_seconds = 0
        with pytest.raises(ValidationError):
            run(QuizStore().add(quiz))


class TestSessionStore:

    def test_find_active_skips_completed(self):
        store = SessionStore()
        done = GameSession(quiz_id="quiz-1", join_code="HFT9DD")
        done.start()
        done.advance(1)
        run(store.save(done))
        assert run(store.find_active_by_quiz("quiz-1")) is None

        waiting = GameSession(quiz_id="quiz-1", join_code="HFT9DD")
        run(store.save(waiting))
        assert run(store.find_active_by_quiz("quiz-1")).id == waiting.id
        assert [s.id for s in run(store.list_by_quiz("quiz-1"))] == [done.id, waiting.id]

    def test_saved_document_is_detached_from_caller(self):
        store = SessionStore()
        session = GameSession(quiz_id="quiz-1", join_code="HFT9DD")
        run(store.save(session))
        session.add_participant("Unsaved")
        assert run(store.find_by_id(session.id)).participants == []
