"""Tests for the plain-text quiz importer."""

from pathlib import Path

import pytest

from quiz_live.core.models import QuestionType
from quiz_live.core.quiz_importer import (
    QuizImportError,
    load_quiz_from_file,
    load_quizzes_from_directory,
    parse_quiz_text,
)

SAMPLE = """\
TITLE: Capitals
DESCRIPTION: Warm-up round
CODE: hft9dd

Q: What is the capital of **Australia**?
A: Sydney
B: Canberra
C: Melbourne
CORRECT: B
TIMELIMIT: 30

---

Q: Bern is the capital of Switzerland.
TYPE: truefalse
A: True
B: False
CORRECT: A

Q: Which cities are capitals?
continued on a second line
TYPE: multiple
A: Ottawa
B: Toronto
C: Nairobi
CORRECT: A, C
"""


class TestParseQuizText:

    def test_parses_header_and_questions(self):
        quiz = parse_quiz_text(SAMPLE)
        assert quiz.title == "Capitals"
        assert quiz.description == "Warm-up round"
        assert quiz.join_code == "hft9dd"
        assert len(quiz.questions) == 3

    def test_single_choice_question(self):
        first = parse_quiz_text(SAMPLE).questions[0]
        assert first.question_type is QuestionType.SINGLE_CHOICE
        assert first.text == "What is the capital of **Australia**?"
        assert [o.id for o in first.options] == ["A", "B", "C"]
        assert first.correct_option_ids() == ["B"]
        assert first.time_limit_seconds == 30

    def test_true_false_question_without_time_limit(self):
        second = parse_quiz_text(SAMPLE).questions[1]
        assert second.question_type is QuestionType.TRUE_FALSE
        assert second.time_limit_seconds is None

    def test_multiple_choice_with_multiline_text(self):
        third = parse_quiz_text(SAMPLE).questions[2]
        assert third.question_type is QuestionType.MULTIPLE_CHOICE
        assert third.text == "Which cities are capitals?\ncontinued on a second line"
        assert third.correct_option_ids() == ["A", "C"]

    def test_default_title(self):
        quiz = parse_quiz_text("Q: One?\nA: x\nB: y\nCORRECT: A", default_title="fallback")
        assert quiz.title == "fallback"
        assert quiz.join_code == ""

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "TITLE: only a header",
            "A: x\nB: y\nCORRECT: A",
            "Q: ?\nA: x\nB: y",
            "Q: ?\nA: x\nB: y\nCORRECT: D",
            "Q: ?\nA: x\nC: y\nCORRECT: A",
            "Q: ?\nA: x\nB: y\nCORRECT: A\nTIMELIMIT: -5",
            "Q: ?\nA: x\nB: y\nCORRECT: A\nTIMELIMIT:",
            "Q: ?\nA: x\nB: y\nCORRECT: A\nTIMELIMIT: abc",
            "Q: ?\nTYPE: essay\nA: x\nB: y\nCORRECT: A",
            "stray text\nQ: ?\nA: x\nB: y\nCORRECT: A",
            "TITLE: x\nAUTHOR: y\n\nQ: ?\nA: x\nB: y\nCORRECT: A",
        ],
    )
    def test_malformed_input(self, text):
        with pytest.raises(QuizImportError):
            parse_quiz_text(text)


class TestLoadFromDisk:

    def test_load_file_uses_stem_as_default_title(self, tmp_path: Path):
        path = tmp_path / "space_trivia.txt"
        path.write_text("Q: Largest planet?\nA: Jupiter\nB: Mars\nCORRECT: A\n", encoding="utf-8")
        imported = load_quiz_from_file(path)
        assert imported.source_path == path
        assert imported.quiz.title == "space trivia"

    def test_load_directory_in_name_order(self, tmp_path: Path):
        for name in ("b.txt", "a.txt"):
            (tmp_path / name).write_text(f"TITLE: {name}\n\nQ: ?\nA: x\nB: y\nCORRECT: A\n", encoding="utf-8")
        (tmp_path / "notes.md").write_text("ignored", encoding="utf-8")
        titles = [item.quiz.title for item in load_quizzes_from_directory(tmp_path)]
        assert titles == ["a.txt", "b.txt"]

    def test_missing_directory(self, tmp_path: Path):
        with pytest.raises(QuizImportError):
            load_quizzes_from_directory(tmp_path / "missing")

    def test_bundled_sample_quiz_is_valid(self):
        sample = Path(__file__).resolve().parent.parent / "quizzes" / "world_capitals.txt"
        quiz = load_quiz_from_file(sample).quiz
        assert quiz.join_code == "HFT9DD"
        assert [q.question_type for q in quiz.questions] == [
            QuestionType.SINGLE_CHOICE,
            QuestionType.TRUE_FALSE,
            QuestionType.MULTIPLE_CHOICE,
        ]
