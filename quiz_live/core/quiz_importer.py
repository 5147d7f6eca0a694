"""Utilities for importing quizzes from a human-friendly text file.

File format (blocks separated by blank lines or '---'):

    TITLE: Quiz title          (optional header block, defaults to file name)
    DESCRIPTION: Short blurb   (optional)
    CODE: HFT9DD               (optional, generated when omitted)

    Q: Question text (supports markdown + LaTeX). Additional lines until the
       next marker are treated as part of the question.
    TYPE: single|truefalse|multiple   (optional, default single)
    A: First option text
    B: Second option text
    ...                        (up to H)
    CORRECT: B                 (comma separated letters for multiple)
    TIMELIMIT: seconds         (optional, default depends on TYPE)

Example:

    TITLE: Arithmetic

    Q: Which of these are even?
    TYPE: multiple
    A: 2
    B: 3
    C: 4
    CORRECT: A, C
    TIMELIMIT: 20

Option ids are the option letters, so clients submit e.g. ``["A", "C"]``.
Structural checks (option counts, number of correct answers) are left to the
quiz store, which applies the same rules to every quiz regardless of source.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import re

from quiz_live.core.models import Option, Question, QuestionType, Quiz, new_id


class QuizImportError(Exception):
    """Raised when a quiz definition cannot be parsed."""


@dataclass(slots=True)
class ImportedQuiz:
    """Container for the source path and the parsed quiz."""

    source_path: Path
    quiz: Quiz


_OPTION_ORDER = ["A", "B", "C", "D", "E", "F", "G", "H"]
_HEADER_KEYS = ("TITLE:", "DESCRIPTION:", "CODE:")
_TYPE_ALIASES = {
    "SINGLE": QuestionType.SINGLE_CHOICE,
    "SINGLECHOICE": QuestionType.SINGLE_CHOICE,
    "MCQ": QuestionType.SINGLE_CHOICE,
    "TRUEFALSE": QuestionType.TRUE_FALSE,
    "TF": QuestionType.TRUE_FALSE,
    "MULTIPLE": QuestionType.MULTIPLE_CHOICE,
    "MULTIPLECHOICE": QuestionType.MULTIPLE_CHOICE,
    "MULTIPLECORRECT": QuestionType.MULTIPLE_CHOICE,
}


def load_quiz_from_file(file_path: Path) -> ImportedQuiz:
    text = file_path.read_text(encoding="utf-8")
    quiz = parse_quiz_text(text, default_title=file_path.stem.replace("_", " "))
    return ImportedQuiz(source_path=file_path, quiz=quiz)


def load_quizzes_from_directory(directory: Path) -> list[ImportedQuiz]:
    """Import every ``*.txt`` quiz in ``directory``, in file name order."""
    if not directory.is_dir():
        raise QuizImportError(f"Quiz directory {directory} does not exist.")
    return [load_quiz_from_file(path) for path in sorted(directory.glob("*.txt"))]


def parse_quiz_text(text: str, default_title: str = "Untitled quiz") -> Quiz:
    title = default_title
    description = ""
    join_code = ""
    questions: list[Question] = []

    for block in _split_blocks(text):
        if block.upper().startswith(_HEADER_KEYS):
            headers = _parse_header(block)
            title = headers.get("TITLE", title)
            description = headers.get("DESCRIPTION", description)
            join_code = headers.get("CODE", join_code)
        else:
            questions.append(_parse_block(block))

    if not questions:
        raise QuizImportError("Quiz file did not contain any questions.")
    return Quiz(
        id=new_id(),
        title=title,
        description=description,
        join_code=join_code,
        questions=questions,
    )


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            # Blank line encountered after content - finalize current block
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return [block for block in blocks if block]


def _parse_header(block: str) -> dict[str, str]:
    headers: dict[str, str] = {}
    for raw_line in block.splitlines():
        line = raw_line.strip()
        key, sep, value = line.partition(":")
        if not sep or f"{key.upper()}:" not in _HEADER_KEYS:
            raise QuizImportError(f"Unknown header line: '{line}'.")
        headers[key.upper()] = value.strip()
    return headers


def _parse_block(block: str) -> Question:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letters: list[str] = []
    question_type = QuestionType.SINGLE_CHOICE
    time_limit_seconds: int | None = None
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("TYPE:"):
            question_type = _parse_type(line.split(":", 1)[1])
            current_section = None
            continue

        if upper.startswith("CORRECT:"):
            raw_value = line.split(":", 1)[1].upper()
            correct_letters = [part for part in re.split(r"[\s,]+", raw_value) if part]
            current_section = None
            continue

        if upper.startswith("TIMELIMIT:"):
            time_limit_seconds = _parse_time_limit(line.split(":", 1)[1].strip())
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in _OPTION_ORDER and line[1] == ":":
            letter = line[0].upper()
            if letter in options:
                raise QuizImportError(f"Option {letter} is defined twice.")
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in _OPTION_ORDER:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuizImportError(
                f"Encountered text outside of a known section: '{line}'."
            )

    if not question_lines:
        raise QuizImportError("Question text missing (Q: ...)")
    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuizImportError("Question text cannot be empty.")

    letters = [letter for letter in _OPTION_ORDER if letter in options]
    if letters != _OPTION_ORDER[: len(letters)]:
        raise QuizImportError("Options must use consecutive letters starting at A.")

    if not correct_letters:
        raise QuizImportError("CORRECT must name at least one option.")
    unknown = [letter for letter in correct_letters if letter not in options]
    if unknown:
        raise QuizImportError(f"CORRECT refers to undefined option(s): {', '.join(unknown)}.")

    return Question(
        id=new_id(),
        text=question_text,
        options=[
            Option(id=letter, text=options[letter].strip(), is_correct=letter in correct_letters)
            for letter in letters
        ],
        question_type=question_type,
        time_limit_seconds=time_limit_seconds,
    )


def _parse_type(raw_value: str) -> QuestionType:
    key = re.sub(r"[\s_\-/]", "", raw_value).upper()
    try:
        return _TYPE_ALIASES[key]
    except KeyError as exc:
        raise QuizImportError("TYPE must be one of single, truefalse, or multiple.") from exc


def _parse_time_limit(raw_value: str) -> int:
    if not raw_value:
        raise QuizImportError("TIMELIMIT must include an integer value.")
    try:
        parsed_value = int(raw_value)
    except ValueError as exc:
        raise QuizImportError("TIMELIMIT must be an integer number of seconds.") from exc
    if parsed_value <= 0:
        raise QuizImportError("TIMELIMIT must be a positive integer.")
    return parsed_value
