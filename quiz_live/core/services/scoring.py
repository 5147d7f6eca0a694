"""Answer correctness and time-weighted point awards.

A correct answer earns ``BASE_POINTS`` plus a bonus of up to
``MAX_TIME_BONUS`` that shrinks linearly over the question's time limit, so an
instant answer is worth 100 and an answer at the deadline is worth 50. Wrong
answers earn nothing and multi-select questions give no partial credit.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import math

from quiz_live.constants.quiz_constants import BASE_POINTS, MAX_TIME_BONUS
from quiz_live.core.models import Question


@dataclass(slots=True, frozen=True)
class ScoreResult:
    is_correct: bool
    points: int


def is_answer_correct(question: Question, submitted_option_ids: Sequence[str]) -> bool:
    correct_ids = question.correct_option_ids()
    if not correct_ids:
        return False

    if question.question_type.is_single_answer:
        return len(submitted_option_ids) == 1 and submitted_option_ids[0] == correct_ids[0]

    submitted = set(submitted_option_ids)
    # Repeated ids would make a set comparison pass with the wrong count.
    if len(submitted) != len(submitted_option_ids):
        return False
    return submitted == set(correct_ids)


def time_bonus(time_to_answer: float, time_limit_seconds: int | None) -> int:
    """Return the speed bonus, with ``time_to_answer`` clamped to ``[0, limit]``."""
    if not time_limit_seconds or time_limit_seconds <= 0:
        return 0
    elapsed = min(max(float(time_to_answer), 0.0), float(time_limit_seconds))
    remaining_fraction = (time_limit_seconds - elapsed) / time_limit_seconds
    return _round_half_up(remaining_fraction * MAX_TIME_BONUS)


def score_answer(
    question: Question,
    submitted_option_ids: Sequence[str],
    time_to_answer: float,
) -> ScoreResult:
    """Decide correctness and compute the points for one submission."""
    if not is_answer_correct(question, submitted_option_ids):
        return ScoreResult(is_correct=False, points=0)
    points = BASE_POINTS + time_bonus(time_to_answer, question.time_limit_seconds)
    return ScoreResult(is_correct=True, points=points)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
