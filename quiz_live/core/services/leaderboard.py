"""Ranked top-N view over a session's participants."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from quiz_live.constants.quiz_constants import LEADERBOARD_SIZE
from quiz_live.core.models import Participant


@dataclass(slots=True, frozen=True)
class LeaderboardEntry:
    """Immutable snapshot returned to consumers."""

    name: str
    score: int

    def to_dict(self) -> dict[str, object]:
        return {"name": self.name, "score": self.score}


def build_leaderboard(
    participants: Iterable[Participant],
    limit: int = LEADERBOARD_SIZE,
) -> list[LeaderboardEntry]:
    """Return the top ``limit`` participants by score; ties go to the earlier joiner."""
    ranked = sorted(participants, key=lambda p: (-p.score, p.join_order))
    return [LeaderboardEntry(name=p.name, score=p.score) for p in ranked[:limit]]
