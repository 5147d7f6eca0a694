"""In-memory store of session documents."""

from __future__ import annotations

import copy

from quiz_live.core.services.game_session import GameSession


class SessionStore:
    """Keeps session documents by id.

    Callers always receive deep copies, so a handler works on its own snapshot
    and only ``save`` publishes changes. Sessions are never deleted, which keeps
    completed runs available for their final leaderboard.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, GameSession] = {}

    async def find_by_id(self, session_id: str) -> GameSession | None:
        session = self._sessions.get(session_id)
        return copy.deepcopy(session) if session is not None else None

    async def find_active_by_quiz(self, quiz_id: str) -> GameSession | None:
        """Return the quiz's session that is not completed yet, if any."""
        session = next(
            (s for s in self._sessions.values() if s.quiz_id == quiz_id and not s.is_completed()),
            None,
        )
        return copy.deepcopy(session) if session is not None else None

    async def list_by_quiz(self, quiz_id: str) -> list[GameSession]:
        sessions = [s for s in self._sessions.values() if s.quiz_id == quiz_id]
        return [copy.deepcopy(s) for s in sorted(sessions, key=lambda s: s.created_at)]

    async def save(self, session: GameSession) -> None:
        self._sessions[session.id] = copy.deepcopy(session)
