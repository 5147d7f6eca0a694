"""Real-time control plane bridging live connections to session state.

Every inbound action from a connection runs as its own coroutine. Mutations
of one session are serialized through an ``asyncio.Lock`` keyed by session id
(load, mutate, and save happen under the lock), and find-or-create of a
quiz's session is serialized through a lock keyed by quiz id, so concurrent
first joins never open two waiting sessions for one quiz.

Errors raised while handling an action are reported to the originating
connection as an ``error`` event and never reach other connections.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Any, TypeVar

from quiz_live.config import AnswerTiming, Settings
from quiz_live.core.errors import (
    InvalidStateError,
    QuizError,
    QuizNotFoundError,
    SessionNotFoundError,
    StoreError,
    ValidationError,
)
from quiz_live.core.models import Question, Quiz, new_id, utcnow
from quiz_live.core.name_assigner import NameAssigner
from quiz_live.core.question_renderer import QuestionRenderer, renderer as default_renderer
from quiz_live.core.services.game_session import GameSession
from quiz_live.core.services.leaderboard import LeaderboardEntry
from quiz_live.core.services.quiz_store import QuizStore
from quiz_live.core.services.room_manager import RoomManager
from quiz_live.core.services.scoring import score_answer
from quiz_live.core.services.session_store import SessionStore

logger = logging.getLogger(__name__)

Sender = Callable[[str, Any], Awaitable[None]]
T = TypeVar("T")

_JOIN_ATTEMPTS = 3

_GENERIC_FAILURES = {
    "join-quiz": "Failed to join quiz",
    "submit-answer": "Failed to submit answer",
    "start-quiz": "Failed to start quiz",
    "next-question": "Failed to advance question",
}


class KeyedLocks:
    """``asyncio.Lock`` per key, discarded once nobody holds or awaits it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


@dataclass(slots=True)
class ConnectionContext:
    """Per-connection state: where the connection is and who it speaks for."""

    send: Sender
    id: str = field(default_factory=new_id)
    join_code: str | None = None
    session_id: str | None = None
    participant_id: str | None = None


class SessionGateway:
    """Handles join, answer, start, advance, and disconnect events."""

    def __init__(
        self,
        quiz_store: QuizStore,
        session_store: SessionStore,
        settings: Settings | None = None,
        rooms: RoomManager | None = None,
        name_assigner: NameAssigner | None = None,
        renderer: QuestionRenderer | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._quiz_store = quiz_store
        self._session_store = session_store
        self._settings = settings or Settings()
        self._rooms = rooms or RoomManager()
        self._name_assigner = name_assigner or NameAssigner.from_default_file()
        self._renderer = renderer or default_renderer
        self._clock = clock

        self._connections: dict[str, ConnectionContext] = {}
        self._session_locks = KeyedLocks()
        self._quiz_locks = KeyedLocks()
        self._timers: dict[str, asyncio.Task[None]] = {}

    @property
    def quiz_store(self) -> QuizStore:
        return self._quiz_store

    # --- Connections ---

    def connect(self, send: Sender) -> ConnectionContext:
        connection = ConnectionContext(send=send)
        self._connections[connection.id] = connection
        logger.debug("Connection %s opened", connection.id)
        return connection

    async def on_disconnect(self, connection: ConnectionContext) -> None:
        """Drop the connection from its room; the participant stays in the session."""
        room = self._rooms.leave(connection.id)
        self._connections.pop(connection.id, None)
        logger.info("Connection %s disconnected (room=%s)", connection.id, room)

    # --- Inbound events ---

    async def on_join(
        self,
        connection: ConnectionContext,
        join_code: str,
        participant_name: str,
    ) -> None:
        await self._run(connection, "join-quiz", self._join(connection, join_code, participant_name))

    async def on_submit_answer(
        self,
        connection: ConnectionContext,
        session_id: str,
        participant_id: str,
        question_id: str,
        answer: Sequence[str],
        time_to_answer: float | None = None,
    ) -> None:
        await self._run(
            connection,
            "submit-answer",
            self._submit_answer(session_id, participant_id, question_id, answer, time_to_answer),
        )

    async def on_start(self, connection: ConnectionContext, join_code: str) -> None:
        await self._run(connection, "start-quiz", self._start(connection, join_code))

    async def on_advance_question(self, connection: ConnectionContext, session_id: str) -> None:
        await self._run(connection, "next-question", self._advance(connection, session_id))

    # --- Queries ---

    async def get_session(self, session_id: str) -> dict[str, object]:
        session = await self._load_session(session_id)
        return session.to_dict()

    async def get_leaderboard(self, session_id: str) -> list[LeaderboardEntry]:
        session = await self._load_session(session_id)
        return session.get_leaderboard()

    async def get_public_quiz(self, join_code: str) -> dict[str, object]:
        quiz = await self._read(self._quiz_store.find_by_join_code, join_code)
        if quiz is None:
            raise QuizNotFoundError(join_code)
        return quiz.to_public_dict()

    async def broadcast(self, join_code: str, event: str, data: Any) -> None:
        """Send an event to every connection in the join code's room."""
        dead: list[str] = []
        for connection_id in self._rooms.members(join_code):
            connection = self._connections.get(connection_id)
            if connection is None:
                dead.append(connection_id)
                continue
            try:
                await connection.send(event, data)
            except Exception:
                logger.warning("Dropping connection %s after failed send", connection_id, exc_info=True)
                dead.append(connection_id)
        for connection_id in dead:
            self._rooms.leave(connection_id)
            self._connections.pop(connection_id, None)

    async def close(self) -> None:
        """Cancel pending question timers."""
        timers = list(self._timers.values())
        self._timers.clear()
        for task in timers:
            task.cancel()
        await asyncio.gather(*timers, return_exceptions=True)

    # --- Handlers ---

    async def _run(self, connection: ConnectionContext, event: str, action: Awaitable[None]) -> None:
        try:
            await action
        except QuizError as exc:
            logger.warning("%s rejected for connection %s: %s", event, connection.id, exc)
            await self._send_error(connection, str(exc))
        except Exception:
            logger.exception("Unexpected failure handling %s for connection %s", event, connection.id)
            await self._send_error(connection, _GENERIC_FAILURES.get(event, "Request failed"))

    async def _send_error(self, connection: ConnectionContext, message: str) -> None:
        try:
            await connection.send("error", message)
        except Exception:
            logger.warning("Could not deliver error to connection %s", connection.id, exc_info=True)

    async def _join(self, connection: ConnectionContext, join_code: str, participant_name: str) -> None:
        quiz = await self._load_quiz_by_code(join_code)

        for _ in range(_JOIN_ATTEMPTS):
            session = await self._find_or_create_session(quiz)
            async with self._session_locks.hold(session.id):
                session = await self._load_session(session.id)
                if session.is_completed():
                    # finished between lookup and lock; the next lookup opens a new session
                    continue
                name = participant_name.strip() or self._name_assigner.next_name(session.is_name_taken)
                participant = session.add_participant(name)
                await self._session_store.save(session)

                self._enter_room(connection, quiz.join_code)
                connection.session_id = session.id
                connection.participant_id = participant.id
                logger.info("%s joined session %s (quiz %s)", participant.name, session.id, quiz.join_code)

                await self.broadcast(
                    quiz.join_code,
                    "participant-joined",
                    {"participants": [p.to_public_dict() for p in session.participants]},
                )
                break
        else:
            raise InvalidStateError("This quiz session has already finished")

        await connection.send(
            "joined-successfully",
            {"sessionId": session.id, "participantId": participant.id, "name": participant.name},
        )

    async def _submit_answer(
        self,
        session_id: str,
        participant_id: str,
        question_id: str,
        answer: Sequence[str],
        time_to_answer: float | None,
    ) -> None:
        if not answer:
            raise ValidationError("Select at least one option")

        async with self._session_locks.hold(session_id):
            session = await self._load_session(session_id)
            quiz = await self._load_quiz(session.quiz_id)
            question = session.current_question(quiz)
            if question is None:
                raise InvalidStateError("No question is currently open for answers")
            if question.id != question_id:
                raise InvalidStateError("That question is no longer open for answers")
            unknown = [option_id for option_id in answer if option_id not in question.option_ids()]
            if unknown:
                raise ValidationError(f"Unknown option id(s): {', '.join(unknown)}")

            participant = session.get_participant(participant_id)
            elapsed = self._answer_time(session, question, time_to_answer)
            result = score_answer(question, answer, elapsed)
            session.submit_answer(
                participant.id, question.id, answer, elapsed, result.is_correct, result.points
            )
            await self._session_store.save(session)
            logger.info(
                "%s answered question %d of session %s: correct=%s points=%d",
                participant.name,
                session.current_question_index + 1,
                session.id,
                result.is_correct,
                result.points,
            )

            await self.broadcast(
                session.join_code,
                "leaderboard-update",
                [entry.to_dict() for entry in session.get_leaderboard()],
            )

    async def _start(self, connection: ConnectionContext, join_code: str) -> None:
        quiz = await self._load_quiz_by_code(join_code)
        session = await self._find_or_create_session(quiz)

        async with self._session_locks.hold(session.id):
            session = await self._load_session(session.id)
            session.start(self._clock())
            await self._session_store.save(session)

            self._enter_room(connection, quiz.join_code)
            connection.session_id = session.id
            logger.info(
                "Session %s started with %d participant(s)", session.id, len(session.participants)
            )

            await self.broadcast(quiz.join_code, "quiz-started", {"sessionId": session.id})
            await self._broadcast_question(session, quiz)
            self._schedule_timer(session, quiz)

    async def _advance(self, connection: ConnectionContext, session_id: str) -> None:
        async with self._session_locks.hold(session_id):
            session = await self._load_session(session_id)
            quiz = await self._load_quiz(session.quiz_id)
            if connection.join_code != session.join_code:
                self._enter_room(connection, session.join_code)
                connection.session_id = session.id
            await self._advance_locked(session, quiz)

    async def _advance_locked(self, session: GameSession, quiz: Quiz) -> None:
        if session.advance(len(quiz.questions), self._clock()):
            await self._session_store.save(session)
            logger.info(
                "Session %s moved to question %d/%d",
                session.id,
                session.current_question_index + 1,
                len(quiz.questions),
            )
            await self._broadcast_question(session, quiz)
            self._schedule_timer(session, quiz)
            return

        await self._session_store.save(session)
        self._cancel_timer(session.id)
        logger.info("Session %s completed", session.id)
        await self.broadcast(
            session.join_code,
            "quiz-completed",
            {"leaderboard": [entry.to_dict() for entry in session.get_leaderboard()]},
        )

    async def _broadcast_question(self, session: GameSession, quiz: Quiz) -> None:
        question = session.current_question(quiz)
        if question is None:
            return
        await self.broadcast(
            session.join_code,
            "new-question",
            {
                "question": self._renderer.render_public_question(question),
                "timeLimit": question.time_limit_seconds,
                "questionIndex": session.current_question_index,
                "questionCount": len(quiz.questions),
            },
        )

    # --- Timing ---

    def _answer_time(
        self,
        session: GameSession,
        question: Question,
        client_time_to_answer: float | None,
    ) -> float:
        """Seconds the participant took, measured according to the timing policy."""
        limit = question.time_limit_seconds
        if self._settings.answer_timing is AnswerTiming.CLIENT:
            if client_time_to_answer is None:
                raise ValidationError("timeToAnswer is required")
            elapsed = max(float(client_time_to_answer), 0.0)
            return min(elapsed, float(limit)) if limit else elapsed

        started = session.question_started_at
        if started is None:
            raise InvalidStateError("No question is currently open for answers")
        elapsed = max((self._clock() - started).total_seconds(), 0.0)
        if limit and elapsed > limit + self._settings.answer_grace_seconds:
            raise InvalidStateError("Time is up for this question")
        return min(elapsed, float(limit)) if limit else elapsed

    def _schedule_timer(self, session: GameSession, quiz: Quiz) -> None:
        if not self._settings.auto_advance:
            return
        self._cancel_timer(session.id)
        question = session.current_question(quiz)
        if question is None or not question.time_limit_seconds:
            return
        delay = question.time_limit_seconds + self._settings.answer_grace_seconds
        self._timers[session.id] = asyncio.create_task(
            self._expire_question(session.id, session.current_question_index, delay),
            name=f"question-timer-{session.id}",
        )

    def _cancel_timer(self, session_id: str) -> None:
        task = self._timers.pop(session_id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _expire_question(self, session_id: str, question_index: int, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            async with self._session_locks.hold(session_id):
                session = await self._load_session(session_id)
                if not session.is_active() or session.current_question_index != question_index:
                    return
                quiz = await self._load_quiz(session.quiz_id)
                self._timers.pop(session_id, None)
                logger.info("Time limit reached for question %d of session %s", question_index + 1, session_id)
                await self._advance_locked(session, quiz)
        except QuizError as exc:
            logger.warning("Automatic advance of session %s failed: %s", session_id, exc)
        except Exception:
            logger.exception("Unexpected failure advancing session %s", session_id)
        finally:
            if self._timers.get(session_id) is asyncio.current_task():
                del self._timers[session_id]

    # --- Loading and locking ---

    async def _read(self, operation: Callable[..., Awaitable[T]], *args: Any) -> T:
        """Run an idempotent store read, retrying once after a short backoff."""
        try:
            return await operation(*args)
        except StoreError as exc:
            backoff = self._settings.store_retry_backoff_seconds
            logger.warning("Store read failed (%s); retrying in %.2fs", exc, backoff)
            await asyncio.sleep(backoff)
            return await operation(*args)

    async def _load_quiz_by_code(self, join_code: str) -> Quiz:
        quiz = await self._read(self._quiz_store.find_by_join_code, join_code)
        if quiz is None:
            raise QuizNotFoundError(join_code)
        return quiz

    async def _load_quiz(self, quiz_id: str) -> Quiz:
        quiz = await self._read(self._quiz_store.find_by_id, quiz_id)
        if quiz is None:
            raise QuizNotFoundError(quiz_id)
        return quiz

    async def _load_session(self, session_id: str) -> GameSession:
        session = await self._read(self._session_store.find_by_id, session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def _find_or_create_session(self, quiz: Quiz) -> GameSession:
        async with self._quiz_locks.hold(quiz.id):
            session = await self._read(self._session_store.find_active_by_quiz, quiz.id)
            if session is None:
                session = GameSession(quiz_id=quiz.id, join_code=quiz.join_code)
                await self._session_store.save(session)
                logger.info("Opened session %s for quiz %s", session.id, quiz.join_code)
            return session

    def _enter_room(self, connection: ConnectionContext, join_code: str) -> None:
        self._rooms.join(connection.id, join_code)
        connection.join_code = join_code
        self._connections.setdefault(connection.id, connection)
