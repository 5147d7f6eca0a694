"""State of one quiz run: participants, question progression, and answers."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from quiz_live.constants.quiz_constants import LEADERBOARD_SIZE
from quiz_live.core.errors import (
    DuplicateAnswerError,
    DuplicateNameError,
    InvalidStateError,
    ParticipantNotFoundError,
    ValidationError,
)
from quiz_live.core.models import (
    AnswerRecord,
    Participant,
    Question,
    Quiz,
    SessionStatus,
    new_id,
    utcnow,
)
from quiz_live.core.services.leaderboard import LeaderboardEntry, build_leaderboard


@dataclass(slots=True)
class GameSession:
    """Session document mutated by joins, answers, and question advancement.

    ``completed`` is terminal: every mutator refuses to touch a completed
    session, which stays readable for its final leaderboard.
    """

    quiz_id: str
    join_code: str
    id: str = field(default_factory=new_id)
    status: SessionStatus = SessionStatus.WAITING
    current_question_index: int = -1
    question_started_at: datetime | None = None
    participants: list[Participant] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    _join_counter: int = 0

    # --- Status ---

    def is_waiting(self) -> bool:
        return self.status is SessionStatus.WAITING

    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE

    def is_completed(self) -> bool:
        return self.status is SessionStatus.COMPLETED

    def start(self, now: datetime | None = None) -> None:
        """Move ``waiting -> active`` and present the first question."""
        if not self.is_waiting():
            raise InvalidStateError(f"Quiz cannot be started while {self.status.value}")
        self.status = SessionStatus.ACTIVE
        self.current_question_index = 0
        self.question_started_at = now or utcnow()

    def advance(self, question_count: int, now: datetime | None = None) -> bool:
        """Step to the next question; returns False once the quiz is completed."""
        if not self.is_active():
            raise InvalidStateError(f"Cannot advance a session that is {self.status.value}")
        next_index = self.current_question_index + 1
        if next_index >= question_count:
            self.status = SessionStatus.COMPLETED
            self.current_question_index = question_count
            self.question_started_at = None
            return False
        self.current_question_index = next_index
        self.question_started_at = now or utcnow()
        return True

    def current_question(self, quiz: Quiz) -> Question | None:
        if not self.is_active():
            return None
        return quiz.question_at(self.current_question_index)

    # --- Participants ---

    def add_participant(self, name: str) -> Participant:
        if self.is_completed():
            raise InvalidStateError("This quiz session has already finished")
        cleaned = name.strip()
        if not cleaned:
            raise ValidationError("Participant name must not be empty")
        if self.is_name_taken(cleaned):
            raise DuplicateNameError(cleaned)

        self._join_counter += 1
        participant = Participant(id=new_id(), name=cleaned, join_order=self._join_counter)
        self.participants.append(participant)
        return participant

    def is_name_taken(self, name: str) -> bool:
        folded = name.strip().casefold()
        return any(p.name.casefold() == folded for p in self.participants)

    def get_participant(self, participant_id: str) -> Participant:
        participant = next((p for p in self.participants if p.id == participant_id), None)
        if participant is None:
            raise ParticipantNotFoundError(participant_id)
        return participant

    # --- Answers ---

    def has_answered(self, participant_id: str, question_id: str) -> bool:
        participant = self.get_participant(participant_id)
        return any(a.question_id == question_id for a in participant.answers)

    def submit_answer(
        self,
        participant_id: str,
        question_id: str,
        selected_option_ids: Sequence[str],
        time_to_answer: float,
        is_correct: bool,
        points: int,
    ) -> AnswerRecord:
        """Append an answer record and add its points to the participant's score."""
        if not self.is_active():
            raise InvalidStateError("Answers are only accepted while the quiz is running")
        participant = self.get_participant(participant_id)
        if self.has_answered(participant.id, question_id):
            raise DuplicateAnswerError(participant_id, question_id)

        record = AnswerRecord(
            question_id=question_id,
            selected_option_ids=tuple(selected_option_ids),
            time_to_answer=time_to_answer,
            is_correct=is_correct,
            points=points,
        )
        participant.answers.append(record)
        participant.score += points
        return record

    def get_leaderboard(self, limit: int = LEADERBOARD_SIZE) -> list[LeaderboardEntry]:
        return build_leaderboard(self.participants, limit)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "quizId": self.quiz_id,
            "joinCode": self.join_code,
            "status": self.status.value,
            "currentQuestionIndex": self.current_question_index,
            "participants": [p.to_public_dict() for p in self.participants],
        }
