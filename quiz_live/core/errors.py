"""Exception hierarchy raised by the quiz engine and its stores."""

from __future__ import annotations


class QuizError(Exception):
    """Base class for errors reported back to the originating connection."""


class NotFoundError(QuizError):
    """A quiz, session, or participant does not exist."""


class QuizNotFoundError(NotFoundError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__("Quiz not found")


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__("Session not found")


class ParticipantNotFoundError(NotFoundError):
    def __init__(self, participant_id: str) -> None:
        self.participant_id = participant_id
        super().__init__("Participant not found in this session")


class InvalidStateError(QuizError):
    """The operation is illegal for the session's status or question index."""


class DuplicateAnswerError(InvalidStateError):
    def __init__(self, participant_id: str, question_id: str) -> None:
        self.participant_id = participant_id
        self.question_id = question_id
        super().__init__("Answer already submitted for this question")


class ValidationError(QuizError):
    """Malformed input such as an unknown option id or an invalid quiz."""


class DuplicateNameError(ValidationError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"The name '{name}' is already taken in this session")


class StoreError(QuizError):
    """The persistence layer failed to read or write a document."""
