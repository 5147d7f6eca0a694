"""Quiz and scoring constants shared across the engine and the server."""

from quiz_live.core.models import QuestionType

BASE_POINTS: int = 50
MAX_TIME_BONUS: int = 50
LEADERBOARD_SIZE: int = 5

MIN_OPTIONS: int = 2
TRUE_FALSE_OPTION_COUNT: int = 2
DEFAULT_TIME_LIMIT_SECONDS: dict[QuestionType, int] = {
    QuestionType.SINGLE_CHOICE: 30,
    QuestionType.TRUE_FALSE: 15,
    QuestionType.MULTIPLE_CHOICE: 45,
}

JOIN_CODE_LENGTH: int = 6
# No 0/O or 1/I so codes stay easy to type from a projector.
JOIN_CODE_ALPHABET: str = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

ANSWER_GRACE_SECONDS: float = 1.0
STORE_RETRY_BACKOFF_SECONDS: float = 0.05
