"""Short, human-enterable join codes."""

from __future__ import annotations

from collections.abc import Callable, Container
import secrets
import string

from quiz_live.constants.quiz_constants import JOIN_CODE_ALPHABET, JOIN_CODE_LENGTH

_CODE_CHARACTERS = frozenset(string.ascii_uppercase + string.digits)


def normalize_join_code(code: str) -> str:
    return code.strip().upper()


def is_valid_join_code(code: str) -> bool:
    return len(code) == JOIN_CODE_LENGTH and all(ch in _CODE_CHARACTERS for ch in code)


def generate_join_code(
    taken: Container[str] = (),
    choice: Callable[[str], str] = secrets.choice,
    max_attempts: int = 100,
) -> str:
    """Return a random code that is not in ``taken``."""
    for _ in range(max_attempts):
        code = "".join(choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH))
        if code not in taken:
            return code
    raise RuntimeError("Could not generate an unused join code.")
