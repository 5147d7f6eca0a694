"""Utility for assigning display names to participants who join without one."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from pathlib import Path
import random
from threading import Lock

_DATA_PATH = Path(__file__).resolve().parent.parent / "data" / "participant_names.txt"
# Fallback names in case the text file is missing for some reason.
_FALLBACK_NAMES = [
    "Ada Lovelace",
    "Alan Turing",
    "Grace Hopper",
    "Marie Curie",
    "Rosalind Franklin",
    "Niels Bohr",
    "Emmy Noether",
    "Carl Gauss",
    "Katherine Johnson",
    "Nikola Tesla",
    "Lise Meitner",
    "Srinivasa Ramanujan",
    "Hedy Lamarr",
    "Dorothy Hodgkin",
    "Enrico Fermi",
    "Barbara McClintock",
    "Max Planck",
    "Rachel Carson",
    "Leonhard Euler",
    "Chien-Shiung Wu",
]


class NameAssigner:
    """Provides randomized, non-repeating names from a fixed list."""

    def __init__(self, names: list[str], rng: random.Random | None = None):
        cleaned = [name.strip() for name in names if name.strip()]
        if not cleaned:
            raise ValueError("Name list cannot be empty.")
        self._names = cleaned
        self._pool: deque[str] = deque()
        self._lock = Lock()
        self._rng = rng or random.Random()
        self._refill_pool()

    @classmethod
    def from_default_file(cls) -> "NameAssigner":
        names = _fallback_names()
        if _DATA_PATH.exists():
            try:
                names = _DATA_PATH.read_text(encoding="utf-8").splitlines()
            except OSError:
                names = _fallback_names()
        return cls(names)

    def next_name(self, is_taken: Callable[[str], bool] = lambda name: False) -> str:
        """Return the next free name, numbering it once every base name is taken."""
        with self._lock:
            for _ in range(len(self._names)):
                if not self._pool:
                    self._refill_pool()
                candidate = self._pool.popleft()
                if not is_taken(candidate):
                    return candidate

            base = self._rng.choice(self._names)
            suffix = 2
            while is_taken(f"{base} {suffix}"):
                suffix += 1
            return f"{base} {suffix}"

    def reset_cycle(self) -> None:
        """Clear the remaining pool and reshuffle all names for a fresh cycle."""
        with self._lock:
            self._pool.clear()
            self._refill_pool()

    def _refill_pool(self) -> None:
        shuffled = list(self._names)
        self._rng.shuffle(shuffled)
        self._pool.extend(shuffled)


def _fallback_names() -> list[str]:
    return list(_FALLBACK_NAMES)
