from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Literal

from .models import Entry, MoodEntry

DEFAULT_MOOD_SCORE = 5
SIGNIFICANT_CHANGE = 2

Direction = Literal["up", "down", "none"]


def significant_change(current: int, previous: int) -> bool:
    return abs(current - previous) >= SIGNIFICANT_CHANGE


@dataclass(frozen=True)
class MoodState:
    current: int = DEFAULT_MOOD_SCORE
    previous: int = DEFAULT_MOOD_SCORE

    @property
    def changed(self) -> bool:
        return significant_change(self.current, self.previous)


@dataclass(frozen=True)
class MoodChange:
    changed: bool
    direction: Direction


class MoodTracker:
    """
    Current/previous mood for the running session.

    Scores are not range checked here; the mood slider only offers 1-10.
    """

    def __init__(self, initial_score: int = DEFAULT_MOOD_SCORE) -> None:
        self._state = MoodState(initial_score, initial_score)
        self._history: list[MoodEntry] = []

    @property
    def state(self) -> MoodState:
        return self._state

    @property
    def current(self) -> int:
        return self._state.current

    @property
    def history(self) -> list[MoodEntry]:
        return list(self._history)

    def record_mood(self, score: int) -> MoodChange:
        previous = self._state.current
        self._state = MoodState(current=score, previous=previous)
        self._history.append(MoodEntry(score=score))
        if score > previous:
            direction: Direction = "up"
        elif score < previous:
            direction = "down"
        else:
            direction = "none"
        return MoodChange(changed=significant_change(score, previous), direction=direction)

    def seed(self, score: int) -> None:
        self._state = MoodState(current=score, previous=score)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def average_mood(entries: Iterable[Entry]) -> int | None:
    scores = [entry.mood_score for entry in entries if entry.mood_score is not None]
    if not scores:
        return None
    return _round_half_up(sum(scores) / len(scores))


def total_entry_count(entries: Iterable[Entry]) -> int:
    return sum(1 for _ in entries)


def mood_emoji(score: int) -> str:
    if score <= 3:
        return "😔"
    if score <= 7:
        return "😐"
    return "😊"
