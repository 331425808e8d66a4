"""
SleepSense - Coach Context Builder

Derives the rolling summary the response rules personalize with:
the recent entries window, ranked triggers, average anxiety and whether
anxiety is trending down.

All functions are pure and never raise on empty input.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sleepsense.core.types import AppState, SleepEntry


CONTEXT_WINDOW = 7
"""Number of most recent entries (as persisted) the context looks at."""

TREND_EPSILON = 0.05
"""Minimum drop in mean anxiety between window halves that counts as improvement."""


@dataclass(frozen=True)
class CoachContext:
    """
    Analytical summary of recent check-ins.

    Attributes:
        recent_entries: Last CONTEXT_WINDOW entries in persisted order
        common_triggers: Triggers in the window, most frequent first
        average_anxiety: Mean anxiety_level over the window (0 if no readings)
        improvement_trend: True when the later half of the window is calmer
        average_sleep_quality: Mean sleep_quality over the window (0 if no readings)
    """
    recent_entries: List[SleepEntry] = field(default_factory=list)
    common_triggers: List[str] = field(default_factory=list)
    average_anxiety: float = 0.0
    improvement_trend: bool = False
    average_sleep_quality: float = 0.0

    @property
    def top_trigger(self) -> Optional[str]:
        return self.common_triggers[0] if self.common_triggers else None

    def has_trigger(self, name: str) -> bool:
        """Case-insensitive membership test on the ranked triggers."""
        wanted = name.lower()
        return any(trigger.lower() == wanted for trigger in self.common_triggers)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to serializable dictionary."""
        return {
            "recent_entries": [entry.to_dict() for entry in self.recent_entries],
            "common_triggers": list(self.common_triggers),
            "average_anxiety": self.average_anxiety,
            "improvement_trend": self.improvement_trend,
            "average_sleep_quality": self.average_sleep_quality,
        }


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _anxiety_readings(entries: Sequence[SleepEntry]) -> List[int]:
    return [e.anxiety_level for e in entries if e.anxiety_level is not None]


def rank_triggers(entries: Sequence[SleepEntry]) -> List[str]:
    """Triggers by frequency, descending. Ties keep first-seen order."""
    counts = Counter(trigger for entry in entries for trigger in entry.triggers)
    return [trigger for trigger, _ in counts.most_common()]


def has_improvement_trend(entries: Sequence[SleepEntry], epsilon: float = TREND_EPSILON) -> bool:
    """
    Compare mean anxiety of the first and second half of `entries` (by index).

    With an odd count the extra entry goes to the second half. A half
    without anxiety readings has mean 0. Differences within epsilon are not
    a trend.
    """
    middle = len(entries) // 2
    first = _anxiety_readings(entries[:middle])
    second = _anxiety_readings(entries[middle:])

    return _mean(first) - _mean(second) > epsilon


class ContextBuilder:
    """Builds a CoachContext from the persisted AppState."""

    def __init__(self, window: int = CONTEXT_WINDOW, epsilon: float = TREND_EPSILON):
        if window < 1:
            raise ValueError(f"window must be >= 1, got {window}")
        self._window = window
        self._epsilon = epsilon

    def build(self, state: AppState) -> CoachContext:
        recent = list(state.sleep_entries[-self._window:])

        sleep_readings = [e.sleep_quality for e in recent if e.sleep_quality is not None]

        return CoachContext(
            recent_entries=recent,
            common_triggers=rank_triggers(recent),
            average_anxiety=_mean(_anxiety_readings(recent)),
            improvement_trend=has_improvement_trend(recent, self._epsilon),
            average_sleep_quality=_mean(sleep_readings),
        )
