"""
SleepSense - Context Builder Tests

Tests for the rolling summary of recent entries:
- Window selection
- Trigger ranking
- Average anxiety and sleep quality
- Improvement trend

Run with: pytest tests/test_context.py -v
"""

import pytest

from conftest import make_entry
from sleepsense.core.context import (
    CONTEXT_WINDOW,
    CoachContext,
    ContextBuilder,
    has_improvement_trend,
    rank_triggers,
)
from sleepsense.core.types import AppState


@pytest.fixture
def builder() -> ContextBuilder:
    return ContextBuilder()


class TestEmptyState:

    def test_empty_state(self, builder: ContextBuilder):
        """No entries gives a neutral context and never raises."""
        context = builder.build(AppState.default())

        assert context.recent_entries == []
        assert context.common_triggers == []
        assert context.average_anxiety == 0
        assert context.improvement_trend is False
        assert context.top_trigger is None

    def test_entries_without_anxiety(self, builder: ContextBuilder):
        state = AppState(sleep_entries=[make_entry(1, "morning", sleep_quality=6)])

        context = builder.build(state)

        assert context.average_anxiety == 0
        assert context.average_sleep_quality == 6


class TestWindow:

    def test_window_is_last_seven_entries(self, builder: ContextBuilder):
        entries = [make_entry(day, anxiety_level=5) for day in range(1, 11)]

        context = builder.build(AppState(sleep_entries=entries))

        assert len(context.recent_entries) == CONTEXT_WINDOW
        assert [e.date.day for e in context.recent_entries] == list(range(4, 11))

    def test_window_uses_persisted_order(self, builder: ContextBuilder):
        """Entries are taken as stored, not re-sorted by date."""
        entries = [make_entry(9), make_entry(1), make_entry(5)]

        context = builder.build(AppState(sleep_entries=entries))

        assert [e.date.day for e in context.recent_entries] == [9, 1, 5]

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            ContextBuilder(window=0)


class TestTriggers:

    def test_triggers_ranked_by_frequency(self):
        entries = [
            make_entry(1, triggers=["Caffeine"]),
            make_entry(2, triggers=["Work", "Caffeine"]),
            make_entry(3, triggers=["Work"]),
            make_entry(4, triggers=["Work"]),
        ]

        assert rank_triggers(entries) == ["Work", "Caffeine"]

    def test_trigger_ties_keep_first_seen_order(self):
        entries = [
            make_entry(1, triggers=["Noise", "Work"]),
            make_entry(2, triggers=["Work", "Noise"]),
        ]

        assert rank_triggers(entries) == ["Noise", "Work"]

    def test_has_trigger_is_case_insensitive(self):
        context = CoachContext(common_triggers=["Social Media"])

        assert context.has_trigger("social media")
        assert not context.has_trigger("social")

    def test_triggers_outside_window_ignored(self, builder: ContextBuilder):
        entries = [make_entry(1, triggers=["Old Stress"])]
        entries += [make_entry(day, triggers=["Work"]) for day in range(2, 9)]

        context = builder.build(AppState(sleep_entries=entries))

        assert context.common_triggers == ["Work"]


class TestAverages:

    def test_average_anxiety_ignores_missing_readings(self, builder: ContextBuilder):
        entries = [
            make_entry(1, anxiety_level=4),
            make_entry(1, "morning", sleep_quality=8),
            make_entry(2, anxiety_level=6),
        ]

        context = builder.build(AppState(sleep_entries=entries))

        assert context.average_anxiety == pytest.approx(5.0)
        assert context.average_sleep_quality == pytest.approx(8.0)


class TestImprovementTrend:

    def test_falling_anxiety_is_a_trend(self, improving_entries):
        """[8, 8, 2, 2] compares 8 against 2."""
        assert has_improvement_trend(improving_entries)

    def test_rising_anxiety_is_not_a_trend(self, improving_entries):
        assert not has_improvement_trend(list(reversed(improving_entries)))

    def test_flat_anxiety_is_not_a_trend(self, social_media_entries):
        assert not has_improvement_trend(social_media_entries)

    def test_difference_within_epsilon_is_not_a_trend(self):
        entries = [make_entry(1, anxiety_level=5), make_entry(2, anxiety_level=5)]
        assert not has_improvement_trend(entries, epsilon=0.05)

    def test_single_entry_is_not_a_trend(self):
        assert not has_improvement_trend([make_entry(1, anxiety_level=9)])

    def test_odd_count_extra_entry_in_second_half(self):
        """[9, 3, 3]: first half is [9], second half is [3, 3]."""
        entries = [
            make_entry(1, anxiety_level=9),
            make_entry(2, anxiety_level=3),
            make_entry(3, anxiety_level=3),
        ]
        assert has_improvement_trend(entries)

    def test_half_without_readings_counts_as_zero(self):
        """A morning-only second half has mean 0, so [8] vs [] is a trend."""
        entries = [
            make_entry(1, anxiety_level=8),
            make_entry(1, "morning", sleep_quality=5),
        ]
        assert has_improvement_trend(entries)

    def test_morning_only_second_half_after_evening(self):
        entries = [
            make_entry(1, anxiety_level=8),
            make_entry(1, "morning", sleep_quality=3),
            make_entry(2, "morning", sleep_quality=5),
            make_entry(3, "morning", sleep_quality=7),
        ]
        assert has_improvement_trend(entries)

    def test_empty_first_half_is_not_a_trend(self):
        """0 minus a positive mean is never above epsilon."""
        entries = [
            make_entry(1, "morning", sleep_quality=5),
            make_entry(2, anxiety_level=3),
        ]
        assert not has_improvement_trend(entries)

    def test_no_entries_is_not_a_trend(self):
        assert not has_improvement_trend([])

    def test_builder_reports_trend(self, builder: ContextBuilder, improving_entries):
        context = builder.build(AppState(sleep_entries=improving_entries))

        assert context.improvement_trend is True
        assert context.average_anxiety == pytest.approx(5.0)
        assert context.top_trigger == "Work"
