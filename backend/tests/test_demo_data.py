"""
SleepSense - Demo Data Tests

The demo fixtures must load into a store and drive the coach the way a
real two-week history would.

Run with: pytest tests/test_demo_data.py -v
"""

import random
from datetime import date, datetime

import pytest

from scripts.generate_demo_data import DEMO_DAYS, generate_demo_chat, generate_demo_entries
from sleepsense.core.context import ContextBuilder
from sleepsense.core.store import AppStore
from sleepsense.core.types import EntryKind, MessageSender


TODAY = date(2024, 11, 30)


@pytest.fixture
def demo_entries():
    return generate_demo_entries(TODAY, random.Random(7))


class TestDemoEntries:

    def test_two_entries_per_day(self, demo_entries):
        assert len(demo_entries) == DEMO_DAYS * 2
        assert len({entry.key for entry in demo_entries}) == DEMO_DAYS * 2

    def test_oldest_first_ending_today(self, demo_entries):
        assert demo_entries[0].date == date(2024, 11, 17)
        assert demo_entries[-1].date == TODAY
        assert demo_entries[-2].kind == EntryKind.EVENING
        assert demo_entries[-1].kind == EntryKind.MORNING

    def test_levels_in_range(self, demo_entries):
        for entry in demo_entries:
            for level in (entry.anxiety_level, entry.sleep_quality, entry.energy_level):
                assert level is None or 1 <= level <= 10

    def test_anxious_then_calm(self, demo_entries):
        evenings = [e for e in demo_entries if e.kind == EntryKind.EVENING]

        assert all(e.anxiety_level >= 7 for e in evenings[:6])
        assert all(e.anxiety_level <= 6 for e in evenings[-8:])
        assert evenings[-1].triggers == ["Social Media"]

    def test_reproducible_with_seed(self):
        first = generate_demo_entries(TODAY, random.Random(3))
        second = generate_demo_entries(TODAY, random.Random(3))

        assert [e.to_dict() for e in first] == [e.to_dict() for e in second]

    def test_demo_history_loads_into_store(self, store: AppStore, demo_entries):
        store.save({"sleep_entries": demo_entries})

        context = ContextBuilder().build(store.load())

        assert len(context.recent_entries) == 7
        assert context.top_trigger == "Social Media"


class TestDemoChat:

    def test_transcript_order(self):
        now = datetime(2024, 11, 30, 22, 0)

        messages = generate_demo_chat(now)

        assert [m.sender for m in messages] == [
            MessageSender.USER,
            MessageSender.ASSISTANT,
            MessageSender.USER,
            MessageSender.ASSISTANT,
        ]
        assert [m.timestamp for m in messages] == sorted(m.timestamp for m in messages)
        assert all(m.timestamp < now.astimezone() for m in messages)

    def test_transcript_appends_to_store(self, store: AppStore):
        store.append_messages(*generate_demo_chat(datetime(2024, 11, 30, 22, 0)))

        assert len(store.load().chat_history) == 4
