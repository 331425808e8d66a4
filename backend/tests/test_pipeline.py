"""
SleepSense - Coach Engine Tests

Tests for the full turn lifecycle with a fixed clock and seeded random
source. No network or disk access.

Run with: pytest tests/test_pipeline.py -v
"""

import json
import logging
import random
import threading
from datetime import datetime, timedelta

import pytest

from conftest import EVENING, FixedClock, make_entry
from sleepsense.config import Settings
from sleepsense.core.exceptions import InvalidMessageError, TurnInProgressError
from sleepsense.core.logging import StructuredFormatter
from sleepsense.core.pipeline import CoachEngine, TurnState, create_engine
from sleepsense.core.store import STORAGE_KEY, AppStore, InMemoryStorageBackend
from sleepsense.core.types import MessageSender
from sleepsense.services.crisis import CRISIS_RESPONSE
from sleepsense.services.responses import (
    BREATHING_EVENING,
    ROUTINE_SOCIAL_MEDIA,
    ResponseCategory,
    ResponseSelector,
)


class TestRespond:
    """Tests for reply computation without persistence."""

    def test_respond_does_not_touch_transcript(self, engine: CoachEngine, store: AppStore):
        reply = engine.respond("hello")

        assert reply.category == ResponseCategory.GENERAL_SUPPORT
        assert store.load().chat_history == []

    def test_respond_uses_persisted_entries(self, engine: CoachEngine, store: AppStore, social_media_entries):
        store.save({"sleep_entries": social_media_entries})

        assert engine.respond("help with my routine").text == ROUTINE_SOCIAL_MEDIA

    def test_respond_uses_engine_clock(self, engine: CoachEngine, clock: FixedClock):
        clock.set(EVENING)

        assert engine.respond("breathing please").text == BREATHING_EVENING

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_empty_message_rejected(self, engine: CoachEngine, text: str):
        with pytest.raises(InvalidMessageError):
            engine.respond(text)

    def test_crisis_does_not_read_store(self, clock: FixedClock):
        """The crisis path returns before the context is built."""

        class ExplodingStore(AppStore):
            def load(self):
                raise AssertionError("store must not be read on the crisis path")

        engine = CoachEngine(store=ExplodingStore(InMemoryStorageBackend()), clock=clock)

        reply = engine.respond("I feel hopeless")

        assert reply.is_crisis
        assert reply.text == CRISIS_RESPONSE

    def test_seeded_engines_agree(self, clock: FixedClock):
        first = CoachEngine(AppStore(InMemoryStorageBackend()), clock=clock, rng=random.Random(9))
        second = CoachEngine(AppStore(InMemoryStorageBackend()), clock=clock, rng=random.Random(9))

        replies_a = [first.respond("anxious").text for _ in range(5)]
        replies_b = [second.respond("anxious").text for _ in range(5)]

        assert replies_a == replies_b


class TestTakeTurn:
    """Tests for a full conversation turn."""

    def test_turn_appends_user_then_assistant(self, engine: CoachEngine, store: AppStore):
        result = engine.take_turn("I can't sleep")

        history = store.load().chat_history
        assert [m.sender for m in history] == [MessageSender.USER, MessageSender.ASSISTANT]
        assert history[0].id == result.user_message.id
        assert history[1].content == result.text
        assert history[0].timestamp <= history[1].timestamp

    def test_turn_strips_user_text(self, engine: CoachEngine, store: AppStore):
        engine.take_turn("  hello  ")

        assert store.load().chat_history[0].content == "hello"

    def test_consecutive_turns_keep_order(self, engine: CoachEngine, store: AppStore, clock: FixedClock):
        engine.take_turn("hello")
        clock.set(clock() + timedelta(minutes=1))
        engine.take_turn("breathing")

        history = store.load().chat_history
        assert len(history) == 4
        assert [m.timestamp for m in history] == sorted(m.timestamp for m in history)

    def test_crisis_turn_is_persisted(self, engine: CoachEngine, store: AppStore):
        result = engine.take_turn("I want to give up")

        assert result.is_crisis
        assert store.load().chat_history[-1].content == CRISIS_RESPONSE

    def test_empty_turn_persists_nothing(self, engine: CoachEngine, store: AppStore):
        with pytest.raises(InvalidMessageError):
            engine.take_turn("   ")

        assert store.load().chat_history == []
        assert engine.state == TurnState.IDLE

    def test_turn_after_browser_timestamps(self, engine: CoachEngine, memory_backend, store: AppStore):
        """A transcript saved by the browser ("Z" timestamps) still accepts new turns."""
        memory_backend.set_item(STORAGE_KEY, json.dumps({
            "user": None,
            "assessment": None,
            "sleepEntries": [],
            "chatHistory": [
                {"id": "1", "type": "user", "content": "hi", "timestamp": "2024-11-29T10:00:00.000Z"},
                {"id": "2", "type": "ai", "content": "hello", "timestamp": "2024-11-29T10:00:05.000Z"},
            ],
            "settings": {"darkMode": False, "fontSize": "medium", "notifications": True, "demoMode": False},
        }))

        engine.take_turn("hello")
        engine.take_turn("breathing")

        history = store.load().chat_history
        assert len(history) == 6
        assert all(m.timestamp.tzinfo is not None for m in history)
        assert [m.timestamp for m in history] == sorted(m.timestamp for m in history)

    def test_default_clock_is_timezone_aware(self, store: AppStore):
        engine = CoachEngine(store=store)

        assert engine.now().tzinfo is not None

    def test_state_returns_to_idle(self, engine: CoachEngine):
        engine.take_turn("hello")
        assert engine.state == TurnState.IDLE

    def test_second_turn_while_pending_rejected(self, store: AppStore, clock: FixedClock):
        """Only one turn may be outstanding."""
        entered = threading.Event()
        release = threading.Event()

        class SlowSelector(ResponseSelector):
            def select(self, text, context, now, rng):
                entered.set()
                release.wait(timeout=5)
                return super().select(text, context, now, rng)

        engine = CoachEngine(store=store, selector=SlowSelector(), clock=clock)
        worker = threading.Thread(target=engine.take_turn, args=("first",))
        worker.start()
        try:
            assert entered.wait(timeout=5)
            assert engine.state == TurnState.PENDING

            with pytest.raises(TurnInProgressError):
                engine.take_turn("second")
        finally:
            release.set()
            worker.join(timeout=5)

        assert engine.state == TurnState.IDLE
        assert len(store.load().chat_history) == 2


class TestLogging:
    """Message text must stay out of the logs when anonymizing."""

    def test_anonymized_log_hides_text(self, engine: CoachEngine, caplog):
        caplog.set_level(logging.INFO, logger="sleepsense")

        engine.respond("my secret journal words")

        assert "secret journal" not in caplog.text
        assert "REDACTED" in caplog.text

    def test_turn_log_data_is_masked_in_json(self, engine: CoachEngine, caplog):
        caplog.set_level(logging.INFO, logger="sleepsense")

        engine.take_turn("my secret journal words")

        record = next(r for r in caplog.records if r.getMessage().startswith("Turn complete"))
        assert record.data["category"] == "general_support"
        formatted = json.loads(StructuredFormatter().format(record))
        assert formatted["data"]["category"] == "general_support"
        assert formatted["data"]["user_message"]["content"] == "[REDACTED, 23 chars]"

    def test_crisis_logged_as_warning_without_text(self, engine: CoachEngine, caplog):
        caplog.set_level(logging.INFO, logger="sleepsense")

        engine.respond("I feel hopeless")

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert warnings
        assert "hopeless" not in caplog.text

    def test_preview_when_not_anonymized(self, store: AppStore, clock: FixedClock, caplog):
        caplog.set_level(logging.INFO, logger="sleepsense")
        engine = CoachEngine(store=store, clock=clock, anonymize_logs=False)

        engine.respond("hello coach")

        assert "hello coach" in caplog.text


class TestCreateEngine:

    def test_create_engine_from_settings(self, test_settings: Settings):
        engine = create_engine(test_settings)

        assert isinstance(engine.store.backend, InMemoryStorageBackend)
        assert engine.state == TurnState.IDLE

    def test_create_engine_with_store(self, test_settings: Settings, store: AppStore):
        assert create_engine(test_settings, store=store).store is store

    def test_engine_context_reflects_store(self, engine: CoachEngine, store: AppStore, improving_entries):
        store.save({"sleep_entries": improving_entries})

        context = engine.build_context()

        assert context.improvement_trend is True
        assert len(context.recent_entries) == 4
