"""
SleepSense - Test Configuration and Fixtures

Shared fixtures for all test modules.
"""

import os
import random
import sys
from datetime import date, datetime
from typing import Generator, List

import pytest
from fastapi.testclient import TestClient

# Ensure backend package is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sleepsense.config import Settings
from sleepsense.core.context import CoachContext
from sleepsense.core.pipeline import CoachEngine
from sleepsense.core.store import AppStore, InMemoryStorageBackend
from sleepsense.core.types import EntryKind, SleepEntry


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")


# =============================================================================
# Clock Helpers
# =============================================================================

EVENING = datetime(2024, 11, 30, 22, 0, 0)
AFTERNOON = datetime(2024, 11, 30, 14, 0, 0)


class FixedClock:
    """Deterministic clock; set() moves it."""

    def __init__(self, start: datetime = AFTERNOON):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value


def make_entry(day: int, kind: str = "evening", **fields) -> SleepEntry:
    """Entry on 2024-11-<day>."""
    return SleepEntry(date=date(2024, 11, day), kind=EntryKind(kind), **fields)


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """
    Create test settings with safe defaults.

    In-memory storage so no test touches the working directory.
    """
    return Settings(
        app_env="testing",
        app_debug=True,
        app_log_level="WARNING",  # Reduce noise in tests
        storage_backend="memory",
        anonymize_logs=True,
    )


@pytest.fixture
def file_settings(tmp_path) -> Settings:
    """Settings using the file backend under a temporary directory."""
    return Settings(
        app_env="testing",
        app_log_level="WARNING",
        storage_backend="file",
        data_dir=str(tmp_path / "data"),
    )


# =============================================================================
# Component Fixtures
# =============================================================================

@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source for reproducible variant choice."""
    return random.Random(42)


@pytest.fixture
def memory_backend() -> InMemoryStorageBackend:
    return InMemoryStorageBackend()


@pytest.fixture
def store(memory_backend: InMemoryStorageBackend) -> AppStore:
    """Fresh app store backed by memory."""
    return AppStore(memory_backend)


@pytest.fixture
def engine(store: AppStore, clock: FixedClock, rng: random.Random) -> CoachEngine:
    """Coach engine with a fixed clock and seeded random source."""
    return CoachEngine(store=store, clock=clock, rng=rng)


@pytest.fixture
def empty_context() -> CoachContext:
    return CoachContext()


# =============================================================================
# Sample Data Fixtures
# =============================================================================

@pytest.fixture
def improving_entries() -> List[SleepEntry]:
    """Four evenings where anxiety drops from 8 to 2."""
    return [
        make_entry(1, anxiety_level=8, triggers=["Work"]),
        make_entry(2, anxiety_level=8, triggers=["Work", "Overthinking"]),
        make_entry(3, anxiety_level=2, triggers=["Overthinking"]),
        make_entry(4, anxiety_level=2, triggers=["Work"]),
    ]


@pytest.fixture
def social_media_entries() -> List[SleepEntry]:
    """Flat anxiety with social media as the dominant trigger."""
    return [
        make_entry(1, anxiety_level=5, triggers=["Social Media"]),
        make_entry(2, anxiety_level=5, triggers=["Social Media", "Caffeine"]),
        make_entry(3, anxiety_level=5, triggers=["Social Media"]),
    ]


# =============================================================================
# API Client Fixtures
# =============================================================================

@pytest.fixture
def client(test_settings: Settings) -> Generator[TestClient, None, None]:
    """
    Create a test client for the FastAPI app.

    The context manager runs the lifespan so the engine exists.
    """
    from main import create_app

    app = create_app(test_settings)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def api_engine(client: TestClient) -> CoachEngine:
    """The engine behind the test client."""
    return client.app.state.engine
