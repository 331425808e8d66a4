"""
SleepSense - Local App Store

Durable key-value persistence for the user's entire AppState.

The whole aggregate lives as a single JSON document under one fixed key
(STORAGE_KEY). Backends only know about opaque string values; AppStore owns
encoding, decoding, the top-level merge and the fallback to defaults.

Failure Semantics:
    - Missing, unreadable or corrupt documents load as AppState.default()
      (never a partially decoded state).
    - Write failures are logged and swallowed. Callers must not assume a
      save succeeded.

Concurrency Notes:
    One writer per process is assumed. Read-modify-write helpers load
    immediately before saving, but nothing coordinates separate processes
    (or two UI tabs) sharing the same data_dir: the last write wins and can
    silently drop the other writer's changes. This is a known limitation.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import abstractmethod
from dataclasses import replace
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

from sleepsense.config import Settings
from sleepsense.core.exceptions import (
    AssessmentAlreadyRecordedError,
    ConfigurationError,
    InvalidStateError,
    StateDecodeError,
    StorageError,
    StorageUnavailableError,
)
from sleepsense.core.types import (
    AnxietyAssessment,
    AppSettings,
    AppState,
    ChatMessage,
    SleepEntry,
    UserProfile,
)

logger = logging.getLogger(__name__)


STORAGE_KEY = "sleepsense-data"


# =============================================================================
# Storage Backends
# =============================================================================

@runtime_checkable
class StorageBackend(Protocol):
    """
    Protocol for raw key-value storage.

    Implementations raise StorageUnavailableError on I/O failure.
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""
        ...

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove the key. Removing an absent key is not an error."""
        ...


class InMemoryStorageBackend:
    """Process-local backend. Thread-safe; contents are lost on restart."""

    def __init__(self):
        self._lock = Lock()
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)


class FileStorageBackend:
    """
    One file per key under a data directory.

    Writes go to a temporary file in the same directory and are moved into
    place with os.replace, so a crash mid-write leaves the previous document
    intact.
    """

    def __init__(self, data_dir: str | Path):
        self._data_dir = Path(data_dir)

    def _path(self, key: str) -> Path:
        return self._data_dir / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageUnavailableError(
                f"Could not read {path}: {e}", details={"key": key}
            ) from e

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_name = None
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._data_dir,
                prefix=f".{key}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(value)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageUnavailableError(
                f"Could not write {path}: {e}", details={"key": key}
            ) from e

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailableError(
                f"Could not remove {path}: {e}", details={"key": key}
            ) from e


# =============================================================================
# App Store
# =============================================================================

# Top-level AppState fields accepted by save(), with the types they must hold
_NULLABLE_FIELDS = {
    "user": UserProfile,
    "assessment": AnxietyAssessment,
}
_LIST_FIELDS = {
    "sleep_entries": SleepEntry,
    "chat_history": ChatMessage,
}


def _validate_partial(partial: Mapping[str, Any]) -> None:
    """Reject unknown keys and wrongly typed values before anything is written."""
    for key, value in partial.items():
        if key in _NULLABLE_FIELDS:
            if value is not None and not isinstance(value, _NULLABLE_FIELDS[key]):
                raise InvalidStateError(
                    f"{key} must be {_NULLABLE_FIELDS[key].__name__} or None",
                    details={"key": key},
                )
        elif key in _LIST_FIELDS:
            item_type = _LIST_FIELDS[key]
            if not isinstance(value, list) or not all(isinstance(v, item_type) for v in value):
                raise InvalidStateError(
                    f"{key} must be a list of {item_type.__name__}",
                    details={"key": key},
                )
            if key == "sleep_entries":
                keys = [entry.key for entry in value]
                if len(keys) != len(set(keys)):
                    raise InvalidStateError(
                        "sleep_entries holds more than one entry for the same date and kind",
                        details={"key": key},
                    )
        elif key == "settings":
            if not isinstance(value, AppSettings):
                raise InvalidStateError("settings must be AppSettings", details={"key": key})
        else:
            raise InvalidStateError(f"Unknown state key: {key!r}", details={"key": key})


class AppStore:
    """
    Load/save/clear for the AppState document, plus read-modify-write helpers.

    All operations are synchronous and run to completion.
    """

    def __init__(self, backend: StorageBackend, key: str = STORAGE_KEY):
        self._backend = backend
        self._key = key

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    # -------------------------------------------------------------------------
    # Core contract
    # -------------------------------------------------------------------------

    def load(self) -> AppState:
        """
        Return the persisted state, or the default state.

        Never raises for storage or decode problems; those are logged and
        answered with AppState.default().
        """
        try:
            raw = self._backend.get_item(self._key)
        except StorageError as e:
            logger.warning("Storage unavailable on load, using defaults: %s", e)
            return AppState.default()

        if raw is None:
            return AppState.default()

        try:
            return AppState.from_dict(json.loads(raw))
        except json.JSONDecodeError as e:
            logger.warning("Persisted state is not valid JSON, using defaults: %s", e)
        except StateDecodeError as e:
            logger.warning("Persisted state could not be decoded, using defaults: %s", e)
        return AppState.default()

    def save(self, partial: Mapping[str, Any]) -> None:
        """
        Merge `partial` into the persisted state at the top level and write back.

        Each key in `partial` fully replaces the stored value (no deep merge).
        Keys are AppState field names: user, assessment, sleep_entries,
        chat_history, settings.

        Raises:
            InvalidStateError: unknown key or wrongly typed value
        """
        _validate_partial(partial)

        state = self.load()
        for key, value in partial.items():
            setattr(state, key, list(value) if key in _LIST_FIELDS else value)

        self._write(state)

    def clear(self) -> None:
        """Remove all persisted state; the next load() returns defaults."""
        try:
            self._backend.remove_item(self._key)
            logger.info("App store cleared")
        except StorageError as e:
            logger.error("Failed to clear app store: %s", e)

    def _write(self, state: AppState) -> None:
        try:
            self._backend.set_item(self._key, json.dumps(state.to_dict()))
        except StorageError as e:
            logger.error("Failed to save app state: %s", e)
            return

        logger.debug(
            "App state saved: entries=%d, messages=%d",
            len(state.sleep_entries),
            len(state.chat_history),
        )

    # -------------------------------------------------------------------------
    # Read-modify-write helpers
    # -------------------------------------------------------------------------

    def upsert_entry(self, entry: SleepEntry) -> AppState:
        """
        Insert a sleep entry, replacing any entry with the same (date, kind).

        A replaced entry keeps its position in the list; a new one is appended.
        """
        state = self.load()
        entries = list(state.sleep_entries)

        for index, existing in enumerate(entries):
            if existing.key == entry.key:
                entries[index] = entry
                logger.info(
                    "Replaced %s entry for %s",
                    entry.kind.value,
                    entry.date.isoformat(),
                    extra={"data": entry.to_dict()},
                )
                break
        else:
            entries.append(entry)
            logger.info(
                "Added %s entry for %s",
                entry.kind.value,
                entry.date.isoformat(),
                extra={"data": entry.to_dict()},
            )

        state.sleep_entries = entries
        self._write(state)
        return state

    def append_messages(self, *messages: ChatMessage) -> AppState:
        """
        Append chat messages in call order.

        Raises:
            InvalidStateError: a message is older than the last persisted one
        """
        state = self.load()
        history = list(state.chat_history)

        for message in messages:
            if not isinstance(message, ChatMessage):
                raise InvalidStateError("chat_history items must be ChatMessage")
            if history and message.timestamp < history[-1].timestamp:
                raise InvalidStateError(
                    "Chat messages must be appended in timestamp order",
                    details={"message_id": message.id},
                )
            history.append(message)

        state.chat_history = history
        self._write(state)
        return state

    def clear_chat(self) -> None:
        """Bulk-clear the transcript; the only way messages are removed."""
        self.save({"chat_history": []})
        logger.info("Chat history cleared")

    def record_assessment(self, assessment: AnxietyAssessment) -> AppState:
        """
        Store the onboarding assessment.

        Raises:
            AssessmentAlreadyRecordedError: an assessment is already stored
        """
        state = self.load()
        if state.assessment is not None:
            raise AssessmentAlreadyRecordedError("Assessment has already been recorded")
        state.assessment = assessment
        self._write(state)
        return state

    def update_settings(self, **changes: Any) -> AppSettings:
        """Replace individual settings fields; returns the new settings."""
        state = self.load()
        try:
            settings = replace(state.settings, **changes)
        except (TypeError, ValueError) as e:
            raise InvalidStateError(f"Invalid setting: {e}") from e
        self.save({"settings": settings})
        return settings


# =============================================================================
# Factory Function
# =============================================================================

def create_store(settings: Settings) -> AppStore:
    """
    Create an app store based on settings.

    Args:
        settings: Application settings

    Returns:
        Configured AppStore instance
    """
    backend_name = settings.storage_backend.lower()

    if backend_name == "memory":
        logger.info("Creating AppStore with InMemoryStorageBackend")
        return AppStore(InMemoryStorageBackend())

    if backend_name == "file":
        logger.info("Creating AppStore with FileStorageBackend: data_dir=%s", settings.data_dir)
        return AppStore(FileStorageBackend(settings.data_dir))

    raise ConfigurationError(
        f"Unknown storage_backend: {settings.storage_backend!r}",
        details={"allowed": ["file", "memory"]},
    )
