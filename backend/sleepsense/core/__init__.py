"""
SleepSense - Core Package

Contains the persistence layer and domain types:
- types: AppState aggregate and its parts
- store: Local key-value document store
- context: Rolling summary of recent check-ins
- pipeline: Coach engine and turn lifecycle (import directly)
"""

from .types import (
    AnxietyAssessment,
    AppSettings,
    AppState,
    ChatMessage,
    EntryKind,
    FontSize,
    MessageSender,
    SleepEntry,
    UserProfile,
)
from .context import CoachContext, ContextBuilder
from .store import (
    STORAGE_KEY,
    AppStore,
    FileStorageBackend,
    InMemoryStorageBackend,
    StorageBackend,
    create_store,
)

__all__ = [
    # Types
    "AnxietyAssessment",
    "AppSettings",
    "AppState",
    "ChatMessage",
    "EntryKind",
    "FontSize",
    "MessageSender",
    "SleepEntry",
    "UserProfile",
    # Context
    "CoachContext",
    "ContextBuilder",
    # Store
    "STORAGE_KEY",
    "AppStore",
    "FileStorageBackend",
    "InMemoryStorageBackend",
    "StorageBackend",
    "create_store",
]
