"""
SleepSense - Core Domain Types

Internal type definitions for the coach core. These are domain objects
used within the core and service layers, independent of API serialization.

Design Notes:
- AppState is the aggregate root and the unit of persistence.
- API layer converts these to/from Pydantic schemas for external communication.
- Persisted documents use camelCase keys; Python attributes use snake_case.
  `to_dict()` / `from_dict()` are the only place the two meet.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sleepsense.core.exceptions import InvalidEntryError, StateDecodeError


LEVEL_MIN = 1
LEVEL_MAX = 10


# =============================================================================
# Enums
# =============================================================================

class EntryKind(str, Enum):
    """Which check-in produced a sleep entry."""
    EVENING = "evening"
    MORNING = "morning"


class MessageSender(str, Enum):
    """Author of a chat message."""
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def parse(cls, value: str) -> "MessageSender":
        # Older documents tag coach messages as "ai"
        if value == "ai":
            return cls.ASSISTANT
        return cls(value)


class FontSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


# =============================================================================
# Helpers
# =============================================================================

def _parse_datetime(value: str) -> datetime:
    """Parse ISO-8601, including the trailing 'Z' browsers emit."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def local_aware(value: datetime) -> datetime:
    """Attach the local UTC offset to a naive datetime; aware values pass through."""
    if value.tzinfo is None:
        return value.astimezone()
    return value


def _check_level(name: str, value: Optional[int]) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidEntryError(
            f"{name} must be an integer, got {type(value).__name__}",
            details={"field": name},
        )
    if not LEVEL_MIN <= value <= LEVEL_MAX:
        raise InvalidEntryError(
            f"{name} must be {LEVEL_MIN}-{LEVEL_MAX}, got {value}",
            details={"field": name, "value": value},
        )


# =============================================================================
# Profile & Onboarding
# =============================================================================

@dataclass
class UserProfile:
    """Local profile created during onboarding."""
    id: str
    name: str
    email: str
    age: int
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "age": self.age,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            email=data["email"],
            age=int(data["age"]),
            created_at=_parse_datetime(data["createdAt"]),
        )


@dataclass
class AnxietyAssessment:
    """
    Onboarding questionnaire answers.

    Written once per user and read by downstream personalization.
    """
    sleep_anxiety_level: int
    anxiety_frequency: int
    sleep_quality: int
    stress_level: int
    previous_help: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sleepAnxietyLevel": self.sleep_anxiety_level,
            "anxietyFrequency": self.anxiety_frequency,
            "sleepQuality": self.sleep_quality,
            "stressLevel": self.stress_level,
            "previousHelp": self.previous_help,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnxietyAssessment":
        return cls(
            sleep_anxiety_level=int(data["sleepAnxietyLevel"]),
            anxiety_frequency=int(data["anxietyFrequency"]),
            sleep_quality=int(data["sleepQuality"]),
            stress_level=int(data["stressLevel"]),
            previous_help=int(data["previousHelp"]),
        )


# =============================================================================
# Sleep Entry
# =============================================================================

@dataclass
class SleepEntry:
    """
    One evening or morning self-report for a calendar day.

    At most one entry exists per (date, kind); see `key`. Evening entries
    usually carry anxiety level, bedtime and triggers; morning entries carry
    sleep quality, wake time, energy and night-anxiety details.

    Attributes:
        date: Calendar day the check-in belongs to
        kind: Evening or morning
        id: Opaque identifier (defaults to "<kind>-<date>")
        anxiety_level: 1-10
        sleep_quality: 1-10
        energy_level: 1-10
        bedtime: "HH:MM" as entered by the user
        wake_time: "HH:MM" as entered by the user
        triggers: User-tagged stressors; unique, in the order given
        thoughts: Free-text journal
        gratitude: Free-text gratitude note
        night_anxiety: Whether anxiety woke the user during the night
        night_anxiety_details: Free-text details
        voice_note_ref: Reference to a recording held by the UI layer
    """
    date: date
    kind: EntryKind
    id: str = ""
    anxiety_level: Optional[int] = None
    sleep_quality: Optional[int] = None
    energy_level: Optional[int] = None
    bedtime: Optional[str] = None
    wake_time: Optional[str] = None
    triggers: List[str] = field(default_factory=list)
    thoughts: Optional[str] = None
    gratitude: Optional[str] = None
    night_anxiety: Optional[bool] = None
    night_anxiety_details: Optional[str] = None
    voice_note_ref: Optional[str] = None

    def __post_init__(self):
        """Validate constraints."""
        try:
            self.kind = EntryKind(self.kind)
        except ValueError:
            raise InvalidEntryError(f"unknown entry kind: {self.kind!r}")
        if not isinstance(self.date, date) or isinstance(self.date, datetime):
            raise InvalidEntryError("date must be a calendar day (datetime.date)")
        for name in ("anxiety_level", "sleep_quality", "energy_level"):
            _check_level(name, getattr(self, name))
        self.triggers = list(dict.fromkeys(self.triggers or []))
        if not self.id:
            self.id = f"{self.kind.value}-{self.date.isoformat()}"

    @property
    def key(self) -> Tuple[date, EntryKind]:
        """Composite identity used for upserts."""
        return (self.date, self.kind)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted document shape. Unset fields are omitted."""
        data: Dict[str, Any] = {
            "id": self.id,
            "date": self.date.isoformat(),
            "kind": self.kind.value,
        }
        optional = {
            "anxietyLevel": self.anxiety_level,
            "sleepQuality": self.sleep_quality,
            "energyLevel": self.energy_level,
            "bedtime": self.bedtime,
            "wakeTime": self.wake_time,
            "thoughts": self.thoughts,
            "gratitude": self.gratitude,
            "nightAnxiety": self.night_anxiety,
            "nightAnxietyDetails": self.night_anxiety_details,
            "voiceNoteRef": self.voice_note_ref,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        if self.triggers:
            data["triggers"] = list(self.triggers)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SleepEntry":
        return cls(
            id=str(data.get("id") or ""),
            date=date.fromisoformat(data["date"]),
            # "type" is the key older documents used
            kind=EntryKind(data.get("kind") or data["type"]),
            anxiety_level=data.get("anxietyLevel"),
            sleep_quality=data.get("sleepQuality"),
            energy_level=data.get("energyLevel"),
            bedtime=data.get("bedtime"),
            wake_time=data.get("wakeTime"),
            triggers=list(data.get("triggers") or []),
            thoughts=data.get("thoughts"),
            gratitude=data.get("gratitude"),
            night_anxiety=data.get("nightAnxiety"),
            night_anxiety_details=data.get("nightAnxietyDetails"),
            voice_note_ref=data.get("voiceNoteRef") or data.get("voiceNote"),
        )


# =============================================================================
# Chat Message
# =============================================================================

@dataclass(frozen=True)
class ChatMessage:
    """
    One transcript line. Append-only: never mutated or deleted individually.

    Timestamps are always timezone-aware; naive values are read as local time
    so transcripts mixing browser ("Z") and server readings stay comparable.
    """
    id: str
    sender: MessageSender
    content: str
    timestamp: datetime

    def __post_init__(self):
        object.__setattr__(self, "timestamp", local_aware(self.timestamp))

    @classmethod
    def create(cls, sender: MessageSender, content: str, timestamp: datetime) -> "ChatMessage":
        """Factory that assigns a fresh id."""
        return cls(
            id=f"msg_{uuid.uuid4().hex[:12]}",
            sender=sender,
            content=content,
            timestamp=timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sender": self.sender.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        return cls(
            id=str(data["id"]),
            sender=MessageSender.parse(data.get("sender") or data["type"]),
            content=data["content"],
            timestamp=_parse_datetime(data["timestamp"]),
        )


# =============================================================================
# Settings
# =============================================================================

@dataclass(frozen=True)
class AppSettings:
    """Display and demo toggles. Plain value object, last write wins."""
    dark_mode: bool = False
    font_size: FontSize = FontSize.MEDIUM
    notifications: bool = True
    demo_mode: bool = False

    def __post_init__(self):
        # Accept plain strings for font_size
        object.__setattr__(self, "font_size", FontSize(self.font_size))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "darkMode": self.dark_mode,
            "fontSize": self.font_size.value,
            "notifications": self.notifications,
            "demoMode": self.demo_mode,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppSettings":
        return cls(
            dark_mode=bool(data["darkMode"]),
            font_size=FontSize(data["fontSize"]),
            notifications=bool(data["notifications"]),
            demo_mode=bool(data["demoMode"]),
        )


# =============================================================================
# Aggregate Root
# =============================================================================

def _collapse_duplicate_entries(entries: Iterable[SleepEntry]) -> List[SleepEntry]:
    """
    Keep one entry per (date, kind).

    Older documents were written newest-first and could hold several
    check-ins for the same day, so the first occurrence wins.
    """
    seen: Dict[Tuple[date, EntryKind], SleepEntry] = {}
    for entry in entries:
        seen.setdefault(entry.key, entry)
    return list(seen.values())


@dataclass
class AppState:
    """
    The user's entire application state; the unit of persistence.

    Created with defaults on first access and destroyed only by an explicit
    clear. Entries and messages are added through the store helpers.
    """
    user: Optional[UserProfile] = None
    assessment: Optional[AnxietyAssessment] = None
    sleep_entries: List[SleepEntry] = field(default_factory=list)
    chat_history: List[ChatMessage] = field(default_factory=list)
    settings: AppSettings = field(default_factory=AppSettings)

    @classmethod
    def default(cls) -> "AppState":
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted document shape."""
        return {
            "user": self.user.to_dict() if self.user else None,
            "assessment": self.assessment.to_dict() if self.assessment else None,
            "sleepEntries": [entry.to_dict() for entry in self.sleep_entries],
            "chatHistory": [message.to_dict() for message in self.chat_history],
            "settings": self.settings.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "AppState":
        """
        Decode a persisted document.

        All-or-nothing: any missing or malformed field raises
        StateDecodeError and nothing is returned.
        """
        try:
            if not isinstance(data, dict):
                raise TypeError(f"document must be an object, got {type(data).__name__}")
            user = data.get("user")
            assessment = data.get("assessment")
            return cls(
                user=UserProfile.from_dict(user) if user else None,
                assessment=AnxietyAssessment.from_dict(assessment) if assessment else None,
                sleep_entries=_collapse_duplicate_entries(
                    SleepEntry.from_dict(e) for e in data.get("sleepEntries", [])
                ),
                chat_history=[ChatMessage.from_dict(m) for m in data.get("chatHistory", [])],
                settings=AppSettings.from_dict(data["settings"]),
            )
        except (KeyError, TypeError, ValueError, AttributeError, InvalidEntryError) as e:
            raise StateDecodeError(
                f"Persisted state is malformed: {type(e).__name__}: {e}"
            ) from e
