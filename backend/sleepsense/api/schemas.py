"""
SleepSense - API Schemas

Pydantic models for request/response validation.
These define the contract between the UI collaborator and the core, and are
where malformed input is rejected before it reaches the store.
"""

import datetime as dt
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sleepsense.core.types import (
    AnxietyAssessment,
    AppSettings,
    EntryKind,
    SleepEntry,
    UserProfile,
)


# ===========================================
# Base
# ===========================================

class CamelModel(BaseModel):
    """Accepts and emits the camelCase keys of the persisted document."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


# ===========================================
# Profile & Assessment
# ===========================================

class UserProfileSchema(CamelModel):
    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(max_length=320)
    age: int = Field(ge=1, le=130)
    created_at: dt.datetime = Field(alias="createdAt")

    def to_domain(self) -> UserProfile:
        return UserProfile(
            id=self.id,
            name=self.name,
            email=self.email,
            age=self.age,
            created_at=self.created_at,
        )


class AssessmentSchema(CamelModel):
    """Onboarding questionnaire answers (each on a 1-10 scale)."""

    sleep_anxiety_level: int = Field(alias="sleepAnxietyLevel", ge=1, le=10)
    anxiety_frequency: int = Field(alias="anxietyFrequency", ge=1, le=10)
    sleep_quality: int = Field(alias="sleepQuality", ge=1, le=10)
    stress_level: int = Field(alias="stressLevel", ge=1, le=10)
    previous_help: int = Field(alias="previousHelp", ge=1, le=10)

    def to_domain(self) -> AnxietyAssessment:
        return AnxietyAssessment(
            sleep_anxiety_level=self.sleep_anxiety_level,
            anxiety_frequency=self.anxiety_frequency,
            sleep_quality=self.sleep_quality,
            stress_level=self.stress_level,
            previous_help=self.previous_help,
        )


# ===========================================
# Sleep Entries
# ===========================================

class SleepEntrySchema(CamelModel):
    """
    An evening or morning check-in.

    Submitting a second entry for the same date and kind replaces the first.
    """

    id: Optional[str] = Field(default=None, max_length=64)
    date: dt.date
    kind: EntryKind
    anxiety_level: Optional[int] = Field(default=None, alias="anxietyLevel", ge=1, le=10)
    sleep_quality: Optional[int] = Field(default=None, alias="sleepQuality", ge=1, le=10)
    energy_level: Optional[int] = Field(default=None, alias="energyLevel", ge=1, le=10)
    bedtime: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    wake_time: Optional[str] = Field(default=None, alias="wakeTime", pattern=r"^\d{2}:\d{2}$")
    triggers: List[str] = Field(default_factory=list, max_length=50)
    thoughts: Optional[str] = Field(default=None, max_length=10000)
    gratitude: Optional[str] = Field(default=None, max_length=10000)
    night_anxiety: Optional[bool] = Field(default=None, alias="nightAnxiety")
    night_anxiety_details: Optional[str] = Field(
        default=None, alias="nightAnxietyDetails", max_length=10000
    )
    voice_note_ref: Optional[str] = Field(default=None, alias="voiceNoteRef", max_length=500)

    @field_validator("triggers")
    @classmethod
    def strip_triggers(cls, value: List[str]) -> List[str]:
        return [t.strip() for t in value if t.strip()]

    def to_domain(self) -> SleepEntry:
        return SleepEntry(
            id=self.id or "",
            date=self.date,
            kind=self.kind,
            anxiety_level=self.anxiety_level,
            sleep_quality=self.sleep_quality,
            energy_level=self.energy_level,
            bedtime=self.bedtime,
            wake_time=self.wake_time,
            triggers=self.triggers,
            thoughts=self.thoughts,
            gratitude=self.gratitude,
            night_anxiety=self.night_anxiety,
            night_anxiety_details=self.night_anxiety_details,
            voice_note_ref=self.voice_note_ref,
        )


# ===========================================
# Settings
# ===========================================

class SettingsSchema(CamelModel):
    dark_mode: bool = Field(default=False, alias="darkMode")
    font_size: Literal["small", "medium", "large"] = Field(default="medium", alias="fontSize")
    notifications: bool = True
    demo_mode: bool = Field(default=False, alias="demoMode")

    def to_domain(self) -> AppSettings:
        return AppSettings(
            dark_mode=self.dark_mode,
            font_size=self.font_size,
            notifications=self.notifications,
            demo_mode=self.demo_mode,
        )


# ===========================================
# State
# ===========================================

class StatePatchRequest(CamelModel):
    """
    Partial state update. Only keys present in the request are replaced.

    The chat transcript is not writable here; it only grows through
    conversation turns and is cleared via DELETE /api/chat.
    """

    user: Optional[UserProfileSchema] = None
    assessment: Optional[AssessmentSchema] = None
    sleep_entries: Optional[List[SleepEntrySchema]] = Field(default=None, alias="sleepEntries")
    settings: Optional[SettingsSchema] = None

    def to_partial(self) -> Dict[str, Any]:
        """Domain values for the fields the client actually sent."""
        partial: Dict[str, Any] = {}
        sent = self.model_fields_set

        if "user" in sent:
            partial["user"] = self.user.to_domain() if self.user else None
        if "assessment" in sent:
            partial["assessment"] = self.assessment.to_domain() if self.assessment else None
        if "sleep_entries" in sent:
            partial["sleep_entries"] = [e.to_domain() for e in self.sleep_entries or []]
        if "settings" in sent and self.settings is not None:
            partial["settings"] = self.settings.to_domain()

        return partial


# ===========================================
# Chat
# ===========================================

class ChatRequest(BaseModel):
    """One user message for the coach."""

    text: str = Field(
        description="Message text",
        min_length=1,
        max_length=4000,
    )

    @field_validator("text")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text must not be blank")
        return value


class ChatResponse(BaseModel):
    """The coach reply for one turn."""

    text: str
    is_crisis: bool
    category: str
    user_message_id: str
    assistant_message_id: str
    timestamp: dt.datetime


# ===========================================
# Context & Health
# ===========================================

class ContextResponse(BaseModel):
    """Rolling summary used to personalize replies."""

    recent_entries: List[Dict[str, Any]]
    common_triggers: List[str]
    average_anxiety: float
    improvement_trend: bool
    average_sleep_quality: float


class HealthResponse(BaseModel):
    """System health check response."""

    status: str = Field(description="healthy | degraded | unhealthy")
    version: str = "0.1.0"
    components: Dict[str, str] = Field(
        default={},
        description="Status of individual components"
    )
