"""
SleepSense - REST API Routes

Local endpoints the UI collaborator uses to read and write app state and to
talk to the coach.

Architecture:
    All operations go through the CoachEngine and its AppStore, accessed via
    dependency injection from app.state. Domain exceptions are translated to
    HTTP errors using their status_code and code.
"""

import logging
from typing import Literal, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from sleepsense import __version__
from sleepsense.config import Settings
from sleepsense.core.exceptions import SleepSenseError
from sleepsense.core.export import export_csv, export_filename, export_json
from sleepsense.core.pipeline import CoachEngine
from sleepsense.core.store import AppStore

from .schemas import (
    AssessmentSchema,
    ChatRequest,
    ChatResponse,
    ContextResponse,
    HealthResponse,
    SettingsSchema,
    SleepEntrySchema,
    StatePatchRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["api"])


# =============================================================================
# Dependencies
# =============================================================================

def get_engine(request: Request) -> CoachEngine:
    """Dependency to get the coach engine from app state."""
    return request.app.state.engine


def get_store(request: Request) -> AppStore:
    """Dependency to get the app store from the engine."""
    return request.app.state.engine.store


def get_settings(request: Request) -> Settings:
    """Dependency to get settings from app state."""
    return request.app.state.settings


def _raise_http(error: SleepSenseError) -> NoReturn:
    raise HTTPException(
        status_code=error.status_code,
        detail={"code": error.code, "message": error.message},
    )


# =============================================================================
# Health
# =============================================================================

@router.get("/health", response_model=HealthResponse)
def health_check(
    engine: CoachEngine = Depends(get_engine),
    settings: Settings = Depends(get_settings),
):
    """
    System health check.

    Reports the storage backend and whether a conversation turn is pending.
    """
    components = {
        "api": "operational",
        "store": type(engine.store.backend).__name__,
        "engine": engine.state.value,
        "environment": settings.app_env,
    }

    return HealthResponse(
        status="healthy",
        version=__version__,
        components=components,
    )


# =============================================================================
# App State
# =============================================================================

@router.get("/state")
def get_state(store: AppStore = Depends(get_store)) -> dict:
    """Full persisted state (defaults when nothing is stored yet)."""
    return store.load().to_dict()


@router.patch("/state")
def patch_state(
    request: StatePatchRequest,
    store: AppStore = Depends(get_store),
) -> dict:
    """
    Top-level merge: each key sent replaces the stored value entirely.
    Keys not sent are left unchanged.
    """
    try:
        store.save(request.to_partial())
    except SleepSenseError as e:
        _raise_http(e)

    return store.load().to_dict()


@router.delete("/state", status_code=status.HTTP_204_NO_CONTENT)
def clear_state(store: AppStore = Depends(get_store)) -> None:
    """Delete all data. The next read returns the default state."""
    store.clear()
    logger.info("All app data cleared by request")


# =============================================================================
# Check-ins, Onboarding, Settings
# =============================================================================

@router.put("/entries")
def upsert_entry(
    request: SleepEntrySchema,
    store: AppStore = Depends(get_store),
) -> dict:
    """Save a check-in, replacing any entry for the same date and kind."""
    try:
        entry = request.to_domain()
        store.upsert_entry(entry)
    except SleepSenseError as e:
        _raise_http(e)

    return entry.to_dict()


@router.post("/assessment", status_code=status.HTTP_201_CREATED)
def record_assessment(
    request: AssessmentSchema,
    store: AppStore = Depends(get_store),
) -> dict:
    """Store the onboarding assessment. Write-once: 409 if already present."""
    assessment = request.to_domain()
    try:
        store.record_assessment(assessment)
    except SleepSenseError as e:
        _raise_http(e)

    return assessment.to_dict()


@router.put("/settings")
def replace_settings(
    request: SettingsSchema,
    store: AppStore = Depends(get_store),
) -> dict:
    settings = request.to_domain()
    store.save({"settings": settings})
    return settings.to_dict()


# =============================================================================
# Coach
# =============================================================================

@router.get("/context", response_model=ContextResponse)
def get_context(engine: CoachEngine = Depends(get_engine)):
    """Rolling summary of recent entries (what the coach personalizes with)."""
    return ContextResponse(**engine.build_context().to_dict())


@router.post("/chat", response_model=ChatResponse)
def chat(
    request: ChatRequest,
    engine: CoachEngine = Depends(get_engine),
):
    """
    Run one conversation turn.

    Both the user message and the reply are appended to the transcript.
    Returns 409 while another turn is still pending.
    """
    try:
        result = engine.take_turn(request.text)
    except SleepSenseError as e:
        _raise_http(e)

    return ChatResponse(
        text=result.text,
        is_crisis=result.is_crisis,
        category=result.reply.category.value,
        user_message_id=result.user_message.id,
        assistant_message_id=result.assistant_message.id,
        timestamp=result.assistant_message.timestamp,
    )


@router.delete("/chat", status_code=status.HTTP_204_NO_CONTENT)
def clear_chat(store: AppStore = Depends(get_store)) -> None:
    store.clear_chat()


# =============================================================================
# Export
# =============================================================================

@router.get("/export")
def export_data(
    format: Literal["json", "csv"] = Query(default="json"),
    engine: CoachEngine = Depends(get_engine),
) -> Response:
    """Download the stored data, named by the current date."""
    state = engine.store.load()
    filename = export_filename(engine.now().date(), format)

    if format == "csv":
        content, media_type = export_csv(state), "text/csv"
    else:
        content, media_type = export_json(state), "application/json"

    logger.info("Export generated: format=%s, entries=%d", format, len(state.sleep_entries))

    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
