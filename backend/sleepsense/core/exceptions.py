"""
SleepSense - Exception Hierarchy

Structured exceptions for consistent error handling across the system.
All exceptions include error codes for API responses.
"""

from typing import Optional


class SleepSenseError(Exception):
    """Base exception for all SleepSense errors."""
    
    code: str = "UNKNOWN_ERROR"
    status_code: int = 500
    
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# =============================================================================
# Storage Errors (recovered inside the store, never surfaced to the user)
# =============================================================================

class StorageError(SleepSenseError):
    """Error in the persistence layer."""
    code = "STORAGE_ERROR"
    status_code = 500


class StorageUnavailableError(StorageError):
    """Backend could not be read or written (disk full, permissions, ...)."""
    code = "STORAGE_UNAVAILABLE"


class StateDecodeError(StorageError):
    """Persisted document exists but does not decode into an AppState."""
    code = "STATE_DECODE_ERROR"


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(SleepSenseError):
    """Input validation error."""
    code = "VALIDATION_ERROR"
    status_code = 400


class InvalidMessageError(ValidationError):
    """Chat message is empty or malformed."""
    code = "INVALID_MESSAGE"


class InvalidEntryError(ValidationError):
    """Sleep entry violates a field constraint."""
    code = "INVALID_ENTRY"


class InvalidStateError(ValidationError):
    """Partial state update has unknown keys or wrongly typed values."""
    code = "INVALID_STATE"


# =============================================================================
# Conflict Errors
# =============================================================================

class ConflictError(SleepSenseError):
    """Operation conflicts with current state."""
    code = "CONFLICT"
    status_code = 409


class TurnInProgressError(ConflictError):
    """A conversation turn is already pending."""
    code = "TURN_IN_PROGRESS"


class AssessmentAlreadyRecordedError(ConflictError):
    """Onboarding assessment is write-once."""
    code = "ASSESSMENT_ALREADY_RECORDED"


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(SleepSenseError):
    """Configuration error."""
    code = "CONFIGURATION_ERROR"
    status_code = 500
