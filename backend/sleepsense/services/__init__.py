"""
SleepSense - Services Package

Contains the decision logic of the coach:
- Crisis detection (highest-priority safety gate)
- Response rule table and selector
- Template rendering and variant choice

Design Pattern:
    Everything here is a pure function of its inputs. The clock reading and
    random source are passed in by the engine, so replies are reproducible
    in tests.
"""

from .crisis import (
    CRISIS_PHRASES,
    CRISIS_RESPONSE,
    CrisisDetector,
)
from .responses import (
    RESPONSE_RULES,
    CoachReply,
    ResponseCategory,
    ResponseRule,
    ResponseSelector,
    is_evening,
)
from .templates import choose_variant, render

__all__ = [
    # Crisis
    "CRISIS_PHRASES",
    "CRISIS_RESPONSE",
    "CrisisDetector",
    # Responses
    "RESPONSE_RULES",
    "CoachReply",
    "ResponseCategory",
    "ResponseRule",
    "ResponseSelector",
    "is_evening",
    # Templates
    "choose_variant",
    "render",
]
