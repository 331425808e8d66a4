"""
SleepSense - Crisis Detection

Scans raw user text for self-harm and hopelessness markers. This is the
highest-priority gate in a conversation turn: when it fires, no other rule
is evaluated and the reply is the fixed CRISIS_RESPONSE.

Matching is a case-insensitive substring test against a fixed phrase list.
False negatives are a known limitation; false positives are accepted.

IMPORTANT SAFETY NOTICE:
    This is a supplementary safety layer, not a replacement for
    professional crisis intervention services.
"""

from __future__ import annotations

import logging
from typing import List

logger = logging.getLogger(__name__)


# Fixed and intentionally not configurable
CRISIS_PHRASES = (
    "panic attack",
    "can't cope",
    "hopeless",
    "want to die",
    "end it all",
    "give up",
    "kill myself",
    "suicide",
    "end my life",
    "hurt myself",
    "self-harm",
    "better off dead",
    "no reason to live",
)

CRISIS_RESPONSE = """I'm really concerned about you right now. You're not alone in this. If you're having thoughts of self-harm, please reach out immediately:

• National Suicide Prevention Lifeline: 988
• Crisis Text Line: Text HOME to 741741
• Emergency Services: 911

Your feelings are valid, and there are people who want to help. Would you like me to help you find local mental health resources?"""


def normalize_text(text: str) -> str:
    """Lowercase and fold typographic apostrophes so "can’t" matches "can't"."""
    return text.lower().replace("’", "'").replace("‘", "'")


class CrisisDetector:
    """
    Substring-based crisis phrase detector.

    Usage:
        detector = CrisisDetector()
        if detector.detect(text):
            reply = detector.respond_to_crisis()
    """

    def matched_phrases(self, text: str) -> List[str]:
        """Return every crisis phrase found in `text`, in list order."""
        normalized = normalize_text(text)
        return [phrase for phrase in CRISIS_PHRASES if phrase in normalized]

    def detect(self, text: str) -> bool:
        normalized = normalize_text(text)
        return any(phrase in normalized for phrase in CRISIS_PHRASES)

    def respond_to_crisis(self) -> str:
        """The static safety message. Never personalized or randomized."""
        return CRISIS_RESPONSE
