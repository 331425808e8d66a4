"""
SleepSense - Coach Engine

Orchestrates one conversation turn:

    raw user text
      -> CrisisDetector (short-circuit)
      -> ContextBuilder (reads the store)
      -> ResponseSelector (category match using context + clock)
      -> rendered reply
      -> user and assistant messages appended to the transcript

Turn Lifecycle:
    IDLE -> PENDING -> IDLE. At most one turn is outstanding; a second
    take_turn() while PENDING is rejected with TurnInProgressError. There is
    no cancellation of a pending turn. Any simulated "typing" latency is a
    presentation concern of the caller.

Design Principles:
    - Synchronous: every step runs to completion, nothing suspends
    - Injectable clock and random source for reproducible replies
    - Privacy-aware logging: message text is never logged when
      anonymize_logs is on
"""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from threading import Lock
from typing import Callable, Optional

from sleepsense.config import Settings
from sleepsense.core.context import CoachContext, ContextBuilder
from sleepsense.core.exceptions import InvalidMessageError, TurnInProgressError
from sleepsense.core.logging import LogContext, mask_text
from sleepsense.core.store import AppStore, create_store
from sleepsense.core.types import ChatMessage, MessageSender
from sleepsense.services.responses import CoachReply, ResponseSelector

logger = logging.getLogger(__name__)


Clock = Callable[[], datetime]
"""Zero-argument callable returning the current local time."""


def _local_now() -> datetime:
    return datetime.now().astimezone()


class TurnState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"


@dataclass(frozen=True)
class TurnResult:
    """Outcome of a completed turn, including the persisted messages."""
    reply: CoachReply
    user_message: ChatMessage
    assistant_message: ChatMessage

    @property
    def text(self) -> str:
        return self.reply.text

    @property
    def is_crisis(self) -> bool:
        return self.reply.is_crisis


# =============================================================================
# Coach Engine
# =============================================================================

class CoachEngine:
    """
    Central entry point for producing coach replies.

    Attributes:
        store: App store holding entries and the transcript
        selector: Response rule table
        context_builder: Rolling context derivation
    """

    def __init__(
        self,
        store: AppStore,
        selector: Optional[ResponseSelector] = None,
        context_builder: Optional[ContextBuilder] = None,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        anonymize_logs: bool = True,
    ):
        """
        Initialize the engine.

        Args:
            store: App store (the only effectful collaborator)
            selector: Response selector (default rule table when None)
            context_builder: Context builder (default window when None)
            clock: Local time source (timezone-aware local now when None)
            rng: Random source for phrasing variants (unseeded when None)
            anonymize_logs: Keep message text out of the logs
        """
        self._store = store
        self._selector = selector or ResponseSelector()
        self._context_builder = context_builder or ContextBuilder()
        self._clock = clock or _local_now
        self._rng = rng or random.Random()
        self._anonymize_logs = anonymize_logs

        self._turn_lock = Lock()
        self._state = TurnState.IDLE

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def store(self) -> AppStore:
        return self._store

    def now(self) -> datetime:
        """Current reading of the engine clock."""
        return self._clock()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def build_context(self) -> CoachContext:
        """Derive the rolling context from the currently persisted state."""
        return self._context_builder.build(self._store.load())

    def respond(
        self,
        user_text: str,
        now: Optional[datetime] = None,
        rng: Optional[random.Random] = None,
    ) -> CoachReply:
        """
        Compute the reply for one message without touching the transcript.

        Crisis messages short-circuit before the store is read.

        Args:
            user_text: Raw text from the UI layer
            now: Clock reading (engine clock when None)
            rng: Random source (engine RNG when None)

        Raises:
            InvalidMessageError: the message is empty after trimming
        """
        text = user_text.strip() if isinstance(user_text, str) else ""
        if not text:
            raise InvalidMessageError("Message must not be empty")

        now = now or self._clock()
        rng = rng or self._rng

        if self._selector.detector.detect(text):
            # Crisis replies are static; never read state on this path
            context = CoachContext()
        else:
            context = self.build_context()

        reply = self._selector.select(text, context, now, rng)

        self._log_reply(text, reply)
        return reply

    def take_turn(self, user_text: str) -> TurnResult:
        """
        Run one full turn: reply, then persist both messages in order.

        Raises:
            TurnInProgressError: another turn is still pending
            InvalidMessageError: the message is empty after trimming
        """
        if not self._turn_lock.acquire(blocking=False):
            raise TurnInProgressError("A conversation turn is already in progress")

        turn_id = f"turn_{uuid.uuid4().hex[:12]}"
        try:
            self._state = TurnState.PENDING
            with LogContext(turn_id=turn_id):
                sent_at = self._clock()
                reply = self.respond(user_text, now=sent_at)

                user_message = ChatMessage.create(MessageSender.USER, user_text.strip(), sent_at)
                replied_at = max(self._clock(), sent_at)
                assistant_message = ChatMessage.create(
                    MessageSender.ASSISTANT, reply.text, replied_at
                )

                self._store.append_messages(user_message, assistant_message)
                logger.info(
                    "Turn complete: category=%s",
                    reply.category.value,
                    extra={"data": {
                        "category": reply.category.value,
                        "is_crisis": reply.is_crisis,
                        "user_message": user_message.to_dict(),
                        "assistant_message_id": assistant_message.id,
                    }},
                )

            return TurnResult(
                reply=reply,
                user_message=user_message,
                assistant_message=assistant_message,
            )
        finally:
            self._state = TurnState.IDLE
            self._turn_lock.release()

    # -------------------------------------------------------------------------
    # Logging (Privacy-Aware)
    # -------------------------------------------------------------------------

    def _log_reply(self, text: str, reply: CoachReply) -> None:
        if reply.is_crisis:
            # Always visible, never with the message itself
            logger.warning(
                "Crisis phrase detected: matches=%d",
                len(self._selector.detector.matched_phrases(text)),
            )
            return

        if self._anonymize_logs:
            logger.info(
                "Reply selected: category=%s, message=%s",
                reply.category.value,
                mask_text(text),
            )
        else:
            preview = text[:50] + "..." if len(text) > 50 else text
            logger.info(
                "Reply selected: category=%s, preview='%s'",
                reply.category.value,
                preview,
            )


# =============================================================================
# Factory Function
# =============================================================================

def create_engine(settings: Settings, store: Optional[AppStore] = None) -> CoachEngine:
    """
    Factory function to create a configured CoachEngine.

    Args:
        settings: Application settings
        store: Optional app store (default: create from settings)

    Returns:
        Configured CoachEngine instance
    """
    if store is None:
        store = create_store(settings)

    logger.info(
        "CoachEngine configured: store=%s, anonymize_logs=%s",
        type(store.backend).__name__,
        settings.anonymize_logs,
    )

    return CoachEngine(store=store, anonymize_logs=settings.anonymize_logs)
