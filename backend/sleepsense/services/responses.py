"""
SleepSense - Coach Response Rules

Maps a user message to a response category and renders the reply.

Architecture:
    Classification is an ordered table of (category, predicate, generator)
    rules. The first rule whose predicate matches wins; there is no scoring
    and no combining of categories. Crisis detection runs before the table
    and overrides everything. The last rule always matches, so every message
    gets a reply.

    Priority: safety > acute distress > coping tools > cognitive patterns >
    behavior change > reflection > physiology > sleep phenomena > medical >
    generic.

Determinism:
    Generators receive the clock reading and the random source as arguments;
    nothing in this module reads the wall clock or the global RNG.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple

from sleepsense.core.context import CoachContext
from sleepsense.services.crisis import CrisisDetector, normalize_text
from sleepsense.services.templates import choose_variant, render

logger = logging.getLogger(__name__)


# =============================================================================
# Types
# =============================================================================

class ResponseCategory(str, Enum):
    """Message intent categories, in priority order."""
    CRISIS = "crisis"
    ANXIETY = "anxiety"
    BREATHING = "breathing"
    WORRY = "worry"
    ROUTINE = "routine"
    PROGRESS = "progress"
    ENERGY = "energy"
    SLEEP_DISTURBANCE = "sleep_disturbance"
    MEDICATION = "medication"
    ENCOURAGEMENT = "encouragement"
    GENERAL_SUPPORT = "general_support"


@dataclass(frozen=True)
class CoachReply:
    """Rendered assistant reply for one user message."""
    text: str
    category: ResponseCategory
    is_crisis: bool = False


Predicate = Callable[[str, CoachContext], bool]
"""Receives the normalized (lowercased) message and the context."""

Generator = Callable[[CoachContext, datetime, random.Random], str]


@dataclass(frozen=True)
class ResponseRule:
    category: ResponseCategory
    predicate: Predicate
    generator: Generator


def keywords(*phrases: str) -> Predicate:
    """Predicate that matches when any phrase is a substring of the message."""
    def predicate(text: str, context: CoachContext) -> bool:
        return any(phrase in text for phrase in phrases)
    return predicate


def is_evening(now: datetime) -> bool:
    """Evening runs from 18:00 through 06:59 local time."""
    return now.hour >= 18 or now.hour <= 6


# =============================================================================
# Templates
# =============================================================================

ANXIETY_VARIANTS = (
    "I notice you're feeling anxious about sleep. This creates a cycle - anxiety about sleep makes it harder to sleep, which increases anxiety. Let's break this cycle with progressive muscle relaxation: start by tensing your toes for 5 seconds, then release. Notice the contrast between tension and relaxation.",
    "Sleep anxiety is incredibly common - you're not alone in this. Your brain is in \"threat detection\" mode when it should be in \"rest mode.\" Try this: place one hand on your chest, one on your belly. Breathe so only the bottom hand moves. This signals safety to your nervous system.",
    "I can see from your recent entries that $top_trigger has been a big trigger lately. When we're anxious about sleep, we often put too much pressure on it. Remember: rest is valuable even without perfect sleep.",
)

ANXIETY_EVENING_SUFFIX = "\n\nSince it's evening, try dimming your lights and doing something calming for 30 minutes before bed. Your body needs time to transition from \"alert\" to \"rest\" mode."

BREATHING_EVENING = """Perfect timing for a breathing exercise! Let's practice the 4-7-8 technique:

🌙 Evening Breathing (4-7-8):
1. Breathe in through your nose for 4 counts
2. Hold your breath for 7 counts
3. Exhale through your mouth for 8 counts
4. Repeat 3-4 times

This naturally activates your parasympathetic nervous system and signals "safety" to your body. Focus only on counting - let other thoughts drift away like clouds.

Try this right now, and notice how your body starts to feel more relaxed."""

BREATHING_DAYTIME = """The 4-7-8 breathing technique is great anytime you feel anxious:

1. Breathe in through your nose for 4 counts
2. Hold your breath for 7 counts
3. Exhale through your mouth for 8 counts
4. Repeat 3-4 times

This technique works by increasing carbon dioxide in your blood, which naturally calms your nervous system. It's like a natural sedative!"""

WORRY_INTRO = "Overthinking is so common, especially at bedtime. Your brain is trying to protect you by thinking ahead, but bedtime thinking rarely leads to solutions."

WORRY_STEPS = """Try this "worry dump" technique:

1. Write down your 3 biggest worries
2. For each worry, ask: "Can I do anything about this right now?"
3. If yes, write one small action for tomorrow
4. If no, remind yourself: "This worry will still exist tomorrow if I need it, but right now is time for rest\""""

WORRY_OVERTHINKING_NOTE = "I notice overthinking is a common trigger for you. This technique can help break that pattern."

WORRY_OUTRO = "Remember: Your brain is trying to help, but it's not very good at solving problems when you're tired."

ROUTINE_SOCIAL_MEDIA = "I notice social media is a common trigger for you. The blue light and stimulating content can increase cortisol levels. Try creating a \"digital sunset\" - put devices away 1 hour before your ideal bedtime. Replace scrolling with reading, gentle stretching, or journaling."

ROUTINE_DEFAULT = "Based on your patterns, you sleep better when you have a consistent routine. Try this gentle bedtime sequence: dim the lights, do something calm for 30 minutes (reading, stretching, quiet music), then go to bed at the same time each night. Consistency signals safety to your nervous system."

MANAGING_TRIGGER = "You're getting better at managing $top_trigger"
NO_TRIGGER_PRAISE = "Keep up the great work"

PROGRESS_TREND = """That's wonderful to hear! I can see real progress in your sleep anxiety patterns. Your average anxiety level has decreased, and you're building awareness of your triggers.

$trigger_praise!

Remember, healing isn't linear - there will be good nights and challenging nights. The important thing is that you're building skills and awareness. Celebrate these improvements!"""

PROGRESS_NO_TREND = "It's great that you're noticing improvements! Even small changes matter. What specific things have been helping you feel more peaceful at bedtime?"

ENERGY = """Feeling drained is so common with sleep anxiety. When we're anxious about sleep, our bodies stay in "fight or flight" mode, which is exhausting.

Here are some gentle energy boosters:

🌅 Morning:
- Get sunlight within 30 minutes of waking
- Gentle movement (even just stretching)
- Hydrate with water (not just coffee)

🌙 Evening:
- Avoid caffeine after 2 PM
- Light dinner, not too heavy
- Wind down activities (reading, gentle music)

Remember: Your body is working hard to keep you safe. Be patient and gentle with yourself."""

SLEEP_DISTURBANCE = """Sleep disturbances like nightmares or frequent waking are common with anxiety. Your brain is in "alert mode" even during sleep.

If you wake up anxious:
1. Don't check the time (this creates pressure)
2. Practice the 4-7-8 breathing technique
3. Remind yourself: "I'm safe, I'm in my bed, I can rest"
4. If you can't sleep, rest is still valuable

Nightmares often reflect daytime stress. Consider journaling about your day to process emotions before bed.

You're not broken - your brain is just trying to protect you."""

MEDICATION = """I understand you're asking about medication. I can't provide medical advice, but I can share some general information:

💊 Important considerations:
- Always consult with a healthcare provider
- Sleep medications can be helpful short-term
- They work best combined with therapy and lifestyle changes
- Some can become habit-forming

🌱 Natural alternatives to discuss with your doctor:
- Melatonin (timing is important)
- Magnesium supplements
- Valerian root or chamomile tea
- CBT-I (Cognitive Behavioral Therapy for Insomnia)

Remember: There's no shame in needing help. Sleep anxiety is a real medical condition that deserves proper treatment."""

ENCOURAGEMENT = "I'm seeing real progress in your sleep anxiety! Your average anxiety level has decreased, and you're building awareness of your patterns. $trigger_praise. Remember, healing isn't linear - celebrate these improvements!"

GENERAL_SUPPORT = "Thank you for sharing with me. Managing sleep anxiety takes courage, and you're doing important work by tracking your patterns and reaching out for support. What's one small thing that helped you feel even slightly more peaceful recently?"


# =============================================================================
# Generators
# =============================================================================

def _trigger_praise(context: CoachContext) -> str:
    if context.top_trigger:
        return render(MANAGING_TRIGGER, top_trigger=context.top_trigger)
    return NO_TRIGGER_PRAISE


def anxiety_response(context: CoachContext, now: datetime, rng: random.Random) -> str:
    if is_evening(now):
        return ANXIETY_VARIANTS[0] + ANXIETY_EVENING_SUFFIX
    template = choose_variant(ANXIETY_VARIANTS, rng)
    return render(template, top_trigger=context.top_trigger or "stress")


def breathing_response(context: CoachContext, now: datetime, rng: random.Random) -> str:
    return BREATHING_EVENING if is_evening(now) else BREATHING_DAYTIME


def worry_response(context: CoachContext, now: datetime, rng: random.Random) -> str:
    paragraphs = [WORRY_INTRO, WORRY_STEPS]
    if context.has_trigger("overthinking"):
        paragraphs.append(WORRY_OVERTHINKING_NOTE)
    paragraphs.append(WORRY_OUTRO)
    return "\n\n".join(paragraphs)


def routine_response(context: CoachContext, now: datetime, rng: random.Random) -> str:
    if context.has_trigger("social media"):
        return ROUTINE_SOCIAL_MEDIA
    return ROUTINE_DEFAULT


def progress_response(context: CoachContext, now: datetime, rng: random.Random) -> str:
    if context.improvement_trend:
        return render(PROGRESS_TREND, trigger_praise=_trigger_praise(context))
    return PROGRESS_NO_TREND


def energy_response(context: CoachContext, now: datetime, rng: random.Random) -> str:
    return ENERGY


def sleep_disturbance_response(context: CoachContext, now: datetime, rng: random.Random) -> str:
    return SLEEP_DISTURBANCE


def medication_response(context: CoachContext, now: datetime, rng: random.Random) -> str:
    return MEDICATION


def encouragement_response(context: CoachContext, now: datetime, rng: random.Random) -> str:
    return render(ENCOURAGEMENT, trigger_praise=_trigger_praise(context))


def general_support_response(context: CoachContext, now: datetime, rng: random.Random) -> str:
    return GENERAL_SUPPORT


# =============================================================================
# Rule Table
# =============================================================================

def _trend_present(text: str, context: CoachContext) -> bool:
    return context.improvement_trend


def _always(text: str, context: CoachContext) -> bool:
    return True


RESPONSE_RULES: Tuple[ResponseRule, ...] = (
    ResponseRule(
        ResponseCategory.ANXIETY,
        keywords("can't sleep", "anxious", "worried"),
        anxiety_response,
    ),
    ResponseRule(
        ResponseCategory.BREATHING,
        keywords("breathing", "technique", "calm"),
        breathing_response,
    ),
    ResponseRule(
        ResponseCategory.WORRY,
        keywords("worry", "overthinking", "thoughts"),
        worry_response,
    ),
    ResponseRule(
        ResponseCategory.ROUTINE,
        keywords("routine", "habit", "schedule"),
        routine_response,
    ),
    ResponseRule(
        ResponseCategory.PROGRESS,
        keywords("progress", "better", "improved"),
        progress_response,
    ),
    ResponseRule(
        ResponseCategory.ENERGY,
        keywords("tired", "exhausted", "drained"),
        energy_response,
    ),
    ResponseRule(
        ResponseCategory.SLEEP_DISTURBANCE,
        keywords("nightmare", "dream", "wake up"),
        sleep_disturbance_response,
    ),
    ResponseRule(
        ResponseCategory.MEDICATION,
        keywords("medication", "pill", "drug"),
        medication_response,
    ),
    ResponseRule(ResponseCategory.ENCOURAGEMENT, _trend_present, encouragement_response),
    ResponseRule(ResponseCategory.GENERAL_SUPPORT, _always, general_support_response),
)


# =============================================================================
# Selector
# =============================================================================

class ResponseSelector:
    """
    Classifies a message and renders the reply for its category.

    Stateless per call. Crisis detection overrides the rule table.
    """

    def __init__(
        self,
        detector: Optional[CrisisDetector] = None,
        rules: Sequence[ResponseRule] = RESPONSE_RULES,
    ):
        if not rules or rules[-1].category is not ResponseCategory.GENERAL_SUPPORT:
            raise ValueError("rule table must end with the general support fallback")
        self._detector = detector or CrisisDetector()
        self._rules = tuple(rules)

    @property
    def detector(self) -> CrisisDetector:
        return self._detector

    @property
    def rules(self) -> Tuple[ResponseRule, ...]:
        return self._rules

    def match_rule(self, text: str, context: CoachContext) -> ResponseRule:
        """First rule whose predicate matches. Does not consider crisis."""
        normalized = normalize_text(text)
        for rule in self._rules:
            if rule.predicate(normalized, context):
                return rule
        # The fallback predicate always matches
        raise AssertionError("rule table has no terminal fallback")

    def classify(self, text: str, context: CoachContext) -> ResponseCategory:
        if self._detector.detect(text):
            return ResponseCategory.CRISIS
        return self.match_rule(text, context).category

    def select(
        self,
        text: str,
        context: CoachContext,
        now: datetime,
        rng: random.Random,
    ) -> CoachReply:
        """
        Produce the reply for `text`.

        Args:
            text: Raw user message
            context: Rolling summary of recent entries
            now: Local clock reading (drives evening phrasing)
            rng: Random source for variant choice

        Returns:
            CoachReply with rendered text and the matched category
        """
        if self._detector.detect(text):
            return CoachReply(
                text=self._detector.respond_to_crisis(),
                category=ResponseCategory.CRISIS,
                is_crisis=True,
            )

        rule = self.match_rule(text, context)
        logger.debug("Matched response category: %s", rule.category.value)

        return CoachReply(
            text=rule.generator(context, now, rng),
            category=rule.category,
        )
