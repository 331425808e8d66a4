#!/usr/bin/env python3
"""
Generate demo data for SleepSense.

Creates two weeks of evening/morning check-ins and a short coach transcript.
The first week is anxious (high anxiety, academic stress and overthinking);
the second week is calmer (lower anxiety, social media as the only trigger),
so the rolling context shows an improvement trend.

NOTE: This is a fixture generator for demos and tests. It is not part of
the coach engine and is never imported by the sleepsense package.

Usage:
    python scripts/generate_demo_data.py --data-dir ./data --seed 7
"""

import argparse
import logging
import random
import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import List, Optional

# Allow running as a plain script from the backend/ directory
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sleepsense.core.store import AppStore, FileStorageBackend
from sleepsense.core.types import ChatMessage, EntryKind, MessageSender, SleepEntry

logger = logging.getLogger(__name__)


DEMO_DAYS = 14
CALM_DAYS = 8  # days 0..7 ago are the calmer stretch

ANXIOUS_TRIGGERS = ["Academic Stress", "Overthinking"]
CALM_TRIGGERS = ["Social Media"]

DEMO_CHAT = [
    (
        MessageSender.USER,
        "I'm really anxious about sleeping tonight. I have an exam tomorrow.",
        timedelta(hours=1),
    ),
    (
        MessageSender.ASSISTANT,
        "I can see you're really struggling with exam stress tonight. Let's try the 4-7-8 breathing technique - breathe in for 4, hold for 7, out for 8. This activates your parasympathetic nervous system and naturally reduces anxiety.",
        timedelta(minutes=59, seconds=50),
    ),
    (
        MessageSender.USER,
        "That helped a bit. But I keep thinking about all the things I need to remember.",
        timedelta(minutes=30),
    ),
    (
        MessageSender.ASSISTANT,
        "Great progress! I noticed you slept much better this week when you wrote your worries down before bed. Would you like to try a 'worry dump' exercise? Write down 3 main concerns, then remind yourself they'll be there tomorrow but right now is time for rest.",
        timedelta(minutes=29, seconds=50),
    ),
]


# =============================================================================
# Generators
# =============================================================================

def generate_demo_entries(today: date, rng: Optional[random.Random] = None) -> List[SleepEntry]:
    """
    Two entries (evening then morning) per day for DEMO_DAYS days, oldest first.

    Args:
        today: Last day of the generated range
        rng: Random source (seed it for reproducible output)
    """
    rng = rng or random.Random()
    entries: List[SleepEntry] = []

    for days_ago in range(DEMO_DAYS - 1, -1, -1):
        day = today - timedelta(days=days_ago)
        anxious = days_ago >= CALM_DAYS

        anxiety = round(7 + rng.random() * 2) if anxious else round(3 + rng.random() * 3)
        entries.append(SleepEntry(
            date=day,
            kind=EntryKind.EVENING,
            anxiety_level=anxiety,
            bedtime="23:45" if anxious else "22:30",
            triggers=list(ANXIOUS_TRIGGERS if anxious else CALM_TRIGGERS),
            thoughts="Worried about tomorrow..." if anxious else "Feeling more peaceful tonight",
        ))

        quality = round(3 + rng.random() * 2) if anxious else round(6 + rng.random() * 3)
        entries.append(SleepEntry(
            date=day,
            kind=EntryKind.MORNING,
            sleep_quality=quality,
            wake_time="07:00",
            energy_level=min(10, quality + 1),
            night_anxiety=anxious,
            gratitude="Thankful for a new day",
        ))

    return entries


def generate_demo_chat(now: datetime) -> List[ChatMessage]:
    """Four-message transcript ending shortly before `now`, in timestamp order."""
    return [
        ChatMessage(
            id=str(index),
            sender=sender,
            content=content,
            timestamp=now - offset,
        )
        for index, (sender, content, offset) in enumerate(DEMO_CHAT, start=1)
    ]


# =============================================================================
# CLI
# =============================================================================

def main() -> int:
    parser = argparse.ArgumentParser(description="Seed a SleepSense data directory with demo data")
    parser.add_argument("--data-dir", default="./data", help="Directory holding the app document")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible data")
    parser.add_argument(
        "--no-chat", action="store_true", help="Only write sleep entries, leave the transcript alone"
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    store = AppStore(FileStorageBackend(args.data_dir))
    now = datetime.now()

    partial = {"sleep_entries": generate_demo_entries(now.date(), random.Random(args.seed))}
    if not args.no_chat:
        partial["chat_history"] = generate_demo_chat(now)

    store.save(partial)

    logger.info(
        "Wrote %d entries%s to %s",
        len(partial["sleep_entries"]),
        "" if args.no_chat else f" and {len(partial['chat_history'])} messages",
        args.data_dir,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
