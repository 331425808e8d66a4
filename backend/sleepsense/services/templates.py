"""
SleepSense - Response Templates

Fills response templates with context values and picks among equivalent
phrasings. Templates use `$name` placeholders and plain substitution;
any conditional wording is decided by the caller before rendering.
"""

from __future__ import annotations

import random
from string import Template
from typing import Sequence


def render(template: str, **values: str) -> str:
    """
    Substitute `$name` placeholders.

    Raises:
        KeyError: a placeholder has no value (a bug in the calling generator)
    """
    return Template(template).substitute(values)


def choose_variant(variants: Sequence[str], rng: random.Random) -> str:
    """Pick one phrasing uniformly at random."""
    if not variants:
        raise ValueError("variants must not be empty")
    return rng.choice(list(variants))
