"""
SleepSense - Data Export

Read-only serializations of the AppState for the user to download:
a pretty-printed JSON dump of the whole document and a CSV of entries.
"""

from __future__ import annotations

import csv
import io
import json
from datetime import date

from sleepsense.core.types import AppState


EXPORT_PREFIX = "sleepsense-data"

CSV_HEADERS = [
    "Date",
    "Anxiety Level",
    "Sleep Quality",
    "Bedtime",
    "Wake Time",
    "Triggers",
    "Notes",
]

EXPORT_FORMATS = ("json", "csv")


def export_filename(today: date, fmt: str = "json") -> str:
    """e.g. sleepsense-data-2024-11-30.json"""
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt!r}")
    return f"{EXPORT_PREFIX}-{today.isoformat()}.{fmt}"


def export_json(state: AppState) -> str:
    """Full document, exactly as persisted, indented for reading."""
    return json.dumps(state.to_dict(), indent=2, ensure_ascii=False)


def export_csv(state: AppState) -> str:
    """One row per sleep entry, in persisted order."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)

    for entry in state.sleep_entries:
        writer.writerow([
            entry.date.isoformat(),
            entry.anxiety_level if entry.anxiety_level is not None else "",
            entry.sleep_quality if entry.sleep_quality is not None else "",
            entry.bedtime or "",
            entry.wake_time or "",
            "; ".join(entry.triggers),
            entry.thoughts or "",
        ])

    return buffer.getvalue()
