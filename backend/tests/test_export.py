"""
SleepSense - Export Tests

Run with: pytest tests/test_export.py -v
"""

import csv
import io
import json
from datetime import date

import pytest

from conftest import make_entry
from sleepsense.core.export import CSV_HEADERS, export_csv, export_filename, export_json
from sleepsense.core.types import AppSettings, AppState


@pytest.fixture
def state() -> AppState:
    return AppState(
        sleep_entries=[
            make_entry(
                1,
                anxiety_level=7,
                bedtime="23:45",
                triggers=["Academic Stress", "Overthinking"],
                thoughts="Worried about tomorrow, again",
            ),
            make_entry(2, "morning", sleep_quality=6, wake_time="07:00"),
        ],
        settings=AppSettings(dark_mode=True),
    )


class TestExportFilename:

    def test_json_filename(self):
        assert export_filename(date(2024, 11, 30)) == "sleepsense-data-2024-11-30.json"

    def test_csv_filename(self):
        assert export_filename(date(2024, 1, 5), "csv") == "sleepsense-data-2024-01-05.csv"

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            export_filename(date(2024, 1, 5), "xml")


class TestExportJson:

    def test_json_is_full_document(self, state: AppState):
        exported = json.loads(export_json(state))

        assert exported == state.to_dict()
        assert exported["settings"]["darkMode"] is True

    def test_json_is_indented(self, state: AppState):
        assert '\n  "user": null' in export_json(state)


class TestExportCsv:

    def test_csv_header_and_rows(self, state: AppState):
        rows = list(csv.reader(io.StringIO(export_csv(state))))

        assert rows[0] == CSV_HEADERS
        assert rows[1] == [
            "2024-11-01",
            "7",
            "",
            "23:45",
            "",
            "Academic Stress; Overthinking",
            "Worried about tomorrow, again",
        ]
        assert rows[2] == ["2024-11-02", "", "6", "", "07:00", "", ""]

    def test_csv_empty_state(self):
        rows = list(csv.reader(io.StringIO(export_csv(AppState.default()))))

        assert rows == [CSV_HEADERS]
