"""Shared test helpers for entry_stats tests.

Regular functions (not fixtures) that can be imported by any test module.
"""

from __future__ import annotations

import json
from pathlib import Path

from entry_store import Entry


def make_entry(timestamp: str, entry_id: str | None = None, solo: bool | None = None) -> Entry:
    """Build an Entry; the id defaults to the timestamp itself."""
    return Entry(id=entry_id or timestamp, timestamp=timestamp, solo=solo)


def make_entries_on_days(days: list[str], time: str = "10:00:00") -> list[Entry]:
    """Build one UTC entry per ``YYYY-MM-DD`` in *days*, all at *time*."""
    return [make_entry(f"{day}T{time}Z", entry_id=f"e{i}") for i, day in enumerate(days)]


def write_entries_file(path: Path, entries: list[Entry]) -> str:
    """Write *entries* in the store envelope and return the string path."""
    path.write_text(json.dumps({"value": [e.to_dict() for e in entries]}), encoding="utf-8")
    return str(path)
