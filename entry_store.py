"""JSON-file storage for logged entries.

Entries are kept in the same envelope the mobile app writes to its key-value
store (``{"value": [...]}``), so a file exported from the app can be read
directly.  Import/export use the app's full storage dump format, a JSON
object mapping storage keys to JSON-encoded strings.
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

STORAGE_KEY = "@moanitor_entries"


class DuplicateEntryError(ValueError):
    """An entry with the same id is already stored."""


@dataclass(frozen=True)
class Entry:
    """One logged event.

    ``timestamp`` is kept exactly as stored (an ISO-8601 string); parsing
    happens in the analytics layer so a bad value can be reported there
    instead of breaking the load.
    """

    id: str
    timestamp: str
    solo: bool | None = None

    @classmethod
    def from_dict(cls, data: dict) -> Entry:
        """Build an Entry from its JSON form ``{id, date, solo?}``.

        Raises:
            KeyError: If ``id`` or ``date`` is missing.
        """
        solo = data.get("solo")
        return cls(
            id=str(data["id"]),
            timestamp=data["date"],
            solo=None if solo is None else bool(solo),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "date": self.timestamp}
        if self.solo is not None:
            out["solo"] = self.solo
        return out


def new_entry(when: datetime | None = None, solo: bool = False) -> Entry:
    """Create an entry stamped with *when* (default: now), in UTC ``Z`` form.

    The id is the creation time in epoch milliseconds, as the app does.
    Naive *when* values are taken as local time.
    """
    if when is None:
        when = datetime.now(timezone.utc)
    instant = when.astimezone(timezone.utc)
    stamp = instant.strftime("%Y-%m-%dT%H:%M:%S.") + f"{instant.microsecond // 1000:03d}Z"
    return Entry(id=str(time.time_ns() // 1_000_000), timestamp=stamp, solo=solo)


def _unwrap_records(data: Any) -> list:
    """Return the raw entry list from any of the accepted file shapes.

    Accepts a bare list, the ``{"value": [...]}`` envelope, or a storage
    dump whose ``STORAGE_KEY`` value is the envelope as a JSON string.
    """
    if isinstance(data, list):
        return data
    if not isinstance(data, dict):
        raise ValueError(f"Unsupported entries file shape: {type(data).__name__}")
    if STORAGE_KEY in data:
        stored = data[STORAGE_KEY]
        if isinstance(stored, str):
            stored = json.loads(stored)
        return _unwrap_records(stored)
    value = data.get("value", [])
    if not isinstance(value, list):
        raise ValueError("Entries envelope 'value' must be a list")
    return value


def _parse_entry_records(records: list) -> list[Entry]:
    """Convert raw records to Entry objects, skipping anything unusable."""
    entries: list[Entry] = []
    for i, record in enumerate(records):
        if not isinstance(record, dict):
            logger.warning("Skipping entry #%d: expected an object, got %s", i, type(record).__name__)
            continue
        try:
            entries.append(Entry.from_dict(record))
        except KeyError as e:
            logger.warning("Skipping entry #%d: missing field %s", i, e)
    return entries


def load_entries(path: str) -> list[Entry]:
    """Load entries from a JSON file.

    Args:
        path: Filesystem path to the entries file.

    Returns:
        List of Entry objects in stored order.  Records that are not objects
        or lack ``id``/``date`` are skipped and logged.

    Raises:
        FileNotFoundError: If the file at *path* does not exist.
        json.JSONDecodeError: If the file contains invalid JSON.
        ValueError: If the JSON does not hold an entry list.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return _parse_entry_records(_unwrap_records(data))


def save_entries(path: str, entries: list[Entry]) -> None:
    """Write *entries* to *path* in the ``{"value": [...]}`` envelope."""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"value": [e.to_dict() for e in entries]}, f, indent=2)


def _load_or_empty(path: str) -> list[Entry]:
    try:
        return load_entries(path)
    except FileNotFoundError:
        return []


def add_entry(path: str, entry: Entry) -> list[Entry]:
    """Append *entry* to the file at *path* (created if missing).

    Returns:
        The updated entry list.

    Raises:
        DuplicateEntryError: If an entry with the same id already exists.
        ValueError: If the existing file does not hold an entry list.
    """
    entries = _load_or_empty(path)
    if any(e.id == entry.id for e in entries):
        raise DuplicateEntryError(f"Entry id already exists: {entry.id}")
    entries.append(entry)
    save_entries(path, entries)
    logger.info("Added entry %s (%s)", entry.id, entry.timestamp)
    return entries


def delete_entry(path: str, entry_id: str) -> list[Entry]:
    """Remove the entry with *entry_id* from the file at *path*.

    Raises:
        FileNotFoundError: If the file does not exist.
        KeyError: If no entry has that id.
    """
    entries = load_entries(path)
    remaining = [e for e in entries if e.id != entry_id]
    if len(remaining) == len(entries):
        raise KeyError(entry_id)
    save_entries(path, remaining)
    logger.info("Deleted entry %s", entry_id)
    return remaining


def clear_entries(path: str) -> int:
    """Remove every entry, leaving an empty envelope at *path*.

    Returns:
        Number of entries removed (0 if the file did not exist).
    """
    removed = len(_load_or_empty(path))
    save_entries(path, [])
    logger.info("Cleared %d entries from %s", removed, path)
    return removed


def export_entries(path: str, output_file: str) -> int:
    """Write a storage dump of the entries at *path* to *output_file*.

    The dump maps ``STORAGE_KEY`` to the JSON-encoded envelope, the shape
    the app's import expects.

    Returns:
        Number of entries exported.
    """
    entries = load_entries(path)
    envelope = json.dumps({"value": [e.to_dict() for e in entries]})
    parent = os.path.dirname(output_file)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump({STORAGE_KEY: envelope}, f)
    return len(entries)


def import_entries(path: str, source_file: str) -> int:
    """Replace the entries at *path* with those read from *source_file*.

    *source_file* may be a storage dump, an envelope or a bare list.
    Duplicate ids keep their first occurrence.

    Returns:
        Number of entries imported.
    """
    imported = load_entries(source_file)
    seen: set[str] = set()
    unique: list[Entry] = []
    for entry in imported:
        if entry.id in seen:
            logger.warning("Dropping duplicate entry id %s on import", entry.id)
            continue
        seen.add(entry.id)
        unique.append(entry)
    save_entries(path, unique)
    return len(unique)
