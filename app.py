"""FastAPI service for the entry log statistics.

Serves the statistics summary, frequency tables and calendar markers as
JSON, plus a small entries API for logging and deleting events.  Computed
payloads are cached per time zone (1-hour TTL) and dropped on every write.

Deployment: uvicorn app:app --host 127.0.0.1 --port 8204
"""

from __future__ import annotations

import json
import os
import threading
import time
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import FastAPI, HTTPException, Response
from pydantic import BaseModel

from analytics import build_dashboard_payload, entry_instant, parse_timestamp
from entry_store import (
    DuplicateEntryError,
    add_entry,
    clear_entries,
    delete_entry,
    load_entries,
    new_entry,
)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
ENTRIES_PATH = Path(os.environ.get("ENTRY_STATS_FILE", Path(__file__).parent / "entries.json"))
CACHE_TTL_SECONDS = 3600  # 1 hour

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Entry Stats",
    root_path="/entry_stats",
)

# ---------------------------------------------------------------------------
# Thread-safe cache, keyed by time zone name ("" = server local)
# ---------------------------------------------------------------------------
_cache_lock = threading.Lock()
_cache: dict[str, Any] = {
    "data": {},
    "built_at": {},
    "generation": 0,  # bumped on every write
}

# Serializes read-modify-write cycles on the entries file
_store_lock = threading.Lock()


class EntryIn(BaseModel):
    date: str | None = None
    solo: bool = False


def _resolve_tz(tz: str | None) -> ZoneInfo | None:
    if not tz:
        return None
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        raise HTTPException(status_code=400, detail=f"Unknown time zone: {tz}")


def _invalidate_cache() -> None:
    with _cache_lock:
        _cache["data"] = {}
        _cache["built_at"] = {}
        _cache["generation"] += 1


def _get_cached_data(tz: str | None = None, force_refresh: bool = False) -> dict[str, Any]:
    """Return cached payload for *tz*, rebuilding if stale or forced."""
    key = tz or ""
    zone = _resolve_tz(tz)
    now = time.monotonic()
    with _cache_lock:
        cached = _cache["data"].get(key)
        if (
            not force_refresh
            and cached is not None
            and (now - _cache["built_at"].get(key, 0.0)) < CACHE_TTL_SECONDS
        ):
            return cached
        generation = _cache["generation"]

    try:
        with _store_lock:
            data = build_dashboard_payload(str(ENTRIES_PATH), zone)
    except FileNotFoundError:
        raise HTTPException(status_code=503, detail="Data file not found")
    except (json.JSONDecodeError, ValueError):
        raise HTTPException(status_code=500, detail=f"Invalid JSON in {ENTRIES_PATH.name}")

    with _cache_lock:
        # a write since the read above makes this payload stale; serve it once
        if _cache["generation"] == generation:
            _cache["data"][key] = data
            _cache["built_at"][key] = time.monotonic()

    return data


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health")
@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.get("/api/data")
def api_data(tz: str | None = None):
    """Return the full dashboard JSON payload."""
    return _get_cached_data(tz)


@app.get("/api/stats")
def api_stats(tz: str | None = None):
    return _get_cached_data(tz)["summary"]


@app.get("/api/marked-dates")
def api_marked_dates(tz: str | None = None):
    return _get_cached_data(tz)["marked_dates"]


@app.get("/api/refresh")
def api_refresh(tz: str | None = None):
    """Force a cache rebuild and return fresh data."""
    data = _get_cached_data(tz, force_refresh=True)
    return {
        "status": "refreshed",
        "generated_at": data["generated_at"],
    }


def _invalid_store() -> HTTPException:
    return HTTPException(status_code=500, detail=f"Invalid JSON in {ENTRIES_PATH.name}")


@app.get("/api/entries")
def api_list_entries():
    """Return all entries, newest first."""
    try:
        with _store_lock:
            entries = load_entries(str(ENTRIES_PATH))
    except FileNotFoundError:
        return []
    except (json.JSONDecodeError, ValueError):
        raise _invalid_store()
    return [e.to_dict() for e in sorted(entries, key=entry_instant, reverse=True)]


@app.post("/api/entries", status_code=201)
def api_add_entry(body: EntryIn):
    """Log a new entry at *body.date* (default: now)."""
    when = None
    if body.date is not None:
        try:
            when = parse_timestamp(body.date)
        except ValueError:
            raise HTTPException(status_code=422, detail=f"Invalid date: {body.date}")
    entry = new_entry(when, solo=body.solo)
    try:
        with _store_lock:
            add_entry(str(ENTRIES_PATH), entry)
            _invalidate_cache()
    except DuplicateEntryError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (json.JSONDecodeError, ValueError):
        raise _invalid_store()
    return entry.to_dict()


@app.delete("/api/entries")
def api_clear_entries():
    """Remove every entry."""
    try:
        with _store_lock:
            removed = clear_entries(str(ENTRIES_PATH))
            _invalidate_cache()
    except (json.JSONDecodeError, ValueError):
        raise _invalid_store()
    return {"status": "cleared", "removed": removed}


@app.delete("/api/entries/{entry_id}", status_code=204)
def api_delete_entry(entry_id: str):
    try:
        with _store_lock:
            delete_entry(str(ENTRIES_PATH), entry_id)
            _invalidate_cache()
    except (FileNotFoundError, KeyError):
        raise HTTPException(status_code=404, detail=f"Entry not found: {entry_id}")
    except (json.JSONDecodeError, ValueError):
        raise _invalid_store()
    return Response(status_code=204)
