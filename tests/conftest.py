"""Shared fixtures for entry_stats tests."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient


# ── Minimal dashboard payload for app.py tests ──


def _minimal_dashboard_payload() -> dict:
    """Return a minimal payload matching build_dashboard_payload() shape.

    Keys and structure must exactly match the dict returned by
    ``analytics.build_dashboard_payload``.
    """
    return {
        "generated_at": "2024-01-15T12:00:00+00:00",
        "timezone": "UTC",
        "summary": {
            "total_entries": 3,
            "solo_count": 1,
            "not_solo_count": 2,
            "most_frequent_days": ["Monday"],
            "most_frequent_months": ["January"],
            "first_entry_date": "2024-01-01",
            "last_entry_date": "2024-01-15",
            "longest_daily_streak": 1,
            "current_daily_streak": 1,
            "longest_weekly_streak": 3,
            "current_weekly_streak": 3,
            "longest_gap_days": 7,
            "earliest_hour": "10:00 AM",
            "latest_hour": "10:00 AM",
            "favorite_time_of_day": "Morning (5am–11am)",
            "avg_entries_per_month": 3.0,
            "avg_entries_per_week": 1.0,
        },
        "frequency": {
            "day_counts": {"Monday": 3},
            "month_counts": {"January": 3},
            "time_of_day_counts": {"Morning (5am–11am)": 3},
            "hour_counts": [0] * 10 + [3] + [0] * 13,
            "most_frequent_days": ["Monday"],
            "most_frequent_months": ["January"],
            "favorite_time_of_day": "Morning (5am–11am)",
            "earliest_hour": 10,
            "latest_hour": 10,
        },
        "marked_dates": {
            "2024-01-01": [{"key": "e0", "color": "#9333EA"}],
            "2024-01-08": [{"key": "e1", "color": "#8CEB34"}],
            "2024-01-15": [{"key": "e2", "color": "#9333EA"}],
        },
    }


@pytest.fixture()
def mock_payload():
    """Return the minimal dashboard payload dict."""
    return _minimal_dashboard_payload()


@pytest.fixture()
def entries_path(tmp_path):
    """Point app.ENTRIES_PATH at a fresh (not yet created) file."""
    import app as app_module

    path = tmp_path / "entries.json"
    with patch.object(app_module, "ENTRIES_PATH", path):
        yield path


@pytest.fixture()
def client(mock_payload, entries_path):
    """TestClient for app.py with mocked analytics data.

    Patches build_dashboard_payload so no entries file is needed.
    Resets the module-level cache between tests.
    """
    import app as app_module

    with patch.object(
        app_module, "_cache", {"data": {}, "built_at": {}, "generation": 0}
    ):
        with patch(
            "app.build_dashboard_payload", return_value=mock_payload
        ):
            with TestClient(app_module.app) as tc:
                yield tc


@pytest.fixture()
def live_client(entries_path):
    """TestClient for app.py backed by the real analytics and a tmp file."""
    import app as app_module

    with patch.object(
        app_module, "_cache", {"data": {}, "built_at": {}, "generation": 0}
    ):
        with TestClient(app_module.app) as tc:
            yield tc
