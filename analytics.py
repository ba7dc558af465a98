"""Core statistics engine for the entry log.

Computes streaks, gaps, frequency tables and time-of-day patterns from a
snapshot of logged entries.  Used by the CLI (entry_summary.py), the web
service (app.py) and the chart script (entry_viz.py).

Every bucketing function takes an explicit time zone.  Passing ``None``
uses the system local zone, with the UTC offset looked up per instant.
"""

from __future__ import annotations

import csv
import json
import logging
import os
import warnings
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Iterable, NamedTuple

from entry_store import Entry, load_entries

logger = logging.getLogger(__name__)

DAY_NAMES = (
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
)
MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

# (label, first_hour, last_hour), inclusive; anything else is night
TIME_OF_DAY_WINDOWS = (
    ("Morning (5am–11am)", 5, 11),
    ("Afternoon (12pm–4pm)", 12, 16),
    ("Evening (5pm–8pm)", 17, 20),
)
NIGHT_LABEL = "Night (9pm–4am)"
TIME_OF_DAY_LABELS = tuple(label for label, _, _ in TIME_OF_DAY_WINDOWS) + (NIGHT_LABEL,)

SECONDS_PER_WEEK = 7 * 24 * 60 * 60

MARKER_COLORS = {"default": "#9333EA", "solo": "#8CEB34"}


class MalformedEntryWarning(UserWarning):
    """An entry was left out of the statistics because its timestamp is unusable."""


class WeekKey(NamedTuple):
    year: int
    week: int


@dataclass(frozen=True)
class StatsSummary:
    total_entries: int
    solo_count: int
    not_solo_count: int
    most_frequent_days: tuple[str, ...]
    most_frequent_months: tuple[str, ...]
    first_entry_date: str | None
    last_entry_date: str | None
    longest_daily_streak: int
    current_daily_streak: int
    longest_weekly_streak: int
    current_weekly_streak: int
    longest_gap_days: int
    earliest_hour: str | None
    latest_hour: str | None
    favorite_time_of_day: str | None
    avg_entries_per_month: float
    avg_entries_per_week: float

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["most_frequent_days"] = list(self.most_frequent_days)
        out["most_frequent_months"] = list(self.most_frequent_months)
        return out


def empty_summary() -> StatsSummary:
    """Return the summary reported for an empty snapshot."""
    return StatsSummary(
        total_entries=0,
        solo_count=0,
        not_solo_count=0,
        most_frequent_days=(),
        most_frequent_months=(),
        first_entry_date=None,
        last_entry_date=None,
        longest_daily_streak=0,
        current_daily_streak=0,
        longest_weekly_streak=0,
        current_weekly_streak=0,
        longest_gap_days=0,
        earliest_hour=None,
        latest_hour=None,
        favorite_time_of_day=None,
        avg_entries_per_month=0.0,
        avg_entries_per_week=0.0,
    )


# ---------------------------------------------------------------------------
# Timestamp parsing
# ---------------------------------------------------------------------------

def parse_timestamp(value: str, tz: tzinfo | None = None) -> datetime:
    """Parse an ISO-8601 timestamp and convert it to *tz*.

    A trailing ``Z`` is accepted.  Strings without an offset are taken to
    be wall-clock time in *tz*.  With ``tz=None`` the system local zone is
    used, with its UTC offset looked up for each instant.

    Raises:
        ValueError: If *value* is not a string or not valid ISO-8601.
    """
    if not isinstance(value, str):
        raise ValueError(f"timestamp must be a string, got {type(value).__name__}")
    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None and tz is not None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)


def entry_instant(entry: Entry) -> float:
    """Epoch seconds of *entry*, or -inf if unparseable.  A sort key."""
    try:
        return parse_timestamp(entry.timestamp).timestamp()
    except (ValueError, OverflowError):
        return float("-inf")


def build_timeline(
    entries: Iterable[Entry],
    tz: tzinfo | None = None,
) -> list[tuple[datetime, Entry]]:
    """Parse every entry's timestamp and sort the result ascending.

    Entries whose timestamp cannot be parsed are left out; each one raises
    a ``MalformedEntryWarning`` and is logged.  The input is not modified.

    Args:
        entries: Entry snapshot, in any order.
        tz: Zone used to express the parsed local datetimes (None = local).

    Returns:
        List of (local_datetime, entry) pairs ordered by instant.  Entries
        sharing an instant keep their input order.
    """
    timeline: list[tuple[datetime, Entry]] = []
    for entry in entries:
        try:
            when = parse_timestamp(entry.timestamp, tz)
        except (ValueError, OverflowError) as e:
            logger.warning("Skipping entry %s: bad timestamp %r (%s)", entry.id, entry.timestamp, e)
            warnings.warn(
                f"Entry {entry.id!r} has an unparseable timestamp {entry.timestamp!r}",
                MalformedEntryWarning,
                stacklevel=3,
            )
            continue
        timeline.append((when, entry))
    timeline.sort(key=lambda item: item[0])
    return timeline


# ---------------------------------------------------------------------------
# Week keys
# ---------------------------------------------------------------------------

def _thursday_of(d: date) -> date:
    """Return the Thursday of the Monday-start week containing *d*."""
    weekday = d.isoweekday() % 7  # 0 = Sunday
    shift = ((weekday + 6) % 7) - 3
    return d - timedelta(days=shift)


def week_key(d: date) -> WeekKey:
    """Return the ISO-8601 (year, week) for calendar date *d*.

    The week belongs to the year that holds its Thursday; week 1 is the
    week containing 4 January.  So 2024-12-30 is (2025, 1) and 2021-01-01
    is (2020, 53).
    """
    if isinstance(d, datetime):
        d = d.date()
    thursday = _thursday_of(d)
    first_thursday = _thursday_of(date(thursday.year, 1, 4))
    return WeekKey(thursday.year, 1 + (thursday - first_thursday).days // 7)


def format_week_key(key: WeekKey) -> str:
    """Render *key* as ``YYYY-Www`` (display only; sort the tuples)."""
    return f"{key.year}-W{key.week:02d}"


# ---------------------------------------------------------------------------
# Streaks
# ---------------------------------------------------------------------------

def _day_difference(earlier: datetime, later: datetime) -> int:
    """Whole calendar days between two local datetimes, ignoring time of day."""
    return (later.date() - earlier.date()).days


def compute_daily_streaks(local_times: list[datetime]) -> tuple[int, int]:
    """Compute (longest, current) runs of consecutive calendar days.

    Several entries on one day neither extend nor break the run.

    Args:
        local_times: Local datetimes sorted ascending.

    Returns:
        (longest, current).  ``(0, 0)`` for empty input.
    """
    if not local_times:
        return 0, 0
    longest = current = 1
    for prev, cur in zip(local_times, local_times[1:]):
        diff = _day_difference(prev, cur)
        if diff == 1:
            current += 1
            longest = max(longest, current)
        elif diff > 1:
            current = 1
    return longest, current


def _is_next_week(a: WeekKey, b: WeekKey) -> bool:
    if b.year == a.year:
        return b.week == a.week + 1
    # 52- and 53-week years are not told apart here
    return b.year == a.year + 1 and a.week >= 52 and b.week == 1


def compute_weekly_streaks(local_times: list[datetime]) -> tuple[int, int]:
    """Compute (longest, current) runs of consecutive ISO weeks with entries.

    Args:
        local_times: Local datetimes, any order.

    Returns:
        (longest, current).  ``(0, 0)`` for empty input.
    """
    keys = sorted({week_key(t.date()) for t in local_times})
    if not keys:
        return 0, 0
    longest = current = 1
    for prev, cur in zip(keys, keys[1:]):
        if _is_next_week(prev, cur):
            current += 1
            longest = max(longest, current)
        else:
            current = 1
    return longest, current


# ---------------------------------------------------------------------------
# Frequency tables
# ---------------------------------------------------------------------------

def time_of_day_label(hour: int) -> str:
    """Return the time-of-day bucket label for a 0-23 *hour*."""
    for label, first, last in TIME_OF_DAY_WINDOWS:
        if first <= hour <= last:
            return label
    return NIGHT_LABEL


def format_hour(hour: int) -> str:
    """Format a 0-23 hour on the 12-hour clock, e.g. 0 -> ``"12:00 AM"``."""
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12}:00 {suffix}"


def _modes(counts: dict[str, int]) -> list[str]:
    """Return every key tied at the highest non-zero count, in key order."""
    top = max(counts.values(), default=0)
    if top == 0:
        return []
    return [key for key, count in counts.items() if count == top]


def compute_frequency_data(local_times: list[datetime]) -> dict[str, Any]:
    """Tally day-of-week, month, hour and time-of-day distributions.

    Args:
        local_times: Local datetimes for every entry, any order.

    Returns:
        Dict with keys:
            - day_counts: {day name: count} for Monday..Sunday.
            - month_counts: {month name: count} for January..December.
            - time_of_day_counts: {bucket label: count} in bucket order.
            - hour_counts: list of 24 ints.
            - most_frequent_days / most_frequent_months: every name tied at
              the maximum count (empty when there are no entries).
            - favorite_time_of_day: first bucket at the maximum, or None.
            - earliest_hour / latest_hour: raw 0-23 ints, or None.
    """
    day_counts = dict.fromkeys(DAY_NAMES, 0)
    month_counts = dict.fromkeys(MONTH_NAMES, 0)
    time_of_day_counts = dict.fromkeys(TIME_OF_DAY_LABELS, 0)
    hour_counts = [0] * 24

    for t in local_times:
        day_counts[DAY_NAMES[t.weekday()]] += 1
        month_counts[MONTH_NAMES[t.month - 1]] += 1
        time_of_day_counts[time_of_day_label(t.hour)] += 1
        hour_counts[t.hour] += 1

    hours = [t.hour for t in local_times]
    favorite = _modes(time_of_day_counts)
    logger.debug("Frequency tables: days=%s months=%s times=%s", day_counts, month_counts, time_of_day_counts)

    return {
        "day_counts": day_counts,
        "month_counts": month_counts,
        "time_of_day_counts": time_of_day_counts,
        "hour_counts": hour_counts,
        "most_frequent_days": _modes(day_counts),
        "most_frequent_months": _modes(month_counts),
        "favorite_time_of_day": favorite[0] if favorite else None,
        "earliest_hour": min(hours) if hours else None,
        "latest_hour": max(hours) if hours else None,
    }


# ---------------------------------------------------------------------------
# Gaps and averages
# ---------------------------------------------------------------------------

def compute_longest_gap(local_times: list[datetime]) -> int:
    """Largest calendar-day difference between consecutive sorted entries."""
    return max(
        (_day_difference(prev, cur) for prev, cur in zip(local_times, local_times[1:])),
        default=0,
    )


def compute_averages(local_times: list[datetime]) -> tuple[float, float]:
    """Compute (entries per month, entries per week) over the logged span.

    The month span counts calendar months from the first entry's month to
    the last's, inclusive.  The week span is the number of whole weeks
    between the first and last instants, plus one.

    Args:
        local_times: Local datetimes sorted ascending.

    Returns:
        Both averages rounded to 2 decimal places; ``(0.0, 0.0)`` when empty.
    """
    if not local_times:
        return 0.0, 0.0
    total = len(local_times)
    first, last = local_times[0], local_times[-1]
    month_span = (last.year - first.year) * 12 + (last.month - first.month) + 1
    week_span = int((last - first).total_seconds() // SECONDS_PER_WEEK) + 1
    return round(total / month_span, 2), round(total / week_span, 2)


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

def summarize_timeline(
    timeline: list[tuple[datetime, Entry]],
    frequency: dict[str, Any] | None = None,
) -> StatsSummary:
    """Build the summary for a timeline from ``build_timeline``.

    *frequency* may be the ``compute_frequency_data`` result for the same
    timeline, when the caller already has it.
    """
    if not timeline:
        return empty_summary()

    local_times = [when for when, _ in timeline]
    solo_count = sum(1 for _, entry in timeline if entry.solo)
    longest_daily, current_daily = compute_daily_streaks(local_times)
    longest_weekly, current_weekly = compute_weekly_streaks(local_times)
    per_month, per_week = compute_averages(local_times)
    freq = frequency if frequency is not None else compute_frequency_data(local_times)

    return StatsSummary(
        total_entries=len(timeline),
        solo_count=solo_count,
        not_solo_count=len(timeline) - solo_count,
        most_frequent_days=tuple(freq["most_frequent_days"]),
        most_frequent_months=tuple(freq["most_frequent_months"]),
        first_entry_date=local_times[0].date().isoformat(),
        last_entry_date=local_times[-1].date().isoformat(),
        longest_daily_streak=longest_daily,
        current_daily_streak=current_daily,
        longest_weekly_streak=longest_weekly,
        current_weekly_streak=current_weekly,
        longest_gap_days=compute_longest_gap(local_times),
        earliest_hour=format_hour(freq["earliest_hour"]),
        latest_hour=format_hour(freq["latest_hour"]),
        favorite_time_of_day=freq["favorite_time_of_day"],
        avg_entries_per_month=per_month,
        avg_entries_per_week=per_week,
    )


def compute_stats(entries: Iterable[Entry], tz: tzinfo | None = None) -> StatsSummary:
    """Compute the full statistics summary for an entry snapshot.

    Entries with unparseable timestamps are left out with a
    ``MalformedEntryWarning``.  An empty (or entirely malformed) snapshot
    returns ``empty_summary()`` instead of raising.

    Args:
        entries: Entry snapshot in any order; duplicates are counted as-is.
        tz: Zone that defines calendar days and hours.  Defaults to the
            system local zone.

    Returns:
        An immutable ``StatsSummary``.
    """
    return summarize_timeline(build_timeline(entries, tz))


def _marked_dates_from_timeline(
    timeline: list[tuple[datetime, Entry]],
    colors: dict[str, str],
) -> dict[str, list[dict[str, str]]]:
    marked: dict[str, list[dict[str, str]]] = {}
    for when, entry in timeline:
        color = colors["solo"] if entry.solo else colors["default"]
        marked.setdefault(when.date().isoformat(), []).append({"key": entry.id, "color": color})
    return marked


def compute_marked_dates(
    entries: Iterable[Entry],
    tz: tzinfo | None = None,
    colors: dict[str, str] | None = None,
) -> dict[str, list[dict[str, str]]]:
    """Group entries by local calendar date for calendar markers.

    Each instant is converted to *tz* before being truncated to a date, so
    an entry at 23:30 local time lands on that local day, not the UTC one.

    Args:
        entries: Entry snapshot in any order.
        tz: Viewer's zone.  Defaults to the system local zone.
        colors: Dict with "default" and "solo" colours.  Defaults to
            ``MARKER_COLORS``.

    Returns:
        Dict mapping ``YYYY-MM-DD`` to a chronological list of
        ``{"key": entry id, "color": colour}`` markers.
    """
    timeline = build_timeline(entries, tz)
    return _marked_dates_from_timeline(timeline, colors or MARKER_COLORS)


def build_dashboard_payload(path: str, tz: tzinfo | None = None) -> dict[str, Any]:
    """One-call entry point: load the entries file and compute everything.

    Args:
        path: Filesystem path to the entries JSON file.
        tz: Zone for all day/hour bucketing.  Defaults to the local zone.

    Returns:
        Dict with keys: generated_at (ISO timestamp), timezone, summary
        (``StatsSummary.to_dict()``), frequency (``compute_frequency_data``)
        and marked_dates.

    Raises:
        FileNotFoundError: If the entries file does not exist.
        json.JSONDecodeError: If the file contains invalid JSON.
    """
    entries = load_entries(path)
    timeline = build_timeline(entries, tz)
    local_times = [when for when, _ in timeline]
    logger.debug("Built timeline of %d entries (%d loaded)", len(timeline), len(entries))
    frequency = compute_frequency_data(local_times)

    return {
        "generated_at": datetime.now().astimezone(tz).isoformat(),
        "timezone": str(tz) if tz is not None else "local",
        "summary": summarize_timeline(timeline, frequency).to_dict(),
        "frequency": frequency,
        "marked_dates": _marked_dates_from_timeline(timeline, MARKER_COLORS),
    }


# ---------------------------------------------------------------------------
# CLI helpers (used by entry_summary.py)
# ---------------------------------------------------------------------------

def save_analytics_files(
    summary: StatsSummary,
    frequency: dict[str, Any],
    output_dir: str = "entry_analytics",
) -> None:
    """Write summary.json and the frequency tables as CSV to *output_dir*.

    Creates the directory if needed and writes summary.json,
    day_counts.csv, month_counts.csv, time_of_day_counts.csv and
    hour_counts.csv.
    """
    os.makedirs(output_dir, exist_ok=True)

    with open(f"{output_dir}/summary.json", "w") as f:
        json.dump(summary.to_dict(), f, indent=2)

    tables = {
        "day_counts": ("day", frequency["day_counts"].items()),
        "month_counts": ("month", frequency["month_counts"].items()),
        "time_of_day_counts": ("time_of_day", frequency["time_of_day_counts"].items()),
        "hour_counts": ("hour", enumerate(frequency["hour_counts"])),
    }
    for name, (label, rows) in tables.items():
        with open(f"{output_dir}/{name}.csv", "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow([label, "count"])
            writer.writerows(rows)


def print_summary_report(summary: StatsSummary, frequency: dict[str, Any]) -> None:
    """Print the CLI summary report to stdout.

    Args:
        summary: Result of ``compute_stats``.
        frequency: Result of ``compute_frequency_data`` for the same entries.
    """
    print(f"\n{'=' * 60}")
    print("Entry Log Summary")
    print(f"{'=' * 60}")
    print(f"Total Entries: {summary.total_entries:,}")

    if not summary.total_entries:
        print("No entries logged yet.")
        print(f"{'=' * 60}")
        return

    print(f"Solo: {summary.solo_count:,}  Not solo: {summary.not_solo_count:,}")
    print(f"First Entry: {summary.first_entry_date}")
    print(f"Last Entry: {summary.last_entry_date}")
    print(f"Average per Month: {summary.avg_entries_per_month:.2f}")
    print(f"Average per Week: {summary.avg_entries_per_week:.2f}")

    print(f"\n{'=' * 60}")
    print("Streaks")
    print(f"{'=' * 60}")
    print(f"Daily: current {summary.current_daily_streak}, longest {summary.longest_daily_streak}")
    print(f"Weekly: current {summary.current_weekly_streak}, longest {summary.longest_weekly_streak}")
    print(f"Longest Gap: {summary.longest_gap_days} days")

    print(f"\n{'=' * 60}")
    print("Patterns")
    print(f"{'=' * 60}")
    print(f"Most Frequent Day(s): {', '.join(summary.most_frequent_days)}")
    print(f"Most Frequent Month(s): {', '.join(summary.most_frequent_months)}")
    print(f"Favorite Time of Day: {summary.favorite_time_of_day}")
    print(f"Earliest Hour: {summary.earliest_hour}")
    print(f"Latest Hour: {summary.latest_hour}")

    print("\nBy Day of Week:")
    for day, count in frequency["day_counts"].items():
        print(f"  {day:<10} {count:>5,}")

    print("\nBy Time of Day:")
    for label, count in frequency["time_of_day_counts"].items():
        print(f"  {label:<22} {count:>5,}")

    print(f"{'=' * 60}")
