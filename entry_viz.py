"""Render frequency charts for an entries file.

Writes day-of-week, month, time-of-day and hour-of-day bar charts plus a
weekly activity line chart as PNGs.

Usage: python entry_viz.py [entries.json] [--output-dir entry_analytics] [--tz ZONE]
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from analytics import build_timeline, compute_frequency_data, format_week_key, week_key
from entry_store import load_entries

logger = logging.getLogger(__name__)


def frequency_frames(frequency: dict) -> dict[str, pd.DataFrame]:
    """Turn ``compute_frequency_data`` output into one DataFrame per table."""
    return {
        "day_of_week": pd.DataFrame(
            list(frequency["day_counts"].items()), columns=["day", "count"]
        ),
        "month": pd.DataFrame(
            list(frequency["month_counts"].items()), columns=["month", "count"]
        ),
        "time_of_day": pd.DataFrame(
            list(frequency["time_of_day_counts"].items()), columns=["time_of_day", "count"]
        ),
        "hour": pd.DataFrame(
            {"hour": range(24), "count": frequency["hour_counts"]}
        ),
    }


def weekly_frame(local_times: list) -> pd.DataFrame:
    """Entries per ISO week, sorted by (year, week), with a 4-week rolling mean."""
    counts: dict = {}
    for t in local_times:
        key = week_key(t.date())
        counts[key] = counts.get(key, 0) + 1
    keys = sorted(counts)
    df = pd.DataFrame({
        "week": [format_week_key(k) for k in keys],
        "count": [counts[k] for k in keys],
    })
    df["avg_4w"] = df["count"].rolling(window=4, min_periods=1).mean()
    return df


def _bar_chart(df: pd.DataFrame, x: str, title: str, path: str, color: str) -> None:
    plt.figure(figsize=(12, 6))
    sns.barplot(data=df, x=x, y="count", color=color)
    plt.title(title, fontsize=14, pad=20)
    plt.xlabel("")
    plt.ylabel("Entries", fontsize=12)
    plt.grid(True, axis="y", alpha=0.3)
    plt.xticks(rotation=45)
    plt.tight_layout()
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close()


def render_charts(path: str, output_dir: str = "entry_analytics", tz=None) -> list[str]:
    """Load *path* and write all charts to *output_dir*.

    Returns:
        Paths of the PNG files written.
    """
    entries = load_entries(path)
    local_times = [when for when, _ in build_timeline(entries, tz)]
    frames = frequency_frames(compute_frequency_data(local_times))
    os.makedirs(output_dir, exist_ok=True)

    charts = [
        ("day_of_week", "day", "Entries by Day of Week", "skyblue"),
        ("month", "month", "Entries by Month", "lightgreen"),
        ("time_of_day", "time_of_day", "Entries by Time of Day", "plum"),
        ("hour", "hour", "Entries by Hour of Day", "lightcoral"),
    ]
    written = []
    for name, x, title, color in charts:
        out = os.path.join(output_dir, f"{name}.png")
        _bar_chart(frames[name], x, title, out, color)
        written.append(out)

    weekly = weekly_frame(local_times)
    if not weekly.empty:
        out = os.path.join(output_dir, "weekly.png")
        plt.figure(figsize=(15, 8))
        plt.bar(weekly["week"], weekly["count"], alpha=0.5, color="skyblue", label="Entries per Week")
        plt.plot(weekly["week"], weekly["avg_4w"], color="red", linewidth=2, label="4-week Average")
        plt.title("Weekly Entries with Rolling Average", fontsize=14, pad=20)
        plt.xlabel("ISO Week", fontsize=12)
        plt.ylabel("Entries", fontsize=12)
        plt.grid(True, alpha=0.3)
        plt.legend()
        plt.xticks(rotation=45)
        plt.tight_layout()
        plt.savefig(out, dpi=150, bbox_inches="tight")
        plt.close()
        written.append(out)

    logger.info("Wrote %d charts to %s", len(written), output_dir)
    return written


def main(path: str = "entries.json", output_dir: str = "entry_analytics", tz_name: str | None = None) -> None:
    """Render the charts for *path*.  Exits with status 1 on bad input."""
    try:
        tz = ZoneInfo(tz_name) if tz_name else None
    except (ZoneInfoNotFoundError, ValueError):
        print(f"Error: unknown time zone '{tz_name}'.", file=sys.stderr)
        sys.exit(1)

    try:
        files = render_charts(path, output_dir, tz)
    except FileNotFoundError:
        print(f"Error: File '{path}' not found.", file=sys.stderr)
        sys.exit(1)
    except json.JSONDecodeError:
        print(f"Error: '{path}' is not a valid JSON file.", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Charts saved to '{output_dir}': {', '.join(os.path.basename(f) for f in files)}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    parser = argparse.ArgumentParser(description="Render entry frequency charts")
    parser.add_argument("path", nargs="?", default="entries.json")
    parser.add_argument("--output-dir", "-o", default="entry_analytics")
    parser.add_argument("--tz", help="IANA time zone (default: local)")
    args = parser.parse_args()
    main(args.path, args.output_dir, args.tz)
