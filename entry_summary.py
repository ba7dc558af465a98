"""Print a statistics summary for an entries file.

Usage: python entry_summary.py [entries.json] [--tz Europe/Berlin] [--save DIR]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from analytics import (
    build_timeline,
    compute_frequency_data,
    print_summary_report,
    save_analytics_files,
    summarize_timeline,
)
from entry_store import load_entries


def main(path: str = "entries.json", tz_name: str | None = None, output_dir: str | None = None) -> None:
    """Load *path*, compute statistics and print the report.

    Exits with status 1 when the file is missing, not valid JSON, or the
    time zone is unknown.
    """
    try:
        tz = ZoneInfo(tz_name) if tz_name else None
    except (ZoneInfoNotFoundError, ValueError):
        print(f"Error: unknown time zone '{tz_name}'.", file=sys.stderr)
        sys.exit(1)

    try:
        entries = load_entries(path)
    except FileNotFoundError:
        print(f"Error: File '{path}' not found.", file=sys.stderr)
        sys.exit(1)
    except json.JSONDecodeError:
        print(f"Error: '{path}' is not a valid JSON file.", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    timeline = build_timeline(entries, tz)
    local_times = [when for when, _ in timeline]
    frequency = compute_frequency_data(local_times)
    summary = summarize_timeline(timeline, frequency)
    print_summary_report(summary, frequency)

    if output_dir:
        save_analytics_files(summary, frequency, output_dir)
        print(f"\nAnalytics data has been saved to the '{output_dir}' directory.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    parser = argparse.ArgumentParser(description="Print statistics for a logged-entries file")
    parser.add_argument("path", nargs="?", default="entries.json",
                        help="Path to the entries JSON file (default: entries.json)")
    parser.add_argument("--tz", dest="tz_name", help="IANA time zone for day/hour bucketing (default: local)")
    parser.add_argument("--save", dest="output_dir", help="Also write summary JSON and frequency CSVs to DIR")
    args = parser.parse_args()
    main(args.path, args.tz_name, args.output_dir)
