"""entry_log.py

Log, list, delete, export and import entries in an entries JSON file.

Examples:
    python entry_log.py add --solo
    python entry_log.py add --date 2024-03-10T22:15:00+01:00
    python entry_log.py list --limit 5
    python entry_log.py delete 1710105300000
    python entry_log.py export entries_export.json
    python entry_log.py clear --yes
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys

from analytics import entry_instant, parse_timestamp
from entry_store import (
    add_entry,
    clear_entries,
    delete_entry,
    export_entries,
    import_entries,
    load_entries,
    new_entry,
)

DEFAULT_FILE = os.environ.get("ENTRY_STATS_FILE", "entries.json")


def _format_entry(entry) -> str:
    """One list line: local date/time in 12-hour form plus a solo marker."""
    try:
        when = parse_timestamp(entry.timestamp).strftime("%Y-%m-%d %I:%M %p")
    except ValueError:
        when = f"<invalid: {entry.timestamp}>"
    solo = "  Solo" if entry.solo else ""
    return f"{entry.id:<15} {when}{solo}"


def _cmd_add(args: argparse.Namespace) -> None:
    when = parse_timestamp(args.date) if args.date else None
    entry = new_entry(when, solo=args.solo)
    add_entry(args.file, entry)
    print(f"Logged entry {entry.id} at {entry.timestamp}")


def _cmd_list(args: argparse.Namespace) -> None:
    entries = load_entries(args.file)
    entries.sort(key=entry_instant, reverse=True)
    if args.limit:
        entries = entries[: args.limit]
    if not entries:
        print("No entries found.")
        return
    for entry in entries:
        print(_format_entry(entry))


def _cmd_delete(args: argparse.Namespace) -> None:
    try:
        delete_entry(args.file, args.entry_id)
    except KeyError:
        raise ValueError(f"no entry with id '{args.entry_id}'")
    print(f"Deleted entry {args.entry_id}")


def _cmd_clear(args: argparse.Namespace) -> None:
    if not args.yes:
        answer = input(f"Remove all entries from {args.file}? This cannot be undone. [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Cancelled.")
            return
    removed = clear_entries(args.file)
    print(f"Cleared {removed} entries from {args.file}")


def _cmd_export(args: argparse.Namespace) -> None:
    count = export_entries(args.file, args.output)
    print(f"Exported {count} entries to {args.output}")


def _cmd_import(args: argparse.Namespace) -> None:
    count = import_entries(args.file, args.source)
    print(f"Imported {count} entries into {args.file}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Log and manage entries")
    parser.add_argument("--file", "-f", default=DEFAULT_FILE,
                        help=f"Path to the entries JSON file (default: {DEFAULT_FILE})")
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Log a new entry")
    add.add_argument("--date", "-d", help="ISO-8601 timestamp (default: now)")
    add.add_argument("--solo", "-s", action="store_true", help="Mark the entry as solo")
    add.set_defaults(func=_cmd_add)

    lst = sub.add_parser("list", help="List entries, newest first")
    lst.add_argument("--limit", "-n", type=int, default=0, help="Show at most N entries")
    lst.set_defaults(func=_cmd_list)

    delete = sub.add_parser("delete", help="Delete an entry by id")
    delete.add_argument("entry_id")
    delete.set_defaults(func=_cmd_delete)

    clear = sub.add_parser("clear", help="Delete every entry")
    clear.add_argument("--yes", "-y", action="store_true", help="Skip the confirmation prompt")
    clear.set_defaults(func=_cmd_clear)

    export = sub.add_parser("export", help="Write a storage dump for the app's import")
    export.add_argument("output")
    export.set_defaults(func=_cmd_export)

    imp = sub.add_parser("import", help="Replace all entries with those from a dump or list")
    imp.add_argument("source")
    imp.set_defaults(func=_cmd_import)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Exits with status 1 on missing or corrupt files."""
    args = build_parser().parse_args(argv)
    try:
        args.func(args)
    except FileNotFoundError as e:
        print(f"Error: File '{e.filename}' not found.", file=sys.stderr)
        sys.exit(1)
    except json.JSONDecodeError as e:
        print(f"Error: not a valid JSON file ({e}).", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    main()
