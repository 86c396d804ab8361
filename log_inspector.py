"""CLI log inspector: show, search, summarize, validate, clear, and truncate a JSON log file."""

import argparse
import os
import sys

from jsonlog.config import load_config, load_yaml_config
from jsonlog.inspector import (
    compute_stats,
    filter_entries,
    format_stats_text,
    load_entries,
    tail,
    validate_file,
)
from jsonlog.store import JSONArrayFileStore
from jsonlog.validator import LogEntryValidator


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect a JSON-array log file")
    parser.add_argument("--file", default=None,
                        help="Log file (default: $LOG_FILE or the config's log_file)")
    parser.add_argument("--config", default=None, help="Path to YAML config file")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--show", action="store_true", help="Print entries")
    group.add_argument("--search", metavar="TEXT", help="Print entries whose message contains TEXT")
    group.add_argument("--stats", action="store_true", help="Summarize levels and categories")
    group.add_argument("--validate", action="store_true", help="Schema-check every element")
    group.add_argument("--clear", action="store_true", help="Reset the file to an empty array")
    group.add_argument("--truncate", action="store_true", help="Keep only the newest --max-entries")
    parser.add_argument("--level", help="Only entries with this level")
    parser.add_argument("--category", help="Only entries with this category")
    parser.add_argument("--tail", type=int, metavar="N", help="Only the last N matching entries")
    parser.add_argument("--max-entries", type=int, default=None,
                        help="Entry limit for --truncate (default: config max_entries)")
    return parser


def main(argv=None) -> int:
    args = build_cli_parser().parse_args(argv)
    config = load_config(load_yaml_config(args.config))
    path = args.file or config.log_file

    if args.clear or args.truncate:
        if not os.path.isfile(path):
            print(f"Error: File not found: {path}", file=sys.stderr)
            return 1
        max_entries = args.max_entries if args.max_entries is not None else config.max_entries
        # Opening the store already runs a truncation check against max_entries.
        with JSONArrayFileStore(path, max_entries=max_entries) as store:
            if args.clear:
                store.clear()
        print("Cleared." if args.clear else f"Truncated to at most {max_entries} entries.")
        return 0

    if args.validate:
        validator = LogEntryValidator()
        try:
            failures = validate_file(path, validator)
        except (OSError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        stats = validator.get_stats()
        print(f"Checked {stats['total']} entries: {stats['valid']} valid, {stats['invalid']} invalid")
        for index, errors in failures:
            print(f"  [{index}] {'; '.join(errors)}")
        for keyword, count in sorted(stats["error_types"].items()):
            print(f"  {keyword}: {count}")
        return 1 if failures else 0

    try:
        entries = load_entries(path)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.stats:
        print(format_stats_text(compute_stats(entries)))
        return 0

    selected = filter_entries(entries, level=args.level, category=args.category, text=args.search)
    selected = tail(selected, args.tail)
    if args.search and not selected:
        print(f"No matches found for '{args.search}'.")
        return 0
    for entry in selected:
        print(entry.composed_message)
    return 0


if __name__ == "__main__":
    sys.exit(main())
