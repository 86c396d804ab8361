"""Inspector logic: read, filter, search, and summarize a JSON-array log file."""

import json
import os
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from jsonlog.models import LogEntry, format_timestamp, read_entries
from jsonlog.validator import LogEntryValidator


@dataclass
class EntryStats:
    total_entries: int = 0
    level_counts: dict[str, int] = field(default_factory=dict)
    category_counts: dict[str, int] = field(default_factory=dict)
    first: datetime | None = None
    last: datetime | None = None


def load_entries(path: str) -> list[LogEntry]:
    """Read a log file. Raises FileNotFoundError or ValueError."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"File not found: {path}")
    return read_entries(path)


def load_raw_elements(path: str) -> list:
    """Read the file as plain JSON, without building entries."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"File not found: {path}")
    with open(path, "rb") as f:
        data = json.loads(f.read())
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array in {path}")
    return data


def filter_entries(
    entries: Iterable[LogEntry],
    level: str | None = None,
    category: str | None = None,
    text: str | None = None,
) -> list[LogEntry]:
    """Keep entries matching every given criterion (case-insensitive)."""
    result = []
    for entry in entries:
        if level and entry.level.lower() != level.lower():
            continue
        if category and entry.category.lower() != category.lower():
            continue
        if text and text.lower() not in entry.message.lower():
            continue
        result.append(entry)
    return result


def tail(entries: list[LogEntry], count: int | None) -> list[LogEntry]:
    """Last *count* entries; all of them when count is None."""
    if count is None:
        return list(entries)
    if count <= 0:
        return []
    return entries[-count:]


def compute_stats(entries: Iterable[LogEntry]) -> EntryStats:
    level_counter = Counter()
    category_counter = Counter()
    first = last = None
    total = 0

    for entry in entries:
        total += 1
        level_counter[entry.level] += 1
        category_counter[entry.category] += 1
        if first is None or entry.date < first:
            first = entry.date
        if last is None or entry.date > last:
            last = entry.date

    return EntryStats(
        total_entries=total,
        level_counts=dict(level_counter.most_common()),
        category_counts=dict(category_counter.most_common()),
        first=first,
        last=last,
    )


def format_stats_text(stats: EntryStats) -> str:
    lines = [f"Total entries: {stats.total_entries}"]
    if stats.first is not None:
        lines.append(f"First: {format_timestamp(stats.first)}")
        lines.append(f"Last:  {format_timestamp(stats.last)}")
    lines.append("")

    lines.append("Level counts:")
    for level, count in stats.level_counts.items():
        lines.append(f"  {level:10s} {count}")
    lines.append("")

    lines.append("Category counts:")
    for category, count in stats.category_counts.items():
        lines.append(f"  {category:20s} {count}")

    return "\n".join(lines)


def validate_file(path: str, validator: LogEntryValidator | None = None) -> list[tuple[int, list[str]]]:
    """Schema-check every element of the file. Returns (index, errors) for invalid ones."""
    validator = validator or LogEntryValidator()
    return validator.validate_array(load_raw_elements(path))
