"""Log entry model, flush policy, and whole-file decoding."""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

REQUIRED_FIELDS = ("date", "level", "category", "message")


class FlushPolicy(Enum):
    ALWAYS = "always"   # fsync after every mutation
    MANUAL = "manual"   # leave durable sync to the OS


def format_timestamp(value: datetime) -> str:
    """Render a datetime as ISO-8601 with microseconds and a UTC offset."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat(timespec="microseconds")


def parse_timestamp(raw) -> datetime:
    """Parse an ISO-8601 string or seconds-since-epoch number into an aware datetime."""
    if isinstance(raw, bool):
        raise ValueError(f"Invalid timestamp: {raw!r}")
    if isinstance(raw, (int, float)):
        try:
            return datetime.fromtimestamp(raw, tz=timezone.utc)
        except (OverflowError, OSError) as exc:
            raise ValueError(f"Invalid timestamp: {raw!r}") from exc
    if not isinstance(raw, str):
        raise ValueError(f"Invalid timestamp: {raw!r}")
    value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class LogEntry:
    date: datetime
    level: str
    category: str
    message: str

    @property
    def composed_message(self) -> str:
        return f"[{format_timestamp(self.date)}] [{self.level}] [{self.category}] {self.message}"

    def to_dict(self) -> dict:
        return {
            "date": format_timestamp(self.date),
            "level": self.level,
            "category": self.category,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LogEntry":
        """Build an entry from its JSON object form.

        Raises ValueError when a field is missing or has the wrong type.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
        missing = [name for name in REQUIRED_FIELDS if name not in data]
        if missing:
            raise ValueError(f"Missing field(s): {', '.join(missing)}")
        for name in ("level", "category", "message"):
            if not isinstance(data[name], str):
                raise ValueError(f"Field {name!r} must be a string")
        return cls(
            date=parse_timestamp(data["date"]),
            level=data["level"],
            category=data["category"],
            message=data["message"],
        )


def create_log_entry(
    level: str,
    category: str,
    message: str,
    date: datetime | None = None,
) -> LogEntry:
    """Factory function that stamps the entry with the current UTC time by default."""
    return LogEntry(
        date=date if date is not None else datetime.now(timezone.utc),
        level=level,
        category=category,
        message=message,
    )


def decode_entries(payload: bytes | str) -> list[LogEntry]:
    """Decode a JSON array payload into entries. Raises ValueError on bad input."""
    data = json.loads(payload)
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array, got {type(data).__name__}")
    return [LogEntry.from_dict(item) for item in data]


def read_entries(path: str) -> list[LogEntry]:
    """Read and decode every entry in a log file, oldest first."""
    with open(path, "rb") as f:
        return decode_entries(f.read())
