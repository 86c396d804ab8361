"""logging.Handler that turns log records into entries of a JSON-array store."""

import logging
from datetime import datetime, timezone
from typing import Any

from jsonlog.models import LogEntry
from jsonlog.store import JSONArrayFileStore

_traceback_formatter = logging.Formatter()


def _render_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_render_value(v) for v in value) + "]"
    if isinstance(value, dict):
        return "[" + ", ".join(f"{k}: {_render_value(v)}" for k, v in value.items()) + "]"
    return str(value)


def render_metadata(metadata: dict[str, Any] | None) -> str | None:
    """Render metadata as space-joined key=value pairs, or None when empty."""
    if not metadata:
        return None
    return " ".join(f"{key}={_render_value(value)}" for key, value in metadata.items())


class JSONLogHandler(logging.Handler):
    """Writes each record that passes the handler level to a JSONArrayFileStore.

    The entry message is the rendered metadata (handler defaults merged with
    ``extra={"metadata": {...}}`` of the call, call values winning) followed
    by the formatted record message. ``label`` becomes the entry category;
    when it is None the emitting logger's name is used.
    """

    def __init__(
        self,
        label: str | None,
        store: JSONArrayFileStore,
        level: int = logging.INFO,
        owns_store: bool = False,
    ):
        super().__init__(level)
        self.label = label
        self.store = store
        self.owns_store = owns_store
        self.metadata: dict[str, Any] = {}

    def __getitem__(self, key: str) -> Any:
        with self.lock:
            return self.metadata[key]

    def __setitem__(self, key: str, value: Any):
        with self.lock:
            self.metadata[key] = value

    def __delitem__(self, key: str):
        with self.lock:
            del self.metadata[key]

    def to_entry(self, record: logging.LogRecord) -> LogEntry:
        with self.lock:
            metadata = dict(self.metadata)
        call_metadata = getattr(record, "metadata", None)
        if call_metadata:
            metadata.update(call_metadata)

        message = record.getMessage()
        prefix = render_metadata(metadata)
        if prefix is not None:
            message = f"{prefix} {message}"
        if record.exc_info:
            message = f"{message}\n{_traceback_formatter.formatException(record.exc_info)}"

        return LogEntry(
            date=datetime.fromtimestamp(record.created, tz=timezone.utc),
            level=record.levelname.lower(),
            category=self.label if self.label is not None else record.name,
            message=message,
        )

    def emit(self, record: logging.LogRecord):
        try:
            entry = self.to_entry(record)
        except Exception:
            self.handleError(record)
            return
        self.store.append(entry)

    def clear(self):
        self.store.clear()

    def truncate(self):
        self.store.truncate()

    def flush(self):
        self.store.flush(wait=True)

    def close(self):
        if self.owns_store:
            self.store.close()
        super().close()
