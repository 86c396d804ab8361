import logging
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from jsonlog.models import LogEntry
from jsonlog.store import JSONArrayFileStore

BASE_TIME = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_entry(message: str, level: str = "info", category: str = "Test", offset: int = 0) -> LogEntry:
    return LogEntry(
        date=BASE_TIME + timedelta(seconds=offset),
        level=level,
        category=category,
        message=message,
    )


@pytest.fixture
def log_path(tmp_path):
    return str(tmp_path / "logs" / "app.json")


@pytest.fixture
def open_store(log_path):
    """Factory for stores on log_path; every store is closed at teardown."""
    stores = []

    def _open(**kwargs):
        store = JSONArrayFileStore(kwargs.pop("path", log_path), **kwargs)
        stores.append(store)
        return store

    yield _open
    for store in stores:
        store.close()


@pytest.fixture
def isolated_logger():
    """A fresh, non-propagating logger; its handlers are removed at teardown."""
    log = logging.getLogger(f"jsonlog-test-{uuid.uuid4().hex[:8]}")
    log.setLevel(logging.DEBUG)
    log.propagate = False
    yield log
    for handler in list(log.handlers):
        log.removeHandler(handler)
