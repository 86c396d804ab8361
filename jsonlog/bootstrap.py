"""Wiring between a JSON-array store, its handlers, and stdlib loggers."""

import logging
import os
import sys
import threading

from jsonlog.config import Config
from jsonlog.handler import JSONLogHandler
from jsonlog.models import FlushPolicy
from jsonlog.store import JSONArrayFileStore

logger = logging.getLogger(__name__)

CONSOLE_FORMAT = "%(asctime)s [jsonlog] %(levelname)s %(message)s"


class JSONLogging:
    """Owns one store and hands out handlers/loggers bound to it."""

    def __init__(self, path, max_entries: int = 2000, flush_policy=FlushPolicy.ALWAYS):
        self.store = JSONArrayFileStore(path, max_entries=max_entries, flush_policy=flush_policy)
        self.path = self.store.path
        self._attached: list[tuple[logging.Logger, JSONLogHandler]] = []
        self._lock = threading.Lock()
        logger.debug("Opened JSON log %s (max_entries=%d, flush=%s)",
                     self.path, max_entries, self.store.flush_policy.value)

    @classmethod
    def from_config(cls, config: Config) -> "JSONLogging":
        return cls(config.log_file, max_entries=config.max_entries,
                   flush_policy=config.flush_policy)

    def handler(self, label: str | None = None, level: int = logging.INFO) -> JSONLogHandler:
        return JSONLogHandler(label, self.store, level=level)

    def logger(self, label: str, level: int = logging.INFO) -> logging.Logger:
        """Return ``logging.getLogger(label)`` with one handler bound to this store."""
        target = logging.getLogger(label)
        with self._lock:
            for attached_logger, handler in self._attached:
                if attached_logger is target:
                    handler.setLevel(level)
                    break
            else:
                handler = self.handler(label, level)
                target.addHandler(handler)
                self._attached.append((target, handler))
        if target.level == logging.NOTSET or target.level > level:
            target.setLevel(level)
        return target

    def clear(self):
        self.store.clear()

    def truncate(self):
        self.store.truncate()

    def close(self):
        """Detach every handler this instance attached, then close the store."""
        with self._lock:
            attached, self._attached = self._attached, []
        for attached_logger, handler in attached:
            attached_logger.removeHandler(handler)
            handler.close()
        self.store.close()
        logger.debug("Closed JSON log %s", self.path)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


def get_file_logger(label: str, path, max_entries: int = 2000,
                    level: int = logging.INFO) -> logging.Logger:
    """Logger whose handler owns a store of its own.

    The store is closed when the handler is closed, including by
    ``logging.shutdown()`` at interpreter exit. Calling this again for the
    same label and path reuses the handler already attached. Raises
    ValueError if that logger already writes to the path through a store
    it does not own.
    """
    target = logging.getLogger(label)
    wanted = os.path.abspath(os.fspath(path))
    for existing in target.handlers:
        if not isinstance(existing, JSONLogHandler):
            continue
        if os.path.abspath(existing.store.path) != wanted:
            continue
        if not existing.owns_store:
            raise ValueError(f"Logger {label!r} already writes to {wanted} through a shared store")
        existing.setLevel(level)
        break
    else:
        store = JSONArrayFileStore(path, max_entries=max_entries)
        target.addHandler(JSONLogHandler(label, store, level=level, owns_store=True))
    if target.level == logging.NOTSET or target.level > level:
        target.setLevel(level)
    return target


# ----------------------------------------------------------------------
# Process-wide convenience: explicit bootstrap, explicit shutdown
# ----------------------------------------------------------------------

_bootstrap_lock = threading.Lock()
_active: JSONLogging | None = None
_root_handlers: list[logging.Handler] = []


def bootstrap(path, max_entries: int = 2000, flush_policy=FlushPolicy.ALWAYS,
              level: int = logging.INFO, console: bool = False) -> JSONLogging:
    """Attach a JSON-array handler (and optionally stderr) to the root logger.

    Raises RuntimeError if already bootstrapped; call shutdown() first.
    """
    global _active
    with _bootstrap_lock:
        if _active is not None:
            raise RuntimeError(f"JSON logging already bootstrapped to {_active.path}")
        active = JSONLogging(path, max_entries=max_entries, flush_policy=flush_policy)
        handlers: list[logging.Handler] = [active.handler(None, level)]
        if console:
            stream_handler = logging.StreamHandler(sys.stderr)
            stream_handler.setLevel(level)
            stream_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
            handlers.append(stream_handler)

        root = logging.getLogger()
        for handler in handlers:
            root.addHandler(handler)
        root.setLevel(level)

        _root_handlers[:] = handlers
        _active = active
    logger.debug("JSON logging bootstrapped to %s", active.path)
    return active


def shutdown():
    """Detach the root handlers and close the active store. No-op if inactive."""
    global _active
    with _bootstrap_lock:
        if _active is None:
            return
        root = logging.getLogger()
        for handler in _root_handlers:
            root.removeHandler(handler)
            handler.close()
        _root_handlers.clear()
        _active.close()
        _active = None


def get_active() -> JSONLogging:
    with _bootstrap_lock:
        if _active is None:
            raise RuntimeError("JSON logging is not bootstrapped")
        return _active
