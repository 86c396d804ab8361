"""Bounded JSON-array log file with a single writer thread."""

import json
import os
import queue
import threading

from jsonlog.models import FlushPolicy, LogEntry, decode_entries, read_entries

EMPTY_ARRAY = json.dumps([]).encode("utf-8")

# Insignificant whitespace in JSON text.
_WHITESPACE = b" \t\r\n"
_SCAN_CHUNK = 4096

_STOP = object()


class CouldNotCreateFileError(OSError):
    """Raised when the backing log file cannot be created."""


def encode_entry(entry: LogEntry) -> bytes:
    """Compact UTF-8 JSON object form of one entry."""
    return json.dumps(
        entry.to_dict(), ensure_ascii=False, separators=(",", ":")
    ).encode("utf-8")


def encode_array(entries) -> bytes:
    """Encode entries as a JSON array, element by element like append does."""
    return b"[" + b",".join(encode_entry(e) for e in entries) + b"]"


class JSONArrayFileStore:
    """Keeps a single file whose whole contents are a JSON array of entries.

    Appends splice the new object in front of the closing bracket instead
    of rewriting the file. Every mutation (append, clear, truncate, flush,
    close) is queued for one writer thread, so mutations run in submission
    order and never interleave their writes. Mutations are fire-and-forget:
    encode and I/O failures are swallowed and never reach the caller.
    """

    def __init__(self, path, max_entries: int = 2000, flush_policy=FlushPolicy.ALWAYS):
        if max_entries < 0:
            raise ValueError(f"max_entries must be >= 0, got {max_entries}")
        self.path = os.fspath(path)
        self.max_entries = max_entries
        self.flush_policy = FlushPolicy(flush_policy)
        self._queue: queue.Queue = queue.Queue()
        self._state_lock = threading.Lock()
        self._closed = False
        self._empty = True

        if not os.path.exists(self.path):
            self._create()

        self._file = open(self.path, "r+b")
        try:
            self._repair()
            self._seek_before_end()
        except OSError:
            self._file.close()
            raise

        self._worker = threading.Thread(
            target=self._run,
            name=f"jsonlog-writer-{os.path.basename(self.path)}",
            daemon=True,
        )
        self._worker.start()
        self.truncate()

    def _create(self):
        try:
            parent = os.path.dirname(self.path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(self.path, "wb") as f:
                f.write(EMPTY_ARRAY)
        except OSError as exc:
            raise CouldNotCreateFileError(f"Could not create log file: {self.path}") from exc

    # ------------------------------------------------------------------
    # Writer thread
    # ------------------------------------------------------------------

    def _run(self):
        while True:
            task = self._queue.get()
            try:
                if task is _STOP:
                    return
                task()
            except Exception:
                # Dropped; the writer keeps serving later tasks.
                pass
            finally:
                self._queue.task_done()

    def _submit(self, task) -> bool:
        with self._state_lock:
            if self._closed:
                return False
            self._queue.put(task)
            return True

    # ------------------------------------------------------------------
    # Tasks (only ever run on the writer thread, or before it starts)
    # ------------------------------------------------------------------

    def _seek_before_end(self) -> int:
        return self._file.seek(-1, os.SEEK_END)

    def _last_significant(self, end: int) -> tuple[int, bytes]:
        """Offset and value of the last non-whitespace byte before ``end``."""
        while end > 0:
            start = max(0, end - _SCAN_CHUNK)
            self._file.seek(start)
            chunk = self._file.read(end - start).rstrip(_WHITESPACE)
            if chunk:
                return start + len(chunk) - 1, chunk[-1:]
            end = start
        return -1, b""

    def _repair(self):
        """Make the file end exactly at its closing bracket.

        Trailing whitespace after the bracket is cut off. A file with no
        closing bracket (empty, cut short by a crash) starts over as an
        empty array.
        """
        close, last = self._last_significant(self._file.seek(0, os.SEEK_END))
        before = self._last_significant(close)[1] if last == b"]" else b""
        if not before:
            self._reset()
            return
        self._file.truncate(close + 1)
        self._empty = before == b"["

    def _reset(self):
        self._file.seek(0)
        self._file.truncate()
        self._file.write(EMPTY_ARRAY)
        self._seek_before_end()
        self._file.flush()
        self._empty = True

    def _sync(self):
        try:
            self._file.flush()
            os.fsync(self._file.fileno())
        except (OSError, ValueError):
            pass

    def _sync_if_always(self):
        if self.flush_policy is FlushPolicy.ALWAYS:
            self._sync()

    def _append(self, payload: bytes):
        try:
            self._seek_before_end()
            separator = b"" if self._empty else b","
            self._file.write(separator + payload + b"]")
            self._empty = False
            self._seek_before_end()
            self._file.flush()
        finally:
            self._sync_if_always()

    def _clear(self):
        try:
            self._reset()
        finally:
            self._sync_if_always()

    def _truncate(self):
        self._file.seek(0)
        try:
            entries = decode_entries(self._file.read())
        except ValueError:
            self._seek_before_end()
            return

        excess = len(entries) - self.max_entries
        if excess <= 0:
            self._seek_before_end()
            return

        try:
            self._file.seek(0)
            self._file.truncate()
            kept = entries[excess:]
            self._file.write(encode_array(kept))
            self._empty = not kept
            self._seek_before_end()
            self._file.flush()
        finally:
            self._sync_if_always()

    def _release(self):
        self._sync()
        self._file.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def append(self, entry: LogEntry):
        """Queue an entry for appending. Returns immediately."""
        try:
            payload = encode_entry(entry)
        except (AttributeError, TypeError, ValueError):
            return
        self._submit(lambda: self._append(payload))

    def clear(self):
        """Queue a reset of the file to an empty array."""
        self._submit(self._clear)

    def truncate(self):
        """Queue a check that drops the oldest entries beyond max_entries."""
        self._submit(self._truncate)

    def flush(self, wait: bool = False):
        """Queue a durable sync; with wait=True block until it has run."""
        if self._submit(self._sync) and wait:
            self.drain()

    def drain(self):
        """Block until every task queued so far has run."""
        self._queue.join()

    def entries(self) -> list[LogEntry]:
        """Decode the file as it is now, without waiting for queued tasks."""
        return read_entries(self.path)

    def close(self):
        """Sync and release the file after every queued task has run."""
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(self._release)
            self._queue.put(_STOP)
        if threading.current_thread() is not self._worker:
            self._worker.join()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
