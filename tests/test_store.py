"""Tests for the JSON-array file store."""

import json
import os
import shutil
import tempfile
import threading
import unittest
from unittest import mock

import pytest

from conftest import make_entry
from jsonlog.models import FlushPolicy, LogEntry, decode_entries, read_entries
from jsonlog.store import (
    EMPTY_ARRAY,
    CouldNotCreateFileError,
    JSONArrayFileStore,
    encode_array,
    encode_entry,
)


def _read_bytes(path) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _write_entries(path, entries):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(encode_array(entries))


class TestInitialization:
    def test_fresh_file_is_empty_array(self, open_store, log_path):
        open_store()
        assert _read_bytes(log_path) == EMPTY_ARRAY == b"[]"

    def test_creates_parent_directories(self, open_store, tmp_path):
        path = str(tmp_path / "a" / "b" / "log.json")
        open_store(path=path)
        assert os.path.isfile(path)

    def test_defaults(self, open_store):
        store = open_store()
        assert store.max_entries == 2000
        assert store.flush_policy is FlushPolicy.ALWAYS
        assert store.closed is False

    def test_policy_accepts_string(self, open_store):
        store = open_store(flush_policy="manual")
        assert store.flush_policy is FlushPolicy.MANUAL

    def test_unknown_policy_rejected(self, log_path):
        with pytest.raises(ValueError):
            JSONArrayFileStore(log_path, flush_policy="sometimes")

    def test_negative_max_entries_rejected(self, log_path):
        with pytest.raises(ValueError):
            JSONArrayFileStore(log_path, max_entries=-1)

    def test_could_not_create_file(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("plain file")
        with pytest.raises(CouldNotCreateFileError) as excinfo:
            JSONArrayFileStore(str(blocker / "log.json"))
        assert isinstance(excinfo.value, OSError)
        assert excinfo.value.__cause__ is not None

    def test_zero_length_file_repaired(self, open_store, log_path):
        os.makedirs(os.path.dirname(log_path))
        open(log_path, "wb").close()
        open_store()
        assert _read_bytes(log_path) == b"[]"

    def test_one_byte_file_repaired(self, open_store, log_path):
        os.makedirs(os.path.dirname(log_path))
        with open(log_path, "wb") as f:
            f.write(b"[")
        open_store()
        assert _read_bytes(log_path) == b"[]"

    def test_trailing_newline_cut_before_append(self, open_store, log_path):
        os.makedirs(os.path.dirname(log_path))
        with open(log_path, "wb") as f:
            f.write(b"[]\n")
        store = open_store()
        store.append(make_entry("x"))
        store.drain()
        assert _read_bytes(log_path) == b"[" + encode_entry(make_entry("x")) + b"]"

    def test_pretty_printed_file_appendable(self, open_store, log_path):
        os.makedirs(os.path.dirname(log_path))
        old = make_entry("old")
        with open(log_path, "w") as f:
            json.dump([old.to_dict()], f, indent=2)
            f.write("\n\n")
        store = open_store()
        store.append(make_entry("new", offset=1))
        store.drain()
        assert read_entries(log_path) == [old, make_entry("new", offset=1)]

    def test_empty_array_with_inner_whitespace(self, open_store, log_path):
        os.makedirs(os.path.dirname(log_path))
        with open(log_path, "wb") as f:
            f.write(b"[ ]  ")
        store = open_store()
        store.append(make_entry("x"))
        store.drain()
        assert read_entries(log_path) == [make_entry("x")]

    def test_missing_closing_bracket_reset(self, open_store, log_path):
        os.makedirs(os.path.dirname(log_path))
        with open(log_path, "wb") as f:
            f.write(b'[{"date":')
        store = open_store()
        store.append(make_entry("x"))
        store.drain()
        assert read_entries(log_path) == [make_entry("x")]

    def test_existing_entries_kept(self, open_store, log_path):
        entries = [make_entry(f"old{i}", offset=i) for i in range(3)]
        _write_entries(log_path, entries)
        store = open_store()
        store.append(make_entry("new", offset=10))
        store.drain()
        assert read_entries(log_path) == entries + [make_entry("new", offset=10)]

    def test_existing_oversize_file_truncated_on_open(self, open_store, log_path):
        entries = [make_entry(f"m{i}", offset=i) for i in range(10)]
        _write_entries(log_path, entries)
        store = open_store(max_entries=4)
        store.drain()
        assert read_entries(log_path) == entries[-4:]


class TestAppend:
    def test_single_entry_fields(self, open_store, log_path):
        store = open_store()
        entry = make_entry("hello", level="error", category="Test")
        store.append(entry)
        store.drain()

        decoded = read_entries(log_path)
        assert decoded == [entry]
        assert decoded[0].level == "error"
        assert decoded[0].category == "Test"
        assert decoded[0].message == "hello"
        assert decoded[0].composed_message.endswith("] [error] [Test] hello")

    def test_entries_kept_in_append_order(self, open_store, log_path):
        store = open_store(max_entries=50)
        entries = [make_entry(f"m{i}", offset=i) for i in range(20)]
        for entry in entries:
            store.append(entry)
        store.drain()
        assert read_entries(log_path) == entries

    def test_file_is_valid_json_after_every_append(self, open_store, log_path):
        store = open_store()
        for i in range(5):
            store.append(make_entry(f"m{i}"))
            store.drain()
            assert len(json.loads(_read_bytes(log_path))) == i + 1

    def test_append_splices_without_rewrite(self, open_store, log_path):
        store = open_store()
        first = make_entry("first")
        second = make_entry("second")
        store.append(first)
        store.append(second)
        store.drain()
        assert _read_bytes(log_path) == (
            b"[" + encode_entry(first) + b"," + encode_entry(second) + b"]"
        )

    def test_non_ascii_message(self, open_store, log_path):
        store = open_store()
        entry = make_entry("naïve — 日本語")
        store.append(entry)
        store.drain()
        assert read_entries(log_path) == [entry]

    def test_unencodable_entry_dropped_silently(self, open_store, log_path):
        store = open_store()
        store.append(make_entry("\ud800"))
        store.append(make_entry("after"))
        store.drain()
        assert [e.message for e in read_entries(log_path)] == ["after"]

    def test_append_does_not_auto_truncate(self, open_store, log_path):
        store = open_store(max_entries=2)
        for i in range(5):
            store.append(make_entry(f"m{i}"))
        store.drain()
        assert len(read_entries(log_path)) == 5

    def test_entries_method(self, open_store):
        store = open_store()
        store.append(make_entry("x"))
        store.drain()
        assert store.entries() == [make_entry("x")]


class TestTruncate:
    def test_keeps_newest_entries(self, open_store, log_path):
        store = open_store(max_entries=5)
        for i in range(1, 8):
            store.append(make_entry(f"m{i}", offset=i))
        store.truncate()
        store.drain()
        assert [e.message for e in read_entries(log_path)] == ["m3", "m4", "m5", "m6", "m7"]

    def test_within_bounds_is_byte_identical(self, open_store, log_path):
        store = open_store(max_entries=5)
        for i in range(5):
            store.append(make_entry(f"m{i}", offset=i))
        store.drain()
        before = _read_bytes(log_path)
        store.truncate()
        store.drain()
        assert _read_bytes(log_path) == before

    def test_append_after_truncate(self, open_store, log_path):
        store = open_store(max_entries=2)
        for i in range(4):
            store.append(make_entry(f"m{i}", offset=i))
        store.truncate()
        store.append(make_entry("m4", offset=4))
        store.drain()
        assert [e.message for e in read_entries(log_path)] == ["m2", "m3", "m4"]

    def test_zero_max_entries_empties_file(self, open_store, log_path):
        store = open_store(max_entries=0)
        store.append(make_entry("gone"))
        store.truncate()
        store.drain()
        assert _read_bytes(log_path) == b"[]"

    def test_undecodable_file_left_untouched(self, open_store, log_path):
        os.makedirs(os.path.dirname(log_path))
        with open(log_path, "wb") as f:
            f.write(b'[{"not": "an entry"}]')
        store = open_store(max_entries=0)
        store.truncate()
        store.drain()
        assert _read_bytes(log_path) == b'[{"not": "an entry"}]'

    def test_round_trip_is_equivalent(self, open_store, log_path):
        store = open_store(max_entries=3)
        for i in range(6):
            store.append(make_entry(f"m{i}", offset=i))
        store.truncate()
        store.drain()
        decoded = read_entries(log_path)
        assert decode_entries(encode_array(decoded)) == decoded


class TestClear:
    def test_clear_empties_file(self, open_store, log_path):
        store = open_store()
        store.append(make_entry("a"))
        store.append(make_entry("b"))
        store.clear()
        store.drain()
        assert read_entries(log_path) == []

    def test_clear_matches_fresh_file(self, open_store, tmp_path, log_path):
        fresh_path = str(tmp_path / "fresh.json")
        open_store(path=fresh_path)
        store = open_store()
        store.append(make_entry("a"))
        store.clear()
        store.drain()
        assert _read_bytes(log_path) == _read_bytes(fresh_path)

    def test_append_after_clear_has_no_leading_comma(self, open_store, log_path):
        store = open_store()
        store.append(make_entry("a"))
        store.clear()
        store.append(make_entry("b"))
        store.drain()
        assert _read_bytes(log_path) == b"[" + encode_entry(make_entry("b")) + b"]"


class TestFlushAndClose:
    def test_always_policy_syncs_each_append(self, open_store):
        store = open_store(flush_policy=FlushPolicy.ALWAYS)
        store.drain()
        with mock.patch("os.fsync") as fsync:
            for i in range(3):
                store.append(make_entry(f"m{i}"))
            store.drain()
        assert fsync.call_count == 3

    def test_manual_policy_skips_sync_but_data_visible(self, open_store, log_path):
        store = open_store(flush_policy=FlushPolicy.MANUAL)
        store.drain()
        with mock.patch("os.fsync") as fsync:
            store.append(make_entry("m"))
            store.drain()
            assert fsync.call_count == 0
            store.flush(wait=True)
            assert fsync.call_count == 1
        assert read_entries(log_path) == [make_entry("m")]

    def test_close_runs_pending_tasks(self, log_path):
        store = JSONArrayFileStore(log_path)
        for i in range(10):
            store.append(make_entry(f"m{i}", offset=i))
        store.close()
        assert store.closed is True
        assert len(read_entries(log_path)) == 10

    def test_operations_after_close_are_noops(self, log_path):
        store = JSONArrayFileStore(log_path)
        store.close()
        store.append(make_entry("late"))
        store.clear()
        store.truncate()
        store.flush(wait=True)
        store.close()
        assert _read_bytes(log_path) == b"[]"

    def test_context_manager(self, log_path):
        with JSONArrayFileStore(log_path) as store:
            store.append(make_entry("inside"))
        assert store.closed
        assert read_entries(log_path) == [make_entry("inside")]

    def test_reopen_appends_to_existing(self, log_path):
        with JSONArrayFileStore(log_path) as store:
            store.append(make_entry("one"))
        with JSONArrayFileStore(log_path) as store:
            store.append(make_entry("two"))
        assert [e.message for e in read_entries(log_path)] == ["one", "two"]


class TestConcurrentAppends(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.path = os.path.join(self.tmpdir, "concurrent.json")

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_concurrent_appends(self):
        store = JSONArrayFileStore(self.path, max_entries=10000, flush_policy="manual")
        num_threads = 8
        appends_per_thread = 50
        errors = []

        def worker(thread_id):
            try:
                for i in range(appends_per_thread):
                    store.append(make_entry(f"thread-{thread_id}-msg-{i}", category=f"t{thread_id}"))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(t,)) for t in range(num_threads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        store.close()

        self.assertEqual(errors, [])
        entries = read_entries(self.path)
        self.assertEqual(len(entries), num_threads * appends_per_thread)
        expected = {
            f"thread-{t}-msg-{i}" for t in range(num_threads) for i in range(appends_per_thread)
        }
        self.assertEqual({e.message for e in entries}, expected)

        # Per-thread order is preserved within the interleaving.
        for t in range(num_threads):
            own = [e.message for e in entries if e.category == f"t{t}"]
            self.assertEqual(own, [f"thread-{t}-msg-{i}" for i in range(appends_per_thread)])

    def test_concurrent_appends_with_clear_and_truncate(self):
        store = JSONArrayFileStore(self.path, max_entries=5, flush_policy="manual")
        barrier = threading.Barrier(4)

        def appender(thread_id):
            barrier.wait()
            for i in range(30):
                store.append(make_entry(f"{thread_id}-{i}"))

        def maintainer():
            barrier.wait()
            for _ in range(10):
                store.truncate()
                store.clear()

        threads = [threading.Thread(target=appender, args=(t,)) for t in range(3)]
        threads.append(threading.Thread(target=maintainer))
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        store.close()

        decoded = json.loads(_read_bytes(self.path))
        self.assertIsInstance(decoded, list)
        for item in decoded:
            LogEntry.from_dict(item)


if __name__ == "__main__":
    unittest.main()
