"""
tests/test_cursor_store.py
Durable watermark: load / atomic save / baseline.
"""

import os
from unittest.mock import patch

import pytest

from watcher.errors import StoreUnavailable
from watcher.state.cursor_store import CursorStore

from conftest import FakeReader, make_msg


def test_missing_file_is_uninitialized(tmp_path):
    assert CursorStore(tmp_path / "state").load() is None


def test_save_then_load(tmp_path):
    store = CursorStore(tmp_path / "state")
    store.save(12345)
    assert (tmp_path / "state").read_text() == "12345"
    assert CursorStore(tmp_path / "state").load() == 12345


def test_garbage_file_is_uninitialized(tmp_path):
    (tmp_path / "state").write_text("not-a-number")
    assert CursorStore(tmp_path / "state").load() is None


def test_save_creates_parent_dirs(tmp_path):
    store = CursorStore(tmp_path / "a" / "b" / "state")
    store.save(7)
    assert store.load() == 7


def test_failed_write_keeps_old_value_and_no_temp_files(tmp_path):
    store = CursorStore(tmp_path / "state")
    store.save(10)
    with patch("watcher.state.cursor_store.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            store.save(20)
    assert store.load() == 10
    assert os.listdir(tmp_path) == ["state"]


def test_baseline_uses_store_max(tmp_path):
    store  = CursorStore(tmp_path / "state")
    reader = FakeReader([make_msg(3), make_msg(42)])
    assert store.baseline(reader) == 42
    assert store.load() == 42


def test_baseline_empty_store_is_zero(tmp_path):
    store = CursorStore(tmp_path / "state")
    assert store.baseline(FakeReader()) == 0
    assert store.load() == 0


def test_baseline_store_unavailable_writes_nothing(tmp_path):
    store  = CursorStore(tmp_path / "state")
    reader = FakeReader()
    reader.error = StoreUnavailable("no access")
    with pytest.raises(StoreUnavailable):
        store.baseline(reader)
    assert store.load() is None
