"""
tests/test_config.py
watcher_config.json loading and WatcherConfig validation.
"""

import json

import pytest

from watcher.config import (
    CONFIG_FILENAME,
    DEFAULT_CONFIG,
    MIN_POLL_INTERVAL,
    WatcherConfig,
    clean_phone,
    ensure_config,
    load_config,
    save_config,
)


@pytest.mark.parametrize("raw,expected", [
    ("5551234567",       "5551234567"),
    ("(555) 123-4567",   "5551234567"),
    ("555.123.4567",     "5551234567"),
    ("+1 555 123 4567",  None),
    ("12345",            None),
    ("",                 None),
])
def test_clean_phone(raw, expected):
    assert clean_phone(raw) == expected


def test_missing_file_gives_defaults(tmp_path):
    assert load_config(tmp_path) == DEFAULT_CONFIG


def test_corrupt_file_gives_defaults(tmp_path):
    (tmp_path / CONFIG_FILENAME).write_text("{not json")
    assert load_config(tmp_path) == DEFAULT_CONFIG


def test_save_and_reload(tmp_path):
    save_config({**DEFAULT_CONFIG, "contact_phone": "5551234567", "use_ntfy": True}, tmp_path)
    config = ensure_config(tmp_path)
    assert config.contact_phone == "5551234567"
    assert config.use_ntfy is True
    assert config.has_contact


def test_partial_file_merged_with_defaults(tmp_path):
    (tmp_path / CONFIG_FILENAME).write_text(json.dumps({"ollama_model": "llama3"}))
    config = ensure_config(tmp_path)
    assert config.ollama_model == "llama3"
    assert config.poll_interval == DEFAULT_CONFIG["poll_interval"]
    assert not config.has_contact


def test_formatted_phone_is_normalized():
    assert WatcherConfig.from_dict({"contact_phone": "(555) 123-4567"}).contact_phone == "5551234567"


def test_invalid_phone_dropped():
    assert WatcherConfig.from_dict({"contact_phone": "555-1234"}).contact_phone == ""


def test_poll_interval_clamped():
    assert WatcherConfig.from_dict({"poll_interval": 2}).poll_interval == MIN_POLL_INTERVAL
    assert WatcherConfig.from_dict({"poll_interval": "abc"}).poll_interval == 60.0
    assert WatcherConfig.from_dict({"poll_interval": 300}).poll_interval == 300.0


def test_bad_ints_fall_back_to_defaults():
    config = WatcherConfig.from_dict({"context_count": "many", "history_size": -3})
    assert config.context_count == DEFAULT_CONFIG["context_count"]
    assert config.history_size == 0


def test_unknown_keys_ignored():
    config = WatcherConfig.from_dict({"legacy_option": 1, "use_calendar": 0})
    assert config.use_calendar is False
    assert "legacy_option" not in config.to_dict()


def test_paths_expand_user():
    config = WatcherConfig.from_dict({})
    assert "~" not in str(config.chat_db)
    assert config.chat_db.name == "chat.db"
    assert "~" not in str(config.state_path)


def test_with_updates_revalidates():
    base    = WatcherConfig.from_dict({"contact_phone": "5551234567"})
    updated = base.with_updates(poll_interval=1, ntfy_topic="fam")
    assert updated.poll_interval == MIN_POLL_INTERVAL
    assert updated.ntfy_topic == "fam"
    assert base.ntfy_topic == ""


def test_llm_timeout_never_zero():
    assert WatcherConfig.from_dict({"llm_timeout_sec": 0}).llm_timeout_sec == 1
    assert WatcherConfig.from_dict({"llm_timeout_sec": 30}).llm_timeout_sec == 30


@pytest.mark.parametrize("raw,expected", [
    ("false", False),
    ("False", False),
    ("no",    False),
    ("0",     False),
    ("true",  True),
    ("yes",   True),
    (1,       True),
    (False,   False),
    ("maybe", DEFAULT_CONFIG["use_ntfy"]),
])
def test_string_booleans(raw, expected):
    assert WatcherConfig.from_dict({"use_ntfy": raw}).use_ntfy is expected
