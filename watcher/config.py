"""
watcher/config.py
JSON config with defaults. Persists to watcher_config.json.
load_config() gives the raw dict; WatcherConfig.from_dict() turns it into
the explicit, immutable settings object handed to the orchestrator.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "watcher_config.json"

MIN_POLL_INTERVAL = 10.0

# llm_timeout_sec >= 1: urlopen treats a zero timeout as non-blocking
INT_MINIMUMS = {"context_count": 0, "history_size": 0, "llm_timeout_sec": 1}

_FALSE_STRINGS = {"false", "0", "no", "off", ""}
_TRUE_STRINGS  = {"true", "1", "yes", "on"}

DEFAULT_CONFIG = {
    "contact_phone": "",
    "poll_interval": 60.0,
    "ollama_model": "deepseek-r1:latest",
    "ollama_host": "http://localhost:11434",
    "llm_timeout_sec": 120,
    "ntfy_topic": "",
    "ntfy_server": "https://ntfy.sh",
    "calendar_id": "",
    "reminder_list_id": "",
    "use_calendar": True,
    "use_due_reminders": False,
    "use_apple_reminders": False,
    "use_ntfy": False,
    "context_count": 5,
    "history_size": 50,
    "chat_db_path": "~/Library/Messages/chat.db",
    "state_file": "~/.imessage_watcher_state",
}


def _config_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path.cwd()
    return root / CONFIG_FILENAME


def load_config(project_root: Optional[Path] = None) -> Dict[str, Any]:
    """Load config from watcher_config.json. Returns defaults if missing."""
    path = _config_path(project_root)
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return {**DEFAULT_CONFIG, **data}
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Config load failed: {e}")
    return dict(DEFAULT_CONFIG)


def save_config(config: Dict[str, Any], project_root: Optional[Path] = None) -> Path:
    """Persist config to watcher_config.json."""
    path = _config_path(project_root)
    path.write_text(json.dumps(config, indent=2), encoding="utf-8")
    return path


def _as_bool(value: Any, default: bool) -> bool:
    """JSON booleans as-is; hand-edited strings like "false" read as written."""
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _FALSE_STRINGS:
            return False
        if text in _TRUE_STRINGS:
            return True
        logger.warning(f"Unrecognized boolean {value!r} in config — using {default}")
        return default
    return bool(value)


def clean_phone(raw: str) -> Optional[str]:
    """Strip formatting from a phone number. Returns the 10 digits or None."""
    digits = re.sub(r"\D", "", raw or "")
    if len(digits) != 10:
        return None
    return digits


@dataclass(frozen=True)
class WatcherConfig:
    contact_phone:        str   = ""
    poll_interval:        float = 60.0
    ollama_model:         str   = "deepseek-r1:latest"
    ollama_host:          str   = "http://localhost:11434"
    llm_timeout_sec:      int   = 120
    ntfy_topic:           str   = ""
    ntfy_server:          str   = "https://ntfy.sh"
    calendar_id:          str   = ""
    reminder_list_id:     str   = ""
    use_calendar:         bool  = True
    use_due_reminders:    bool  = False
    use_apple_reminders:  bool  = False
    use_ntfy:             bool  = False
    context_count:        int   = 5
    history_size:         int   = 50
    chat_db_path:         str   = "~/Library/Messages/chat.db"
    state_file:           str   = "~/.imessage_watcher_state"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WatcherConfig":
        """
        Build from a loaded config dict. Unknown keys are ignored.
        An invalid contact phone is dropped (logged) rather than trusted.
        """
        merged = {**DEFAULT_CONFIG, **(data or {})}
        known  = {k: merged[k] for k in cls.__dataclass_fields__ if k in merged}

        raw_phone = str(known.get("contact_phone") or "")
        phone     = clean_phone(raw_phone) if raw_phone else ""
        if phone is None:
            logger.warning("Invalid contact_phone in config — expected exactly 10 digits")
            phone = ""
        known["contact_phone"] = phone

        try:
            interval = float(known.get("poll_interval", 60.0))
        except (TypeError, ValueError):
            interval = 60.0
        known["poll_interval"] = max(MIN_POLL_INTERVAL, interval)

        for key, minimum in INT_MINIMUMS.items():
            try:
                known[key] = max(minimum, int(known[key]))
            except (TypeError, ValueError):
                known[key] = DEFAULT_CONFIG[key]
        for key in ("use_calendar", "use_due_reminders", "use_apple_reminders", "use_ntfy"):
            known[key] = _as_bool(known[key], DEFAULT_CONFIG[key])
        return cls(**known)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def with_updates(self, **changes: Any) -> "WatcherConfig":
        return WatcherConfig.from_dict({**self.to_dict(), **changes})

    @property
    def chat_db(self) -> Path:
        return Path(self.chat_db_path).expanduser()

    @property
    def state_path(self) -> Path:
        return Path(self.state_file).expanduser()

    @property
    def has_contact(self) -> bool:
        return bool(self.contact_phone)


def ensure_config(project_root: Optional[Path] = None) -> WatcherConfig:
    """Load the config file (or defaults) and return the settings object."""
    config = WatcherConfig.from_dict(load_config(project_root))
    if not config.has_contact:
        logger.warning("No contact_phone configured — scans are skipped until one is set")
    return config
