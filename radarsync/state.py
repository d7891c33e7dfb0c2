"""
Radar Sync - Shared status store.

Written by the poll loop, read by the web viewer. Also captures recent
``radarsync.*`` log records for display.
"""

import json
import logging
import threading
from datetime import datetime, timezone

_state_lock = threading.Lock()
_state = {
    "phase": "idle",  # idle | waiting | syncing | pruning | stopped
    "last_sync": None,  # datetime | None, end of the last sync pass
    "last_stats": None,  # dict | None, stats of the last sync pass
    "last_error": None,  # str | None
    "next_sync": None,  # datetime | None
    "pass_count": 0,  # int, completed sync passes
    "update_count": 0,  # int, passes that downloaded at least one frame
    "log_entries": [],  # list[dict], recent log entries for the web viewer
    "_log_bytes": 0,  # internal: approximate byte size of log_entries
}

_MAX_LOG_BYTES = 200 * 1024


def get_state() -> dict:
    """Return a copy of the current status."""
    with _state_lock:
        state = {k: v for k, v in _state.items() if not k.startswith("_")}
        state["log_entries"] = list(state["log_entries"])
        return state


def set_phase(phase: str, next_sync: datetime | None = None) -> None:
    with _state_lock:
        _state["phase"] = phase
        _state["next_sync"] = next_sync


def record_pass(stats: dict) -> None:
    """Store the outcome of a sync pass."""
    with _state_lock:
        _state["last_sync"] = datetime.now(timezone.utc)
        _state["last_stats"] = stats
        _state["last_error"] = stats.get("error")
        _state["pass_count"] += 1
        if stats.get("error") is None and stats.get("files_downloaded", 0) > 0:
            _state["update_count"] += 1


def record_error(message: str) -> None:
    with _state_lock:
        _state["last_error"] = message


def _append_log(message: str, level: str = "INFO") -> None:
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "message": message,
    }
    with _state_lock:
        entry_bytes = len(json.dumps(entry))
        _state["log_entries"].append(entry)
        _state["_log_bytes"] = _state.get("_log_bytes", 0) + entry_bytes

        while _state["_log_bytes"] > _MAX_LOG_BYTES and len(_state["log_entries"]) > 1:
            removed = _state["log_entries"].pop(0)
            _state["_log_bytes"] -= len(json.dumps(removed))


class _StateLogHandler(logging.Handler):
    """Captures log records and stores them in _state."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            _append_log(self.format(record), record.levelname)
        except Exception:
            self.handleError(record)


def install_log_handler(logger_name: str = "radarsync") -> logging.Handler:
    """Attach the status-store handler to ``logger_name``. Idempotent."""
    target = logging.getLogger(logger_name)
    for handler in target.handlers:
        if isinstance(handler, _StateLogHandler):
            return handler
    handler = _StateLogHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    target.addHandler(handler)
    return handler
