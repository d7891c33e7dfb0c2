"""
Radar Sync - Flask viewer API.

The viewer side of the archive:
  - Status: poll loop state, per-level frame counts, recent log entries
  - Frames: chronological frame list per level; New frames are confirmed
    as they are handed out
  - Updates: drains the poll loop's update channel
  - Archive: serves frame and reference image files
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone

from flask import Flask, abort, jsonify, send_file

from radarsync.archive import (
    FileState,
    archive_summary,
    confirm_file,
    level_path,
    list_frames,
    reference_names,
)
from radarsync.constants import DEFAULT_LOG_DISPLAY_COUNT
from radarsync.state import get_state
from radarsync.version import VERSION

logger = logging.getLogger(__name__)

app = Flask(__name__)


def _config() -> dict:
    return app.config["RADARSYNC_CONFIG"]


def _signals():
    return app.config["RADARSYNC_SIGNALS"]


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _is_safe_archive_subpath(subpath: str) -> bool:
    """
    Validate subpath to prevent path injection. Reject traversal and absolute paths.
    """
    if not subpath or ".." in subpath:
        return False
    if subpath.startswith("/") or subpath.startswith("\\"):
        return False
    parts = subpath.replace("\\", "/").split("/")
    for part in parts:
        if not part or part in (".", ".."):
            return False
    return True


def take_frames(config: dict, code: str) -> dict:
    """
    List a level's frames oldest-first, confirming any New ones.

    Returns ``{"frames": [logical names], "new": [logical names confirmed
    by this call]}``. A frame pruned between listing and renaming is dropped.
    """
    root = config["archive"]["root"]
    marker = config["archive"]["new_marker"]
    level_dir = level_path(root, code)
    frames = []
    new = []
    for frame in list_frames(level_dir, marker):
        if frame.state is FileState.NEW:
            try:
                confirm_file(level_dir, frame.filename, marker)
            except FileNotFoundError:
                logger.debug("Frame %s vanished before confirmation", frame.name)
                continue
            new.append(frame.name)
        frames.append(frame.name)
    if new:
        logger.debug("%s: confirmed %d new frame(s)", code, len(new))
    return {"frames": frames, "new": new}


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.route("/api/status")
def api_status():
    """JSON status endpoint for the viewer and health checks."""
    config = _config()
    state = get_state()
    log_count = config["web"].get("log_display_count", DEFAULT_LOG_DISPLAY_COUNT)
    codes = config["levels"]["product_codes"]
    return jsonify(
        {
            "status": "ok",
            "version": VERSION,
            "phase": state["phase"],
            "last_sync": _isoformat(state["last_sync"]),
            "next_sync": _isoformat(state["next_sync"]),
            "pass_count": state["pass_count"],
            "update_count": state["update_count"],
            "last_stats": state["last_stats"],
            "last_error": state["last_error"],
            "levels": archive_summary(
                config["archive"]["root"], codes, config["archive"]["new_marker"]
            ),
            "recent_logs": list(reversed(state["log_entries"]))[:log_count],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


@app.route("/api/levels")
def api_levels():
    """Configured zoom levels with their reference image URLs."""
    levels = []
    for code in _config()["levels"]["product_codes"]:
        background, locations = reference_names(code)
        levels.append(
            {
                "code": code,
                "frames_url": f"/api/frames/{code}",
                "background": f"/archive/{background}",
                "locations": f"/archive/{locations}",
            }
        )
    return jsonify({"levels": levels})


@app.route("/api/frames/<code>")
def api_frames(code: str):
    config = _config()
    if code not in config["levels"]["product_codes"]:
        abort(404)
    if not os.path.isdir(level_path(config["archive"]["root"], code)):
        return jsonify({"code": code, "frames": [], "new": []})
    result = take_frames(config, code)
    return jsonify(
        {
            "code": code,
            "frames": [f"/archive/{code}/{name}" for name in result["frames"]],
            "new": result["new"],
        }
    )


@app.route("/api/updates")
def api_updates():
    """Drain the update channel. ``updated`` is True if a pass added frames."""
    messages = _signals().drain_updates()
    return jsonify(
        {
            "updated": bool(messages),
            "downloaded": sum(m.get("downloaded", 0) for m in messages),
        }
    )


@app.route("/api/shutdown", methods=["POST"])
def api_shutdown():
    logger.info("Shutdown requested via web viewer.")
    _signals().request_shutdown()
    return jsonify({"status": "stopping"})


@app.route("/archive/<path:subpath>")
def serve_archive_file(subpath: str):
    """Serve a file from the archive directory. Safe against path traversal."""
    if not _is_safe_archive_subpath(subpath):
        abort(404)
    root = _config()["archive"]["root"]
    full_path = os.path.normpath(os.path.join(root, subpath))
    resolved_root = os.path.realpath(root)
    resolved_path = os.path.realpath(full_path)
    if not resolved_path.startswith(resolved_root + os.sep):
        abort(404)
    if not os.path.isfile(resolved_path):
        abort(404)
    return send_file(
        resolved_path,
        mimetype=None,
        as_attachment=False,
        download_name=os.path.basename(resolved_path),
    )
