"""
Radar Sync - Sync engine.

Brings the local archive up to date with the remote radar directory. All
three zoom levels share one remote directory listing; each level keeps the
names containing its product code and writes missing frames in the New
state under its own subdirectory.
"""

from __future__ import annotations

import logging
import os
from typing import Callable

from radarsync.archive import (
    ensure_level_dirs,
    has_file,
    level_path,
    mark_all_new,
    reference_names,
    reset_archive,
    write_new,
)
from radarsync.remote import RemoteError, RemoteSession, open_session

logger = logging.getLogger(__name__)

SessionFactory = Callable[[dict, str], RemoteSession]
ProgressCallback = Callable[[str], None]


def _product_codes(config: dict) -> list[str]:
    return [str(c).strip() for c in config["levels"]["product_codes"]]


def level_candidates(names: list[str], code: str, exclude_extension: str) -> list[str]:
    """
    Filter a remote listing down to one level's frames.

    Keeps names containing ``code`` and not containing the excluded extension,
    in listing order with duplicates removed.
    """
    seen: set[str] = set()
    result = []
    for name in names:
        if code not in name:
            continue
        if exclude_extension and exclude_extension in name:
            continue
        if name in seen:
            continue
        seen.add(name)
        result.append(name)
    return result


def _new_stats() -> dict:
    return {
        "levels_processed": 0,
        "files_listed": 0,
        "files_downloaded": 0,
        "per_level": {},
        "error": None,
    }


def run_sync_pass(
    config: dict,
    session_factory: SessionFactory = open_session,
    progress: ProgressCallback | None = None,
) -> dict:
    """
    Perform one sync pass across every zoom level.

    Returns a stats dict with keys: levels_processed, files_listed,
    files_downloaded, per_level ({code: downloaded}), error (str or None).

    A remote failure stops the pass at once and is recorded in ``error``;
    frames written before the failure stay on disk. Local write errors
    (OSError) propagate to the caller.
    """
    stats = _new_stats()
    root = config["archive"]["root"]
    marker = config["archive"]["new_marker"]
    exclude = config["levels"].get("exclude_extension", "")
    radar_dir = config["source"]["radar_dir"]

    try:
        session = session_factory(config, radar_dir)
    except RemoteError as exc:
        logger.warning("Sync pass aborted: %s", exc)
        stats["error"] = str(exc)
        return stats

    try:
        names = session.list()
        stats["files_listed"] = len(names)
        for code in _product_codes(config):
            level_dir = level_path(root, code)
            os.makedirs(level_dir, exist_ok=True)
            downloaded = 0
            candidates = level_candidates(names, code, exclude)
            for name in candidates:
                if has_file(level_dir, name, marker):
                    continue
                logger.debug("Choosing to download %s", name)
                if progress is not None:
                    progress(f"{code}: downloading {name}")
                data = session.fetch(name)
                write_new(level_dir, name, data, marker)
                downloaded += 1
                stats["files_downloaded"] += 1
                stats["per_level"][code] = downloaded
            stats["per_level"][code] = downloaded
            stats["levels_processed"] += 1
            logger.debug(
                "%s: %d candidate(s), %d downloaded", code, len(candidates), downloaded
            )
    except RemoteError as exc:
        logger.warning("Sync pass aborted: %s", exc)
        stats["error"] = str(exc)
    finally:
        session.close()

    if stats["files_downloaded"]:
        logger.info(
            "Sync pass downloaded %d new frame(s): %s",
            stats["files_downloaded"],
            ", ".join(f"{c}={n}" for c, n in stats["per_level"].items()),
        )
    elif stats["error"] is None:
        logger.debug("Sync pass found no new frames.")
    return stats


def pass_changed(stats: dict) -> bool:
    """True iff a pass finished without a remote error and wrote at least one frame."""
    return stats["error"] is None and stats["files_downloaded"] > 0


def sync_all(
    config: dict,
    session_factory: SessionFactory = open_session,
    progress: ProgressCallback | None = None,
) -> bool:
    """
    Run one sync pass. Returns True iff the pass succeeded and downloaded at
    least one frame across all levels.
    """
    return pass_changed(run_sync_pass(config, session_factory, progress))


def fetch_reference_images(
    config: dict, session_factory: SessionFactory = open_session
) -> bool:
    """
    Download any missing background/locations images into the archive root.

    Images already on disk are skipped. Returns True when every reference
    image is present afterwards; remote failures are logged, not raised.
    """
    root = config["archive"]["root"]
    missing = [
        name
        for code in _product_codes(config)
        for name in reference_names(code)
        if not os.path.isfile(os.path.join(root, name))
    ]
    if not missing:
        logger.debug("All reference images present.")
        return True

    try:
        with session_factory(config, config["source"]["reference_dir"]) as session:
            for name in missing:
                data = session.fetch(name)
                filepath = os.path.join(root, name)
                with open(filepath, "wb") as fh:
                    fh.write(data)
                logger.info("Saved reference image %s", filepath)
    except RemoteError as exc:
        logger.warning("Could not fetch reference images: %s", exc)
        return False
    return True


def initialize_archive(
    config: dict, session_factory: SessionFactory = open_session
) -> dict:
    """
    Prepare the archive for a new run and perform the first sync pass.

    Clears the root (when ``archive.clear_on_start``), creates the level
    subdirectories, fetches reference images, syncs once, then marks every
    frame New so the viewer starts from a uniform state. Returns the stats of
    the initial pass.
    """
    root = config["archive"]["root"]
    codes = _product_codes(config)
    if config["archive"].get("clear_on_start", True):
        reset_archive(root, codes)
    else:
        ensure_level_dirs(root, codes)

    fetch_reference_images(config, session_factory)
    stats = run_sync_pass(config, session_factory)
    mark_all_new(root, codes, config["archive"]["new_marker"])
    logger.info(
        "Archive initialized at %s: %d frame(s) downloaded.",
        root,
        stats["files_downloaded"],
    )
    return stats
