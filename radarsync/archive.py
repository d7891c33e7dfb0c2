"""
Radar Sync - Local archive layout and frame state.

Frames are stored as:
    <root>/<PRODUCT_CODE>/<marker?><frame name>

A frame carrying the marker prefix is ``New`` (not yet handed to the viewer);
without it the frame is ``Confirmed``. The prefix on disk is the only record
of state, so it survives restarts. State changes are renames, never rewrites.
Reference images live flat in the root as ``<CODE>.background.png`` and
``<CODE>.locations.png``.
"""

from __future__ import annotations

import enum
import logging
import os
import shutil
from typing import NamedTuple

from radarsync.constants import PARTIAL_SUFFIX, REFERENCE_SUFFIXES

logger = logging.getLogger(__name__)


class FileState(enum.Enum):
    NEW = "new"
    CONFIRMED = "confirmed"


class Frame(NamedTuple):
    """A frame on disk: logical name, actual filename and state."""

    name: str
    filename: str
    state: FileState


def level_path(root: str, code: str) -> str:
    return os.path.join(root, code)


def logical_name(filename: str, marker: str) -> str:
    """Strip the new-file marker, if present."""
    if filename.startswith(marker):
        return filename[len(marker) :]
    return filename


def file_state(filename: str, marker: str) -> FileState:
    return FileState.NEW if filename.startswith(marker) else FileState.CONFIRMED


def has_file(level_dir: str, name: str, marker: str) -> bool:
    """
    Return True if ``name`` is held in either state.

    A frame still marked New counts as present so unviewed frames are never
    downloaded twice.
    """
    return os.path.isfile(os.path.join(level_dir, name)) or os.path.isfile(
        os.path.join(level_dir, marker + name)
    )


def _delete_partial_file(filepath: str) -> None:
    """Remove partial file so another run can retry. Best-effort."""
    try:
        if os.path.isfile(filepath):
            os.unlink(filepath)
            logger.debug("Removed partial file %s for retry", filepath)
    except OSError as exc:
        logger.warning("Could not remove partial file %s: %s", filepath, exc)


def write_new(level_dir: str, name: str, data: bytes, marker: str) -> str:
    """
    Write a downloaded frame in the New state and return its path.

    The bytes go to ``<name>.part`` first and are moved into place once
    complete, so the viewer only ever sees whole frames. Files are created
    with mode 0o644. On a write error the partial file is removed and the
    OSError propagates.
    """
    filepath = os.path.join(level_dir, marker + name)
    partial = os.path.join(level_dir, name + PARTIAL_SUFFIX)
    try:
        with open(partial, "wb") as fh:
            fh.write(data)
        os.chmod(partial, 0o644)
        os.replace(partial, filepath)
    except OSError as exc:
        logger.error("Failed to write frame to %s: %s", filepath, exc)
        _delete_partial_file(partial)
        raise
    logger.debug("Wrote %s (%d bytes)", filepath, len(data))
    return filepath


def confirm_file(level_dir: str, filename: str, marker: str) -> str:
    """Move a New frame to Confirmed by stripping its marker. Returns the new filename."""
    name = logical_name(filename, marker)
    if name == filename:
        return filename
    os.replace(os.path.join(level_dir, filename), os.path.join(level_dir, name))
    logger.debug("Confirmed %s", os.path.join(level_dir, name))
    return name


def mark_new(level_dir: str, filename: str, marker: str) -> str:
    """Move a Confirmed frame back to New. Returns the new filename."""
    if filename.startswith(marker):
        return filename
    new_filename = marker + filename
    os.replace(
        os.path.join(level_dir, filename), os.path.join(level_dir, new_filename)
    )
    return new_filename


def list_frames(level_dir: str, marker: str) -> list[Frame]:
    """
    Return the frames of one level, sorted by logical name.

    Names embed a zero-padded timestamp, so this order is chronological.
    Files still being written are skipped.
    """
    frames = []
    for filename in os.listdir(level_dir):
        if filename.endswith(PARTIAL_SUFFIX):
            continue
        if not os.path.isfile(os.path.join(level_dir, filename)):
            continue
        frames.append(
            Frame(
                logical_name(filename, marker),
                filename,
                file_state(filename, marker),
            )
        )
    frames.sort(key=lambda f: f.name)
    return frames


def ensure_level_dirs(root: str, codes: list[str]) -> None:
    for code in codes:
        os.makedirs(level_path(root, code), exist_ok=True)


def reset_archive(root: str, codes: list[str]) -> None:
    """Clear the archive root and recreate one empty subdirectory per level."""
    if os.path.isdir(root):
        logger.info("Clearing archive root %s", root)
        shutil.rmtree(root)
    os.makedirs(root, exist_ok=True)
    ensure_level_dirs(root, codes)


def mark_all_new(root: str, codes: list[str], marker: str) -> int:
    """Mark every frame of every level New. Returns how many were renamed."""
    renamed = 0
    for code in codes:
        level_dir = level_path(root, code)
        for frame in list_frames(level_dir, marker):
            if frame.state is FileState.CONFIRMED:
                mark_new(level_dir, frame.filename, marker)
                renamed += 1
    if renamed:
        logger.debug("Marked %d existing frame(s) as new", renamed)
    return renamed


def reference_names(code: str) -> list[str]:
    return [code + suffix for suffix in REFERENCE_SUFFIXES]


def archive_summary(root: str, codes: list[str], marker: str) -> dict:
    """
    Count frames per level by state.

    Returns ``{code: {"new": n, "confirmed": n, "latest": name | None}}``.
    Missing level directories count as empty.
    """
    summary = {}
    for code in codes:
        level_dir = level_path(root, code)
        entry = {"new": 0, "confirmed": 0, "latest": None}
        if os.path.isdir(level_dir):
            frames = list_frames(level_dir, marker)
            for frame in frames:
                entry[frame.state.value] += 1
            if frames:
                entry["latest"] = frames[-1].name
        summary[code] = entry
    return summary
