"""
Radar Sync - Retention pruning.

Each zoom level keeps only its newest contiguous run of frames. Scanning
backward from the newest frame, the first pair that is not consecutive marks
a gap; the older frame of that pair and everything before it is deleted.
"""

from __future__ import annotations

import logging
import os

from radarsync.archive import level_path, list_frames
from radarsync.timecode import TimecodeError, are_consecutive, parse_timecode

logger = logging.getLogger(__name__)


class RetentionError(Exception):
    """One or more levels could not be pruned."""

    def __init__(self, failures: dict[str, Exception]) -> None:
        self.failures = failures
        detail = "; ".join(f"{code}: {exc}" for code, exc in failures.items())
        super().__init__(f"Pruning failed for {len(failures)} level(s): {detail}")


def find_gap(names: list[str]) -> int:
    """
    Return the index of the newest frame that is not followed by its
    successor, or -1 when ``names`` (sorted oldest-first) is one contiguous run.

    Every name is parsed before any comparison, so a malformed name raises
    TimecodeError and no gap is reported.
    """
    timecodes = [parse_timecode(name) for name in names]
    for i in range(len(timecodes) - 2, -1, -1):
        if not are_consecutive(timecodes[i], timecodes[i + 1]):
            return i
    return -1


def prune_level(level_dir: str, marker: str) -> int:
    """
    Delete every frame older than the newest contiguous run in ``level_dir``.

    Returns the number of files deleted. TimecodeError and OSError propagate;
    files deleted before an error stay deleted.
    """
    frames = list_frames(level_dir, marker)
    if len(frames) < 2:
        return 0

    gap = find_gap([f.name for f in frames])
    if gap < 0:
        return 0

    logger.debug(
        "Gap in %s between %s and %s; deleting %d older frame(s)",
        level_dir,
        frames[gap].name,
        frames[gap + 1].name,
        gap + 1,
    )
    deleted = 0
    for frame in frames[: gap + 1]:
        os.remove(os.path.join(level_dir, frame.filename))
        deleted += 1
    return deleted


def prune_archive(config: dict) -> int:
    """
    Prune every zoom level. Returns the total number of files deleted.

    Levels are pruned independently. When any level fails (malformed frame
    name or deletion error) the others still run, then RetentionError is
    raised listing every failure.
    """
    root = config["archive"]["root"]
    marker = config["archive"]["new_marker"]
    deleted = 0
    failures: dict[str, Exception] = {}

    for code in config["levels"]["product_codes"]:
        level_dir = level_path(root, code)
        if not os.path.isdir(level_dir):
            logger.warning("Retention: level directory %s is missing.", level_dir)
            continue
        try:
            deleted += prune_level(level_dir, marker)
        except TimecodeError as exc:
            logger.error("Retention: unexpected frame name in %s: %s", level_dir, exc)
            failures[code] = exc
        except OSError as exc:
            logger.error("Retention: failed to prune %s: %s", level_dir, exc)
            failures[code] = exc

    if deleted:
        logger.info("Retention cleanup: deleted %d stale frame(s).", deleted)
    if failures:
        raise RetentionError(failures)
    return deleted
