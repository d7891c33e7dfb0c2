"""
Radar Sync - Frame timecodes.

Radar frame names embed their observation time as the third dot-delimited
field, e.g. ``IDR043.T.201712101054.png`` (YYYYMMDDHHMM, UTC). Timecodes are
always recomputed from the name; nothing is cached.
"""

from __future__ import annotations

import re
from typing import NamedTuple

from radarsync.constants import (
    FRAME_CADENCE_MINUTES,
    TIMECODE_FIELD_WIDTHS,
    TIMECODE_SEGMENT_INDEX,
)

_DIGITS_RE = re.compile(r"[0-9]+")
_MIN_SEGMENT_LENGTH = sum(TIMECODE_FIELD_WIDTHS)


class TimecodeError(ValueError):
    """Raised when a frame name does not carry a parseable timecode."""


class Timecode(NamedTuple):
    year: int
    month: int
    day: int
    hour: int
    minute: int


def parse_timecode(name: str) -> Timecode:
    """
    Decode the timecode embedded in a logical frame name.

    Raises TimecodeError when the third segment is missing, shorter than
    twelve characters, or not purely numeric.
    """
    parts = name.split(".")
    if len(parts) <= TIMECODE_SEGMENT_INDEX:
        raise TimecodeError(f"{name!r} has no timecode segment")
    segment = parts[TIMECODE_SEGMENT_INDEX]
    if len(segment) < _MIN_SEGMENT_LENGTH or not _DIGITS_RE.fullmatch(segment):
        raise TimecodeError(
            f"{name!r}: timecode segment {segment!r} is not a "
            f"{_MIN_SEGMENT_LENGTH}+ digit string"
        )

    fields = []
    pos = 0
    for width in TIMECODE_FIELD_WIDTHS:
        fields.append(int(segment[pos : pos + width]))
        pos += width
    return Timecode(*fields)


def are_consecutive(prev: Timecode, next_: Timecode) -> bool:
    """
    Return True if ``next_`` is the frame published right after ``prev``.

    Rollover clauses are deliberately loose: day and month rollover trigger on
    ``hour == 0`` / ``day == 0`` / ``month == 0`` of the later frame without
    checking real calendar lengths.
    """
    if prev.minute + FRAME_CADENCE_MINUTES == next_.minute:
        return True
    if next_.minute <= FRAME_CADENCE_MINUTES and prev.hour + 1 == next_.hour:
        return True
    if next_.hour == 0 and prev.day + 1 == next_.day:
        return True
    if next_.day == 0 and prev.month + 1 == next_.month:
        return True
    if next_.month == 0 and prev.year + 1 == next_.year:
        return True
    return False

