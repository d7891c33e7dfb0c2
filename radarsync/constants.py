"""
Radar Sync - Application constants.

Centralizes magic numbers for clarity and maintainability.
"""

# Time
SECONDS_PER_MINUTE = 60

# Poll loop waits (minutes). Long between successful passes, short while
# retrying after a pass that downloaded nothing.
DEFAULT_LONG_WAIT_MINUTES = 5
DEFAULT_SHORT_WAIT_MINUTES = 1
DEFAULT_REFERENCE_RETRY_MINUTES = 60

# Cancellation is checked at this granularity while waiting
WAIT_TICK_SECONDS = 1.0

# Radar products publish a frame every 6 minutes
FRAME_CADENCE_MINUTES = 6

# Timecode segment: YYYYMMDDHHMM, third dot-delimited field of the name
TIMECODE_SEGMENT_INDEX = 2
TIMECODE_FIELD_WIDTHS = (4, 2, 2, 2, 2)

# Three zoom levels (BOM 256 km, 128 km and 64 km products for one radar)
DEFAULT_PRODUCT_CODES = ["IDR042", "IDR043", "IDR044"]
ZOOM_LEVEL_COUNT = 3
DEFAULT_EXCLUDE_EXTENSION = ".gif"

# Filename prefix marking a frame the viewer has not consumed yet
DEFAULT_NEW_MARKER = "_"

# Suffix of a frame still being written; never listed as a frame
PARTIAL_SUFFIX = ".part"

# Static reference images, one pair per product code
REFERENCE_SUFFIXES = (".background.png", ".locations.png")

DEFAULT_LOG_DISPLAY_COUNT = 100
