"""
Radar Sync - Configuration loader.

Loads and validates configuration from a YAML file.
"""

from __future__ import annotations

import copy
import logging
import os

import yaml

from radarsync.constants import (
    DEFAULT_EXCLUDE_EXTENSION,
    DEFAULT_LOG_DISPLAY_COUNT,
    DEFAULT_LONG_WAIT_MINUTES,
    DEFAULT_NEW_MARKER,
    DEFAULT_PRODUCT_CODES,
    DEFAULT_REFERENCE_RETRY_MINUTES,
    DEFAULT_SHORT_WAIT_MINUTES,
    ZOOM_LEVEL_COUNT,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    "archive": {
        "root": "img",
        "clear_on_start": True,
        "new_marker": DEFAULT_NEW_MARKER,
    },
    "source": {
        "host": "ftp2.bom.gov.au",
        "port": 21,
        "user": "anonymous",
        "password": "guest",
        "radar_dir": "anon/gen/radar",
        "reference_dir": "anon/gen/radar_transparencies",
        "timeout": 30,
    },
    "levels": {
        "product_codes": list(DEFAULT_PRODUCT_CODES),
        "exclude_extension": DEFAULT_EXCLUDE_EXTENSION,
    },
    "schedule": {
        "long_wait_minutes": DEFAULT_LONG_WAIT_MINUTES,
        "short_wait_minutes": DEFAULT_SHORT_WAIT_MINUTES,
        "reference_retry_minutes": DEFAULT_REFERENCE_RETRY_MINUTES,
    },
    "web": {
        "enabled": True,
        "host": "127.0.0.1",
        "port": 8080,
        "log_display_count": DEFAULT_LOG_DISPLAY_COUNT,
    },
    "logging": {
        "level": "INFO",
        "file": "",
        # Overwritable one-line progress message on stdout
        "status_line": True,
    },
}

_CONFIG_PATH_ENV = "RADARSYNC_CONFIG"
_DEFAULT_CONFIG_PATH = "config.yaml"

# Map RADARSYNC_* env vars to config paths. Type: str, int, float, bool, or "codes"
# (comma-separated list, upper-cased to match remote product names)
_ENV_TO_CONFIG: list[tuple[str, tuple[str, ...], str | type]] = [
    ("RADARSYNC_ARCHIVE_ROOT", ("archive", "root"), str),
    ("RADARSYNC_ARCHIVE_CLEAR_ON_START", ("archive", "clear_on_start"), bool),
    ("RADARSYNC_ARCHIVE_NEW_MARKER", ("archive", "new_marker"), str),
    ("RADARSYNC_SOURCE_HOST", ("source", "host"), str),
    ("RADARSYNC_SOURCE_PORT", ("source", "port"), int),
    ("RADARSYNC_SOURCE_USER", ("source", "user"), str),
    ("RADARSYNC_SOURCE_PASSWORD", ("source", "password"), str),
    ("RADARSYNC_SOURCE_RADAR_DIR", ("source", "radar_dir"), str),
    ("RADARSYNC_SOURCE_REFERENCE_DIR", ("source", "reference_dir"), str),
    ("RADARSYNC_SOURCE_TIMEOUT", ("source", "timeout"), "float"),
    ("RADARSYNC_LEVELS_PRODUCT_CODES", ("levels", "product_codes"), "codes"),
    ("RADARSYNC_LEVELS_EXCLUDE_EXTENSION", ("levels", "exclude_extension"), str),
    ("RADARSYNC_SCHEDULE_LONG_WAIT_MINUTES", ("schedule", "long_wait_minutes"), int),
    ("RADARSYNC_SCHEDULE_SHORT_WAIT_MINUTES", ("schedule", "short_wait_minutes"), int),
    (
        "RADARSYNC_SCHEDULE_REFERENCE_RETRY_MINUTES",
        ("schedule", "reference_retry_minutes"),
        int,
    ),
    ("RADARSYNC_WEB_ENABLED", ("web", "enabled"), bool),
    ("RADARSYNC_WEB_HOST", ("web", "host"), str),
    ("RADARSYNC_WEB_PORT", ("web", "port"), int),
    ("RADARSYNC_WEB_LOG_DISPLAY_COUNT", ("web", "log_display_count"), int),
    ("RADARSYNC_LOGGING_LEVEL", ("logging", "level"), str),
    ("RADARSYNC_LOGGING_FILE", ("logging", "file"), str),
    ("RADARSYNC_LOGGING_STATUS_LINE", ("logging", "status_line"), bool),
]


def _parse_env_bool(val: str) -> bool:
    """Parse string to bool. Accepts true/false, 1/0, yes/no (case-insensitive)."""
    v = val.strip().lower()
    return v in ("true", "1", "yes", "on")


def _parse_env_list(val: str) -> list[str]:
    """Parse comma/newline-separated string to list of stripped, non-empty strings."""
    items = []
    for part in val.replace(",", "\n").splitlines():
        s = part.strip()
        if s:
            items.append(s)
    return items


def _env_overrides() -> dict:
    """Build config override dict from RADARSYNC_* environment variables."""
    overrides: dict = {}
    for env_key, path, typ in _ENV_TO_CONFIG:
        val = os.environ.get(env_key, "").strip()
        if not val:
            continue
        try:
            if typ is str:
                parsed = val
            elif typ is int:
                parsed = int(val)
            elif typ == "float":
                parsed = float(val) if "." in str(val) else int(val)
            elif typ is bool:
                parsed = _parse_env_bool(val)
            elif typ == "codes":
                parsed = [code.upper() for code in _parse_env_list(val)]
            else:
                continue
        except (ValueError, TypeError):
            logger.warning("Invalid env %s=%r; ignoring.", env_key, val)
            continue
        target = overrides
        for key in path[:-1]:
            target = target.setdefault(key, {})
        target[path[-1]] = parsed
    return overrides


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: str | None = None) -> dict:
    """
    Load configuration from a YAML file, falling back to defaults.

    The config file path is resolved in this order:
    1. Explicit ``config_path`` argument
    2. ``RADARSYNC_CONFIG`` environment variable
    3. ``config.yaml`` in the working directory

    Missing keys fall back to DEFAULT_CONFIG values. RADARSYNC_* environment
    variables are applied last.
    """
    path = config_path or os.environ.get(_CONFIG_PATH_ENV, _DEFAULT_CONFIG_PATH)

    config = copy.deepcopy(DEFAULT_CONFIG)

    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as fh:
                user_config = yaml.safe_load(fh) or {}
            if not isinstance(user_config, dict):
                raise yaml.YAMLError("top level must be a mapping")
            config = _deep_merge(DEFAULT_CONFIG, user_config)
            logger.debug("Merged config from %s (%d top-level keys)", path, len(config))
            logger.info("Configuration loaded from %s", path)
        except yaml.YAMLError as exc:
            logger.error("Failed to parse config file %s: %s", path, exc)
        except OSError as exc:
            logger.error("Failed to read config file %s: %s", path, exc)
    else:
        logger.warning(
            "Config file not found at %s; using defaults. "
            "Use RADARSYNC_* env vars to configure.",
            path,
        )

    env_overrides = _env_overrides()
    if env_overrides:
        config = _deep_merge(config, env_overrides)
        logger.debug("Applied config overrides from RADARSYNC_* environment variables")

    return config


def validate_config(config: dict) -> list[str]:
    """
    Validate configuration for minimal operation.

    Args:
        config: Configuration dict (from load_config or similar).

    Returns:
        List of error messages. Empty list means config is valid.
    """
    errors: list[str] = []

    codes = config.get("levels", {}).get("product_codes") or []
    clean_codes = [str(c).strip() for c in codes if str(c).strip()]
    if len(clean_codes) != ZOOM_LEVEL_COUNT or len(set(clean_codes)) != len(
        clean_codes
    ):
        errors.append(
            f"Exactly {ZOOM_LEVEL_COUNT} distinct product codes are required "
            "(levels.product_codes), e.g. IDR042, IDR043, IDR044."
        )

    root = (config.get("archive", {}).get("root") or "").strip()
    if not root:
        errors.append("Archive root directory (archive.root) must not be empty.")
    elif ".." in root or root in ("/", "\\"):
        errors.append(
            "Archive root directory must not be root or contain path traversal (..)."
        )

    marker = config.get("archive", {}).get("new_marker") or ""
    if len(marker) != 1 or marker in (".", "/", "\\"):
        errors.append(
            "New-file marker (archive.new_marker) must be a single character "
            "other than '.', '/' or '\\'."
        )
    elif any(c.startswith(marker) for c in clean_codes):
        errors.append(
            f"New-file marker {marker!r} must not be the first character of a "
            "product code."
        )

    if not (config.get("source", {}).get("host") or "").strip():
        errors.append("Remote host (source.host) must not be empty.")

    schedule = config.get("schedule", {})
    long_wait = schedule.get("long_wait_minutes", DEFAULT_LONG_WAIT_MINUTES)
    short_wait = schedule.get("short_wait_minutes", DEFAULT_SHORT_WAIT_MINUTES)
    if long_wait < 1 or short_wait < 1:
        errors.append(
            "Wait intervals (schedule.long_wait_minutes, "
            "schedule.short_wait_minutes) must be at least 1 minute."
        )
    elif short_wait > long_wait:
        errors.append(
            "schedule.short_wait_minutes must not exceed schedule.long_wait_minutes."
        )

    if errors:
        logger.debug("Config validation failed: %s", "; ".join(errors))
    else:
        logger.debug("Config validation passed.")
    return errors
