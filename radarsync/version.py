"""
Radar Sync - Version info.

Read from package metadata when installed, else from pyproject.toml.
"""

from __future__ import annotations

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

_DIST_NAME = "radar-sync"
_FALLBACK_VERSION = "0.0.0"


def _get_version() -> str:
    """Return package version from metadata, pyproject, or fallback."""
    try:
        return version(_DIST_NAME)
    except PackageNotFoundError:
        pass
    pyproject = Path(__file__).resolve().parent.parent / "pyproject.toml"
    try:
        with open(pyproject, "rb") as fh:
            data = tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError):
        return _FALLBACK_VERSION
    return data.get("project", {}).get("version", _FALLBACK_VERSION)


VERSION = _get_version()
