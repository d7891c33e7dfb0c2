"""
Tests for radarsync.config: configuration loading, env overrides and validation.
"""

import copy
import os
import tempfile
from unittest.mock import patch

import pytest

from radarsync.config import DEFAULT_CONFIG, _parse_env_list, load_config, validate_config

# ---------------------------------------------------------------------------
# Loading and environment variable overrides
# ---------------------------------------------------------------------------


def test_load_config_defaults_when_file_missing():
    config = load_config("/nonexistent/config.yaml")
    assert config == DEFAULT_CONFIG
    assert config is not DEFAULT_CONFIG
    config["levels"]["product_codes"].append("IDR045")
    assert DEFAULT_CONFIG["levels"]["product_codes"] == ["IDR042", "IDR043", "IDR044"]


def test_load_config_env_var_overrides_archive_root():
    """RADARSYNC_ARCHIVE_ROOT overrides config file and defaults."""
    with patch.dict(
        os.environ,
        {"RADARSYNC_ARCHIVE_ROOT": "/srv/radar"},
        clear=False,
    ):
        config = load_config("/nonexistent/config.yaml")
    assert config["archive"]["root"] == "/srv/radar"


def test_load_config_env_var_overrides_wait_minutes():
    with patch.dict(
        os.environ,
        {
            "RADARSYNC_SCHEDULE_LONG_WAIT_MINUTES": "10",
            "RADARSYNC_SCHEDULE_SHORT_WAIT_MINUTES": "2",
        },
        clear=False,
    ):
        config = load_config("/nonexistent/config.yaml")
    assert config["schedule"]["long_wait_minutes"] == 10
    assert config["schedule"]["short_wait_minutes"] == 2


def test_load_config_env_var_overrides_product_codes():
    """RADARSYNC_LEVELS_PRODUCT_CODES accepts comma-separated list."""
    with patch.dict(
        os.environ,
        {"RADARSYNC_LEVELS_PRODUCT_CODES": "idr022, IDR023,IDR024"},
        clear=False,
    ):
        config = load_config("/nonexistent/config.yaml")
    assert config["levels"]["product_codes"] == ["IDR022", "IDR023", "IDR024"]


def test_parse_env_list_keeps_case_and_drops_blanks():
    assert _parse_env_list("anon/gen, ,Radar\nx") == ["anon/gen", "Radar", "x"]


def test_load_config_env_var_overrides_clear_on_start():
    """RADARSYNC_ARCHIVE_CLEAR_ON_START accepts true/false/1/0."""
    with patch.dict(
        os.environ,
        {"RADARSYNC_ARCHIVE_CLEAR_ON_START": "no"},
        clear=False,
    ):
        config = load_config("/nonexistent/config.yaml")
    assert config["archive"]["clear_on_start"] is False


def test_load_config_env_var_timeout_accepts_float():
    with patch.dict(os.environ, {"RADARSYNC_SOURCE_TIMEOUT": "2.5"}, clear=False):
        config = load_config("/nonexistent/config.yaml")
    assert config["source"]["timeout"] == 2.5


def test_load_config_env_var_invalid_int_is_ignored():
    with patch.dict(os.environ, {"RADARSYNC_WEB_PORT": "eighty"}, clear=False):
        config = load_config("/nonexistent/config.yaml")
    assert config["web"]["port"] == DEFAULT_CONFIG["web"]["port"]


def test_load_config_env_var_overrides_config_file():
    """Env vars override values from config file."""
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as tmp:
        tmp.write("source:\n  host: mirror.example.org\n")
        tmp_path = tmp.name
    try:
        with patch.dict(
            os.environ,
            {"RADARSYNC_SOURCE_HOST": "ftp.example.org"},
            clear=False,
        ):
            config = load_config(tmp_path)
        assert config["source"]["host"] == "ftp.example.org"
    finally:
        os.unlink(tmp_path)


def test_load_config_merges_partial_file_with_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("archive:\n  new_marker: '~'\nweb:\n  enabled: false\n")

    config = load_config(str(path))

    assert config["archive"]["new_marker"] == "~"
    assert config["archive"]["root"] == DEFAULT_CONFIG["archive"]["root"]
    assert config["web"]["enabled"] is False
    assert config["source"] == DEFAULT_CONFIG["source"]


def test_load_config_uses_config_path_env(tmp_path):
    path = tmp_path / "radar.yaml"
    path.write_text("source:\n  port: 2121\n")
    with patch.dict(os.environ, {"RADARSYNC_CONFIG": str(path)}, clear=False):
        config = load_config()
    assert config["source"]["port"] == 2121


@pytest.mark.parametrize("content", ["archive: [unclosed\n", "- just\n- a list\n"])
def test_load_config_falls_back_to_defaults_on_bad_file(tmp_path, content):
    path = tmp_path / "config.yaml"
    path.write_text(content)
    assert load_config(str(path)) == DEFAULT_CONFIG


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _valid():
    return copy.deepcopy(DEFAULT_CONFIG)


def test_validate_config_accepts_defaults():
    assert validate_config(_valid()) == []


@pytest.mark.parametrize(
    "codes",
    [
        ["IDR042", "IDR043"],
        ["IDR042", "IDR043", "IDR044", "IDR045"],
        ["IDR042", "IDR042", "IDR044"],
        [],
    ],
)
def test_validate_config_requires_three_distinct_codes(codes):
    config = _valid()
    config["levels"]["product_codes"] = codes
    errors = validate_config(config)
    assert any("product codes" in e for e in errors)


@pytest.mark.parametrize("root", ["", "  ", "/", "../img", "img/../.."])
def test_validate_config_rejects_bad_archive_root(root):
    config = _valid()
    config["archive"]["root"] = root
    errors = validate_config(config)
    assert any("archive" in e.lower() for e in errors)


@pytest.mark.parametrize("marker", ["", "__", ".", "/"])
def test_validate_config_rejects_bad_marker(marker):
    config = _valid()
    config["archive"]["new_marker"] = marker
    errors = validate_config(config)
    assert any("new_marker" in e for e in errors)


def test_validate_config_rejects_marker_clashing_with_code():
    config = _valid()
    config["archive"]["new_marker"] = "I"
    errors = validate_config(config)
    assert any("first character" in e for e in errors)


def test_validate_config_rejects_empty_host():
    config = _valid()
    config["source"]["host"] = ""
    assert any("source.host" in e for e in validate_config(config))


def test_validate_config_rejects_zero_wait():
    config = _valid()
    config["schedule"]["short_wait_minutes"] = 0
    assert any("at least 1 minute" in e for e in validate_config(config))


def test_validate_config_rejects_short_wait_longer_than_long_wait():
    config = _valid()
    config["schedule"]["short_wait_minutes"] = 10
    errors = validate_config(config)
    assert errors == [
        "schedule.short_wait_minutes must not exceed schedule.long_wait_minutes."
    ]
