"""
Pytest configuration for Radar Sync tests.

Provides a config pointing at a temporary archive with status-line output
disabled.
"""

import copy
import os

import pytest

from radarsync.config import DEFAULT_CONFIG


@pytest.fixture
def config(tmp_path):
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["archive"]["root"] = str(tmp_path / "img")
    cfg["logging"]["status_line"] = False
    return cfg


@pytest.fixture
def level_dirs(config):
    root = config["archive"]["root"]
    paths = {}
    for code in config["levels"]["product_codes"]:
        paths[code] = os.path.join(root, code)
        os.makedirs(paths[code], exist_ok=True)
    return paths
