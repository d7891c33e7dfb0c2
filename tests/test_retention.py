"""
Tests for radarsync.retention: newest-contiguous-run pruning.
"""

import os
from unittest.mock import patch

import pytest

from radarsync.retention import RetentionError, find_gap, prune_archive, prune_level
from radarsync.timecode import TimecodeError
from tests.fakes import frame_name, touch


def _populate(level_dir, stamps, marker=""):
    for stamp in stamps:
        touch(os.path.join(level_dir, marker + frame_name("IDR043", stamp)))


def _remaining_stamps(level_dir):
    return sorted(f.lstrip("_")[9:21] for f in os.listdir(level_dir))


def test_find_gap_returns_minus_one_for_contiguous_run():
    names = [
        frame_name("IDR043", s)
        for s in ("201712101248", "201712101254", "201712101300")
    ]
    assert find_gap(names) == -1


def test_find_gap_returns_newest_gap():
    names = [
        frame_name("IDR043", s)
        for s in ("201712101200", "201712101230", "201712101236", "201712101300")
    ]
    assert find_gap(names) == 2


def test_prune_deletes_everything_before_first_gap_scanning_backward(tmp_path):
    """..10, ..16, ..22, ..40, ..46 keeps only ..40 and ..46."""
    level_dir = str(tmp_path)
    _populate(
        level_dir,
        ["201712101210", "201712101216", "201712101222", "201712101240", "201712101246"],
    )

    deleted = prune_level(level_dir, "_")

    assert deleted == 3
    assert _remaining_stamps(level_dir) == ["201712101240", "201712101246"]


def test_prune_drops_older_runs_even_when_internally_contiguous(tmp_path):
    """Only the newest run survives; an older contiguous run is not kept."""
    level_dir = str(tmp_path)
    _populate(
        level_dir,
        ["201712100900", "201712100906", "201712100912", "201712101200", "201712101206"],
    )

    prune_level(level_dir, "_")

    assert _remaining_stamps(level_dir) == ["201712101200", "201712101206"]


def test_prune_keeps_contiguous_run_across_rollovers(tmp_path):
    level_dir = str(tmp_path)
    stamps = ["201712102348", "201712102354", "201712110000", "201712110006"]
    _populate(level_dir, stamps)

    assert prune_level(level_dir, "_") == 0
    assert _remaining_stamps(level_dir) == stamps


def test_prune_considers_new_and_confirmed_frames_together(tmp_path):
    level_dir = str(tmp_path)
    _populate(level_dir, ["201712101200", "201712101230"])
    _populate(level_dir, ["201712101236"], marker="_")

    prune_level(level_dir, "_")

    assert _remaining_stamps(level_dir) == ["201712101230", "201712101236"]


@pytest.mark.parametrize("count", [0, 1])
def test_prune_empty_or_single_file_deletes_nothing(tmp_path, count):
    level_dir = str(tmp_path)
    _populate(level_dir, ["201712101200"][:count])

    assert prune_level(level_dir, "_") == 0
    assert len(os.listdir(level_dir)) == count


def test_prune_malformed_name_raises_without_deleting(tmp_path):
    level_dir = str(tmp_path)
    _populate(level_dir, ["201712101200", "201712101230", "201712101236"])
    touch(os.path.join(level_dir, "IDR043.T.notatimecode.png"))

    with pytest.raises(TimecodeError):
        prune_level(level_dir, "_")
    assert len(os.listdir(level_dir)) == 4


def test_prune_ignores_frame_being_written(tmp_path):
    level_dir = str(tmp_path)
    _populate(level_dir, ["201712101230", "201712101236"])
    touch(os.path.join(level_dir, frame_name("IDR043", "201712101242") + ".part"))

    assert prune_level(level_dir, "_") == 0
    assert len(os.listdir(level_dir)) == 3


def test_prune_deletion_error_propagates(tmp_path):
    level_dir = str(tmp_path)
    _populate(level_dir, ["201712101200", "201712101230", "201712101236"])

    denied = PermissionError(13, "Permission denied")
    with patch("radarsync.retention.os.remove", side_effect=denied):
        with pytest.raises(OSError):
            prune_level(level_dir, "_")


def test_prune_archive_prunes_every_level(config, level_dirs):
    for path in level_dirs.values():
        _populate(path, ["201712101200", "201712101230", "201712101236"])

    assert prune_archive(config) == 3
    for path in level_dirs.values():
        assert _remaining_stamps(path) == ["201712101230", "201712101236"]


def test_prune_archive_continues_after_failing_level(config, level_dirs):
    for path in level_dirs.values():
        _populate(path, ["201712101200", "201712101230", "201712101236"])
    touch(os.path.join(level_dirs["IDR042"], "IDR042.T.bad.png"))

    with pytest.raises(RetentionError) as excinfo:
        prune_archive(config)

    assert set(excinfo.value.failures) == {"IDR042"}
    assert len(os.listdir(level_dirs["IDR042"])) == 4
    assert _remaining_stamps(level_dirs["IDR043"]) == ["201712101230", "201712101236"]
    assert _remaining_stamps(level_dirs["IDR044"]) == ["201712101230", "201712101236"]


def test_prune_archive_skips_missing_level_directory(config):
    os.makedirs(os.path.join(config["archive"]["root"], "IDR043"))
    assert prune_archive(config) == 0
