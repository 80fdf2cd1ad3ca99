"""
Tests for input_classifier.py

Tests cover:
1. File kind detection by name (case-insensitive, fixed precedence)
2. Directory classification and the empty directory error
3. Observation lookup (missing / ambiguous)
4. Navigation precedence: base before rover
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from input_classifier import (
    FileKind,
    classify,
    describe,
    find_observation,
    kind_of,
    resolve_navigation,
)
from ppk_errors import (
    AmbiguousInputError,
    ConversionFailedError,
    EmptyDirectoryError,
    MissingNavigationError,
)


def _touch(directory: Path, *names: str) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for name in names:
        (directory / name).write_text("x")


class TestKindOf:
    """Tests for name-based kind detection."""

    @pytest.mark.parametrize("name", [
        "2022-02-25_13-26-06_GNSS-1.obs",
        "base0560.22o",
        "BASE0560.22O",
        "SDOM00DOM_R_20220560000_01D_30S_MO.rnx",
    ])
    def test_observation_names(self, name):
        assert kind_of(name) is FileKind.OBSERVATION

    @pytest.mark.parametrize("name", [
        "2022-02-25_00-00-00_GNSS-1.nav",
        "brdc0560.22n",
        "brdc0560.22G",
        "SDOM00DOM_R_20220560000_01D_MN.rnx",
    ])
    def test_navigation_names(self, name):
        assert kind_of(name) is FileKind.NAVIGATION

    def test_raw_capture(self):
        assert kind_of("rover.UBX") is FileKind.RAW_CAPTURE

    def test_archive_wins_over_inner_extension(self):
        """A zipped UBX capture is an archive, not a raw capture."""
        assert kind_of("2022-02-25_13-26-06_GNSS-1.ubx.zip") is FileKind.ARCHIVE
        assert kind_of("base.obs.gz") is FileKind.ARCHIVE

    def test_unknown_name(self):
        assert kind_of("notes.txt") is None

    def test_describe_labels_each_kind(self):
        assert describe(FileKind.ARCHIVE) == "ZIP"
        assert describe(FileKind.RAW_CAPTURE) == "u-blox"
        assert describe(FileKind.OBSERVATION) == "RINEX observations"
        assert describe(FileKind.NAVIGATION) == "RINEX navigation"


class TestClassify:
    """Tests for directory classification."""

    def test_returns_matching_files_only(self, tmp_path):
        _touch(tmp_path, "rover.obs", "rover.nav", "rover.ubx", "readme.txt")

        assert [p.name for p in classify(tmp_path, FileKind.OBSERVATION)] == ["rover.obs"]
        assert [p.name for p in classify(tmp_path, FileKind.RAW_CAPTURE)] == ["rover.ubx"]
        assert classify(tmp_path, FileKind.ARCHIVE) == []

    def test_empty_directory_raises(self, tmp_path):
        with pytest.raises(EmptyDirectoryError):
            classify(tmp_path, FileKind.OBSERVATION)

    def test_find_observation_single(self, tmp_path):
        _touch(tmp_path, "base.obs", "base.nav")
        assert find_observation(tmp_path).name == "base.obs"

    def test_find_observation_missing(self, tmp_path):
        _touch(tmp_path, "base.ubx")
        with pytest.raises(ConversionFailedError):
            find_observation(tmp_path)

    def test_find_observation_ambiguous(self, tmp_path):
        _touch(tmp_path, "a.obs", "b.22o")
        with pytest.raises(AmbiguousInputError) as exc:
            find_observation(tmp_path)
        assert "found 2" in exc.value.message


class TestResolveNavigation:
    """Tests for navigation file precedence."""

    def test_base_navigation_preferred(self, tmp_path):
        base, rover = tmp_path / "base", tmp_path / "rover"
        _touch(base, "base.obs", "base.nav")
        _touch(rover, "rover.obs", "rover.nav")

        navs = resolve_navigation(base, rover)

        assert [p.name for p in navs] == ["base.nav"]

    def test_rover_navigation_fallback(self, tmp_path):
        base, rover = tmp_path / "base", tmp_path / "rover"
        _touch(base, "base.obs")
        _touch(rover, "rover.obs", "rover.nav")

        navs = resolve_navigation(base, rover)

        assert [p.name for p in navs] == ["rover.nav"]

    def test_all_base_navigation_files_returned(self, tmp_path):
        base, rover = tmp_path / "base", tmp_path / "rover"
        _touch(base, "base.obs", "brdc0560.22n", "brdc0560.22g")
        _touch(rover, "rover.obs")

        assert len(resolve_navigation(base, rover)) == 2

    def test_missing_navigation_raises(self, tmp_path):
        base, rover = tmp_path / "base", tmp_path / "rover"
        _touch(base, "base.obs")
        _touch(rover, "rover.obs")

        with pytest.raises(MissingNavigationError):
            resolve_navigation(base, rover)
