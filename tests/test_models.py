"""Tests for relative paths, path indexes and report models."""

from pathlib import Path

import pytest

from imdirdiff.core.errors import DecodeError, TraversalError
from imdirdiff.core.models import (
    DiffEntry,
    DimensionMismatch,
    EntryStatus,
    Identical,
    PathIndex,
    PixelMismatch,
    ReportSummary,
    RunStatus,
    normalize_relative_path,
)


@pytest.mark.parametrize("raw, expected", [
    ("a.png", "a.png"),
    ("c/recursive.png", "c/recursive.png"),
    ("./c//recursive.png", "c/recursive.png"),
    (Path("c") / "d" / "e.png", "c/d/e.png"),
    ("Mixed/Case.PNG", "Mixed/Case.PNG"),
])
def test_normalize_relative_path(raw, expected):
    assert normalize_relative_path(raw) == expected


@pytest.mark.parametrize("raw", ["../escape.png", "c/../../x.png", "/abs/x.png", "", "."])
def test_normalize_relative_path_rejects_escapes(raw):
    with pytest.raises(TraversalError):
        normalize_relative_path(raw)


def test_path_index_is_read_only(tmp_path):
    index = PathIndex(tmp_path, {"b.png": tmp_path / "b.png", "./a.png": tmp_path / "a.png"})

    assert sorted(index) == ["a.png", "b.png"]
    assert len(index) == 2
    assert index.absolute_path("a.png") == tmp_path / "a.png"
    assert "b.png" in index
    with pytest.raises(TypeError):
        index.entries["c.png"] = tmp_path / "c.png"


def test_path_index_rejects_escaping_keys(tmp_path):
    with pytest.raises(TraversalError):
        PathIndex(tmp_path, {"../outside.png": tmp_path / "outside.png"})


def test_status_symbols():
    assert EntryStatus.LEFT_ONLY.symbol == "-"
    assert EntryStatus.RIGHT_ONLY.symbol == "+"
    assert EntryStatus.DIFFERENT.symbol == "≠"
    assert EntryStatus.UNDETERMINED.symbol == "!"
    assert EntryStatus.SAME.symbol is None


def test_outcome_descriptions():
    assert Identical().is_identical
    mismatch = DimensionMismatch((4, 3), (5, 3))
    assert not mismatch.is_identical
    assert mismatch.describe() == "dimensions differ: 4x3 vs 5x3"

    pixels = PixelMismatch(size=(10, 10), changed_pixels=5, mask=object())
    assert pixels.total_pixels == 100
    assert pixels.changed_ratio == 0.05
    assert pixels.describe() == "5 of 100 pixels differ (5.00%)"
    assert pixels.without_mask().mask is None
    assert PixelMismatch(size=(2, 2)).describe() == "pixels differ"


def test_entry_description_prefers_error():
    error = DecodeError("right", "/tmp/x.png", "broken")
    entry = DiffEntry("x.png", EntryStatus.UNDETERMINED, error=error)
    assert entry.is_anomaly
    assert "right" in entry.describe()
    assert not DiffEntry("y.png", EntryStatus.SAME, outcome=Identical()).is_anomaly


@pytest.mark.parametrize("summary, status", [
    (ReportSummary(), RunStatus.IDENTICAL),
    (ReportSummary(same=3), RunStatus.IDENTICAL),
    (ReportSummary(same=1, left_only=1), RunStatus.DIFFERENCES),
    (ReportSummary(different=2), RunStatus.DIFFERENCES),
    (ReportSummary(different=2, undetermined=1), RunStatus.UNDETERMINED),
    (ReportSummary(undetermined=1), RunStatus.UNDETERMINED),
])
def test_summary_status(summary, status):
    assert summary.status is status


def test_run_status_codes_are_distinct():
    codes = {int(s) for s in RunStatus}
    assert codes == {0, 1, 2, 3}
