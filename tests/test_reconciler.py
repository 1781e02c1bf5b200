"""Tests for three-way reconciliation."""

import random

import pytest

from imdirdiff.core.folder.reconciler import reconcile
from imdirdiff.core.models import PathIndex


def _index(root, paths):
    return PathIndex(root, {p: root / p for p in paths})


CASES = [
    ([], []),
    (["a.png"], []),
    ([], ["b.png"]),
    (["same.png", "a_only.png", "c/recursive.png"], ["same.png", "b_only.png", "c/recursive.png"]),
    (["x/1.png", "x/2.png", "y.png"], ["x/2.png", "x/3.png", "Y.png"]),
]


@pytest.mark.parametrize("left_paths, right_paths", CASES)
def test_partition_covers_union_and_is_disjoint(tmp_path, left_paths, right_paths):
    result = reconcile(_index(tmp_path, left_paths), _index(tmp_path, right_paths))

    left_only, right_only, common = set(result.left_only), set(result.right_only), set(result.common)
    assert left_only | right_only | common == set(left_paths) | set(right_paths)
    assert not left_only & right_only
    assert not left_only & common
    assert not right_only & common


@pytest.mark.parametrize("left_paths, right_paths", CASES)
def test_reconcile_is_symmetric(tmp_path, left_paths, right_paths):
    forward = reconcile(_index(tmp_path, left_paths), _index(tmp_path, right_paths))
    backward = reconcile(_index(tmp_path, right_paths), _index(tmp_path, left_paths))

    assert forward.left_only == backward.right_only
    assert forward.right_only == backward.left_only
    assert forward.common == backward.common


def test_paths_are_case_sensitive(tmp_path):
    result = reconcile(_index(tmp_path, ["y.png"]), _index(tmp_path, ["Y.png"]))
    assert result.left_only == ("y.png",)
    assert result.right_only == ("Y.png",)
    assert result.common == ()


def test_output_order_ignores_input_order():
    paths = [f"dir{i % 3}/img{i}.png" for i in range(30)]
    shuffled = paths[:]
    random.Random(7).shuffle(shuffled)

    result = reconcile(shuffled, paths[10:])

    assert list(result.left_only) == sorted(paths[:10])
    assert list(result.common) == sorted(paths[10:])
    assert result.all_paths == tuple(sorted(paths))


def test_empty_indexes(tmp_path):
    result = reconcile(_index(tmp_path, []), _index(tmp_path, []))
    assert result.is_empty
    assert result.left_only == result.right_only == result.common == ()
