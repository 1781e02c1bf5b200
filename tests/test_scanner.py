"""Tests for building path indexes."""

import os
import sys

import pytest

from imdirdiff.core.errors import TraversalError
from imdirdiff.core.folder.scanner import FolderScanner, PatternMatcher, ScanOptions, check_directory

from conftest import make_image


def test_indexes_images_recursively(tmp_path):
    make_image(tmp_path / "top.png")
    make_image(tmp_path / "c" / "recursive.png")
    make_image(tmp_path / "c" / "d" / "deep.JPG", fmt="PNG")
    (tmp_path / "notes.txt").write_text("not an image")
    (tmp_path / "noext").write_bytes(b"")

    index = FolderScanner().build_index(tmp_path)

    assert sorted(index) == ["c/d/deep.JPG", "c/recursive.png", "top.png"]
    assert index["c/recursive.png"] == (tmp_path / "c" / "recursive.png").resolve()
    assert index.root == tmp_path.resolve()


def test_empty_root_gives_empty_index(tmp_path):
    assert len(FolderScanner().build_index(tmp_path)) == 0


def test_custom_extensions(tmp_path):
    make_image(tmp_path / "a.png")
    make_image(tmp_path / "b.bmp", fmt="BMP")

    index = FolderScanner(ScanOptions(extensions=(".BMP",))).build_index(tmp_path)

    assert list(index) == ["b.bmp"]


def test_hidden_entries(tmp_path):
    make_image(tmp_path / ".hidden.png")
    make_image(tmp_path / ".cache" / "x.png")
    make_image(tmp_path / "shown.png")

    assert sorted(FolderScanner().build_index(tmp_path)) == [".cache/x.png", ".hidden.png", "shown.png"]
    skipping = FolderScanner(ScanOptions(include_hidden=False))
    assert list(skipping.build_index(tmp_path)) == ["shown.png"]


def test_exclude_patterns(tmp_path):
    make_image(tmp_path / "keep.png")
    make_image(tmp_path / "build" / "out.png")
    make_image(tmp_path / "src" / "thumb_1.png")
    make_image(tmp_path / "src" / "main.png")

    options = ScanOptions(exclude_patterns=["build/", "thumb_*"])
    index = FolderScanner(options).build_index(tmp_path)

    assert sorted(index) == ["keep.png", "src/main.png"]


def test_pattern_matcher_negation_and_anchoring():
    matcher = PatternMatcher(["*.png", "!keep.png", "/root_only.gif", "**/deep/*.jpg"])

    assert matcher.matches("a/b.png")
    assert not matcher.matches("a/keep.png")
    assert matcher.matches("root_only.gif")
    assert not matcher.matches("sub/root_only.gif")
    assert matcher.matches("x/y/deep/z.jpg")
    assert not matcher.matches("x/y/z.jpg")
    assert not PatternMatcher(["", "# comment"])


def test_missing_root_is_fatal(tmp_path):
    with pytest.raises(TraversalError):
        FolderScanner().build_index(tmp_path / "missing")


def test_file_root_is_fatal(tmp_path):
    target = make_image(tmp_path / "file.png")
    with pytest.raises(TraversalError):
        check_directory(target)


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
@pytest.mark.skipif(hasattr(os, "geteuid") and os.geteuid() == 0, reason="root ignores permissions")
def test_unreadable_subdirectory_is_fatal(tmp_path):
    locked = tmp_path / "locked"
    make_image(locked / "x.png")
    locked.chmod(0)
    try:
        with pytest.raises(TraversalError):
            FolderScanner().build_index(tmp_path)
    finally:
        locked.chmod(0o755)


@pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges")
def test_symlinks_followed_and_loops_skipped(tmp_path):
    root = tmp_path / "root"
    make_image(root / "real" / "x.png")
    (root / "alias").symlink_to(root / "real", target_is_directory=True)
    (root / "real" / "loop").symlink_to(root, target_is_directory=True)

    index = FolderScanner().build_index(root)
    assert sorted(index) == ["alias/x.png", "real/x.png"]

    no_follow = FolderScanner(ScanOptions(follow_symlinks=False)).build_index(root)
    assert sorted(no_follow) == ["real/x.png"]


@pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges")
def test_broken_file_symlink_ignored(tmp_path):
    (tmp_path / "dangling.png").symlink_to(tmp_path / "nowhere.png")
    make_image(tmp_path / "ok.png")

    assert list(FolderScanner().build_index(tmp_path)) == ["ok.png"]


def test_progress_callback(tmp_path):
    make_image(tmp_path / "c" / "x.png")
    seen = []

    FolderScanner().build_index(tmp_path, seen.append)

    assert {p.current_path for p in seen} == {".", "c"}
