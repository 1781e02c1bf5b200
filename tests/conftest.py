"""Shared fixtures for imdirdiff tests."""

from pathlib import Path

import pytest
from PIL import Image


def make_image(path: Path, size=(4, 3), color=(10, 20, 30, 255), mode='RGBA', fmt=None) -> Path:
    """Write a solid-color image, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.new(mode, size, color)
    img.save(path, format=fmt)
    return path


def set_pixel(path: Path, xy, color) -> Path:
    """Rewrite one pixel of an existing image in place."""
    with Image.open(path) as img:
        img.load()
        edited = img.copy()
    edited.putpixel(xy, color)
    edited.save(path)
    return path


@pytest.fixture
def scenario(tmp_path):
    """
    Two roots laid out like the reference example:

    a/ same.png different.png a_only.png c/recursive.png
    b/ same.png different.png b_only.png c/recursive.png
    """
    left = tmp_path / "a"
    right = tmp_path / "b"

    make_image(left / "same.png")
    (right / "same.png").parent.mkdir(parents=True, exist_ok=True)
    (right / "same.png").write_bytes((left / "same.png").read_bytes())

    make_image(left / "different.png", color=(0, 0, 0, 255))
    make_image(right / "different.png", color=(255, 255, 255, 255))

    make_image(left / "a_only.png")
    make_image(right / "b_only.png")

    make_image(left / "c" / "recursive.png", size=(8, 8))
    make_image(right / "c" / "recursive.png", size=(8, 8))
    set_pixel(right / "c" / "recursive.png", (3, 5), (255, 0, 0, 255))

    return left, right


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point the default settings location at an empty directory."""
    config_home = tmp_path / "config"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.setenv("APPDATA", str(config_home))
    return config_home
