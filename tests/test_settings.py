"""Tests for JSON settings loading and saving."""

import json

import pytest

from imdirdiff.core.errors import SettingsError
from imdirdiff.core.models import DiffRenderStyle
from imdirdiff.services.settings import (
    ApplicationSettings,
    ColorMode,
    SettingsManager,
)


def test_defaults_when_file_missing(tmp_path):
    settings = SettingsManager(tmp_path / "none.json").settings
    assert settings == ApplicationSettings()
    assert settings.comparison.follow_symlinks is True
    assert settings.comparison.include_hidden is True
    assert settings.report.output_dir == "./imdirdiff-out"


def test_default_path_uses_xdg(isolated_config):
    manager = SettingsManager()
    assert manager.settings_path.parent.name == "imdirdiff"
    assert manager.settings == ApplicationSettings()


def test_save_and_load(tmp_path):
    path = tmp_path / "cfg" / "settings.json"
    settings = ApplicationSettings()
    settings.comparison.extensions = ["png", "bmp"]
    settings.comparison.workers = 3
    settings.comparison.exclude_patterns = ["thumbs/"]
    settings.report.highlight_style = DiffRenderStyle.BOX
    settings.report.color = ColorMode.NEVER

    assert SettingsManager(path).save(settings)
    stored = json.loads(path.read_text(encoding='utf-8'))
    assert stored["report"]["highlight_style"] == "BOX"

    loaded = SettingsManager(path).load()
    assert loaded == settings


def test_partial_file_keeps_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"report": {"enabled": False}}), encoding='utf-8')

    settings = SettingsManager(path).load()

    assert settings.report.enabled is False
    assert settings.comparison == ApplicationSettings().comparison


def test_invalid_file_falls_back_when_optional(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding='utf-8')
    assert SettingsManager(path).load() == ApplicationSettings()


@pytest.mark.parametrize("content", [
    "{not json",
    "[1, 2]",
    json.dumps({"report": {"highlight_color": [1, 2]}}),
    json.dumps({"comparison": "oops"}),
])
def test_invalid_file_raises_when_required(tmp_path, content):
    path = tmp_path / "settings.json"
    path.write_text(content, encoding='utf-8')
    with pytest.raises(SettingsError):
        SettingsManager(path, required=True).load()


def test_missing_required_file_raises(tmp_path):
    with pytest.raises(SettingsError):
        SettingsManager(tmp_path / "absent.json", required=True).load()


def test_unknown_style_uses_default(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"report": {"highlight_style": "sparkle"}}), encoding='utf-8')
    assert SettingsManager(path).load().report.highlight_style is DiffRenderStyle.HIGHLIGHT


@pytest.mark.parametrize("value, expected", [
    ("auto", ColorMode.AUTO),
    ("ALWAYS", ColorMode.ALWAYS),
    ("never", ColorMode.NEVER),
    ("rainbow", ColorMode.AUTO),
])
def test_color_mode_from_string(value, expected):
    assert ColorMode.from_string(value) is expected


def test_reset_writes_defaults(tmp_path):
    path = tmp_path / "settings.json"
    manager = SettingsManager(path)
    assert manager.reset() == ApplicationSettings()
    assert path.exists()
