"""
Application settings management.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from imdirdiff.core.errors import SettingsError
from imdirdiff.core.folder.comparer import default_workers
from imdirdiff.core.folder.scanner import DEFAULT_IMAGE_EXTENSIONS
from imdirdiff.core.models import DiffRenderStyle


class ColorMode(Enum):
    """Console color options."""
    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"

    @classmethod
    def from_string(cls, value: str) -> 'ColorMode':
        """Create from string value, by value or by name."""
        for mode in cls:
            if mode.value == str(value).lower():
                return mode
        try:
            return cls[str(value).upper()]
        except KeyError:
            return cls.AUTO


@dataclass
class ComparisonSettings:
    """Settings for traversal and image comparison."""
    extensions: list[str] = field(default_factory=lambda: list(DEFAULT_IMAGE_EXTENSIONS))
    follow_symlinks: bool = True
    include_hidden: bool = True
    exclude_patterns: list[str] = field(default_factory=list)
    workers: int = field(default_factory=default_workers)
    compute_mask: bool = True


@dataclass
class ReportSettings:
    """Settings for console and HTML output."""
    enabled: bool = True
    output_dir: str = "./imdirdiff-out"
    thumbnail_height: int = 80
    highlight_style: DiffRenderStyle = DiffRenderStyle.HIGHLIGHT
    highlight_color: tuple[int, int, int, int] = (255, 0, 0, 255)
    color: ColorMode = ColorMode.AUTO


@dataclass
class ApplicationSettings:
    """Main application settings container."""
    comparison: ComparisonSettings = field(default_factory=ComparisonSettings)
    report: ReportSettings = field(default_factory=ReportSettings)


class SettingsManager:
    """Manager for loading/saving application settings."""

    def __init__(self, settings_path: Optional[Path | str] = None, required: bool = False):
        """
        Args:
            settings_path: JSON file to use instead of the default location
            required: Raise SettingsError when the file is missing or broken
        """
        self.settings_path = Path(settings_path) if settings_path else self._get_default_path()
        self.required = required
        self._settings: Optional[ApplicationSettings] = None

    @staticmethod
    def _get_default_path() -> Path:
        """Get the default settings file path."""
        if os.name == 'nt':
            app_data = os.environ.get('APPDATA', os.path.expanduser('~'))
            return Path(app_data) / 'imdirdiff' / 'settings.json'
        config_home = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
        return Path(config_home) / 'imdirdiff' / 'settings.json'

    @property
    def settings(self) -> ApplicationSettings:
        """Get current settings, loading from disk if needed."""
        if self._settings is None:
            self._settings = self.load()
        return self._settings

    def load(self) -> ApplicationSettings:
        """
        Load settings from disk.

        Raises:
            SettingsError: If the file is required and cannot be used
        """
        if not self.settings_path.exists():
            if self.required:
                raise SettingsError(f"Settings file not found: {self.settings_path}")
            return ApplicationSettings()

        try:
            with open(self.settings_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("top-level JSON value must be an object")
            return self._from_dict(data)
        except (OSError, ValueError, TypeError, AttributeError) as e:
            if self.required:
                raise SettingsError(f"Invalid settings file {self.settings_path}: {e}") from e
            logging.warning(f"SettingsManager - Ignoring invalid settings file {self.settings_path}: {e}")
            return ApplicationSettings()

    def save(self, settings: Optional[ApplicationSettings] = None) -> bool:
        """Save settings to disk."""
        settings = settings or self._settings
        if settings is None:
            return False

        try:
            self.settings_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.settings_path, 'w', encoding='utf-8') as f:
                json.dump(self._to_dict(settings), f, indent=2)
        except OSError as e:
            logging.error(f"SettingsManager - Could not save settings to {self.settings_path}: {e}")
            return False

        self._settings = settings
        return True

    def reset(self) -> ApplicationSettings:
        """Reset to default settings."""
        self._settings = ApplicationSettings()
        self.save()
        return self._settings

    def _to_dict(self, settings: ApplicationSettings) -> dict:
        """Convert settings to dictionary for JSON serialization."""
        def convert(obj: Any) -> Any:
            if isinstance(obj, Enum):
                return obj.name
            elif isinstance(obj, dict):
                return {k: convert(v) for k, v in obj.items()}
            elif isinstance(obj, (list, tuple)):
                return [convert(item) for item in obj]
            else:
                return obj

        return convert(asdict(settings))

    def _from_dict(self, data: dict) -> ApplicationSettings:
        """Convert dictionary back to settings objects."""
        def get_enum(enum_class: type, value: Any, default: Enum) -> Enum:
            if isinstance(value, str):
                try:
                    return enum_class[value.upper()]
                except KeyError:
                    logging.warning(f"SettingsManager - Unknown {enum_class.__name__} '{value}'")
                    return default
            return default

        defaults = ApplicationSettings()
        comparison_data = data.get('comparison', {})
        report_data = data.get('report', {})

        comparison = ComparisonSettings(
            extensions=list(comparison_data.get('extensions', defaults.comparison.extensions)),
            follow_symlinks=bool(comparison_data.get('follow_symlinks', True)),
            include_hidden=bool(comparison_data.get('include_hidden', True)),
            exclude_patterns=list(comparison_data.get('exclude_patterns', [])),
            workers=int(comparison_data.get('workers', defaults.comparison.workers)),
            compute_mask=bool(comparison_data.get('compute_mask', True)),
        )

        color = report_data.get('highlight_color', defaults.report.highlight_color)
        if len(color) != 4:
            raise ValueError(f"highlight_color needs 4 components, got {color!r}")

        report = ReportSettings(
            enabled=bool(report_data.get('enabled', True)),
            output_dir=str(report_data.get('output_dir', defaults.report.output_dir)),
            thumbnail_height=int(report_data.get('thumbnail_height', 80)),
            highlight_style=get_enum(
                DiffRenderStyle, report_data.get('highlight_style'), defaults.report.highlight_style
            ),
            highlight_color=tuple(int(c) for c in color),
            color=ColorMode.from_string(report_data.get('color', 'auto')),
        )

        return ApplicationSettings(comparison=comparison, report=report)
