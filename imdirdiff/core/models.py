"""
Core data models for image directory comparison.

This module defines all data structures shared across the engine:
- Relative path normalization
- Path indexes for one directory root
- Reconciliation results
- Image comparison outcomes
- Report entries and summaries

All models are:
- UI-agnostic (console and HTML renderers consume the same entries)
- Immutable where practical
- Scoped to a single comparison run
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum, auto
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional, Union, TYPE_CHECKING

from imdirdiff.core.errors import DecodeError, TraversalError

if TYPE_CHECKING:
    from PIL import Image as PILImage


RelativePath = str


def normalize_relative_path(path: Path | str) -> RelativePath:
    """
    Normalize a path relative to a root into the join key.

    Separators become '/', empty and '.' segments are dropped.
    Case is preserved.

    Raises:
        TraversalError: If the path is absolute, empty or contains '..'
    """
    text = str(path).replace(os.sep, '/')
    if os.altsep:
        text = text.replace(os.altsep, '/')

    if text.startswith('/') or PurePosixPath(text).is_absolute() or Path(text).is_absolute():
        raise TraversalError(f"Absolute path is not relative to the root: {path}")

    parts = [part for part in text.split('/') if part not in ('', '.')]
    if not parts:
        raise TraversalError(f"Empty relative path: {path!r}")
    if '..' in parts:
        raise TraversalError(f"Path escapes its root: {path}")

    return '/'.join(parts)


def display_path(path: RelativePath) -> str:
    """
    Printable form of a relative path.

    Names that are not valid UTF-8 arrive surrogate-escaped; their raw
    bytes are shown as backslash escapes.
    """
    return os.fsencode(path).decode('utf-8', 'backslashreplace')


# =============================================================================
# Enumerations
# =============================================================================

class EntryStatus(Enum):
    """Classification of a path in the final report."""
    LEFT_ONLY = auto()      # File exists only in the left tree
    RIGHT_ONLY = auto()     # File exists only in the right tree
    SAME = auto()           # Both images decode to identical pixels
    DIFFERENT = auto()      # Both decode, dimensions or pixels differ
    UNDETERMINED = auto()   # At least one side could not be decoded

    @property
    def symbol(self) -> Optional[str]:
        """Console marker for the status; SAME has none."""
        return STATUS_SYMBOLS.get(self)


STATUS_SYMBOLS = {
    EntryStatus.LEFT_ONLY: "-",
    EntryStatus.RIGHT_ONLY: "+",
    EntryStatus.DIFFERENT: "≠",
    EntryStatus.UNDETERMINED: "!",
}


class RunStatus(IntEnum):
    """Process exit status derived from a finished run."""
    IDENTICAL = 0       # No differences found
    DIFFERENCES = 1     # Differences found, every image decoded
    FAILED = 2          # Fatal error, no trustworthy result
    UNDETERMINED = 3    # Some images could not be decoded


class DiffRenderStyle(Enum):
    """How a pixel mismatch is rendered for inspection."""
    MASK = auto()       # Changed pixels on a black background
    HIGHLIGHT = auto()  # Dimmed left image with changed pixels painted
    BOX = auto()        # HIGHLIGHT plus outlines around changed regions


# =============================================================================
# Path Index Models
# =============================================================================

class PathIndex(Mapping[RelativePath, Path]):
    """
    Read-only mapping from relative path to absolute path for one root.

    Built once per root; the underlying dictionary is never exposed
    mutably.
    """

    def __init__(self, root: Path | str, entries: Mapping[str, Path | str]):
        self._root = Path(root)
        normalized: dict[RelativePath, Path] = {}
        for rel_path, abs_path in entries.items():
            normalized[normalize_relative_path(rel_path)] = Path(abs_path)
        self._entries = MappingProxyType(normalized)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def entries(self) -> Mapping[RelativePath, Path]:
        return self._entries

    def absolute_path(self, relative_path: RelativePath) -> Path:
        """Absolute location of a relative path in this root."""
        return self._entries[relative_path]

    def __getitem__(self, key: RelativePath) -> Path:
        return self._entries[key]

    def __iter__(self) -> Iterator[RelativePath]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"PathIndex(root={str(self._root)!r}, files={len(self)})"


@dataclass(frozen=True)
class ReconciliationResult:
    """
    Three-way split of two path indexes.

    Each tuple is sorted lexicographically; the three are disjoint and
    together cover every path seen in either index.
    """
    left_only: tuple[RelativePath, ...] = ()
    right_only: tuple[RelativePath, ...] = ()
    common: tuple[RelativePath, ...] = ()

    @property
    def all_paths(self) -> tuple[RelativePath, ...]:
        """Every path from both sides in sorted order."""
        return tuple(sorted(self.left_only + self.right_only + self.common))

    @property
    def is_empty(self) -> bool:
        return not (self.left_only or self.right_only or self.common)


# =============================================================================
# Image Comparison Models
# =============================================================================

@dataclass
class PixelImage:
    """
    A decoded image.

    `image` is always the RGBA8 rendition. `native` keeps the decoded
    buffer for modes wider than 8 bits per channel (I;16, I, F), which
    lose precision in RGBA.
    """
    image: Any  # PIL.Image in mode RGBA
    source_mode: str
    format: Optional[str]
    native: Any = None  # PIL.Image in source_mode, wide modes only

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def size(self) -> tuple[int, int]:
        return (self.image.width, self.image.height)

    @property
    def is_wide(self) -> bool:
        return self.native is not None

    def tobytes(self) -> bytes:
        """Raw pixel buffer in RGBA order."""
        return self.image.tobytes()


@dataclass(frozen=True)
class ImageDiffRegion:
    """A rectangular region of changed pixels."""
    x: int                  # Left edge
    y: int                  # Top edge
    width: int              # Width of region
    height: int             # Height of region
    pixel_count: int        # Number of changed pixels inside

    @property
    def bounds(self) -> tuple[int, int, int, int]:
        """Get (x1, y1, x2, y2) bounds."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)


@dataclass(frozen=True)
class Identical:
    """Both images decode to the same dimensions and pixels."""

    @property
    def is_identical(self) -> bool:
        return True

    def describe(self) -> str:
        return "identical"


@dataclass(frozen=True)
class DimensionMismatch:
    """Both images decode but their sizes differ; pixels are not compared."""
    left_size: tuple[int, int]
    right_size: tuple[int, int]

    @property
    def is_identical(self) -> bool:
        return False

    def describe(self) -> str:
        lw, lh = self.left_size
        rw, rh = self.right_size
        return f"dimensions differ: {lw}x{lh} vs {rw}x{rh}"


@dataclass(frozen=True)
class PixelMismatch:
    """Same dimensions, at least one channel of one pixel differs."""
    size: tuple[int, int]
    changed_pixels: Optional[int] = None
    bbox: Optional[tuple[int, int, int, int]] = None
    regions: tuple[ImageDiffRegion, ...] = ()
    mask: Any = field(default=None, compare=False, repr=False)  # PIL.Image mode L

    @property
    def is_identical(self) -> bool:
        return False

    @property
    def total_pixels(self) -> int:
        return self.size[0] * self.size[1]

    @property
    def changed_ratio(self) -> Optional[float]:
        if self.changed_pixels is None or self.total_pixels == 0:
            return None
        return self.changed_pixels / self.total_pixels

    def without_mask(self) -> 'PixelMismatch':
        """Copy of this outcome that no longer holds the mask image."""
        return replace(self, mask=None)

    def describe(self) -> str:
        ratio = self.changed_ratio
        if ratio is None:
            return "pixels differ"
        return f"{self.changed_pixels} of {self.total_pixels} pixels differ ({ratio:.2%})"


ComparisonOutcome = Union[Identical, DimensionMismatch, PixelMismatch]


# =============================================================================
# Report Models
# =============================================================================

@dataclass(frozen=True)
class DiffEntry:
    """One path and its classification, the unit the report renders."""
    relative_path: RelativePath
    status: EntryStatus
    outcome: Optional[ComparisonOutcome] = None
    error: Optional[DecodeError] = None

    @property
    def symbol(self) -> Optional[str]:
        return self.status.symbol

    @property
    def is_anomaly(self) -> bool:
        """True for every status the console prints."""
        return self.status is not EntryStatus.SAME

    def describe(self) -> str:
        if self.error is not None:
            return str(self.error)
        if self.outcome is not None:
            return self.outcome.describe()
        if self.status is EntryStatus.LEFT_ONLY:
            return "only present in left"
        if self.status is EntryStatus.RIGHT_ONLY:
            return "only present in right"
        return ""


@dataclass(frozen=True)
class ReportSummary:
    """Per-status counts for a finished run."""
    left_only: int = 0
    right_only: int = 0
    same: int = 0
    different: int = 0
    undetermined: int = 0

    @property
    def total(self) -> int:
        return self.left_only + self.right_only + self.same + self.different + self.undetermined

    @property
    def has_differences(self) -> bool:
        return bool(self.left_only or self.right_only or self.different)

    @property
    def status(self) -> RunStatus:
        if self.undetermined:
            return RunStatus.UNDETERMINED
        if self.has_differences:
            return RunStatus.DIFFERENCES
        return RunStatus.IDENTICAL

    def describe(self) -> str:
        return (
            f"{self.total} files: {self.same} identical, {self.different} different, "
            f"{self.left_only} only in left, {self.right_only} only in right, "
            f"{self.undetermined} undetermined"
        )
