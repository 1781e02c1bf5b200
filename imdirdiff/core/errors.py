"""
Exception hierarchy for image directory comparison.

Fatal errors (traversal, report, settings) abort a run. DecodeError is
local to one path and is recorded as that path's outcome.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class ImDirDiffError(Exception):
    """Base class for all errors raised by the comparison engine."""


class TraversalError(ImDirDiffError):
    """A root could not be indexed: missing, not a directory, unreadable, or escaped."""

    def __init__(self, message: str, path: Optional[Path | str] = None):
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class DecodeError(ImDirDiffError):
    """One side of a common path could not be decoded into pixels."""

    def __init__(self, side: str, path: Path | str, cause: BaseException | str):
        self.side = side
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"cannot decode {side} image {self.path}: {cause}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DecodeError):
            return NotImplemented
        return (self.side, self.path, str(self.cause)) == (other.side, other.path, str(other.cause))

    def __hash__(self) -> int:
        return hash((self.side, self.path, str(self.cause)))


# Comparator failures are decode failures; the alias names the contract.
ComparatorError = DecodeError


class ReportError(ImDirDiffError):
    """The HTML report artifact could not be written."""


class SettingsError(ImDirDiffError):
    """An explicitly requested configuration file is unreadable or malformed."""
