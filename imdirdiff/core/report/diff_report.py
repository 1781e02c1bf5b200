"""
Diff report assembly and console rendering.

Turns a reconciliation plus per-path comparison outcomes into one
sorted stream of entries, and prints the anomalies with fixed symbols.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import IO, Iterator, Mapping, Optional, Union

from imdirdiff.core.errors import DecodeError
from imdirdiff.core.models import (
    ComparisonOutcome,
    DiffEntry,
    EntryStatus,
    ReconciliationResult,
    RelativePath,
    ReportSummary,
    RunStatus,
    display_path,
)


OutcomeOrError = Union[ComparisonOutcome, DecodeError]


class SymbolColors:
    """ANSI colors for console symbols."""
    COLORS = {
        EntryStatus.LEFT_ONLY: '\033[31m',      # Red
        EntryStatus.RIGHT_ONLY: '\033[32m',     # Green
        EntryStatus.DIFFERENT: '\033[33m',      # Yellow
        EntryStatus.UNDETERMINED: '\033[35m',   # Magenta
    }
    RESET = '\033[0m'


def should_use_color(mode: str, stream: IO[str]) -> bool:
    """Resolve an auto/always/never color mode for a stream."""
    if mode == 'always':
        return True
    if mode == 'never':
        return False
    isatty = getattr(stream, 'isatty', None)
    return bool(isatty and isatty())


def format_entry(entry: DiffEntry, use_colors: bool = False) -> Optional[str]:
    """Console line for an entry, or None for entries that print nothing."""
    symbol = entry.symbol
    if symbol is None:
        return None
    if use_colors:
        color = SymbolColors.COLORS.get(entry.status, '')
        symbol = f"{color}{symbol}{SymbolColors.RESET}"
    return f"[{symbol}] {display_path(entry.relative_path)}"


@dataclass
class DiffReport:
    """Ordered entries of one comparison run."""
    entries: list[DiffEntry] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        reconciliation: ReconciliationResult,
        outcomes: Mapping[RelativePath, OutcomeOrError]
    ) -> 'DiffReport':
        """
        Combine reconciliation and comparison results.

        Args:
            reconciliation: Three-way split of the two indexes
            outcomes: Outcome or DecodeError for every common path

        Returns:
            DiffReport with one entry per path, sorted by relative path

        Raises:
            KeyError: If a common path has no outcome
        """
        entries = [
            DiffEntry(relative_path=p, status=EntryStatus.LEFT_ONLY)
            for p in reconciliation.left_only
        ]
        entries.extend(
            DiffEntry(relative_path=p, status=EntryStatus.RIGHT_ONLY)
            for p in reconciliation.right_only
        )

        for rel_path in reconciliation.common:
            result = outcomes[rel_path]
            if isinstance(result, DecodeError):
                entries.append(DiffEntry(rel_path, EntryStatus.UNDETERMINED, error=result))
            elif result.is_identical:
                entries.append(DiffEntry(rel_path, EntryStatus.SAME, outcome=result))
            else:
                entries.append(DiffEntry(rel_path, EntryStatus.DIFFERENT, outcome=result))

        entries.sort(key=lambda e: e.relative_path)
        return cls(entries=entries)

    def __iter__(self) -> Iterator[DiffEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def anomalies(self) -> list[DiffEntry]:
        """Entries that are not SAME, in report order."""
        return [e for e in self.entries if e.is_anomaly]

    def entries_with_status(self, status: EntryStatus) -> list[DiffEntry]:
        return [e for e in self.entries if e.status is status]

    @property
    def summary(self) -> ReportSummary:
        counts = {status: 0 for status in EntryStatus}
        for entry in self.entries:
            counts[entry.status] += 1
        return ReportSummary(
            left_only=counts[EntryStatus.LEFT_ONLY],
            right_only=counts[EntryStatus.RIGHT_ONLY],
            same=counts[EntryStatus.SAME],
            different=counts[EntryStatus.DIFFERENT],
            undetermined=counts[EntryStatus.UNDETERMINED],
        )

    @property
    def status(self) -> RunStatus:
        return self.summary.status

    def console_lines(self, use_colors: bool = False) -> list[str]:
        lines = []
        for entry in self.entries:
            line = format_entry(entry, use_colors)
            if line is not None:
                lines.append(line)
        return lines

    def render_console(self, stream: Optional[IO[str]] = None, color: str = 'auto') -> int:
        """
        Print one line per anomaly.

        Returns:
            Number of lines written
        """
        stream = stream or sys.stdout
        encoding = getattr(stream, 'encoding', None) or 'utf-8'
        lines = self.console_lines(should_use_color(color, stream))
        for line in lines:
            # Symbols the console cannot encode are escaped, not fatal
            line = line.encode(encoding, 'backslashreplace').decode(encoding)
            stream.write(line + '\n')
        stream.flush()
        return len(lines)
