"""
Image directory comparison driver.

Compares two directory trees of images:
- Indexes both roots
- Reconciles the path sets
- Compares every common path, in parallel when configured
- Assembles a sorted DiffReport
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, TYPE_CHECKING

from imdirdiff.core.diff.image_diff import ImageComparator, ImageCompareOptions
from imdirdiff.core.errors import DecodeError
from imdirdiff.core.folder.reconciler import reconcile
from imdirdiff.core.folder.scanner import FolderScanner, ScanOptions, DEFAULT_IMAGE_EXTENSIONS
from imdirdiff.core.models import (
    PathIndex,
    PixelMismatch,
    ReconciliationResult,
    RelativePath,
)
from imdirdiff.core.report.diff_report import DiffReport, OutcomeOrError

if TYPE_CHECKING:
    from imdirdiff.core.report.html_report import HtmlReportWriter


def default_workers() -> int:
    return min(8, os.cpu_count() or 1)


@dataclass
class CompareOptions:
    """Options for image directory comparison."""
    # Scanning
    extensions: tuple[str, ...] = DEFAULT_IMAGE_EXTENSIONS
    follow_symlinks: bool = True
    include_hidden: bool = True
    exclude_patterns: list[str] = field(default_factory=list)

    # Comparison
    compute_mask: bool = True

    # Performance
    workers: int = field(default_factory=default_workers)


@dataclass
class CompareProgress:
    """Progress of a comparison run."""
    phase: str  # 'scanning', 'comparing'
    current_path: str
    items_processed: int
    total_items: int

    @property
    def percent(self) -> float:
        if not self.total_items:
            return 100.0
        return self.items_processed / self.total_items * 100


@dataclass
class CompareRun:
    """Everything a finished run produced."""
    left_index: PathIndex
    right_index: PathIndex
    reconciliation: ReconciliationResult
    report: DiffReport
    compare_time: float = 0.0


class ImageDirComparer:
    """
    Compares two image directory trees.

    Traversal errors propagate and abort the run. Decode errors are
    caught per path and recorded in that path's entry.
    """

    def __init__(
        self,
        options: Optional[CompareOptions] = None,
        comparator: Optional[ImageComparator] = None,
        report_writer: Optional['HtmlReportWriter'] = None,
    ):
        self.options = options or CompareOptions()
        self.comparator = comparator or ImageComparator(
            ImageCompareOptions(compute_mask=self.options.compute_mask)
        )
        self.report_writer = report_writer
        self._progress_callback: Optional[Callable[[CompareProgress], None]] = None

    def compare(
        self,
        left_path: Path | str,
        right_path: Path | str,
        progress_callback: Optional[Callable[[CompareProgress], None]] = None
    ) -> CompareRun:
        """
        Compare two directories.

        Args:
            left_path: Left root directory
            right_path: Right root directory
            progress_callback: Called with progress updates

        Returns:
            CompareRun holding the indexes, reconciliation and report

        Raises:
            TraversalError: If either root cannot be indexed
            ReportError: If report assets cannot be written
        """
        start_time = time.time()
        self._progress_callback = progress_callback

        left_index, right_index = self.build_indexes(left_path, right_path)
        reconciliation = reconcile(left_index, right_index)
        logging.info(
            f"ImageDirComparer - {len(reconciliation.left_only)} left only, "
            f"{len(reconciliation.right_only)} right only, "
            f"{len(reconciliation.common)} in both"
        )

        outcomes = self.compare_common(left_index, right_index, reconciliation.common)
        report = DiffReport.build(reconciliation, outcomes)

        return CompareRun(
            left_index=left_index,
            right_index=right_index,
            reconciliation=reconciliation,
            report=report,
            compare_time=time.time() - start_time,
        )

    def build_indexes(self, left_path: Path | str, right_path: Path | str) -> tuple[PathIndex, PathIndex]:
        """Index both roots concurrently."""
        scanner = FolderScanner(ScanOptions(
            extensions=tuple(self.options.extensions),
            follow_symlinks=self.options.follow_symlinks,
            include_hidden=self.options.include_hidden,
            exclude_patterns=list(self.options.exclude_patterns),
        ))

        with ThreadPoolExecutor(max_workers=2) as executor:
            left_future = executor.submit(
                scanner.build_index,
                left_path,
                lambda p: self._report_progress('scanning', p.current_path, p.files_found, 0)
            )
            right_future = executor.submit(
                scanner.build_index,
                right_path,
                lambda p: self._report_progress('scanning', p.current_path, p.files_found, 0)
            )
            left_index = left_future.result()
            right_index = right_future.result()

        return left_index, right_index

    def compare_common(
        self,
        left_index: PathIndex,
        right_index: PathIndex,
        common: tuple[RelativePath, ...]
    ) -> dict[RelativePath, OutcomeOrError]:
        """
        Compare every common path.

        Returns:
            Mapping of relative path to outcome or DecodeError; the
            mapping's order is completion order and carries no meaning
        """
        outcomes: dict[RelativePath, OutcomeOrError] = {}
        total = len(common)
        if not total:
            return outcomes

        workers = max(1, self.options.workers)
        if workers == 1 or total == 1:
            for rel_path in common:
                outcomes[rel_path] = self._compare_single(
                    rel_path, left_index[rel_path], right_index[rel_path]
                )
                self._report_progress('comparing', rel_path, len(outcomes), total)
            return outcomes

        with ThreadPoolExecutor(max_workers=min(workers, total)) as executor:
            futures = {
                executor.submit(
                    self._compare_single,
                    rel_path,
                    left_index[rel_path],
                    right_index[rel_path]
                ): rel_path
                for rel_path in common
            }

            for future in as_completed(futures):
                rel_path = futures[future]
                outcomes[rel_path] = future.result()
                self._report_progress('comparing', rel_path, len(outcomes), total)

        return outcomes

    def _compare_single(
        self,
        rel_path: RelativePath,
        left_path: Path,
        right_path: Path
    ) -> OutcomeOrError:
        """Compare one path pair; decode errors become the result."""
        try:
            outcome = self.comparator.compare(left_path, right_path)
        except DecodeError as e:
            logging.warning(f"ImageDirComparer - {rel_path}: {e}")
            return e

        if not outcome.is_identical:
            logging.debug(f"ImageDirComparer - {rel_path}: {outcome.describe()}")
            if self.report_writer is not None:
                self.report_writer.write_assets(rel_path, left_path, right_path, outcome)

        # The mask is only needed for the report assets written above
        if isinstance(outcome, PixelMismatch) and outcome.mask is not None:
            outcome = outcome.without_mask()

        return outcome

    def _report_progress(
        self,
        phase: str,
        current_path: str,
        processed: int,
        total: int
    ) -> None:
        if self._progress_callback:
            self._progress_callback(CompareProgress(
                phase=phase,
                current_path=current_path,
                items_processed=processed,
                total_items=total,
            ))
