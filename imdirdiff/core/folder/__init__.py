"""
Folder comparison module.

Provides functionality for:
- Indexing image files under a root
- Three-way reconciliation of two indexes
- Driving a full directory comparison
"""

from imdirdiff.core.folder.scanner import (
    FolderScanner,
    ScanOptions,
    PatternMatcher,
)
from imdirdiff.core.folder.reconciler import reconcile
from imdirdiff.core.folder.comparer import (
    ImageDirComparer,
    CompareOptions,
    CompareRun,
)

__all__ = [
    # Scanner
    'FolderScanner',
    'ScanOptions',
    'PatternMatcher',
    # Reconciler
    'reconcile',
    # Comparer
    'ImageDirComparer',
    'CompareOptions',
    'CompareRun',
]
