"""
Three-way reconciliation of two path indexes.
"""

from __future__ import annotations

from typing import Iterable

from imdirdiff.core.models import ReconciliationResult, RelativePath


def reconcile(
    left: Iterable[RelativePath],
    right: Iterable[RelativePath]
) -> ReconciliationResult:
    """
    Split the paths of two indexes into left-only, right-only and common.

    Accepts PathIndex instances or any iterable of relative paths. Each
    output tuple is sorted, so the result is independent of traversal
    order.
    """
    left_keys = frozenset(left)
    right_keys = frozenset(right)

    return ReconciliationResult(
        left_only=tuple(sorted(left_keys - right_keys)),
        right_only=tuple(sorted(right_keys - left_keys)),
        common=tuple(sorted(left_keys & right_keys)),
    )
