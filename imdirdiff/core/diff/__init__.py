"""
Diff module for image comparison.

Provides the strict pixel comparator and diff rendering.
"""

from imdirdiff.core.diff.image_diff import (
    ImageComparator,
    ImageCompareOptions,
    decode_image,
    comparable_buffers,
    difference_mask,
    find_diff_regions,
    overlay_mismatch,
    render_diff_image,
)

__all__ = [
    'ImageComparator',
    'ImageCompareOptions',
    'decode_image',
    'comparable_buffers',
    'difference_mask',
    'find_diff_regions',
    'overlay_mismatch',
    'render_diff_image',
]
