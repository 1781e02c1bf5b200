"""
Image directory comparison.

Compares two directory trees of images by relative path and reports
files present on one side only and images whose pixels differ.
"""

__version__ = "0.2.0"
