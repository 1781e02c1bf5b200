"""
Report module.

Provides the sorted diff report, console rendering and the HTML
inspection artifact.
"""

from imdirdiff.core.report.diff_report import DiffReport, format_entry
from imdirdiff.core.report.html_report import HtmlReportWriter

__all__ = [
    'DiffReport',
    'format_entry',
    'HtmlReportWriter',
]
