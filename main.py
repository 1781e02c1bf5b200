"""
Main entry point for the image directory comparison tool.

This module handles:
- Command line argument parsing
- Logging configuration
- Settings loading and command line overrides
- Running the comparison and rendering the report
- Exit status mapping
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List

from imdirdiff import __version__
from imdirdiff.core.errors import ImDirDiffError, ReportError, SettingsError, TraversalError
from imdirdiff.core.folder.comparer import CompareOptions, CompareProgress, ImageDirComparer
from imdirdiff.core.models import RunStatus
from imdirdiff.core.report.html_report import HtmlReportWriter
from imdirdiff.services.settings import ApplicationSettings, ColorMode, SettingsManager


# =============================================================================
# Constants
# =============================================================================

APP_NAME = "imdirdiff"
APP_VERSION = __version__


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class CommandLineArgs:
    """Parsed command line arguments."""
    left_path: str = ""
    right_path: str = ""
    output_path: Optional[str] = None
    no_report: bool = False
    jobs: Optional[int] = None
    extensions: Optional[List[str]] = None
    exclude_patterns: List[str] = field(default_factory=list)
    no_follow_symlinks: bool = False
    skip_hidden: bool = False
    no_mask: bool = False
    color: Optional[str] = None
    config_file: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None


# =============================================================================
# Logging Setup
# =============================================================================

class LogFormatter(logging.Formatter):
    """Log formatter with colors for terminals."""

    COLORS = {
        logging.INFO: '\033[32m',      # Green
        logging.WARNING: '\033[33m',   # Yellow
        logging.ERROR: '\033[31m',     # Red
        logging.CRITICAL: '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True, stream=None):
        super().__init__(
            fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        stream = stream if stream is not None else sys.stderr
        self.use_colors = use_colors and hasattr(stream, 'isatty') and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)

        if self.use_colors:
            color = self.COLORS.get(record.levelno, '')
            return f"{color}{formatted}{self.RESET}"

        return formatted


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> logging.Logger:
    """
    Configure application logging.

    Console logs go to stderr so stdout carries only the diff lines.

    Args:
        level: Log level string
        log_file: Optional file path for logging

    Returns:
        Root logger instance
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(LogFormatter(use_colors=True, stream=sys.stderr))
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding='utf-8', errors='backslashreplace')
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(LogFormatter(use_colors=False))
        root_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger('PIL').setLevel(logging.WARNING)

    return root_logger


# =============================================================================
# Command Line Parsing
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Compare two directories of images by relative path and pixel content",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Output symbols:
  [-] path    only present in LEFT
  [+] path    only present in RIGHT
  [≠] path    present in both, dimensions or pixels differ
  [!] path    present in both, could not be decoded

Exit status:
  0  no differences       1  differences found
  2  fatal error          3  some images could not be decoded

Examples:
  %(prog)s expected/ actual/                 Compare and write ./imdirdiff-out
  %(prog)s -o report expected/ actual/       Write the HTML report to report/
  %(prog)s --no-report -j 1 a/ b/            Console only, single worker
        """
    )

    parser.add_argument('left', help='Left (reference) directory')
    parser.add_argument('right', help='Right (candidate) directory')

    # Report options
    parser.add_argument(
        '-o', '--output',
        help='Directory for the HTML report (default: ./imdirdiff-out)'
    )
    parser.add_argument(
        '--no-report',
        action='store_true',
        help='Do not write the HTML report'
    )
    parser.add_argument(
        '--color',
        choices=[mode.value for mode in ColorMode],
        default=None,
        help='Color the console symbols'
    )

    # Comparison options
    parser.add_argument(
        '-j', '--jobs',
        type=int,
        help='Number of parallel image comparisons'
    )
    parser.add_argument(
        '-e', '--extensions',
        help='Comma separated image extensions to index (default: gif,jpg,jpeg,png,webp)'
    )
    parser.add_argument(
        '-x', '--exclude',
        action='append',
        default=[],
        metavar='PATTERN',
        help='Gitignore-style pattern to skip (repeatable)'
    )
    parser.add_argument(
        '--no-follow-symlinks',
        action='store_true',
        help='Do not descend into symlinked directories'
    )
    parser.add_argument(
        '--skip-hidden',
        action='store_true',
        help='Skip files and directories starting with a dot'
    )
    parser.add_argument(
        '--no-mask',
        action='store_true',
        help='Do not compute difference masks (no diff images in the report)'
    )

    # Configuration
    parser.add_argument(
        '-c', '--config',
        help='Configuration file path'
    )

    # Logging
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default='INFO',
        help='Log level'
    )
    parser.add_argument(
        '--log-file',
        help='Also write logs to this file'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'{APP_NAME} {APP_VERSION}'
    )

    return parser


def parse_arguments(args: Optional[List[str]] = None) -> CommandLineArgs:
    """
    Parse command line arguments.

    Args:
        args: Arguments to parse (defaults to sys.argv)

    Returns:
        Parsed arguments
    """
    parser = build_parser()
    parsed = parser.parse_args(args)

    if parsed.jobs is not None and parsed.jobs < 1:
        parser.error("--jobs must be at least 1")

    result = CommandLineArgs()
    result.left_path = parsed.left
    result.right_path = parsed.right
    result.output_path = parsed.output
    result.no_report = parsed.no_report
    result.jobs = parsed.jobs
    result.exclude_patterns = list(parsed.exclude)
    result.no_follow_symlinks = parsed.no_follow_symlinks
    result.skip_hidden = parsed.skip_hidden
    result.no_mask = parsed.no_mask
    result.color = parsed.color
    result.config_file = parsed.config
    result.log_file = parsed.log_file

    if parsed.extensions:
        result.extensions = [ext for ext in parsed.extensions.split(',') if ext.strip()]

    if parsed.debug or parsed.verbose:
        result.log_level = 'DEBUG'
    else:
        result.log_level = parsed.log_level

    return result


# =============================================================================
# Application Setup
# =============================================================================

def load_settings(args: CommandLineArgs) -> ApplicationSettings:
    """
    Load settings and apply command line overrides.

    Raises:
        SettingsError: If an explicit --config file cannot be used
    """
    manager = SettingsManager(args.config_file, required=bool(args.config_file))
    settings = manager.settings

    comparison = settings.comparison
    if args.extensions:
        comparison.extensions = args.extensions
    if args.exclude_patterns:
        comparison.exclude_patterns = comparison.exclude_patterns + args.exclude_patterns
    if args.no_follow_symlinks:
        comparison.follow_symlinks = False
    if args.skip_hidden:
        comparison.include_hidden = False
    if args.no_mask:
        comparison.compute_mask = False
    if args.jobs is not None:
        comparison.workers = args.jobs

    report = settings.report
    if args.no_report:
        report.enabled = False
    if args.output_path:
        report.output_dir = args.output_path
    if args.color:
        report.color = ColorMode.from_string(args.color)

    return settings


def create_comparer(settings: ApplicationSettings) -> ImageDirComparer:
    """Build the comparer and, when enabled, its report writer."""
    comparison = settings.comparison
    options = CompareOptions(
        extensions=tuple(comparison.extensions),
        follow_symlinks=comparison.follow_symlinks,
        include_hidden=comparison.include_hidden,
        exclude_patterns=list(comparison.exclude_patterns),
        compute_mask=comparison.compute_mask,
        workers=comparison.workers,
    )

    writer = None
    if settings.report.enabled:
        writer = HtmlReportWriter(
            settings.report.output_dir,
            thumbnail_height=settings.report.thumbnail_height,
            style=settings.report.highlight_style,
            color=settings.report.highlight_color,
            render_diffs=comparison.compute_mask,
        )

    return ImageDirComparer(options, report_writer=writer)


def _log_progress(progress: CompareProgress) -> None:
    if progress.phase == 'comparing':
        logging.debug(
            f"Progress - {progress.items_processed}/{progress.total_items} "
            f"({progress.percent:.0f}%) {progress.current_path}"
        )


def main(argv: Optional[List[str]] = None) -> int:
    """
    Application main function.

    Returns:
        Exit code (see RunStatus)
    """
    try:
        args = parse_arguments(argv)
    except SystemExit as e:
        # argparse exits 0 for --help/--version and 2 for usage errors
        return int(e.code or 0)

    try:
        setup_logging(args.log_level, Path(args.log_file) if args.log_file else None)
    except OSError as e:
        setup_logging(args.log_level)
        logging.error(f"Cannot open log file {args.log_file}: {e}")
        return int(RunStatus.FAILED)

    logging.debug(f"Starting {APP_NAME} {APP_VERSION}")

    try:
        settings = load_settings(args)
        comparer = create_comparer(settings)
        if comparer.report_writer is not None:
            comparer.report_writer.prepare()

        run = comparer.compare(args.left_path, args.right_path, _log_progress)
        run.report.render_console(sys.stdout, settings.report.color.value)

        if comparer.report_writer is not None:
            comparer.report_writer.write_index(run.report)
    except TraversalError as e:
        logging.error(f"Error reading directories: {e}")
        return int(RunStatus.FAILED)
    except ReportError as e:
        logging.error(f"Error generating report: {e}")
        return int(RunStatus.FAILED)
    except SettingsError as e:
        logging.error(f"Error loading settings: {e}")
        return int(RunStatus.FAILED)
    except ImDirDiffError as e:
        logging.error(f"{APP_NAME} failed: {e}")
        return int(RunStatus.FAILED)

    summary = run.report.summary
    logging.info(f"Summary - {summary.describe()} in {run.compare_time:.2f}s")
    return int(summary.status)


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
