"""
HTML report artifact.

Writes a self-contained directory for visual inspection:

    <output>/index.html
    <output>/a/<rel>                  copy of the left image
    <output>/b/<rel>                  copy of the right image
    <output>/diff/<rel>.diff.png      rendered difference
    <output>/thumbs/a/<rel>.jpg       thumbnails, one tree per image kind
    <output>/thumbs/b/<rel>.jpg
    <output>/thumbs/diff/<rel>.jpg
"""

from __future__ import annotations

import html
import logging
import os
import shutil
from pathlib import Path
from typing import Tuple
from urllib.parse import quote

from PIL import Image

from imdirdiff.core.diff.image_diff import (
    DECODE_FAILURES,
    decode_image,
    overlay_mismatch,
    render_diff_image,
)
from imdirdiff.core.errors import DecodeError, ReportError
from imdirdiff.core.models import (
    ComparisonOutcome,
    DiffEntry,
    DiffRenderStyle,
    DimensionMismatch,
    EntryStatus,
    PixelMismatch,
    RelativePath,
    display_path,
)
from imdirdiff.core.report.diff_report import DiffReport


INDEX_NAME = "index.html"
LEFT_DIR = "a"
RIGHT_DIR = "b"
DIFF_DIR = "diff"
THUMBS_DIR = "thumbs"
THUMB_SUFFIX = ".jpg"
DIFF_SUFFIX = ".diff.png"


STYLE = """
body { font-family: sans-serif; margin: 1em 2em; background: #fafafa; color: #222; }
h1 { font-size: 1.3em; }
.summary { color: #555; margin-bottom: 1em; }
.only li, .errors li { font-family: monospace; }
.errors li { color: #a0006e; }
.diffs { display: flex; flex-direction: column; gap: 1em; }
.diff { background: #fff; border: 1px solid #ddd; border-radius: 4px; padding: 0.5em 1em; }
.diff .path { font-family: monospace; font-weight: bold; }
.diff .detail { color: #777; margin-left: 1em; }
.diff .x { float: right; cursor: pointer; color: #999; }
.diff .x:hover { color: #c00; }
.diff img { height: 80px; margin: 0.5em 0.5em 0 0; border: 1px solid #ccc; image-rendering: pixelated; }
"""

SCRIPT = """
document.querySelectorAll('.diff .x').forEach(function (button) {
  button.addEventListener('click', function () {
    button.closest('.diff').remove();
  });
});
"""


def _href(prefix: str, relative_path: RelativePath, suffix: str = "") -> str:
    # Quote the raw file name bytes so non UTF-8 names still resolve
    parts = prefix.split('/') + relative_path.split('/')
    parts[-1] += suffix
    return html.escape('/'.join(quote(os.fsencode(p)) for p in parts), quote=True)


class HtmlReportWriter:
    """
    Writes the inspection artifact for one run.

    write_assets() is called once per DIFFERENT path, possibly from
    several worker threads; every call writes distinct files.
    write_index() is called once at the end.
    """

    def __init__(
        self,
        output_dir: Path | str,
        thumbnail_height: int = 80,
        style: DiffRenderStyle = DiffRenderStyle.HIGHLIGHT,
        color: Tuple[int, int, int, int] = (255, 0, 0, 255),
        render_diffs: bool = True,
    ):
        self.output_dir = Path(output_dir)
        self.thumbnail_height = thumbnail_height
        self.style = style
        self.color = color
        self.render_diffs = render_diffs

    def prepare(self) -> None:
        """Create the output directory."""
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ReportError(f"Cannot create report directory {self.output_dir}: {e}") from e

    def asset_path(self, prefix: str, relative_path: RelativePath, suffix: str = "") -> Path:
        """Location of a report file mirroring the relative path."""
        *parents, name = relative_path.split('/')
        return self.output_dir.joinpath(*prefix.split('/'), *parents, name + suffix)

    def has_diff_image(self, outcome: ComparisonOutcome) -> bool:
        """Whether write_assets() renders a diff image for this outcome."""
        if isinstance(outcome, PixelMismatch):
            return outcome.mask is not None or outcome.changed_pixels is not None
        return isinstance(outcome, DimensionMismatch) and self.render_diffs

    def write_assets(
        self,
        relative_path: RelativePath,
        left_path: Path | str,
        right_path: Path | str,
        outcome: ComparisonOutcome,
    ) -> None:
        """
        Copy both images, write thumbnails and the rendered difference.

        Images of different sizes are overlaid on a shared canvas for the
        diff image; the outcome itself is not changed.

        Raises:
            ReportError: If any file cannot be written
        """
        if outcome.is_identical:
            return

        left_copy = self._copy_image(Path(left_path), LEFT_DIR, relative_path)
        right_copy = self._copy_image(Path(right_path), RIGHT_DIR, relative_path)

        if isinstance(outcome, PixelMismatch) and outcome.mask is None:
            return
        if not self.has_diff_image(outcome):
            return

        diff_path = self.asset_path(DIFF_DIR, relative_path, DIFF_SUFFIX)
        try:
            left = decode_image(left_copy, "left")
            if isinstance(outcome, DimensionMismatch):
                left, outcome = overlay_mismatch(left, decode_image(right_copy, "right"))
            rendered = render_diff_image(left, outcome, self.style, self.color)
            diff_path.parent.mkdir(parents=True, exist_ok=True)
            rendered.save(diff_path, format='PNG')
            self._write_thumbnail(rendered, DIFF_DIR, relative_path)
        except (OSError, ValueError, DecodeError) as e:
            raise ReportError(f"Cannot write diff image for {relative_path}: {e}") from e

        logging.debug(f"HtmlReportWriter - Wrote assets for {relative_path}")

    def _copy_image(self, source: Path, prefix: str, relative_path: RelativePath) -> Path:
        target = self.asset_path(prefix, relative_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        except OSError as e:
            raise ReportError(f"Cannot copy {source} into report: {e}") from e

        try:
            with Image.open(target) as img:
                img.load()
                self._write_thumbnail(img, prefix, relative_path)
        except DECODE_FAILURES as e:
            raise ReportError(f"Cannot write thumbnail for {target}: {e}") from e
        return target

    def _write_thumbnail(self, img: Image.Image, prefix: str, relative_path: RelativePath) -> Path:
        thumb_path = self.asset_path(THUMBS_DIR + "/" + prefix, relative_path, THUMB_SUFFIX)
        height = max(1, self.thumbnail_height)
        width = max(1, round(img.width * height / img.height)) if img.height else 1

        thumb = img.convert('RGBA').resize((width, height), Image.BILINEAR)
        # JPEG has no alpha channel; flatten onto white
        flat = Image.new('RGB', thumb.size, (255, 255, 255))
        flat.paste(thumb, mask=thumb.getchannel('A'))
        thumb_path.parent.mkdir(parents=True, exist_ok=True)
        flat.save(thumb_path, format='JPEG', quality=85)
        return thumb_path

    def write_index(self, report: DiffReport) -> Path:
        """
        Write index.html for a finished report.

        Raises:
            ReportError: If the index cannot be written
        """
        index_path = self.output_dir / INDEX_NAME
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            index_path.write_text(
                self.render_index(report), encoding='utf-8', errors='backslashreplace'
            )
        except OSError as e:
            raise ReportError(f"Cannot write {index_path}: {e}") from e

        logging.info(f"HtmlReportWriter - Report written to {index_path}")
        return index_path

    def render_index(self, report: DiffReport) -> str:
        """Render the index document as a string."""
        parts = [
            "<!DOCTYPE html>",
            "<html lang='en'>",
            "<head><meta charset='utf-8'><title>Image directory diff</title>",
            f"<style>{STYLE}</style></head>",
            "<body>",
            "<h1>Image directory diff</h1>",
            f"<p class='summary'>{html.escape(report.summary.describe())}</p>",
        ]

        parts.extend(self._render_list(
            report, EntryStatus.LEFT_ONLY, 'only', "is only present in A"
        ))
        parts.extend(self._render_list(
            report, EntryStatus.RIGHT_ONLY, 'only', "is only present in B"
        ))
        parts.extend(self._render_list(
            report, EntryStatus.UNDETERMINED, 'errors', "could not be decoded"
        ))

        parts.append("<div class='diffs'>")
        for entry in report.entries_with_status(EntryStatus.DIFFERENT):
            parts.append(self._render_card(entry))
        parts.append("</div>")

        parts.append(f"<script>{SCRIPT}</script>")
        parts.append("</body></html>")
        return '\n'.join(parts)

    def _render_list(
        self,
        report: DiffReport,
        status: EntryStatus,
        css_class: str,
        label: str
    ) -> list[str]:
        entries = report.entries_with_status(status)
        if not entries:
            return []

        items = []
        for entry in entries:
            text = f"{display_path(entry.relative_path)} {label}"
            if entry.error is not None:
                text = f"{text}: {entry.error}"
            items.append(f"<li>{html.escape(text)}</li>")
        return [f"<ul class='{css_class}'>", *items, "</ul>"]

    def _render_card(self, entry: DiffEntry) -> str:
        rel = entry.relative_path

        links = []
        for prefix in (LEFT_DIR, RIGHT_DIR):
            thumb = _href(THUMBS_DIR + "/" + prefix, rel, THUMB_SUFFIX)
            links.append(
                f"<a href='{_href(prefix, rel)}'>"
                f"<img loading='lazy' alt='{prefix}' src='{thumb}'></a>"
            )

        outcome = entry.outcome
        if outcome is not None and self.has_diff_image(outcome):
            thumb = _href(THUMBS_DIR + "/" + DIFF_DIR, rel, THUMB_SUFFIX)
            links.append(
                f"<a href='{_href(DIFF_DIR, rel, DIFF_SUFFIX)}'>"
                f"<img loading='lazy' alt='diff' src='{thumb}'></a>"
            )

        detail = outcome.describe() if outcome is not None else ""
        return (
            "<div class='diff'>"
            f"<span class='path'>{html.escape(display_path(rel))}</span>"
            f"<span class='detail'>{html.escape(detail)}</span>"
            "<span class='x' title='dismiss'>x</span>"
            f"<div>{''.join(links)}</div>"
            "</div>"
        )
