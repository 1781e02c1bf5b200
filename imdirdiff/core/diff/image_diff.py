"""
Image comparison engine.

Provides strict comparison of two image files with:
- Decoding to RGBA8, keeping native buffers for 16-bit and float modes
- Dimension check before any pixel access
- Byte-exact pixel equality (no tolerance)
- Difference masks and changed-region detection
- Rendered diff images for visual inspection
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, ImageChops, ImageDraw, ImageEnhance, ImageFilter, ImageOps

from imdirdiff.core.errors import DecodeError
from imdirdiff.core.models import (
    ComparisonOutcome,
    DiffRenderStyle,
    DimensionMismatch,
    Identical,
    ImageDiffRegion,
    PixelImage,
    PixelMismatch,
)


# Pillow raises these for unreadable, corrupt, truncated or oversized inputs
DECODE_FAILURES = (OSError, ValueError, SyntaxError, Image.DecompressionBombError)


@dataclass
class ImageCompareOptions:
    """Options for image comparison."""
    compute_mask: bool = True   # Build mask, count and regions on mismatch
    find_regions: bool = True
    min_region_size: int = 1    # Minimum changed pixels for a region
    max_regions: int = 256


def is_wide_mode(mode: str) -> bool:
    """True for modes with more than 8 bits per channel."""
    return mode in ('I', 'F') or mode.startswith('I;16')


def decode_image(path: Path | str, side: str = "left") -> PixelImage:
    """
    Decode an image file.

    Every image gets an RGBA8 rendition. Wide modes also keep their
    native buffer so comparison sees the full sample values.
    Only the first frame of animated formats is decoded.

    Raises:
        DecodeError: If the file cannot be opened or decoded
    """
    path = Path(path)
    try:
        with Image.open(path) as img:
            img.load()
            source_mode = img.mode
            image_format = img.format
            native = img.copy() if is_wide_mode(img.mode) else None
            rgba = img if img.mode == 'RGBA' else img.convert('RGBA')
            if rgba is img:
                rgba = img.copy()
    except DECODE_FAILURES as e:
        logging.debug(f"ImageComparator - Decode failed for {side} {path}: {e}")
        raise DecodeError(side, path, e) from e

    return PixelImage(image=rgba, source_mode=source_mode, format=image_format, native=native)


def _as_float(pixels: PixelImage) -> Optional[Image.Image]:
    """Single-band float rendition, or None for color images."""
    if pixels.native is not None:
        native = pixels.native
        if native.mode == 'F':
            return native
        if native.mode != 'I':
            native = native.convert('I')
        return native.convert('F')
    if pixels.source_mode in ('1', 'L'):
        return pixels.image.convert('L').convert('F')
    return None


def comparable_buffers(left: PixelImage, right: PixelImage) -> Tuple[Image.Image, Image.Image]:
    """
    Pick the pixel buffers two decoded images are compared on.

    Same wide mode on both sides: the native buffers. A wide image
    against a grayscale one: both as 32-bit float samples. Everything
    else: the RGBA8 renditions.
    """
    if not (left.is_wide or right.is_wide):
        return left.image, right.image

    if left.is_wide and right.is_wide and left.native.mode == right.native.mode:
        return left.native, right.native

    left_float = _as_float(left)
    right_float = _as_float(right)
    if left_float is not None and right_float is not None:
        return left_float, right_float

    return left.image, right.image


def difference_mask(left: Image.Image, right: Image.Image) -> Image.Image:
    """
    Per-pixel difference mask of two same-sized, same-mode images.

    Returns a mode 'L' image that is 255 wherever any channel differs
    and 0 elsewhere.
    """
    if left.mode in ('RGBA', 'RGB', 'L'):
        diff = ImageChops.difference(left, right)
        bands = diff.split()
        combined = bands[0]
        for band in bands[1:]:
            combined = ImageChops.lighter(combined, band)
        return combined.point(lambda p: 255 if p else 0)

    # Wide modes: compare the raw buffers byte by byte, then fold each
    # pixel's bytes into one mask value
    w, h = left.size
    left_bytes = left.tobytes()
    bytes_per_pixel = len(left_bytes) // (w * h)
    left_raw = Image.frombytes('L', (w * bytes_per_pixel, h), left_bytes)
    right_raw = Image.frombytes('L', (w * bytes_per_pixel, h), right.tobytes())

    diff = ImageChops.difference(left_raw, right_raw).point(lambda p: 255 if p else 0)
    if bytes_per_pixel > 1:
        diff = diff.reduce((bytes_per_pixel, 1)).point(lambda p: 255 if p else 0)
    return diff


def overlay_mismatch(left: PixelImage, right: PixelImage) -> Tuple[PixelImage, PixelMismatch]:
    """
    Place two differently sized images on one transparent canvas.

    Returns the padded left image and a PixelMismatch over the canvas,
    for rendering only.
    """
    size = (max(left.width, right.width), max(left.height, right.height))

    def pad(pixels: PixelImage) -> Image.Image:
        canvas = Image.new('RGBA', size, (0, 0, 0, 0))
        canvas.paste(pixels.image, (0, 0))
        return canvas

    left_padded = pad(left)
    mask = difference_mask(left_padded, pad(right))
    padded = PixelImage(image=left_padded, source_mode=left.source_mode, format=left.format)
    mismatch = PixelMismatch(
        size=size,
        changed_pixels=mask.histogram()[255],
        bbox=mask.getbbox(),
        regions=tuple(find_diff_regions(mask)),
        mask=mask,
    )
    return padded, mismatch


def find_diff_regions(
    mask: Image.Image,
    min_region_size: int = 1,
    max_regions: Optional[int] = None
) -> list[ImageDiffRegion]:
    """Find 4-connected regions of changed pixels in a difference mask."""
    regions = []
    w, h = mask.size

    # Work on a reduced grid for large images
    max_dim = max(w, h)
    if max_dim <= 512:
        scale = 1
        small = mask
    else:
        scale = -(-max_dim // 512)
        # MaxFilter keeps single-pixel changes alive through the downscale
        dilated = mask.filter(ImageFilter.MaxFilter(scale * 2 - 1))
        small = dilated.resize((-(-w // scale), -(-h // scale)), Image.NEAREST)

    small_w, small_h = small.size
    pixels = small.load()
    visited = set()

    for y in range(small_h):
        for x in range(small_w):
            if not pixels[x, y] or (x, y) in visited:
                continue

            stack = [(x, y)]
            visited.add((x, y))
            min_x, min_y, max_x, max_y = x, y, x, y

            while stack:
                cx, cy = stack.pop()
                min_x = min(min_x, cx)
                min_y = min(min_y, cy)
                max_x = max(max_x, cx)
                max_y = max(max_y, cy)

                for nx, ny in ((cx + 1, cy), (cx - 1, cy), (cx, cy + 1), (cx, cy - 1)):
                    if 0 <= nx < small_w and 0 <= ny < small_h:
                        if pixels[nx, ny] and (nx, ny) not in visited:
                            visited.add((nx, ny))
                            stack.append((nx, ny))

            x1, y1 = min_x * scale, min_y * scale
            x2 = min(w, (max_x + 1) * scale)
            y2 = min(h, (max_y + 1) * scale)

            # Count real changed pixels inside the region bounds
            count = mask.crop((x1, y1, x2, y2)).histogram()[255]
            if count >= min_region_size:
                regions.append(ImageDiffRegion(
                    x=x1,
                    y=y1,
                    width=x2 - x1,
                    height=y2 - y1,
                    pixel_count=count,
                ))
                if max_regions is not None and len(regions) >= max_regions:
                    return regions

    return regions


class ImageComparator:
    """
    Strict pixel comparator for pairs of image files.

    Equality requires equal dimensions and equal sample values for every
    pixel, compared on the buffers chosen by comparable_buffers().
    Perceptually identical but re-encoded images are different.

    Requires Pillow for decoding.
    """

    def __init__(self, options: Optional[ImageCompareOptions] = None):
        self.options = options or ImageCompareOptions()

    def compare(self, left_path: Path | str, right_path: Path | str) -> ComparisonOutcome:
        """
        Compare two image files.

        Args:
            left_path: Absolute path of the left image
            right_path: Absolute path of the right image

        Returns:
            Identical, DimensionMismatch or PixelMismatch

        Raises:
            DecodeError: If either side cannot be decoded
        """
        left = decode_image(left_path, "left")
        right = decode_image(right_path, "right")
        return self.compare_images(left, right)

    def compare_images(self, left: PixelImage, right: PixelImage) -> ComparisonOutcome:
        """Classify two decoded images."""
        if left.size != right.size:
            return DimensionMismatch(left_size=left.size, right_size=right.size)

        left_buffer, right_buffer = comparable_buffers(left, right)
        if left_buffer.tobytes() == right_buffer.tobytes():
            return Identical()

        if not self.options.compute_mask:
            return PixelMismatch(size=left.size)

        mask = difference_mask(left_buffer, right_buffer)
        changed = mask.histogram()[255]
        regions: Tuple[ImageDiffRegion, ...] = ()
        if self.options.find_regions:
            regions = tuple(find_diff_regions(
                mask, self.options.min_region_size, self.options.max_regions
            ))

        return PixelMismatch(
            size=left.size,
            changed_pixels=changed,
            bbox=mask.getbbox(),
            regions=regions,
            mask=mask,
        )


def render_diff_image(
    left: PixelImage,
    mismatch: PixelMismatch,
    style: DiffRenderStyle = DiffRenderStyle.HIGHLIGHT,
    color: Tuple[int, int, int, int] = (255, 0, 0, 255),
) -> Image.Image:
    """
    Render a pixel mismatch for visual inspection.

    Raises:
        ValueError: If the mismatch carries no mask
    """
    mask = mismatch.mask
    if mask is None:
        raise ValueError("PixelMismatch has no difference mask to render")

    paint = Image.new('RGBA', mask.size, color)

    if style == DiffRenderStyle.MASK:
        base = Image.new('RGBA', mask.size, (0, 0, 0, 255))
        return Image.composite(paint, base, mask)

    # Dim a grayscale copy of the left image so highlights stand out
    base = ImageOps.grayscale(left.image).convert('RGBA')
    base = ImageEnhance.Brightness(base).enhance(0.4)
    result = Image.composite(paint, base, mask)

    if style == DiffRenderStyle.BOX:
        draw = ImageDraw.Draw(result)
        for region in mismatch.regions:
            x1, y1, x2, y2 = region.bounds
            draw.rectangle((x1, y1, x2 - 1, y2 - 1), outline=color[:3], width=1)

    return result
