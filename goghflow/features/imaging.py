"""Shared image loading and resizing helpers for the analyzers."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError
from PIL.Image import DecompressionBombError


class ImageLoadError(Exception):
    """Base class for images that cannot be analysed."""


class ImageMissing(ImageLoadError):
    """The cached image for an artwork does not exist."""


class ImageUnreadable(ImageLoadError):
    """The cached image exists but cannot be decoded."""


def _resample_filter() -> int:
    resample_attr = getattr(Image, "Resampling", None)
    resample_filter = getattr(resample_attr, "LANCZOS", None) if resample_attr else None
    if resample_filter is None:
        resample_filter = getattr(Image, "LANCZOS", Image.BICUBIC)
    return resample_filter


def decode_image(image_bytes: bytes) -> Image.Image:
    """Decode *image_bytes* into an RGBA Pillow image."""
    if not image_bytes:
        raise ImageUnreadable("Empty image payload")
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            img.load()
            return img.convert("RGBA")
    except (UnidentifiedImageError, DecompressionBombError, OSError) as exc:
        raise ImageUnreadable(str(exc)) from exc


def read_image_bytes(path: Path) -> bytes:
    """Return the raw bytes of the cached image at *path*."""
    try:
        return path.read_bytes()
    except FileNotFoundError as exc:
        raise ImageMissing(f"No cached image at {path}") from exc
    except OSError as exc:
        raise ImageUnreadable(f"Cannot read {path}: {exc}") from exc


def load_image(path: Path) -> Image.Image:
    """Return the decoded RGBA image at *path*."""
    return decode_image(read_image_bytes(path))


def fit_within(img: Image.Image, max_side: int) -> Image.Image:
    """Return *img* scaled down so its longest side is at most *max_side*.

    Images already within bounds are copied unchanged; nothing is upscaled.
    """
    if max_side <= 0:
        raise ValueError("max_side must be a positive integer")
    width, height = img.size
    longest = max(width, height)
    if longest <= max_side or longest == 0:
        return img.copy()
    scale = max_side / longest
    size = (max(1, round(width * scale)), max(1, round(height * scale)))
    return img.resize(size, _resample_filter())


def to_gray_array(img: Image.Image, max_side: int) -> np.ndarray:
    """Return a float32 grayscale array of *img* fitted within *max_side*."""
    gray = fit_within(img.convert("L"), max_side)
    return np.asarray(gray, dtype=np.float32)
