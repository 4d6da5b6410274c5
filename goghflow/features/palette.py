"""Dominant colour swatches and HSV summaries."""

from __future__ import annotations

import cv2
import numpy as np
from PIL import Image

from ..io.models import PaletteMetrics, Swatch
from .imaging import fit_within

_KMEANS_SEED = 1234
_KMEANS_ATTEMPTS = 3
_KMEANS_CRITERIA = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 20, 1.0)


def analyze_palette(
    img: Image.Image,
    swatch_count: int = 8,
    sample_size: int = 96,
    stats_size: int = 128,
) -> PaletteMetrics:
    """Return up to *swatch_count* dominant swatches and mean saturation/brightness.

    Fully transparent pixels are ignored throughout. Means are ``None`` when the
    image has no opaque pixels.
    """
    swatches = dominant_swatches(img, swatch_count, sample_size)
    saturation, brightness = hsv_means(img, stats_size)
    return PaletteMetrics(
        swatches=swatches, avg_saturation=saturation, avg_brightness=brightness
    )


def dominant_swatches(img: Image.Image, k: int = 8, sample_size: int = 96) -> list[Swatch]:
    """Cluster opaque pixels with k-means and return swatches by population."""
    if k <= 0:
        return []
    pixels = _opaque_rgb(fit_within(img, sample_size))
    if pixels.shape[0] == 0:
        return []
    if pixels.shape[0] == 1:
        return [Swatch(hex=_to_hex(pixels[0]), population=1.0)]

    clusters = min(k, pixels.shape[0])
    samples = pixels.reshape(-1, 3).astype(np.float32)
    cv2.setRNGSeed(_KMEANS_SEED)
    _, labels, centres = cv2.kmeans(
        samples,
        clusters,
        None,
        _KMEANS_CRITERIA,
        _KMEANS_ATTEMPTS,
        cv2.KMEANS_PP_CENTERS,
    )
    counts = np.bincount(labels.flatten(), minlength=clusters)
    total = float(counts.sum())

    merged: dict[str, int] = {}
    for centre, count in zip(centres, counts):
        if count == 0:
            continue
        hex_value = _to_hex(centre)
        merged[hex_value] = merged.get(hex_value, 0) + int(count)

    ordered = sorted(merged.items(), key=lambda item: (-item[1], item[0]))
    return [Swatch(hex=hex_value, population=count / total) for hex_value, count in ordered]


def hsv_means(img: Image.Image, stats_size: int = 128) -> tuple[float | None, float | None]:
    """Return mean HSV saturation and value in [0, 1] over opaque pixels."""
    pixels = _opaque_rgb(fit_within(img, stats_size))
    if pixels.shape[0] == 0:
        return None, None
    hsv = cv2.cvtColor(pixels.reshape(-1, 1, 3), cv2.COLOR_RGB2HSV).reshape(-1, 3)
    saturation = float(hsv[:, 1].mean() / 255.0)
    brightness = float(hsv[:, 2].mean() / 255.0)
    return saturation, brightness


def _opaque_rgb(img: Image.Image) -> np.ndarray:
    rgba = np.asarray(img.convert("RGBA"))
    if rgba.size == 0:
        return np.zeros((0, 3), dtype=np.uint8)
    flat = rgba.reshape(-1, 4)
    return np.ascontiguousarray(flat[flat[:, 3] > 0][:, :3])


def _to_hex(centre: np.ndarray) -> str:
    r, g, b = (int(np.clip(round(float(value)), 0, 255)) for value in centre[:3])
    return f"#{r:02x}{g:02x}{b:02x}"
