"""Stroke-direction histogram and coherence."""

from __future__ import annotations

import math

import cv2
import numpy as np
from PIL import Image

from ..io.models import HISTOGRAM_BINS, StrokeMetrics
from .imaging import to_gray_array

_TWO_PI = 2.0 * math.pi


def analyze_stroke_direction(
    img: Image.Image,
    working_size: int = 256,
    magnitude_floor: float = 16.0,
    bins: int = HISTOGRAM_BINS,
) -> StrokeMetrics:
    """Return a magnitude-weighted orientation histogram of *img* and its coherence.

    Pixels whose Sobel magnitude is below *magnitude_floor* are ignored. Each
    remaining pixel contributes its magnitude to the bin of
    ``atan2(dy, dx) + pi`` and to a resultant vector; coherence is the
    resultant's length over the total magnitude. Without any contributing pixel
    the histogram is all zero and coherence is ``None``.
    """
    if bins <= 0:
        raise ValueError("bins must be a positive integer")

    gray = to_gray_array(img, working_size).astype(np.float64)
    grad_x = cv2.Sobel(gray, cv2.CV_64F, 1, 0, ksize=3)
    grad_y = cv2.Sobel(gray, cv2.CV_64F, 0, 1, ksize=3)
    magnitude = np.hypot(grad_x, grad_y)

    mask = magnitude >= magnitude_floor
    weights = magnitude[mask]
    total = float(weights.sum())
    if total <= 0.0:
        return StrokeMetrics(hist=[0.0] * bins, coherence=None, bins=bins)

    angles = np.mod(np.arctan2(grad_y[mask], grad_x[mask]) + math.pi, _TWO_PI)
    indices = np.minimum((angles / (_TWO_PI / bins)).astype(np.int64), bins - 1)
    hist = np.bincount(indices, weights=weights, minlength=bins) / total

    resultant_x = float(np.sum(weights * np.cos(angles)))
    resultant_y = float(np.sum(weights * np.sin(angles)))
    coherence = min(1.0, max(0.0, math.hypot(resultant_x, resultant_y) / total))

    return StrokeMetrics(
        hist=[float(value) for value in hist], coherence=coherence, bins=bins
    )
