"""Edge energy and grayscale displacement maps."""

from __future__ import annotations

import cv2
import numpy as np
from PIL import Image

from ..io.models import TextureMetrics
from .imaging import to_gray_array


def gradient_magnitude(gray: np.ndarray) -> np.ndarray:
    """Return the per-pixel Euclidean norm of 3x3 Sobel x/y derivatives."""
    grad_x = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3)
    grad_y = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3)
    return cv2.magnitude(grad_x, grad_y)


def normalized_map(magnitude: np.ndarray) -> np.ndarray:
    """Scale *magnitude* by its own maximum and quantise to uint8.

    A flat input (maximum of zero) yields an all-zero map.
    """
    peak = float(magnitude.max()) if magnitude.size else 0.0
    if peak <= 0.0:
        return np.zeros(magnitude.shape, dtype=np.uint8)
    scaled = np.rint(magnitude * (255.0 / peak))
    return np.clip(scaled, 0, 255).astype(np.uint8)


def analyze_texture(
    img: Image.Image, working_size: int = 512
) -> tuple[TextureMetrics, Image.Image]:
    """Return texture metrics and the normalised gradient map of *img*.

    ``avgEdgeMagnitude`` is the mean of the quantised map divided by 255, i.e.
    how much of the image's own gradient range is active on average.
    """
    gray = to_gray_array(img, working_size)
    height, width = gray.shape[:2]
    edge_map = normalized_map(gradient_magnitude(gray))
    average = float(edge_map.mean() / 255.0) if edge_map.size else None
    metrics = TextureMetrics(avg_edge_magnitude=average, width=width, height=height)
    return metrics, Image.fromarray(edge_map)
