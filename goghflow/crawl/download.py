"""Fetch and cache artwork images referenced by ``artworks.json``."""

from __future__ import annotations

import io
import logging
import time
from pathlib import Path
from typing import Callable, Iterable

from PIL import Image, UnidentifiedImageError
from PIL.Image import DecompressionBombError
from tqdm import tqdm

from ..io.models import ArtworkRecord, DownloadReport
from ..io.outputs import atomic_write_bytes
from .client import MetApiError, RateLimitedClient

logger = logging.getLogger(__name__)

Sleep = Callable[[float], None]


def is_valid_image(data: bytes) -> bool:
    """Return ``True`` when *data* decodes as a raster image."""
    if not data:
        return False
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.verify()
    except (UnidentifiedImageError, DecompressionBombError, OSError, SyntaxError):
        return False
    return True


def is_cached(path: Path) -> bool:
    """Return ``True`` when *path* already holds a readable image."""
    if not path.is_file():
        return False
    try:
        return is_valid_image(path.read_bytes())
    except OSError:
        return False


def download_images(
    artworks: Iterable[ArtworkRecord],
    images_dir: Path,
    client: RateLimitedClient,
    max_retries: int = 5,
    pause: float = 0.0,
    sleep: Sleep = time.sleep,
) -> DownloadReport:
    """Download each artwork's image to ``images_dir/{objectID}.jpg`` if absent.

    Existing files are kept only when they decode as images; truncated or
    corrupt files are fetched again. Failures are logged and counted per artwork.
    """
    report = DownloadReport()
    images_dir.mkdir(parents=True, exist_ok=True)
    items = list(artworks)
    for artwork in tqdm(items, desc="Downloading images", unit="image", leave=False):
        url = artwork.image_url
        if not url:
            report.skipped += 1
            continue
        path = images_dir / f"{artwork.object_id}.jpg"
        if is_cached(path):
            report.cached += 1
            continue
        try:
            data = client.fetch_bytes(url, max_retries)
        except MetApiError as exc:
            logger.warning("Failed to download %s: %s", artwork.object_id, exc)
            report.failed.append(artwork.object_id)
            continue
        if not is_valid_image(data):
            logger.warning("Downloaded payload for %s is not an image", artwork.object_id)
            report.failed.append(artwork.object_id)
            continue
        atomic_write_bytes(path, data)
        report.downloaded += 1
        logger.info("Downloaded %s -> %s", artwork.object_id, path)
        if pause > 0:
            sleep(pause)
    return report
