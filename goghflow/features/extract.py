"""Compute visual-style features for every locally cached artwork image."""

from __future__ import annotations

import hashlib
import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from io import BytesIO
from pathlib import Path
from typing import Iterable, Mapping

from PIL import Image
from tqdm import tqdm

from ..config import DataPaths, FeatureConfig
from ..io.models import ArtworkRecord, ExtractReport, FeatureRecord
from ..io.outputs import atomic_write_bytes
from .imaging import ImageLoadError, decode_image, read_image_bytes
from .palette import analyze_palette
from .stroke import analyze_stroke_direction
from .texture import analyze_texture

logger = logging.getLogger(__name__)


def texture_map_url(object_id: int, prefix: str) -> str:
    return f"{prefix.rstrip('/')}/{object_id}-texture.png"


def content_digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def features_from_bytes(
    object_id: int,
    image_bytes: bytes,
    map_path: Path,
    config: FeatureConfig,
) -> FeatureRecord:
    """Run all three analyzers on *image_bytes* and write the texture map."""
    image = decode_image(image_bytes)
    try:
        palette = analyze_palette(
            image,
            swatch_count=config.swatch_count,
            sample_size=config.palette_sample_size,
            stats_size=config.palette_stats_size,
        )
        texture, edge_map = analyze_texture(image, working_size=config.texture_size)
        stroke = analyze_stroke_direction(
            image,
            working_size=config.stroke_size,
            magnitude_floor=config.stroke_magnitude_floor,
        )
    finally:
        image.close()

    try:
        buffer = _png_bytes(edge_map)
    finally:
        edge_map.close()
    atomic_write_bytes(map_path, buffer)

    return FeatureRecord(
        object_id=object_id,
        texture_map_url=texture_map_url(object_id, config.overlay_url_prefix),
        palette=palette,
        texture_energy=texture,
        stroke_direction=stroke,
        source_digest=content_digest(image_bytes),
    )


def extract_one(
    artwork: ArtworkRecord,
    paths: DataPaths,
    config: FeatureConfig,
    previous: FeatureRecord | None = None,
) -> tuple[FeatureRecord, bool]:
    """Return the feature record for *artwork* and whether it was recomputed.

    A *previous* record is reused when it was computed from identical image
    bytes and its texture map is still on disk. Raises :class:`ImageMissing` or
    :class:`ImageUnreadable` when the cached image cannot be used.
    """
    image_path = paths.image_path(artwork.object_id)
    map_path = paths.texture_map_path(artwork.object_id)
    data = read_image_bytes(image_path)

    digest = content_digest(data)
    if (
        previous is not None
        and previous.source_digest == digest
        and map_path.is_file()
    ):
        return previous, False
    return features_from_bytes(artwork.object_id, data, map_path, config), True


def extract_features(
    artworks: Iterable[ArtworkRecord],
    paths: DataPaths,
    config: FeatureConfig | None = None,
    previous: Mapping[int, FeatureRecord] | None = None,
) -> ExtractReport:
    """Extract features for *artworks* using a bounded worker pool.

    Artworks whose image is missing or unreadable, or whose analysis fails,
    are listed in ``report.skipped`` and get no record.
    """
    config = config or FeatureConfig()
    previous = previous or {}
    report = ExtractReport()
    items = list(artworks)
    if not items:
        return report

    paths.overlays_dir.mkdir(parents=True, exist_ok=True)
    workers = max(1, config.workers)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures: dict[Future, ArtworkRecord] = {
            pool.submit(
                extract_one, artwork, paths, config, previous.get(artwork.object_id)
            ): artwork
            for artwork in items
        }
        for future in tqdm(
            as_completed(futures),
            total=len(futures),
            desc="Extracting features",
            unit="image",
            leave=False,
        ):
            artwork = futures[future]
            try:
                record, computed = future.result()
            except ImageLoadError as exc:
                logger.warning("Skipping %s: %s", artwork.object_id, exc)
                report.skipped[artwork.object_id] = f"{type(exc).__name__}: {exc}"
                continue
            except Exception as exc:
                logger.exception("Feature extraction failed for %s", artwork.object_id)
                report.skipped[artwork.object_id] = f"{type(exc).__name__}: {exc}"
                continue
            report.features[artwork.object_id] = record
            if computed:
                report.computed += 1
            else:
                report.reused += 1
    return report


def _png_bytes(image: Image.Image) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
