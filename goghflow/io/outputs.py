"""Output helpers for persisting pipeline artifacts."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

import pandas as pd

from .models import ArtworkRecord, FeatureRecord, HISTOGRAM_BINS

logger = logging.getLogger(__name__)


def utc_timestamp() -> str:
    """Return the current time as an ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def atomic_write_bytes(path: Path, data: bytes) -> Path:
    """Write *data* to *path* so readers never observe a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    return path


def atomic_write_json(path: Path, payload: Any) -> Path:
    """Serialise *payload* as indented JSON and write it atomically."""
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    return atomic_write_bytes(path, text.encode("utf-8"))


def read_artworks(path: Path) -> list[ArtworkRecord]:
    """Read ``artworks.json`` and return its records in file order."""
    payload = json.loads(path.read_text(encoding="utf-8"))
    return [ArtworkRecord.from_dict(item) for item in payload.get("artworks") or []]


class ArtworksCorrupt(ValueError):
    """Raised when an existing ``artworks.json`` cannot be parsed."""


class ArtworkLog:
    """Append-only list of retained artworks backed by ``artworks.json``.

    The log is loaded once and rewritten in full on every :meth:`save`; each
    ``objectID`` appears at most once.
    """

    def __init__(self, path: Path, artworks: Iterable[ArtworkRecord] = ()) -> None:
        self.path = path
        self._artworks: list[ArtworkRecord] = []
        self._ids: set[int] = set()
        for artwork in artworks:
            self.add(artwork)

    @classmethod
    def load(cls, path: Path) -> "ArtworkLog":
        """Load an existing log, or start empty when the file is absent.

        Raises :class:`ArtworksCorrupt` when the file exists but cannot be read,
        so retained artworks are never replaced by an empty log.
        """
        if not path.exists():
            return cls(path)
        try:
            artworks = read_artworks(path)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            raise ArtworksCorrupt(f"Cannot read artworks file {path}: {exc}") from exc
        return cls(path, artworks)

    def __len__(self) -> int:
        return len(self._artworks)

    def add(self, artwork: ArtworkRecord) -> bool:
        """Append *artwork* unless its ``objectID`` is already present."""
        if artwork.object_id in self._ids:
            return False
        self._ids.add(artwork.object_id)
        self._artworks.append(artwork)
        return True

    def save(self) -> Path:
        payload = {
            "generatedAt": utc_timestamp(),
            "artworks": [artwork.to_dict() for artwork in self._artworks],
        }
        return atomic_write_json(self.path, payload)


def read_features(path: Path) -> dict[int, FeatureRecord]:
    """Return previously written feature records keyed by ``objectID``.

    A missing or unreadable file yields an empty mapping.
    """
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        entries = payload.get("featuresById") or {}
        return {
            int(key): FeatureRecord.from_dict(value) for key, value in entries.items()
        }
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
        logger.warning("Ignoring unreadable features file %s: %s", path, exc)
        return {}


def write_features(path: Path, features: Mapping[int, FeatureRecord]) -> Path:
    """Write ``features.json`` with records ordered by ``objectID``."""
    payload = {
        "generatedAt": utc_timestamp(),
        "featuresById": {
            str(object_id): features[object_id].to_dict()
            for object_id in sorted(features)
        },
    }
    return atomic_write_json(path, payload)


def feature_table(features: Mapping[int, FeatureRecord]) -> pd.DataFrame:
    """Flatten feature records into one row per artwork."""
    rows: list[dict[str, Any]] = []
    for object_id in sorted(features):
        record = features[object_id]
        palette = record.palette
        texture = record.texture_energy
        stroke = record.stroke_direction
        row: dict[str, Any] = {
            "objectID": object_id,
            "dominant_hex": palette.swatches[0].hex
            if palette and palette.swatches
            else None,
            "avg_saturation": palette.avg_saturation if palette else None,
            "avg_brightness": palette.avg_brightness if palette else None,
            "avg_edge_magnitude": texture.avg_edge_magnitude if texture else None,
            "coherence": stroke.coherence if stroke else None,
            "texture_map_url": record.texture_map_url,
        }
        hist = list(stroke.hist) if stroke else []
        for index in range(HISTOGRAM_BINS):
            row[f"hist_{index:02d}"] = hist[index] if index < len(hist) else None
        rows.append(row)
    return pd.DataFrame(rows)


def write_feature_table(features: Mapping[int, FeatureRecord], path: Path) -> Path | None:
    """Write the flattened feature table to *path* as Parquet."""
    if not features:
        logger.info("No feature rows to write")
        return None
    df = feature_table(features)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(path, index=False, engine="pyarrow")
    logger.info("Wrote %d feature rows to %s", len(df), path)
    return path
