"""Configuration objects and constants for collection and feature extraction."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from .io.models import TargetArtist

MET_API_BASE = "https://collectionapi.metmuseum.org/public/collection/v1"
USER_AGENT = "GoghWithTheFlow/0.4 (style-feature collector; python-requests)"
DEFAULT_DATA_DIR = Path("public") / "data"

DEFAULT_ARTISTS: tuple[TargetArtist, ...] = (
    TargetArtist("Vincent van Gogh", "Vincent van Gogh"),
    TargetArtist("Claude Monet", "Claude Monet"),
    TargetArtist("Pierre-Auguste Renoir", "Renoir"),
    TargetArtist("Paul Cézanne", "Paul Cezanne"),
    TargetArtist("Edgar Degas", "Edgar Degas"),
    TargetArtist("Camille Pissarro", "Camille Pissarro"),
    TargetArtist("Rembrandt van Rijn", "Rembrandt"),
    TargetArtist("Johannes Vermeer", "Vermeer"),
    TargetArtist("J. M. W. Turner", "Turner"),
    TargetArtist("Katsushika Hokusai", "Hokusai"),
)


@dataclass
class CollectConfig:
    """Pacing, retry and cap settings for the collector.

    Durations are in seconds. Only one collector may run against a given state
    file at a time; concurrent runs are unsupported and not detected.
    """

    api_base: str = MET_API_BASE
    user_agent: str = USER_AGENT
    per_artist_cap: int = 30
    max_ids_per_artist: int = 5000
    item_pause: float = 0.9
    artist_pause: float = 10.0
    search_retries: int = 8
    object_retries: int = 5
    backoff_base: float = 2.0
    backoff_cap: float = 180.0
    jitter_max: float = 1.0
    request_timeout: float = 30.0
    abort_on_search_failure: bool = False


@dataclass
class FeatureConfig:
    """Working resolutions and thresholds for the three analyzers."""

    swatch_count: int = 8
    palette_sample_size: int = 96
    palette_stats_size: int = 128
    texture_size: int = 512
    stroke_size: int = 256
    stroke_magnitude_floor: float = 16.0
    overlay_url_prefix: str = "./data/overlays"
    workers: int = 4


@dataclass
class DataPaths:
    """Locations of every persisted artifact under a single data directory."""

    data_dir: Path = DEFAULT_DATA_DIR

    @property
    def artworks(self) -> Path:
        return self.data_dir / "artworks.json"

    @property
    def state(self) -> Path:
        return self.data_dir / "collect-state.json"

    @property
    def features(self) -> Path:
        return self.data_dir / "features.json"

    @property
    def feature_table(self) -> Path:
        return self.data_dir / "features.parquet"

    @property
    def images_dir(self) -> Path:
        return self.data_dir / "images"

    @property
    def overlays_dir(self) -> Path:
        return self.data_dir / "overlays"

    def image_path(self, object_id: int) -> Path:
        return self.images_dir / f"{object_id}.jpg"

    def texture_map_path(self, object_id: int) -> Path:
        return self.overlays_dir / f"{object_id}-texture.png"


def load_artists(path: Path) -> list[TargetArtist]:
    """Read a JSON list of ``{"name", "query"}`` objects from *path*.

    ``query`` defaults to ``name`` when omitted.
    """
    if not path.exists():
        raise FileNotFoundError(f"Artist list does not exist: {path}")
    payload = json.loads(path.read_text(encoding="utf-8-sig"))
    if not isinstance(payload, list):
        raise ValueError(f"Artist list must be a JSON array: {path}")
    artists: list[TargetArtist] = []
    for entry in payload:
        name = str(entry.get("name") or "").strip()
        if not name:
            raise ValueError(f"Artist entry without a name in {path}: {entry!r}")
        query = str(entry.get("query") or name).strip()
        artists.append(TargetArtist(name=name, query=query))
    return artists
