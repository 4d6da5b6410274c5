"""Data models shared across the collection and feature extraction stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

HISTOGRAM_BINS = 12


@dataclass(frozen=True, slots=True)
class TargetArtist:
    """An artist to collect, with the free-text query sent to the search API."""

    name: str
    query: str


@dataclass(frozen=True, slots=True)
class ArtistProgress:
    """Scan position and kept count for a single artist."""

    cursor: int = 0
    kept: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"cursor": self.cursor, "kept": self.kept}


@dataclass(slots=True)
class CollectionState:
    """Resumable per-artist progress, persisted as ``collect-state.json``."""

    by_artist: Dict[str, ArtistProgress] = field(default_factory=dict)

    def progress_for(self, artist_name: str) -> ArtistProgress:
        return self.by_artist.get(artist_name, ArtistProgress())

    def to_dict(self) -> dict[str, Any]:
        return {
            "byArtist": {
                name: progress.to_dict() for name, progress in self.by_artist.items()
            }
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CollectionState":
        """Build a state from parsed JSON, dropping malformed artist entries.

        Raises ``ValueError`` when the top-level shape is wrong.
        """
        by_artist = payload.get("byArtist")
        if not isinstance(by_artist, Mapping):
            raise ValueError("byArtist must be an object")
        state = cls()
        for name, entry in by_artist.items():
            if not isinstance(entry, Mapping):
                continue
            cursor = entry.get("cursor")
            kept = entry.get("kept")
            if not _is_count(cursor) or not _is_count(kept):
                continue
            state.by_artist[str(name)] = ArtistProgress(cursor=cursor, kept=kept)
        return state


@dataclass(frozen=True, slots=True)
class ArtworkRecord:
    """A retained artwork. ``object_id`` is the primary key."""

    object_id: int
    title: str | None = None
    artist_display_name: str | None = None
    object_date: str | None = None
    primary_image: str | None = None
    primary_image_small: str | None = None
    department: str | None = None
    culture: str | None = None
    medium: str | None = None
    object_url: str | None = None

    @property
    def image_url(self) -> str | None:
        return self.primary_image_small or self.primary_image

    def to_dict(self) -> dict[str, Any]:
        return {
            "objectID": self.object_id,
            "title": self.title,
            "artistDisplayName": self.artist_display_name,
            "objectDate": self.object_date,
            "primaryImage": self.primary_image,
            "primaryImageSmall": self.primary_image_small,
            "department": self.department,
            "culture": self.culture,
            "medium": self.medium,
            "objectURL": self.object_url,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ArtworkRecord":
        """Build a record from an API object or a persisted artwork entry."""
        return cls(
            object_id=int(payload["objectID"]),
            title=payload.get("title"),
            artist_display_name=payload.get("artistDisplayName"),
            object_date=payload.get("objectDate"),
            primary_image=payload.get("primaryImage"),
            primary_image_small=payload.get("primaryImageSmall"),
            department=payload.get("department"),
            culture=payload.get("culture"),
            medium=payload.get("medium"),
            object_url=payload.get("objectURL"),
        )


@dataclass(frozen=True, slots=True)
class Swatch:
    hex: str
    population: float

    def to_dict(self) -> dict[str, Any]:
        return {"hex": self.hex, "population": self.population}


@dataclass(slots=True)
class PaletteMetrics:
    """Dominant swatches plus mean HSV saturation and brightness."""

    swatches: List[Swatch] = field(default_factory=list)
    avg_saturation: float | None = None
    avg_brightness: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "swatches": [swatch.to_dict() for swatch in self.swatches],
            "avgSaturation": self.avg_saturation,
            "avgBrightness": self.avg_brightness,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PaletteMetrics":
        swatches = [
            Swatch(hex=str(item["hex"]), population=float(item["population"]))
            for item in payload.get("swatches") or []
        ]
        return cls(
            swatches=swatches,
            avg_saturation=payload.get("avgSaturation"),
            avg_brightness=payload.get("avgBrightness"),
        )


@dataclass(slots=True)
class TextureMetrics:
    """Relative edge energy of the working-resolution texture map."""

    avg_edge_magnitude: float | None
    width: int
    height: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "avgEdgeMagnitude": self.avg_edge_magnitude,
            "width": self.width,
            "height": self.height,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TextureMetrics":
        return cls(
            avg_edge_magnitude=payload.get("avgEdgeMagnitude"),
            width=int(payload.get("width") or 0),
            height=int(payload.get("height") or 0),
        )


@dataclass(slots=True)
class StrokeMetrics:
    """Magnitude-weighted orientation histogram and its coherence."""

    hist: List[float] = field(default_factory=lambda: [0.0] * HISTOGRAM_BINS)
    coherence: float | None = None
    bins: int = HISTOGRAM_BINS

    def to_dict(self) -> dict[str, Any]:
        return {"bins": self.bins, "hist": list(self.hist), "coherence": self.coherence}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "StrokeMetrics":
        hist = [float(value) for value in payload.get("hist") or []]
        return cls(
            hist=hist,
            coherence=payload.get("coherence"),
            bins=int(payload.get("bins") or len(hist)),
        )


@dataclass(slots=True)
class FeatureRecord:
    """Visual-style features for one artwork, keyed by ``object_id``."""

    object_id: int
    texture_map_url: str
    palette: PaletteMetrics | None = None
    texture_energy: TextureMetrics | None = None
    stroke_direction: StrokeMetrics | None = None
    source_digest: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "objectID": self.object_id,
            "palette": self.palette.to_dict() if self.palette else None,
            "textureEnergy": self.texture_energy.to_dict()
            if self.texture_energy
            else None,
            "strokeDirection": self.stroke_direction.to_dict()
            if self.stroke_direction
            else None,
            "textureMapUrl": self.texture_map_url,
            "sourceDigest": self.source_digest,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FeatureRecord":
        palette = payload.get("palette")
        texture = payload.get("textureEnergy")
        stroke = payload.get("strokeDirection")
        return cls(
            object_id=int(payload["objectID"]),
            texture_map_url=str(payload.get("textureMapUrl") or ""),
            palette=PaletteMetrics.from_dict(palette) if palette else None,
            texture_energy=TextureMetrics.from_dict(texture) if texture else None,
            stroke_direction=StrokeMetrics.from_dict(stroke) if stroke else None,
            source_digest=payload.get("sourceDigest"),
        )


@dataclass(slots=True)
class CollectReport:
    """High-level summary of a collection run."""

    kept_by_artist: Dict[str, int] = field(default_factory=dict)
    appended: int = 0
    total_artworks: int = 0
    failed: List[str] = field(default_factory=list)
    cancelled: bool = False


@dataclass(slots=True)
class DownloadReport:
    downloaded: int = 0
    cached: int = 0
    skipped: int = 0
    failed: List[int] = field(default_factory=list)


@dataclass(slots=True)
class ExtractReport:
    """Outcome of a feature extraction pass."""

    features: Dict[int, FeatureRecord] = field(default_factory=dict)
    computed: int = 0
    reused: int = 0
    skipped: Dict[int, str] = field(default_factory=dict)


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0
