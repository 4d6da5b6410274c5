"""Command-line interface for the goghflow pipeline."""

from __future__ import annotations

import argparse
import logging
import threading
from pathlib import Path
from typing import Iterable

from .config import (
    DEFAULT_ARTISTS,
    DEFAULT_DATA_DIR,
    CollectConfig,
    DataPaths,
    FeatureConfig,
    load_artists,
)
from .crawl.client import MetApi, RateLimitedClient, uniform_jitter
from .crawl.collector import Collector
from .crawl.download import download_images
from .crawl.state import CollectionStateStore
from .features.extract import extract_features
from .io.models import TargetArtist
from .io.outputs import (
    ArtworkLog,
    ArtworksCorrupt,
    read_artworks,
    read_features,
    write_feature_table,
    write_features,
)

EXIT_INTERRUPTED = 130


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the pipeline."""
    parser = argparse.ArgumentParser(
        description="Collect artworks per artist and derive visual-style features."
    )
    parser.add_argument(
        "--data-dir",
        default=str(DEFAULT_DATA_DIR),
        help="Directory holding artworks.json, state, images and overlays.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    collect = subparsers.add_parser(
        "collect", help="Search the collection API and select artworks per artist."
    )
    collect.add_argument(
        "--artists",
        default=None,
        help="JSON file with a list of {name, query} objects (default: built-in list).",
    )
    collect.add_argument("--cap", type=int, default=None, help="Artworks kept per artist.")
    collect.add_argument(
        "--max-ids", type=int, default=None, help="Search results scanned per artist."
    )
    collect.add_argument(
        "--abort-on-search-failure",
        action="store_true",
        help="Stop the run when an artist search fails instead of skipping the artist.",
    )

    subparsers.add_parser("download", help="Cache images for every collected artwork.")

    features = subparsers.add_parser(
        "features", help="Compute palette, texture and stroke features."
    )
    features.add_argument(
        "--workers", type=int, default=None, help="Concurrent extraction workers."
    )
    features.add_argument(
        "--table",
        action="store_true",
        help="Also write a flattened features.parquet table.",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


def _build_client(config: CollectConfig) -> RateLimitedClient:
    return RateLimitedClient(
        user_agent=config.user_agent,
        timeout=config.request_timeout,
        backoff_base=config.backoff_base,
        backoff_cap=config.backoff_cap,
        jitter=uniform_jitter(config.jitter_max),
    )


def _resolve_artists(value: str | None) -> list[TargetArtist]:
    if value:
        return load_artists(Path(value))
    return list(DEFAULT_ARTISTS)


def run_collect(args: argparse.Namespace, paths: DataPaths) -> int:
    config = CollectConfig(abort_on_search_failure=args.abort_on_search_failure)
    if args.cap is not None:
        config.per_artist_cap = args.cap
    if args.max_ids is not None:
        config.max_ids_per_artist = args.max_ids
    artists = _resolve_artists(args.artists)

    api = MetApi(_build_client(config), config.api_base)
    store = CollectionStateStore(paths.state)
    try:
        artworks = ArtworkLog.load(paths.artworks)
    except ArtworksCorrupt as exc:
        print(f"[collect] {exc}; restore or move it aside before collecting")
        return 1
    cancel = threading.Event()
    collector = Collector(
        api, store, artworks, config=config, cancel=cancel, progress_bar=True
    )
    print(f"[collect] {len(artists)} artists, {len(artworks)} artworks already kept")
    try:
        report = collector.run(artists)
    except KeyboardInterrupt:
        cancel.set()
        print(
            f"[collect] interrupted; {len(artworks)} artworks saved to {paths.artworks}."
            f" Re-run to resume from {paths.state}"
        )
        return EXIT_INTERRUPTED

    for name, kept in report.kept_by_artist.items():
        print(f"[collect] {name}: kept {kept}")
    for name in report.failed:
        print(f"[collect] {name}: search failed, skipped")
    print(
        f"[collect] wrote {report.total_artworks} artworks"
        f" ({report.appended} new) -> {paths.artworks}"
    )
    print(f"[collect] resume state saved -> {paths.state}")
    return 0


def run_download(paths: DataPaths) -> int:
    if not paths.artworks.exists():
        print(f"[download] no artworks file at {paths.artworks}; run collect first")
        return 1
    config = CollectConfig()
    artworks = read_artworks(paths.artworks)
    report = download_images(
        artworks,
        paths.images_dir,
        _build_client(config),
        max_retries=config.object_retries,
        pause=config.item_pause,
    )
    print(
        f"[download] {report.downloaded} downloaded, {report.cached} cached,"
        f" {report.skipped} without image, {len(report.failed)} failed"
    )
    return 0 if not report.failed else 2


def run_features(args: argparse.Namespace, paths: DataPaths) -> int:
    if not paths.artworks.exists():
        print(f"[features] no artworks file at {paths.artworks}; run collect first")
        return 1
    config = FeatureConfig()
    if args.workers is not None:
        config.workers = args.workers
    artworks = read_artworks(paths.artworks)
    previous = read_features(paths.features)
    report = extract_features(artworks, paths, config, previous=previous)
    write_features(paths.features, report.features)
    print(
        f"[features] {report.computed} computed, {report.reused} unchanged,"
        f" {len(report.skipped)} skipped -> {paths.features}"
    )
    for object_id, reason in sorted(report.skipped.items()):
        print(f"[features] skipped {object_id}: {reason}")
    if args.table:
        table_path = write_feature_table(report.features, paths.feature_table)
        if table_path:
            print(f"[features] wrote table -> {table_path}")
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    """Entry point for the CLI."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    paths = DataPaths(Path(args.data_dir))
    if args.command == "collect":
        return run_collect(args, paths)
    if args.command == "download":
        return run_download(paths)
    return run_features(args, paths)


if __name__ == "__main__":
    raise SystemExit(main())
