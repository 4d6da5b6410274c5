"""Resumable per-artist collection of public-domain artworks.

Each artist goes through three phases. It is searched once for its object ids,
then the ids are scanned from the persisted cursor, and it is done once the id
list runs out or the kept cap is reached. Every scanned id is a transition
``(progress, record) -> (progress', artwork | None)``. The new progress is
checkpointed before the next id is requested, so a restart resumes at the first
unprocessed id without refetching anything already scanned.

The collector runs strictly sequentially. It assumes it is the only writer of
the state and artworks files. Running two collectors against the same files is
unsupported.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterable, Mapping

from tqdm import tqdm

from ..config import CollectConfig
from ..io.models import (
    ArtistProgress,
    ArtworkRecord,
    CollectReport,
    CollectionState,
    TargetArtist,
)
from ..io.outputs import ArtworkLog
from .client import ExhaustedRetries, MetApi, RequestFailed
from .matching import matches
from .state import CollectionStateStore

logger = logging.getLogger(__name__)

Sleep = Callable[[float], None]


def is_good(record: Mapping[str, Any] | None, target_name: str) -> bool:
    """Return ``True`` when *record* is a public-domain image by the target artist."""
    if not record:
        return False
    object_id = record.get("objectID")
    return bool(
        record.get("isPublicDomain") is True
        and (record.get("primaryImageSmall") or record.get("primaryImage"))
        and isinstance(object_id, int)
        and not isinstance(object_id, bool)
        and object_id > 0
        and matches(record.get("artistDisplayName"), target_name)
    )


def scan_step(
    progress: ArtistProgress,
    record: Mapping[str, Any] | None,
    target: TargetArtist,
) -> tuple[ArtistProgress, ArtworkRecord | None]:
    """Advance past the id at ``progress.cursor`` given its fetched *record*."""
    if record is None or not is_good(record, target.name):
        return ArtistProgress(cursor=progress.cursor + 1, kept=progress.kept), None
    artwork = ArtworkRecord.from_dict(record)
    return ArtistProgress(cursor=progress.cursor + 1, kept=progress.kept + 1), artwork


class Collector:
    """Drive search, scan and checkpoint for a list of target artists."""

    def __init__(
        self,
        api: MetApi,
        store: CollectionStateStore,
        artworks: ArtworkLog,
        config: CollectConfig | None = None,
        sleep: Sleep | None = None,
        cancel: threading.Event | None = None,
        progress_bar: bool = False,
    ) -> None:
        self.api = api
        self.store = store
        self.artworks = artworks
        self.config = config or CollectConfig()
        self.cancel = cancel or threading.Event()
        self._sleep = sleep or self._interruptible_sleep
        self._progress_bar = progress_bar
        self.state: CollectionState = store.load()
        self._appended = 0

    def run(self, artists: Iterable[TargetArtist]) -> CollectReport:
        """Collect every artist in order, pausing between artists.

        Search failures skip the artist unless ``abort_on_search_failure`` is set,
        in which case the error propagates after the artworks file is written.
        """
        report = CollectReport()
        targets = list(artists)
        try:
            for index, target in enumerate(targets):
                if self.cancel.is_set():
                    report.cancelled = True
                    break
                try:
                    progress = self.collect_artist(target)
                except (ExhaustedRetries, RequestFailed) as exc:
                    logger.error("Search failed for %s: %s", target.name, exc)
                    report.failed.append(target.name)
                    if self.config.abort_on_search_failure:
                        raise
                else:
                    report.kept_by_artist[target.name] = progress.kept
                    logger.info("%s: kept %d", target.name, progress.kept)
                if index < len(targets) - 1 and not self.cancel.is_set():
                    self._sleep(self.config.artist_pause)
            if self.cancel.is_set():
                report.cancelled = True
        finally:
            self.artworks.save()
        report.appended = self._appended
        report.total_artworks = len(self.artworks)
        return report

    def collect_artist(self, target: TargetArtist) -> ArtistProgress:
        """Run one artist to completion (or cancellation) and return its progress."""
        progress = self.state.progress_for(target.name)
        if self._is_complete(progress):
            logger.debug("%s already complete (%s)", target.name, progress)
            return progress

        ids = self.api.search(target.query, self.config.search_retries)
        ids = ids[: self.config.max_ids_per_artist]
        logger.info(
            "%s: %d candidate ids, resuming at %d with %d kept",
            target.name,
            len(ids),
            progress.cursor,
            progress.kept,
        )

        remaining = range(progress.cursor, len(ids))
        bar = tqdm(
            total=len(remaining),
            desc=target.name,
            unit="id",
            leave=False,
            disable=not self._progress_bar,
        )
        try:
            for index in remaining:
                if progress.kept >= self.config.per_artist_cap or self.cancel.is_set():
                    break
                record = self.api.get_object(ids[index], self.config.object_retries)
                progress = self._advance(target, progress, record)
                bar.update(1)
                if index < len(ids) - 1:
                    self._sleep(self.config.item_pause)
        finally:
            bar.close()

        self._checkpoint(target, progress)
        return progress

    def _advance(
        self,
        target: TargetArtist,
        progress: ArtistProgress,
        record: Mapping[str, Any] | None,
    ) -> ArtistProgress:
        progress, artwork = scan_step(progress, record, target)
        if artwork is not None:
            if self.artworks.add(artwork):
                self._appended += 1
            else:
                logger.debug("Object %s already retained", artwork.object_id)
        self._checkpoint(target, progress, artworks_changed=artwork is not None)
        return progress

    def _checkpoint(
        self,
        target: TargetArtist,
        progress: ArtistProgress,
        artworks_changed: bool = False,
    ) -> None:
        # artworks first: a crash in between re-scans the id and dedupes on objectID
        if artworks_changed:
            self.artworks.save()
        self.state.by_artist[target.name] = progress
        self.store.save(self.state)

    def _is_complete(self, progress: ArtistProgress) -> bool:
        return (
            progress.kept >= self.config.per_artist_cap
            or progress.cursor >= self.config.max_ids_per_artist
        )

    def _interruptible_sleep(self, seconds: float) -> None:
        self.cancel.wait(seconds)
