"""Crash-safe persistence of per-artist collection progress."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from ..io.models import CollectionState
from ..io.outputs import atomic_write_json

logger = logging.getLogger(__name__)


class StateCorrupt(Exception):
    """The state file exists but cannot be interpreted."""


class CollectionStateStore:
    """Load and checkpoint :class:`CollectionState` at a fixed path."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> CollectionState:
        """Return the persisted state, or an empty one if absent or corrupt."""
        if not self.path.exists():
            return CollectionState()
        try:
            return self._read()
        except StateCorrupt as exc:
            logger.warning("Starting from empty state: %s", exc)
            return CollectionState()

    def save(self, state: CollectionState) -> None:
        atomic_write_json(self.path, state.to_dict())

    def _read(self) -> CollectionState:
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StateCorrupt(f"cannot parse {self.path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise StateCorrupt(f"{self.path} does not hold a JSON object")
        try:
            return CollectionState.from_dict(payload)
        except ValueError as exc:
            raise StateCorrupt(f"{self.path}: {exc}") from exc
