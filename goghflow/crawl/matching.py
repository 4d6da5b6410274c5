"""Decide whether an object record belongs to a target artist."""

from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")


def normalize_name(value: str | None) -> str:
    """Lowercase *value*, collapse internal whitespace and trim it."""
    return _WHITESPACE.sub(" ", str(value or "")).lower().strip()


def matches(display_name: str | None, target_name: str) -> bool:
    """Return ``True`` when *display_name* refers to *target_name*.

    Upstream names come in varied shapes such as
    ``"Gogh, Vincent van (Dutch, 1853-1890)"``, so besides exact equality a
    record also matches when it contains the target's last name. Distinct artists
    sharing a surname will therefore match each other.
    """
    artist = normalize_name(display_name)
    target = normalize_name(target_name)
    if not artist or not target:
        return False
    if artist == target:
        return True
    last_name = target.rsplit(" ", 1)[-1]
    return last_name in artist
