"""Ranking of completion candidates.

One total sort key per candidate:

  1. tier       custom (0) > contrib (1) > core (2) > unknown (3)
  2. match band exact (0) > prefix (1) > substring (2) > other (3)
  3. remaining  for prefix matches, how much of the name is left to type
  4. name       the candidate's own name, then its source location

Matching is case-insensitive; the final tie-break uses the original name so
output order never depends on index iteration order.
"""

from __future__ import annotations

from typing import Iterable

from drupal_lsp.index.schema import Entity, Tier

TIER_RANK: dict[Tier | None, int] = {
    Tier.CUSTOM: 0,
    Tier.CONTRIB: 1,
    Tier.CORE: 2,
    None: 3,
}

BAND_EXACT = 0
BAND_PREFIX = 1
BAND_SUBSTRING = 2
BAND_OTHER = 3

SortKey = tuple[int, int, int, str, str, int]


def match_band(name: str, typed: str) -> tuple[int, int]:
    """Return ``(band, remaining)`` for *name* against the typed text."""
    if not typed:
        return BAND_EXACT, 0
    lowered = name.lower()
    needle = typed.lower()
    if lowered == needle:
        return BAND_EXACT, 0
    if lowered.startswith(needle):
        return BAND_PREFIX, len(name) - len(typed)
    if needle in lowered:
        return BAND_SUBSTRING, 0
    return BAND_OTHER, 0


def sort_key(entity: Entity, typed: str) -> SortKey:
    band, remaining = match_band(entity.name, typed)
    return (
        TIER_RANK.get(entity.tier, 3),
        band,
        remaining,
        entity.name,
        entity.source_file or "",
        entity.source_line,
    )


def sort_text(entity: Entity, typed: str) -> str:
    """Render :func:`sort_key` as a string that sorts the same way."""
    tier, band, remaining, name, _, _ = sort_key(entity, typed)
    return f"{tier}_{band}_{remaining:05d}_{name}"


def rank(candidates: Iterable[Entity], typed: str) -> list[Entity]:
    return sorted(candidates, key=lambda e: sort_key(e, typed))
