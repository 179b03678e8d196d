"""In-memory entity index, bucketed by source file.

EntityIndex is the authoritative store for parsed definitions. Entries are
never time-expired: they change only through ``replace_file``,
``purge_file``, ``clear_all`` and ``clear_matching``. Derived, expiring data
lives in :class:`drupal_lsp.core.memo.MemoCache` instead.

Keys have the form ``"<kind>:<absolute path>"`` so a whole category can be
dropped with one pattern (``"service:*"``).
"""

from __future__ import annotations

import itertools
import logging
from collections import Counter
from dataclasses import dataclass

from drupal_lsp.core.memo import matches_pattern
from drupal_lsp.index.schema import Entity, EntityKind, IndexStats

logger = logging.getLogger(__name__)


def index_key(kind: EntityKind, path: str) -> str:
    return f"{kind.value}:{path}"


@dataclass(frozen=True)
class _Bucket:
    """Entities contributed by one file, stamped with the write sequence."""

    kind: EntityKind
    path: str
    entities: tuple[Entity, ...]
    seq: int


class EntityIndex:
    """Store entities per source file and answer aggregate queries.

    Duplicate names: ``get_by_name`` returns the entity from the bucket
    written most recently. Within one file the last occurrence wins.
    """

    def __init__(self) -> None:
        self._buckets: dict[str, _Bucket] = {}
        # (kind, name) -> {bucket key: seq}
        self._names: dict[tuple[EntityKind, str], dict[str, int]] = {}
        self._seq = itertools.count(1)
        self._populated = False

    # ── Mutation ──────────────────────────────────────────────────────────────

    def replace_file(self, path: str, kind: EntityKind, entities: list[Entity]) -> None:
        """Replace everything *path* contributes with *entities*."""
        key = index_key(kind, path)
        self._drop(key)
        bucket = _Bucket(kind=kind, path=path, entities=tuple(entities), seq=next(self._seq))
        self._buckets[key] = bucket
        for entity in bucket.entities:
            self._names.setdefault((kind, entity.name), {})[key] = bucket.seq

    def purge_file(self, path: str, kind: EntityKind | None = None) -> int:
        """Remove all entities contributed by *path*. Returns how many were removed."""
        kinds = [kind] if kind is not None else list(EntityKind)
        removed = 0
        for k in kinds:
            removed += self._drop(index_key(k, path))
        return removed

    def clear_all(self) -> None:
        """Drop every entry and mark the index as not populated."""
        self._buckets.clear()
        self._names.clear()
        self._populated = False

    def clear_matching(self, pattern: str) -> int:
        """Drop buckets whose key matches *pattern*. Returns the bucket count.

        Supports exact keys, prefix patterns (``service:*``) and substring
        patterns (``*modules/custom*``).
        """
        keys = [k for k in self._buckets if matches_pattern(k, pattern)]
        for key in keys:
            self._drop(key)
        return len(keys)

    def mark_populated(self) -> None:
        self._populated = True

    @property
    def is_populated(self) -> bool:
        return self._populated

    # ── Queries ───────────────────────────────────────────────────────────────

    def get_all(self, kind: EntityKind | None = None) -> list[Entity]:
        """Every entity (optionally of one kind), ordered by key then file order."""
        result: list[Entity] = []
        for key in sorted(self._buckets):
            bucket = self._buckets[key]
            if kind is None or bucket.kind is kind:
                result.extend(bucket.entities)
        return result

    def get_by_name(self, name: str, kind: EntityKind) -> Entity | None:
        owners = self._names.get((kind, name))
        if not owners:
            return None
        key = max(owners, key=owners.__getitem__)
        bucket = self._buckets[key]
        for entity in reversed(bucket.entities):
            if entity.name == name:
                return entity
        return None

    def get_all_names(self, kind: EntityKind) -> list[str]:
        return sorted(name for (k, name) in self._names if k is kind)

    def has_name(self, name: str, kind: EntityKind) -> bool:
        return bool(self._names.get((kind, name)))

    def files(self, kind: EntityKind | None = None) -> list[str]:
        return sorted(
            b.path for b in self._buckets.values() if kind is None or b.kind is kind
        )

    def get_stats(self) -> IndexStats:
        by_kind: Counter[str] = Counter()
        by_tier: Counter[str] = Counter()
        for bucket in self._buckets.values():
            for entity in bucket.entities:
                by_kind[bucket.kind.value] += 1
                by_tier[entity.tier.value if entity.tier else "unknown"] += 1
        return IndexStats(
            total_files=len(self._buckets),
            total_entities=sum(by_kind.values()),
            entities_by_kind=dict(by_kind),
            entities_by_tier=dict(by_tier),
        )

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _drop(self, key: str) -> int:
        bucket = self._buckets.pop(key, None)
        if bucket is None:
            return 0
        for entity in bucket.entities:
            owners = self._names.get((bucket.kind, entity.name))
            if owners is None:
                continue
            owners.pop(key, None)
            if not owners:
                del self._names[(bucket.kind, entity.name)]
        return len(bucket.entities)
