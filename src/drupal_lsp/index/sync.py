"""FileWatchSynchronizer: keep the entity index in step with the file set.

Two entry points with deliberately different scope:

  scan_and_populate()  full scan of every tier (core, contrib, custom)
  on_path_changed() /  live events, applied to custom-tier files only;
  on_path_deleted()    core and contrib trees are large and change rarely,
                       so lookups keep serving the startup scan for them

Each event for a path takes a generation number. A parse result is written
only if no later event for the same path has been applied in the meantime,
so rapid consecutive edits always settle on the latest content and a delete
cannot be undone by a slower in-flight reparse.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Iterable

from lsprotocol import types
from pygls.uris import to_fs_path

from drupal_lsp.core.memo import MemoCache
from drupal_lsp.index.parser import EntityParser, TierClassifier
from drupal_lsp.index.schema import KIND_PATTERNS, EntityKind, Tier, kind_for_path
from drupal_lsp.index.store import EntityIndex

logger = logging.getLogger(__name__)


class FileWatchSynchronizer:
    """Route file events to parser and index.

    Parameters
    ----------
    drupal_root:
        Directory scanned by :meth:`scan_and_populate`.
    index:
        The index to populate and update.
    parser:
        Parser used for both the scan and live events.
    classifier:
        Decides which live events are in scope (custom tier only).
    memo:
        Optional memo cache; derived entries for a kind are dropped whenever
        that kind changes.
    """

    def __init__(
        self,
        drupal_root: Path,
        index: EntityIndex,
        parser: EntityParser,
        classifier: TierClassifier,
        memo: MemoCache | None = None,
        ignore_dirs: Iterable[str] = ("node_modules", "vendor", "tests", "test"),
        max_file_size_kb: int = 2048,
    ) -> None:
        self._root = drupal_root.resolve()
        self._index = index
        self._parser = parser
        self._classifier = classifier
        self._memo = memo
        self._ignore_dirs = frozenset(ignore_dirs)
        self._max_bytes = max_file_size_kb * 1024
        self._generations: dict[str, int] = {}

    # ── Startup scan ──────────────────────────────────────────────────────────

    async def scan_and_populate(self) -> int:
        """Parse every definition file under the root. Returns the entity count."""
        if not self._root.is_dir():
            logger.debug("Drupal root %s does not exist, nothing to index", self._root)
            self._index.mark_populated()
            return 0

        files = await asyncio.to_thread(self._collect_files)
        total = 0
        for path, kind in files:
            key = str(path)
            generation = self._generations.get(key)
            entities = await asyncio.to_thread(self._parser.parse, path, kind)
            # A live event during the parse already holds newer content.
            if self._generations.get(key) != generation:
                logger.debug("Keeping live update of %s over scanned copy", key)
                continue
            self._index.replace_file(key, kind, entities)
            total += len(entities)

        self._index.mark_populated()
        for kind in EntityKind:
            self._invalidate(kind)
        counts = {k.value: len(self._index.get_all(k)) for k in EntityKind}
        logger.info(
            "Indexed %d services, %d routes, %d links from %d files",
            counts["service"], counts["route"], counts["link"], len(files),
        )
        return total

    def _collect_files(self) -> list[tuple[Path, EntityKind]]:
        """All definition files under the root, sorted for reproducibility."""
        result: list[tuple[Path, EntityKind]] = []
        seen: set[Path] = set()
        try:
            for kind, patterns in KIND_PATTERNS.items():
                for pattern in patterns:
                    for path in self._root.rglob(pattern):
                        if path in seen or not self._wanted(path):
                            continue
                        seen.add(path)
                        result.append((path.resolve(), kind))
        except OSError as exc:
            logger.warning("Error scanning %s: %s", self._root, exc)
        result.sort(key=lambda item: str(item[0]))
        return result

    def _wanted(self, path: Path) -> bool:
        rel_parts = path.relative_to(self._root).parts[:-1]
        if any(part in self._ignore_dirs for part in rel_parts):
            return False
        try:
            if not path.is_file():
                return False
            if path.stat().st_size > self._max_bytes:
                logger.debug("Skipping large file: %s", path)
                return False
        except OSError:
            return False
        return True

    # ── Live events ───────────────────────────────────────────────────────────

    def in_scope(self, path: str) -> EntityKind | None:
        """Kind of *path* if live events for it are applied, else None."""
        kind = kind_for_path(path)
        if kind is None:
            return None
        if self._classifier.classify(path) is not Tier.CUSTOM:
            return None
        return kind

    async def on_path_changed(self, path: str, content: str | None = None) -> bool:
        """Reparse *path* (or *content*, an open editor buffer) into the index.

        Returns True when the index was updated.
        """
        path = normalize_path(path)
        kind = self.in_scope(path)
        if kind is None:
            return False
        generation = self._next_generation(path)

        if content is None:
            entities = await asyncio.to_thread(self._parser.parse, Path(path), kind)
        else:
            entities = self._parser.parse(Path(path), kind, content)

        if self._generations.get(path) != generation:
            logger.debug("Discarding superseded parse of %s", path)
            return False
        self._index.replace_file(path, kind, entities)
        self._invalidate(kind)
        logger.debug("Reindexed %s (%d %ss)", path, len(entities), kind.value)
        return True

    async def on_content_changed(self, path: str, content: str) -> bool:
        return await self.on_path_changed(path, content)

    def on_path_deleted(self, path: str) -> bool:
        """Drop everything *path* contributed. No reparse."""
        path = normalize_path(path)
        kind = self.in_scope(path)
        if kind is None:
            return False
        self._next_generation(path)
        removed = self._index.purge_file(path, kind)
        self._invalidate(kind)
        logger.debug("Removed %s from index (%d entities)", path, removed)
        return True

    async def handle_watched_files(self, events: Iterable[types.FileEvent]) -> int:
        """Apply ``workspace/didChangeWatchedFiles`` events. Returns how many applied."""
        applied = 0
        for event in events:
            path = uri_to_path(event.uri)
            if event.type == types.FileChangeType.Deleted:
                changed = self.on_path_deleted(path)
            else:
                changed = await self.on_path_changed(path)
            applied += int(changed)
        return applied

    def _next_generation(self, path: str) -> int:
        # Entries are never dropped, not even on delete: a missing entry would
        # let an in-flight parse pass the staleness check. One int per custom
        # definition file ever touched.
        generation = self._generations.get(path, 0) + 1
        self._generations[path] = generation
        return generation

    def _invalidate(self, kind: EntityKind) -> None:
        if self._memo is not None:
            self._memo.clear_matching(f"{kind.value}:*")


def normalize_path(path: str) -> str:
    return str(Path(path).resolve())


def uri_to_path(uri: str) -> str:
    """Filesystem path for a ``file://`` URI (other strings pass through)."""
    if uri.startswith("file:"):
        return to_fs_path(uri) or uri
    return uri
