"""Session management - wires index, resolvers, providers and tools together."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from drupal_lsp.core.config import DrupalLspConfig, load_config
from drupal_lsp.core.memo import CacheSweeper, MemoCache
from drupal_lsp.core.project import DrupalProjectResolver
from drupal_lsp.index.parser import EntityParser, TierClassifier
from drupal_lsp.index.schema import PHP_EXTENSIONS, Entity, EntityKind
from drupal_lsp.index.store import EntityIndex
from drupal_lsp.index.sync import FileWatchSynchronizer
from drupal_lsp.providers.registry import ProviderRegistry
from drupal_lsp.resolve.classes import ClassResolver
from drupal_lsp.resolve.resolver import KNOWN_ENTITY_ROUTES, Resolver
from drupal_lsp.tools.phpcs import PhpcsBinaries, PhpcsRunner

logger = logging.getLogger(__name__)


def is_custom_code(path: str, drupal_root: Path | None = None) -> bool:
    """True for files outside ``core/`` and ``modules/contrib/``.

    With *drupal_root*, only the part of *path* below it is inspected.
    """
    posix = Path(path).as_posix()
    if drupal_root is not None:
        root = drupal_root.resolve().as_posix()
        if posix.startswith(root + "/"):
            posix = posix[len(root):]
    return "/core/" not in posix and "/modules/contrib/" not in posix


class Session:
    """All components serving one workspace.

    Usage::

        session = Session(Path("/srv/site"))
        await session.scan_and_populate()
        session.lookup_by_name(EntityKind.SERVICE, "entity_type.manager")
    """

    def __init__(
        self,
        workspace_root: Path,
        config: DrupalLspConfig | None = None,
        phpcs_binaries: PhpcsBinaries | None = None,
    ) -> None:
        self.config = config or load_config(workspace_root)
        self.project = DrupalProjectResolver(workspace_root)
        self.workspace_root = self.project.workspace_root
        self.drupal_root = self.project.drupal_root

        # Stores
        self.index = EntityIndex()
        self.memo = MemoCache(default_ttl=self.config.cache.ttl_seconds)
        self.sweeper = CacheSweeper(self.memo, interval=self.config.cache.sweep_interval_seconds)

        # Parsing and live sync
        self._build_indexing()

        # Resolution
        self.resolvers: dict[EntityKind, Resolver] = {
            EntityKind.SERVICE: Resolver(
                self.index,
                EntityKind.SERVICE,
                allowlist=self.config.validation.dynamic_service_prefixes,
                memo=self.memo,
            ),
            EntityKind.ROUTE: Resolver(
                self.index,
                EntityKind.ROUTE,
                allowlist=self.config.validation.dynamic_route_prefixes,
                builtin_names=KNOWN_ENTITY_ROUTES,
                memo=self.memo,
            ),
            EntityKind.LINK: Resolver(self.index, EntityKind.LINK, memo=self.memo),
        }
        self.classes = ClassResolver(self.drupal_root, self.memo)

        # External tools
        self.phpcs = PhpcsRunner(
            phpcs_binaries or PhpcsBinaries.discover(self.workspace_root, self.config.phpcs.standard),
            enabled=self.config.phpcs.enabled,
            memo=self.memo,
        )

        # Providers
        self.providers = ProviderRegistry.create_default(self.resolvers, self.classes, self.phpcs)

    def _build_indexing(self) -> None:
        index_config = self.config.index
        self.classifier = TierClassifier(
            [(m.marker, m.tier) for m in index_config.tier_markers],
            default=index_config.default_tier,
            drupal_root=self.drupal_root,
        )
        self.parser = EntityParser(self.classifier)
        self.synchronizer = FileWatchSynchronizer(
            self.drupal_root,
            self.index,
            self.parser,
            self.classifier,
            memo=self.memo,
            ignore_dirs=index_config.ignore_dirs,
            max_file_size_kb=index_config.max_file_size_kb,
        )

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    @property
    def detected(self) -> bool:
        return self.project.detected

    def start(self) -> None:
        """Start background tasks. Requires a running event loop."""
        self.sweeper.start()

    async def stop(self) -> None:
        await self.sweeper.stop()

    # ── Index API ─────────────────────────────────────────────────────────────

    @property
    def is_populated(self) -> bool:
        return self.index.is_populated

    async def scan_and_populate(self) -> int:
        return await self.synchronizer.scan_and_populate()

    async def on_path_changed(self, path: str, content: str | None = None) -> bool:
        return await self.synchronizer.on_path_changed(path, content)

    def on_path_deleted(self, path: str) -> bool:
        return self.synchronizer.on_path_deleted(path)

    def lookup_by_name(self, kind: EntityKind, name: str) -> Entity | None:
        return self.resolvers[kind].resolve(name)

    def list_all(self, kind: EntityKind | None = None) -> list[Entity]:
        return self.index.get_all(kind)

    def list_all_names(self, kind: EntityKind) -> list[str]:
        return self.index.get_all_names(kind)

    # ── Editor events ─────────────────────────────────────────────────────────

    def is_custom_code(self, path: str) -> bool:
        return is_custom_code(path, self.drupal_root)

    async def on_document_changed(self, path: str, content: str) -> bool:
        """Handle an edited buffer: reindex definition files, drop PHP memos."""
        if path.endswith(PHP_EXTENSIONS):
            self.memo.clear_matching("class:*")
            self.memo.clear_matching("method:*")
            return False
        return await self.synchronizer.on_content_changed(path, content)

    async def apply_settings(self, settings: dict[str, Any]) -> bool:
        """Merge ``drupalLsp`` client settings. Returns True when a rescan ran."""
        old = self.config
        self.config = old.merged(settings)

        if self.config.phpcs != old.phpcs:
            binaries = None
            if self.config.phpcs.standard != old.phpcs.standard:
                binaries = PhpcsBinaries.discover(self.workspace_root, self.config.phpcs.standard)
            self.phpcs.configure(binaries=binaries, enabled=self.config.phpcs.enabled)
            logger.info("phpcs %s", "enabled" if self.phpcs.enabled else "disabled")

        if self.config.validation != old.validation:
            self.resolvers[EntityKind.SERVICE].allowlist = tuple(
                self.config.validation.dynamic_service_prefixes
            )
            self.resolvers[EntityKind.ROUTE].allowlist = tuple(
                self.config.validation.dynamic_route_prefixes
            )

        if self.config.index != old.index:
            logger.info("Index settings changed, rescanning %s", self.drupal_root)
            self._build_indexing()
            self.index.clear_all()
            self.memo.clear()
            await self.scan_and_populate()
            return True
        return False
