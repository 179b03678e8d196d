"""Entity index: parsing Drupal definition files and keeping them current."""

from drupal_lsp.index.parser import EntityParser, TierClassifier
from drupal_lsp.index.schema import (
    Entity,
    EntityKind,
    IndexStats,
    LinkEntity,
    RouteEntity,
    ServiceEntity,
    Tier,
)
from drupal_lsp.index.store import EntityIndex
from drupal_lsp.index.sync import FileWatchSynchronizer

__all__ = [
    "Entity",
    "EntityIndex",
    "EntityKind",
    "EntityParser",
    "FileWatchSynchronizer",
    "IndexStats",
    "LinkEntity",
    "RouteEntity",
    "ServiceEntity",
    "Tier",
    "TierClassifier",
]
