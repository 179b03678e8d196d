"""Immutable dataclass models for indexed Drupal definitions."""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Tier(str, Enum):
    """Origin of a definition file."""

    CORE = "core"
    CONTRIB = "contrib"
    CUSTOM = "custom"


class EntityKind(str, Enum):
    SERVICE = "service"
    ROUTE = "route"
    LINK = "link"


# Filename patterns (fnmatch) routed to each entity kind.
KIND_PATTERNS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.SERVICE: ("*.services.yml",),
    EntityKind.ROUTE: ("*.routing.yml",),
    EntityKind.LINK: ("*.links.*.yml",),
}


def kind_for_path(path: str) -> EntityKind | None:
    """Return the entity kind a definition file contributes, or None."""
    name = path.replace("\\", "/").rsplit("/", 1)[-1]
    for kind, patterns in KIND_PATTERNS.items():
        if any(fnmatch.fnmatchcase(name, p) for p in patterns):
            return kind
    return None


# Source files scanned for PHP references.
PHP_EXTENSIONS = (".php", ".module", ".inc", ".install", ".theme")


# Route "handler" keys under defaults:, in display precedence.
ROUTE_HANDLER_KEYS = (
    "_controller",
    "_form",
    "_entity_form",
    "_entity_list",
    "_entity_view",
)


# ── Dataclass models ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Entity:
    """Common shape of every indexed definition."""

    name: str
    source_file: str | None     # absolute path; None for built-in dynamic routes
    source_line: int = 0        # 1-based line of the definition key
    source_column: int = 0      # 0-based column of the definition key
    tier: Tier | None = None
    extra: dict[str, Any] = field(default_factory=dict, hash=False)

    kind = EntityKind.SERVICE   # overridden per subclass (class attribute)


@dataclass(frozen=True)
class ServiceEntity(Entity):
    """A container service from a *.services.yml file."""

    class_name: str | None = None
    parent: str | None = None
    arguments: tuple[Any, ...] = ()
    factory: str | None = None
    alias: str | None = None    # target of a `name: '@other'` alias
    tags: tuple[Any, ...] = ()
    calls: tuple[Any, ...] = ()

    kind = EntityKind.SERVICE


@dataclass(frozen=True)
class RouteEntity(Entity):
    """A route from a *.routing.yml file."""

    path: str | None = None
    handler: str | None = None
    title: str | None = None
    permission: str | None = None
    defaults: dict[str, Any] = field(default_factory=dict, hash=False)
    requirements: dict[str, Any] = field(default_factory=dict, hash=False)

    kind = EntityKind.ROUTE


@dataclass(frozen=True)
class LinkEntity(Entity):
    """A menu/task/action/contextual link from a *.links.*.yml file."""

    title: str | None = None
    parent: str | None = None
    route_name: str | None = None
    appears_on: tuple[str, ...] = ()

    kind = EntityKind.LINK


ENTITY_TYPES: dict[EntityKind, type[Entity]] = {
    EntityKind.SERVICE: ServiceEntity,
    EntityKind.ROUTE: RouteEntity,
    EntityKind.LINK: LinkEntity,
}


@dataclass(frozen=True)
class IndexStats:
    """Snapshot statistics of the entity index."""

    total_files: int
    total_entities: int
    entities_by_kind: dict[str, int]
    entities_by_tier: dict[str, int]
