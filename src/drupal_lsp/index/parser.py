"""Turn Drupal YAML definition files into typed entities.

PyYAML is driven at the node level (compose, then construct per entry) so
every definition key keeps its ``Mark`` and therefore an exact line/column.

EntityParser never raises: malformed YAML, unsupported tags and unreadable
files are logged and produce an empty list so the scan can continue with the
remaining files.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import yaml

from drupal_lsp.core.errors import ParseFailure
from drupal_lsp.index.schema import (
    ROUTE_HANDLER_KEYS,
    Entity,
    EntityKind,
    LinkEntity,
    RouteEntity,
    ServiceEntity,
    Tier,
)

logger = logging.getLogger(__name__)

# Symfony container tags that appear in Drupal service files. Anything else
# outside the YAML core schema is treated as a parse failure.
SYMFONY_TAGS = (
    "!tagged_iterator",
    "!tagged_locator",
    "!service_closure",
    "!iterator",
    "!service_locator",
)

_SERVICE_KEYS = frozenset({
    "class", "parent", "arguments", "factory", "alias", "tags", "calls",
})
_ROUTE_KEYS = frozenset({"path", "defaults", "requirements"})
_LINK_KEYS = frozenset({"title", "parent", "route_name", "appears_on"})


@dataclass(frozen=True)
class TaggedValue:
    """Opaque value of a Symfony-tagged YAML node (kept for display only)."""

    tag: str
    value: Any

    def __str__(self) -> str:
        return f"{self.tag} {self.value}"


class _DefinitionLoader(yaml.SafeLoader):
    """SafeLoader that understands the Symfony container tags."""


def _construct_symfony_tag(loader: _DefinitionLoader, node: yaml.Node) -> TaggedValue:
    if isinstance(node, yaml.ScalarNode):
        value: Any = loader.construct_scalar(node)
    elif isinstance(node, yaml.SequenceNode):
        value = loader.construct_sequence(node, deep=True)
    else:
        value = loader.construct_mapping(node, deep=True)
    return TaggedValue(tag=node.tag, value=value)


for _tag in SYMFONY_TAGS:
    _DefinitionLoader.add_constructor(_tag, _construct_symfony_tag)


# ── Tier classification ──────────────────────────────────────────────────────

class TierClassifier:
    """Classify a path into a tier by ordered directory markers.

    The path is made relative to *drupal_root* (when it lives under it) so a
    root such as ``/srv/core/site`` does not make every file "core".
    """

    def __init__(
        self,
        markers: Iterable[tuple[str, Tier]],
        default: Tier = Tier.CONTRIB,
        drupal_root: Path | None = None,
    ) -> None:
        self._markers = list(markers)
        self._default = default
        self._root = drupal_root.resolve().as_posix() if drupal_root else None

    def classify(self, file_path: str | Path) -> Tier:
        path = Path(file_path).as_posix()
        if self._root and path.startswith(self._root + "/"):
            path = path[len(self._root):]
        for marker, tier in self._markers:
            if marker in path:
                return tier
        return self._default


# ── Parser ────────────────────────────────────────────────────────────────────

class EntityParser:
    """Parse one definition file into entities of one kind.

    Usage::

        parser = EntityParser(classifier)
        services = parser.parse(Path("modules/custom/foo/foo.services.yml"),
                                EntityKind.SERVICE)
    """

    def __init__(self, classifier: TierClassifier) -> None:
        self._classifier = classifier

    def parse(
        self, file_path: Path, kind: EntityKind, content: str | None = None
    ) -> list[Entity]:
        """Parse *file_path*, reading it from disk unless *content* is given.

        Returns an empty list on any error.
        """
        if content is None:
            try:
                content = file_path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                logger.warning("Cannot read %s: %s", file_path, exc)
                return []
        return self.parse_text(content, file_path, kind)

    def parse_text(self, content: str, file_path: Path, kind: EntityKind) -> list[Entity]:
        """Parse already-loaded *content* as if it were *file_path*."""
        try:
            return self._parse(content, str(file_path), kind)
        except ParseFailure as exc:
            logger.debug("Skipping definition file: %s", exc)
            return []

    def _parse(self, content: str, path: str, kind: EntityKind) -> list[Entity]:
        tier = self._classifier.classify(path)
        loader = _DefinitionLoader(content)
        try:
            try:
                root = loader.get_single_node()
            except yaml.YAMLError as exc:
                raise ParseFailure(path, f"invalid YAML: {exc}") from exc
            if root is None:
                return []
            if not isinstance(root, yaml.MappingNode):
                raise ParseFailure(path, "top level is not a mapping")

            entries = root
            if kind is EntityKind.SERVICE:
                entries = _find_mapping(root, "services")
                if entries is None:
                    return []

            entities: list[Entity] = []
            for key_node, value_node in entries.value:
                try:
                    name = loader.construct_object(key_node, deep=True)
                    value = loader.construct_object(value_node, deep=True)
                except yaml.YAMLError as exc:
                    raise ParseFailure(path, f"cannot construct entry: {exc}") from exc
                if name is None or value is None or name == "":
                    continue
                entity = _build_entity(
                    kind,
                    name=str(name),
                    value=value,
                    path=path,
                    line=key_node.start_mark.line + 1,
                    column=key_node.start_mark.column,
                    tier=tier,
                )
                if entity is not None:
                    entities.append(entity)
            return entities
        finally:
            loader.dispose()


def _find_mapping(root: yaml.MappingNode, key: str) -> yaml.MappingNode | None:
    for key_node, value_node in root.value:
        if isinstance(key_node, yaml.ScalarNode) and key_node.value == key:
            return value_node if isinstance(value_node, yaml.MappingNode) else None
    return None


def _build_entity(
    kind: EntityKind,
    *,
    name: str,
    value: Any,
    path: str,
    line: int,
    column: int,
    tier: Tier,
) -> Entity | None:
    common: dict[str, Any] = {
        "name": name,
        "source_file": path,
        "source_line": line,
        "source_column": column,
        "tier": tier,
    }

    if kind is EntityKind.SERVICE:
        if isinstance(value, str):
            # Short alias form: `foo: '@bar'`
            return ServiceEntity(**common, alias=value.lstrip("@"))
        if not isinstance(value, dict):
            return None
        alias = value.get("alias")
        return ServiceEntity(
            **common,
            extra=_extra(value, _SERVICE_KEYS),
            class_name=_opt_str(value.get("class")),
            parent=_opt_str(value.get("parent")),
            arguments=_as_tuple(value.get("arguments")),
            factory=_factory(value.get("factory")),
            alias=alias.lstrip("@") if isinstance(alias, str) else None,
            tags=_as_tuple(value.get("tags")),
            calls=_as_tuple(value.get("calls")),
        )

    if not isinstance(value, dict):
        return None

    if kind is EntityKind.ROUTE:
        defaults = value.get("defaults") if isinstance(value.get("defaults"), dict) else {}
        requirements = (
            value.get("requirements") if isinstance(value.get("requirements"), dict) else {}
        )
        handler = next(
            (str(defaults[k]) for k in ROUTE_HANDLER_KEYS if defaults.get(k)), None
        )
        return RouteEntity(
            **common,
            extra=_extra(value, _ROUTE_KEYS),
            path=_opt_str(value.get("path")),
            handler=handler,
            title=_opt_str(defaults.get("_title")),
            permission=_opt_str(requirements.get("_permission")),
            defaults=defaults,
            requirements=requirements,
        )

    appears_on = value.get("appears_on")
    if isinstance(appears_on, str):
        appears_on = [appears_on]
    return LinkEntity(
        **common,
        extra=_extra(value, _LINK_KEYS),
        title=_opt_str(value.get("title")),
        parent=_opt_str(value.get("parent")),
        route_name=_opt_str(value.get("route_name")),
        appears_on=tuple(str(r) for r in appears_on or () if r is not None),
    )


def _opt_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _as_tuple(value: Any) -> tuple[Any, ...]:
    if value is None:
        return ()
    if isinstance(value, list):
        return tuple(value)
    return (value,)


def _factory(value: Any) -> str | None:
    """Normalize `factory: service:method` and `factory: ['@service', method]`."""
    if value is None:
        return None
    if isinstance(value, list):
        return "::".join(str(v).lstrip("@") for v in value)
    return str(value)


def _extra(value: dict[str, Any], known: frozenset[str]) -> dict[str, Any]:
    return {k: v for k, v in value.items() if k not in known}
