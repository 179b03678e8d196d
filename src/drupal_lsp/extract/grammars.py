"""Grammars: the shapes that make up one reference kind in one language."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence

from drupal_lsp.extract.shapes import (
    CallShape,
    ClassReferenceShape,
    InstanceAccessorShape,
    Reference,
    ServiceKeyShape,
    Shape,
    SigilReferenceShape,
    StaticFactoryShape,
    TypedPrefix,
    YamlKeyValueShape,
    YamlListItemShape,
)
from drupal_lsp.index.schema import EntityKind


@dataclass(frozen=True)
class Grammar:
    """An ordered group of shapes. At a cursor, the first shape to match wins."""

    name: str
    kind: EntityKind | None
    shapes: tuple[Shape, ...]

    def find_all(self, line: str) -> list[Reference]:
        refs = [ref for shape in self.shapes for ref in shape.find_all(line)]
        return sorted(refs, key=lambda r: r.start)

    def find_at(
        self,
        line: str,
        cursor: int,
        lines: Sequence[str] | None = None,
        line_no: int | None = None,
    ) -> Reference | None:
        for shape in self.shapes:
            if not shape.applies(lines, line_no):
                continue
            ref = shape.find_at(line, cursor)
            if ref is not None:
                return ref
        return None

    def typed_prefix(
        self,
        line: str,
        cursor: int,
        lines: Sequence[str] | None = None,
        line_no: int | None = None,
    ) -> TypedPrefix | None:
        for shape in self.shapes:
            if not shape.applies(lines, line_no):
                continue
            prefix = shape.typed_prefix(line, cursor)
            if prefix is not None:
                return prefix
        return None

    def scan(self, lines: Sequence[str]) -> Iterator[tuple[int, Reference]]:
        """Every reference in a document, shape by shape."""
        for shape in self.shapes:
            yield from shape.scan(lines)


SERVICE_PHP = Grammar(
    name="service_php",
    kind=EntityKind.SERVICE,
    shapes=(StaticFactoryShape(), InstanceAccessorShape()),
)

SERVICE_YAML = Grammar(
    name="service_yaml",
    kind=EntityKind.SERVICE,
    shapes=(
        SigilReferenceShape(),
        YamlKeyValueShape(("parent",), EntityKind.SERVICE),
        ServiceKeyShape(),
    ),
)

ROUTE_PHP = Grammar(
    name="route_php",
    kind=EntityKind.ROUTE,
    shapes=(
        CallShape("Url::fromRoute"),
        CallShape("->redirect"),
        CallShape("->setRedirect"),
        CallShape("Link::createFromRoute", skip_args=1),
    ),
)

ROUTE_YAML = Grammar(
    name="route_yaml",
    kind=EntityKind.ROUTE,
    shapes=(
        YamlKeyValueShape(("route_name", "route", "base_route"), EntityKind.ROUTE),
        YamlListItemShape("appears_on", EntityKind.ROUTE),
    ),
)

LINK_YAML = Grammar(
    name="link_yaml",
    kind=EntityKind.LINK,
    shapes=(YamlKeyValueShape(("parent",), EntityKind.LINK),),
)

CLASS_YAML = Grammar(
    name="class_yaml",
    kind=None,
    shapes=(ClassReferenceShape(),),
)
