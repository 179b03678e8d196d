"""Markdown hover content for services, routes, links and PHP classes."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from pygls.uris import from_fs_path

from drupal_lsp.index.schema import Entity, EntityKind, LinkEntity, RouteEntity, ServiceEntity
from drupal_lsp.resolve.classes import ClassResolver

_TAG = re.compile(r"^@(?P<tag>\w+)\s*(?P<body>.*)$")

_UNDEFINED_LABELS = {
    EntityKind.SERVICE: "Service",
    EntityKind.ROUTE: "Route",
    EntityKind.LINK: "Link",
}


def _link(label: str, path: str | None, line: int | None = None) -> str:
    if not path:
        return f"`{label}`"
    uri = from_fs_path(path) or path
    anchor = f"#{line}" if line else ""
    return f"[`{label}`]({uri}{anchor})"


def _format_argument(arg: Any) -> str:
    if isinstance(arg, (list, tuple)):
        return "[" + ", ".join(_format_argument(a) for a in arg) + "]"
    if isinstance(arg, dict):
        return "{" + ", ".join(f"{k}: {_format_argument(v)}" for k, v in arg.items()) + "}"
    return str(arg)


def undefined(kind: EntityKind, name: str) -> str:
    return f"{_UNDEFINED_LABELS[kind]} `{name}` not found"


class HoverContentBuilder:
    """Build hover markdown; class files are located through *classes*."""

    def __init__(self, classes: ClassResolver) -> None:
        self._classes = classes

    def build(self, entity: Entity) -> str:
        if isinstance(entity, ServiceEntity):
            return self.service(entity)
        if isinstance(entity, RouteEntity):
            return self.route(entity)
        if isinstance(entity, LinkEntity):
            return self.link(entity)
        return f"`{entity.name}`"

    def service(self, entity: ServiceEntity) -> str:
        parts = [f"**Service:** {_link(entity.name, entity.source_file, entity.source_line)}"]
        if entity.class_name:
            class_path = self._classes.resolve_class_path(entity.class_name)
            parts.append(f"**Class:** {_link(entity.class_name, str(class_path) if class_path else None)}")
        if entity.alias:
            parts.append(f"**Alias of:** `{entity.alias}`")
        if entity.parent:
            parts.append(f"**Parent:** `{entity.parent}`")
        if entity.factory:
            parts.append(f"**Factory:** `{entity.factory}`")
        if entity.arguments:
            parts.append("**Arguments:**\n" + "\n".join(
                f"- `{_format_argument(arg)}`" for arg in entity.arguments
            ))
        if entity.tier:
            parts.append(f"*{entity.tier.value}*")
        return "\n\n".join(parts)

    def route(self, entity: RouteEntity) -> str:
        parts = [f"**Route:** {_link(entity.name, entity.source_file, entity.source_line)}"]
        if entity.path:
            parts.append(f"**Path:** `{entity.path}`")
        if entity.handler:
            parts.append(f"**Handler:** `{entity.handler}`")
        if entity.title:
            parts.append(f"**Title:** {entity.title}")
        if entity.permission:
            parts.append(f"**Permission:** `{entity.permission}`")
        if entity.source_file is None:
            parts.append("*Generated by Drupal at runtime*")
        elif entity.tier:
            parts.append(f"*{entity.tier.value}*")
        return "\n\n".join(parts)

    def link(self, entity: LinkEntity) -> str:
        parts = [f"**Link:** {_link(entity.name, entity.source_file, entity.source_line)}"]
        if entity.title:
            parts.append(f"**Title:** {entity.title}")
        if entity.route_name:
            parts.append(f"**Route:** `{entity.route_name}`")
        if entity.parent:
            parts.append(f"**Parent:** `{entity.parent}`")
        if entity.tier:
            parts.append(f"*{entity.tier.value}*")
        return "\n\n".join(parts)

    def php_class(self, fqcn: str, member: str | None = None) -> str:
        label = f"{fqcn}::{member}" if member else fqcn
        path = self._classes.resolve_class_path(fqcn)
        if path is None:
            return f"**Class:** `{label}`\n\n*Class file not found*"
        line = self._classes.symbol_line(path, member)
        parts = [f"**Class:** {_link(label, str(path), line + 1)}"]
        doc = format_phpdoc(self._classes.docblock(Path(path), line))
        if doc:
            parts.append(doc)
        return "\n\n".join(parts)


def format_phpdoc(lines: list[str]) -> str:
    """Render docblock lines as markdown.

    Free text before the first tag becomes the description; ``@param``,
    ``@return``, ``@see`` and ``@link`` are rendered, other tags dropped.
    """
    description: list[str] = []
    params: list[str] = []
    returns: list[str] = []
    see: list[str] = []
    current: list[str] | None = description

    for raw in lines:
        line = raw.strip()
        m = _TAG.match(line)
        if m is None:
            if current is description:
                description.append(line)
            elif current is not None and line:
                current[-1] = f"{current[-1]} {line}"
            continue
        tag, body = m.group("tag"), m.group("body").strip()
        if tag == "param":
            params.append(body)
            current = params
        elif tag == "return":
            returns.append(body)
            current = returns
        elif tag in ("see", "link"):
            see.append(body)
            current = see
        else:
            current = None

    sections = []
    text = "\n".join(description).strip()
    if text:
        sections.append(text)
    if params:
        sections.append("**Parameters:**\n" + "\n".join(f"- `{p}`" for p in params))
    if returns:
        sections.append("**Returns:** " + " ".join(f"`{r}`" for r in returns))
    for ref in see:
        sections.append(f"See: {ref}")
    return "\n\n".join(sections)
