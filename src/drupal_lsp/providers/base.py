"""Provider interfaces and shared helpers for LSP capabilities."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from lsprotocol import types
from pygls.uris import from_fs_path

from drupal_lsp.index.schema import (
    PHP_EXTENSIONS,
    Entity,
    EntityKind,
    ServiceEntity,
    kind_for_path,
)
from drupal_lsp.index.sync import uri_to_path
from drupal_lsp.resolve.ranking import sort_text
from drupal_lsp.resolve.resolver import Problem

_TIER_LABELS = {"core": "[Core]", "contrib": "[Contrib]", "custom": "[Custom]"}


@dataclass(frozen=True)
class DocumentContext:
    """An open document, independent of the transport's document type."""

    uri: str
    text: str
    version: int | None = None
    lines: list[str] = field(default_factory=list, compare=False)

    @classmethod
    def from_text(cls, uri: str, text: str, version: int | None = None) -> DocumentContext:
        lines = [line.rstrip("\r") for line in text.split("\n")]
        return cls(uri=uri, text=text, version=version, lines=lines)

    @property
    def path(self) -> str:
        return uri_to_path(self.uri)

    @property
    def is_php(self) -> bool:
        return self.path.endswith(PHP_EXTENSIONS)

    @property
    def is_yaml(self) -> bool:
        return self.path.endswith((".yml", ".yaml"))

    @property
    def definition_kind(self) -> EntityKind | None:
        """Kind of definitions this file declares, if it is a definition file."""
        return kind_for_path(self.path)

    def line(self, number: int) -> str:
        if 0 <= number < len(self.lines):
            return self.lines[number]
        return ""

    @property
    def full_range(self) -> types.Range:
        last = max(len(self.lines) - 1, 0)
        return types.Range(
            start=types.Position(line=0, character=0),
            end=types.Position(line=last, character=len(self.line(last))),
        )

    @property
    def cache_key(self) -> str:
        return f"{self.uri}@{self.version}"


# ── Capability interfaces ─────────────────────────────────────────────────────

class CompletionProvider(ABC):
    @abstractmethod
    def can_provide(self, doc: DocumentContext) -> bool:
        """Whether this provider handles *doc* at all."""

    @abstractmethod
    async def provide_completions(
        self, doc: DocumentContext, position: types.Position
    ) -> list[types.CompletionItem]:
        """Completion items at *position*, possibly empty."""


class DefinitionProvider(ABC):
    @abstractmethod
    def can_provide(self, doc: DocumentContext) -> bool:
        """Whether this provider handles *doc* at all."""

    @abstractmethod
    async def provide_definition(
        self, doc: DocumentContext, position: types.Position
    ) -> types.Location | None:
        """Definition location of the reference at *position*."""


class HoverProvider(ABC):
    @abstractmethod
    def can_provide(self, doc: DocumentContext) -> bool:
        """Whether this provider handles *doc* at all."""

    @abstractmethod
    async def provide_hover(
        self, doc: DocumentContext, position: types.Position
    ) -> types.Hover | None:
        """Hover for the reference at *position*."""


class DiagnosticProvider(ABC):
    @abstractmethod
    def can_provide(self, doc: DocumentContext) -> bool:
        """Whether this provider handles *doc* at all."""

    @abstractmethod
    async def provide_diagnostics(self, doc: DocumentContext) -> list[types.Diagnostic]:
        """Every diagnostic for *doc*, recomputed from scratch."""


# ── Helpers ───────────────────────────────────────────────────────────────────

def tier_label(entity: Entity) -> str:
    return _TIER_LABELS.get(entity.tier.value if entity.tier else "", "[Unknown]")


def is_completable(entity: Entity) -> bool:
    """Hide class-named aliases and ``_defaults``-style directives."""
    return "\\" not in entity.name and not entity.name.startswith("_")


def entity_detail(entity: Entity) -> str:
    label = tier_label(entity)
    if isinstance(entity, ServiceEntity) and entity.class_name:
        return f"{label} {entity.class_name}"
    title = getattr(entity, "title", None)
    if title:
        return f"{label} {title}"
    path = getattr(entity, "path", None)
    if path:
        return f"{label} {path}"
    return label


def entity_documentation(entity: Entity) -> str:
    lines = [f"{entity.kind.value.capitalize()}: {entity.name}"]
    if isinstance(entity, ServiceEntity) and entity.class_name:
        lines.append(f"Class: {entity.class_name}")
    if entity.tier:
        lines.append(f"Source: {entity.tier.value}")
    if entity.source_file:
        lines.append(f"File: {entity.source_file}")
    return "\n".join(lines)


_ITEM_KINDS = {
    EntityKind.SERVICE: types.CompletionItemKind.Reference,
    EntityKind.ROUTE: types.CompletionItemKind.Reference,
    EntityKind.LINK: types.CompletionItemKind.Reference,
}


def completion_item(
    entity: Entity,
    typed: str,
    edit_range: types.Range,
    sigil: str = "",
    item_kind: types.CompletionItemKind | None = None,
) -> types.CompletionItem:
    """Completion item that replaces *edit_range* with ``sigil + name``."""
    text = f"{sigil}{entity.name}"
    return types.CompletionItem(
        label=entity.name,
        kind=item_kind or _ITEM_KINDS[entity.kind],
        detail=entity_detail(entity),
        documentation=entity_documentation(entity),
        sort_text=sort_text(entity, typed),
        filter_text=f"{sigil}{entity.name}" if sigil else entity.name,
        text_edit=types.TextEdit(range=edit_range, new_text=text),
    )


def line_range(line: int, start: int, end: int) -> types.Range:
    return types.Range(
        start=types.Position(line=line, character=start),
        end=types.Position(line=line, character=end),
    )


def entity_location(entity: Entity) -> types.Location | None:
    """Location of the definition key of *entity* (None for built-ins)."""
    if not entity.source_file:
        return None
    line = max(entity.source_line - 1, 0)
    return types.Location(
        uri=from_fs_path(entity.source_file) or entity.source_file,
        range=line_range(line, entity.source_column, entity.source_column),
    )


def file_location(path: str, line: int) -> types.Location:
    return types.Location(
        uri=from_fs_path(path) or path,
        range=line_range(line, 0, 0),
    )


def markdown_hover(content: str, hover_range: types.Range | None = None) -> types.Hover:
    return types.Hover(
        contents=types.MarkupContent(kind=types.MarkupKind.Markdown, value=content),
        range=hover_range,
    )


DIAGNOSTIC_SOURCE = "drupal-lsp"


def problem_diagnostic(problem: Problem) -> types.Diagnostic:
    return types.Diagnostic(
        range=line_range(problem.line, problem.start, problem.end),
        message=problem.message,
        severity=types.DiagnosticSeverity.Error,
        source=DIAGNOSTIC_SOURCE,
        code=f"unknown-{problem.kind.value}",
    )
