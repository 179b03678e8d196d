"""YAML providers: references inside services, routing and links files."""

from __future__ import annotations

import re
from typing import Mapping

from lsprotocol import types

from drupal_lsp.extract.grammars import CLASS_YAML, LINK_YAML, ROUTE_YAML, SERVICE_YAML, Grammar
from drupal_lsp.extract.shapes import Reference
from drupal_lsp.index.schema import EntityKind, ServiceEntity
from drupal_lsp.providers.base import (
    CompletionProvider,
    DefinitionProvider,
    DiagnosticProvider,
    DocumentContext,
    HoverProvider,
    completion_item,
    entity_location,
    file_location,
    is_completable,
    line_range,
    markdown_hover,
    problem_diagnostic,
    tier_label,
)
from drupal_lsp.providers.hover import HoverContentBuilder, undefined
from drupal_lsp.resolve.classes import ClassResolver
from drupal_lsp.resolve.ranking import rank
from drupal_lsp.resolve.resolver import Resolver

# Reference grammars that apply inside each kind of definition file.
FILE_GRAMMARS: dict[EntityKind, tuple[Grammar, ...]] = {
    EntityKind.SERVICE: (SERVICE_YAML,),
    EntityKind.ROUTE: (),
    EntityKind.LINK: (LINK_YAML, ROUTE_YAML),
}

_CLASS_VALUE = re.compile(r"^\s*class:[ \t]*['\"]?(?P<name>[\w\\]*)\Z")

# A bare argument being typed without its ``@`` yet.
_BARE_ARGUMENT = re.compile(
    r"(?:^\s*-[ \t]*|arguments:[ \t]*\[(?:[^\]]*,)?[ \t]*)(?P<name>[\w.\-]*)\Z"
)


class YamlReferenceProvider(CompletionProvider, DefinitionProvider, HoverProvider):
    def __init__(
        self,
        resolvers: Mapping[EntityKind, Resolver],
        classes: ClassResolver,
        hover: HoverContentBuilder,
    ) -> None:
        self._resolvers = resolvers
        self._classes = classes
        self._hover = hover

    def can_provide(self, doc: DocumentContext) -> bool:
        return doc.is_yaml and doc.definition_kind is not None

    # ── Completion ────────────────────────────────────────────────────────────

    async def provide_completions(
        self, doc: DocumentContext, position: types.Position
    ) -> list[types.CompletionItem]:
        kind = doc.definition_kind
        line = doc.line(position.line)
        cursor = min(position.character, len(line))
        before = line[:cursor]

        if kind is EntityKind.SERVICE:
            m = _CLASS_VALUE.search(before)
            if m is not None:
                return self._class_items(m.group("name"), line_range(position.line, m.start("name"), cursor))

        for grammar in FILE_GRAMMARS.get(kind, ()):
            prefix = grammar.typed_prefix(line, cursor, doc.lines, position.line)
            if prefix is None:
                continue
            edit_range = line_range(position.line, prefix.start, cursor)
            return self._entity_items(grammar.kind, prefix.text, edit_range, prefix.sigil)

        if kind is EntityKind.SERVICE:
            m = _BARE_ARGUMENT.search(before)
            if m is not None:
                edit_range = line_range(position.line, m.start("name"), cursor)
                return self._entity_items(EntityKind.SERVICE, m.group("name"), edit_range, "@")
        return []

    def _entity_items(
        self, kind: EntityKind, typed: str, edit_range: types.Range, sigil: str
    ) -> list[types.CompletionItem]:
        candidates = [e for e in self._resolvers[kind].candidates() if is_completable(e)]
        return [completion_item(e, typed, edit_range, sigil=sigil) for e in rank(candidates, typed)]

    def _class_items(self, typed: str, edit_range: types.Range) -> list[types.CompletionItem]:
        services = [
            e for e in self._resolvers[EntityKind.SERVICE].candidates()
            if isinstance(e, ServiceEntity) and e.class_name
        ]
        items: dict[str, types.CompletionItem] = {}
        for entity in rank(services, ""):
            class_name = entity.class_name or ""
            if class_name in items or typed.lower() not in class_name.lower():
                continue
            items[class_name] = types.CompletionItem(
                label=class_name,
                kind=types.CompletionItemKind.Class,
                detail=f"{tier_label(entity)} class",
                sort_text=f"{len(items):05d}",
                text_edit=types.TextEdit(range=edit_range, new_text=class_name),
            )
        return list(items.values())

    # ── Definition / hover ────────────────────────────────────────────────────

    def _reference_at(self, doc: DocumentContext, position: types.Position) -> Reference | None:
        line = doc.line(position.line)
        for grammar in FILE_GRAMMARS.get(doc.definition_kind, ()):
            ref = grammar.find_at(line, position.character, doc.lines, position.line)
            if ref is not None:
                return ref
        return None

    async def provide_definition(
        self, doc: DocumentContext, position: types.Position
    ) -> types.Location | None:
        line = doc.line(position.line)
        class_ref = CLASS_YAML.find_at(line, position.character)
        if class_ref is not None:
            path = self._classes.resolve_class_path(class_ref.name)
            if path is not None:
                return file_location(str(path), self._classes.symbol_line(path, class_ref.member))

        ref = self._reference_at(doc, position)
        if ref is None or ref.kind is None:
            return None
        entity = self._resolvers[ref.kind].resolve(ref.name)
        return entity_location(entity) if entity is not None else None

    async def provide_hover(
        self, doc: DocumentContext, position: types.Position
    ) -> types.Hover | None:
        line = doc.line(position.line)
        class_ref = CLASS_YAML.find_at(line, position.character)
        if class_ref is not None:
            return markdown_hover(
                self._hover.php_class(class_ref.name, class_ref.member),
                line_range(position.line, class_ref.start, class_ref.end),
            )

        ref = self._reference_at(doc, position)
        if ref is None or ref.kind is None:
            return None
        hover_range = line_range(position.line, ref.start, ref.end)
        entity = self._resolvers[ref.kind].resolve(ref.name)
        if entity is None:
            return markdown_hover(undefined(ref.kind, ref.name), hover_range)
        return markdown_hover(self._hover.build(entity), hover_range)


class YamlDiagnosticProvider(DiagnosticProvider):
    """Unknown ``@service`` and ``parent:`` references in services files;
    unknown routes and parent links in links files."""

    def __init__(self, resolvers: Mapping[EntityKind, Resolver]) -> None:
        self._resolvers = resolvers

    def can_provide(self, doc: DocumentContext) -> bool:
        return doc.is_yaml and bool(FILE_GRAMMARS.get(doc.definition_kind))

    async def provide_diagnostics(self, doc: DocumentContext) -> list[types.Diagnostic]:
        return [
            problem_diagnostic(problem)
            for grammar in FILE_GRAMMARS[doc.definition_kind]
            for problem in self._resolvers[grammar.kind].diagnose(doc.lines, grammar)
        ]
