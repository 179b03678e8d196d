"""PHP providers: service and route references in PHP source."""

from __future__ import annotations

from typing import Mapping

from lsprotocol import types

from drupal_lsp.extract.grammars import ROUTE_PHP, SERVICE_PHP, Grammar
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
)
from drupal_lsp.providers.hover import HoverContentBuilder, undefined
from drupal_lsp.resolve.classes import ClassResolver
from drupal_lsp.resolve.ranking import rank
from drupal_lsp.resolve.resolver import Resolver
from drupal_lsp.tools.phpcs import PhpcsRunner, StyleMessage

GRAMMARS: tuple[Grammar, ...] = (SERVICE_PHP, ROUTE_PHP)


def _reference_at(doc: DocumentContext, position: types.Position) -> Reference | None:
    line = doc.line(position.line)
    for grammar in GRAMMARS:
        ref = grammar.find_at(line, position.character)
        if ref is not None:
            return ref
    return None


class PhpReferenceProvider(CompletionProvider, DefinitionProvider, HoverProvider):
    """Completion, definition and hover for ``\\Drupal::service()``,
    ``$container->get()`` and the route-taking calls."""

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
        return doc.is_php

    async def provide_completions(
        self, doc: DocumentContext, position: types.Position
    ) -> list[types.CompletionItem]:
        line = doc.line(position.line)
        cursor = min(position.character, len(line))
        for grammar in GRAMMARS:
            prefix = grammar.typed_prefix(line, cursor)
            if prefix is None:
                continue
            resolver = self._resolvers[grammar.kind]
            edit_range = line_range(position.line, prefix.start, cursor)
            candidates = [e for e in resolver.candidates() if is_completable(e)]
            return [
                completion_item(entity, prefix.text, edit_range)
                for entity in rank(candidates, prefix.text)
            ]
        return []

    async def provide_definition(
        self, doc: DocumentContext, position: types.Position
    ) -> types.Location | None:
        ref = _reference_at(doc, position)
        if ref is None or ref.kind is None:
            return None
        entity = self._resolvers[ref.kind].resolve(ref.name)
        if entity is None:
            return None
        # A service jumps to its class when the class file can be found.
        if isinstance(entity, ServiceEntity) and entity.class_name:
            path = self._classes.resolve_class_path(entity.class_name)
            if path is not None:
                return file_location(str(path), self._classes.symbol_line(path))
        return entity_location(entity)

    async def provide_hover(
        self, doc: DocumentContext, position: types.Position
    ) -> types.Hover | None:
        ref = _reference_at(doc, position)
        if ref is None or ref.kind is None:
            return None
        hover_range = line_range(position.line, ref.start, ref.end)
        entity = self._resolvers[ref.kind].resolve(ref.name)
        if entity is None:
            return markdown_hover(undefined(ref.kind, ref.name), hover_range)
        return markdown_hover(self._hover.build(entity), hover_range)


class PhpDiagnosticProvider(DiagnosticProvider):
    """Unknown services and routes, plus phpcs findings when enabled."""

    def __init__(
        self,
        resolvers: Mapping[EntityKind, Resolver],
        phpcs: PhpcsRunner | None = None,
    ) -> None:
        self._resolvers = resolvers
        self._phpcs = phpcs

    def can_provide(self, doc: DocumentContext) -> bool:
        return doc.is_php

    async def provide_diagnostics(self, doc: DocumentContext) -> list[types.Diagnostic]:
        diagnostics = [
            problem_diagnostic(problem)
            for grammar in GRAMMARS
            for problem in self._resolvers[grammar.kind].diagnose(doc.lines, grammar)
        ]
        if self._phpcs is not None and self._phpcs.enabled:
            messages = await self._phpcs.check(doc.text, doc.path, cache_key=doc.cache_key)
            diagnostics.extend(style_diagnostic(m) for m in messages)
        return diagnostics


def style_diagnostic(message: StyleMessage) -> types.Diagnostic:
    line = max(message.line - 1, 0)
    start = max(message.column - 1, 0)
    return types.Diagnostic(
        range=line_range(line, start, max(message.column, start + 1)),
        message=message.message,
        severity=(
            types.DiagnosticSeverity.Error
            if message.severity == "error"
            else types.DiagnosticSeverity.Warning
        ),
        source=f"phpcs ({message.source})" if message.source else "phpcs",
        code=message.source or None,
    )
