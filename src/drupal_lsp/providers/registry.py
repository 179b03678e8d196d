"""Provider registry: dispatches each LSP capability to its providers."""

from __future__ import annotations

import logging
from typing import Mapping

from lsprotocol import types

from drupal_lsp.index.schema import EntityKind
from drupal_lsp.providers.base import (
    CompletionProvider,
    DefinitionProvider,
    DiagnosticProvider,
    DocumentContext,
    HoverProvider,
)
from drupal_lsp.resolve.classes import ClassResolver
from drupal_lsp.resolve.resolver import Resolver
from drupal_lsp.tools.phpcs import PhpcsRunner

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Ordered provider lists per capability.

    Definition and hover stop at the first provider that answers; completion
    and diagnostics collect from every provider. A provider that raises is
    logged and skipped.
    """

    def __init__(self) -> None:
        self._completion: list[CompletionProvider] = []
        self._definition: list[DefinitionProvider] = []
        self._hover: list[HoverProvider] = []
        self._diagnostic: list[DiagnosticProvider] = []

    def register(self, provider: object) -> None:
        """Register *provider* under every capability interface it implements."""
        registered = False
        if isinstance(provider, CompletionProvider):
            self._completion.append(provider)
            registered = True
        if isinstance(provider, DefinitionProvider):
            self._definition.append(provider)
            registered = True
        if isinstance(provider, HoverProvider):
            self._hover.append(provider)
            registered = True
        if isinstance(provider, DiagnosticProvider):
            self._diagnostic.append(provider)
            registered = True
        if not registered:
            raise TypeError(f"{type(provider).__name__} implements no provider interface")

    def list_providers(self) -> list[object]:
        seen: list[object] = []
        for group in (self._completion, self._definition, self._hover, self._diagnostic):
            seen.extend(p for p in group if p not in seen)
        return seen

    async def completions(
        self, doc: DocumentContext, position: types.Position
    ) -> list[types.CompletionItem]:
        items: list[types.CompletionItem] = []
        for provider in self._completion:
            if not provider.can_provide(doc):
                continue
            try:
                items.extend(await provider.provide_completions(doc, position))
            except Exception:
                logger.exception("Completion provider %s failed", type(provider).__name__)
        return items

    async def definition(
        self, doc: DocumentContext, position: types.Position
    ) -> types.Location | None:
        for provider in self._definition:
            if not provider.can_provide(doc):
                continue
            try:
                location = await provider.provide_definition(doc, position)
            except Exception:
                logger.exception("Definition provider %s failed", type(provider).__name__)
                continue
            if location is not None:
                return location
        return None

    async def hover(self, doc: DocumentContext, position: types.Position) -> types.Hover | None:
        for provider in self._hover:
            if not provider.can_provide(doc):
                continue
            try:
                result = await provider.provide_hover(doc, position)
            except Exception:
                logger.exception("Hover provider %s failed", type(provider).__name__)
                continue
            if result is not None:
                return result
        return None

    async def diagnostics(self, doc: DocumentContext) -> list[types.Diagnostic]:
        found: list[types.Diagnostic] = []
        for provider in self._diagnostic:
            if not provider.can_provide(doc):
                continue
            try:
                found.extend(await provider.provide_diagnostics(doc))
            except Exception:
                logger.exception("Diagnostic provider %s failed", type(provider).__name__)
        return found

    @staticmethod
    def create_default(
        resolvers: Mapping[EntityKind, Resolver],
        classes: ClassResolver,
        phpcs: PhpcsRunner | None = None,
    ) -> ProviderRegistry:
        """Registry with the PHP and YAML providers."""
        from drupal_lsp.providers.hover import HoverContentBuilder
        from drupal_lsp.providers.php import PhpDiagnosticProvider, PhpReferenceProvider
        from drupal_lsp.providers.yaml import YamlDiagnosticProvider, YamlReferenceProvider

        hover = HoverContentBuilder(classes)
        registry = ProviderRegistry()
        for provider in [
            PhpReferenceProvider(resolvers, classes, hover),
            YamlReferenceProvider(resolvers, classes, hover),
            PhpDiagnosticProvider(resolvers, phpcs),
            YamlDiagnosticProvider(resolvers),
        ]:
            registry.register(provider)
        return registry
