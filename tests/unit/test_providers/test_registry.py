"""Tests for ProviderRegistry dispatch."""

import logging

import pytest
from lsprotocol import types

from drupal_lsp.providers.base import (
    CompletionProvider,
    DefinitionProvider,
    DiagnosticProvider,
    DocumentContext,
)
from drupal_lsp.providers.php import PhpDiagnosticProvider, PhpReferenceProvider
from drupal_lsp.providers.registry import ProviderRegistry
from drupal_lsp.providers.yaml import YamlDiagnosticProvider, YamlReferenceProvider

DOC = DocumentContext.from_text("file:///site/modules/custom/a/a.module", "<?php\n")
POS = types.Position(line=0, character=0)


def location(uri):
    return types.Location(uri=uri, range=types.Range(start=POS, end=POS))


class StaticCompletion(CompletionProvider):
    def __init__(self, *labels):
        self.labels = labels

    def can_provide(self, doc):
        return True

    async def provide_completions(self, doc, position):
        return [types.CompletionItem(label=label) for label in self.labels]


class Broken(CompletionProvider, DiagnosticProvider):
    def can_provide(self, doc):
        return True

    async def provide_completions(self, doc, position):
        raise RuntimeError("boom")

    async def provide_diagnostics(self, doc):
        raise RuntimeError("boom")


class StaticDefinition(DefinitionProvider):
    def __init__(self, result, applies=True):
        self.result = result
        self.applies = applies
        self.calls = 0

    def can_provide(self, doc):
        return self.applies

    async def provide_definition(self, doc, position):
        self.calls += 1
        return self.result


class TestRegistration:
    def test_create_default(self, session):
        providers = session.providers.list_providers()
        kinds = {type(p) for p in providers}
        assert kinds == {
            PhpReferenceProvider,
            YamlReferenceProvider,
            PhpDiagnosticProvider,
            YamlDiagnosticProvider,
        }

    def test_register_rejects_non_provider(self):
        with pytest.raises(TypeError):
            ProviderRegistry().register(object())

    def test_multi_capability_provider_listed_once(self):
        registry = ProviderRegistry()
        broken = Broken()
        registry.register(broken)
        assert registry.list_providers() == [broken]


class TestDispatch:
    @pytest.mark.asyncio
    async def test_completions_accumulate(self):
        registry = ProviderRegistry()
        registry.register(StaticCompletion("a", "b"))
        registry.register(StaticCompletion("c"))
        items = await registry.completions(DOC, POS)
        assert [i.label for i in items] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_failing_provider_is_skipped(self, caplog):
        registry = ProviderRegistry()
        registry.register(Broken())
        registry.register(StaticCompletion("ok"))
        with caplog.at_level(logging.ERROR):
            items = await registry.completions(DOC, POS)
            diagnostics = await registry.diagnostics(DOC)
        assert [i.label for i in items] == ["ok"]
        assert diagnostics == []
        assert "Broken" in caplog.text

    @pytest.mark.asyncio
    async def test_definition_first_non_null_wins(self):
        registry = ProviderRegistry()
        skipped = StaticDefinition(location("file:///skip"), applies=False)
        empty = StaticDefinition(None)
        first = StaticDefinition(location("file:///first"))
        last = StaticDefinition(location("file:///last"))
        for provider in (skipped, empty, first, last):
            registry.register(provider)
        result = await registry.definition(DOC, POS)
        assert result.uri == "file:///first"
        assert skipped.calls == 0
        assert last.calls == 0

    @pytest.mark.asyncio
    async def test_nothing_registered(self):
        registry = ProviderRegistry()
        assert await registry.hover(DOC, POS) is None
        assert await registry.definition(DOC, POS) is None
        assert await registry.completions(DOC, POS) == []
