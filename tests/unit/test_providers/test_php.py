"""Tests for the PHP providers, driven through a scanned session."""

import pytest
from lsprotocol import types
from pygls.uris import from_fs_path

from drupal_lsp.index.sync import uri_to_path
from drupal_lsp.providers.base import DocumentContext
from drupal_lsp.providers.php import PhpDiagnosticProvider, style_diagnostic
from drupal_lsp.tools.phpcs import PhpcsBinaries, PhpcsRunner, StyleMessage


@pytest.fixture
def php_doc(drupal_project):
    path = drupal_project / "modules" / "custom" / "mymodule" / "mymodule.module"

    def make(*lines):
        return DocumentContext.from_text(from_fs_path(str(path)), "\n".join(lines), version=1)

    return make


def at_end(doc, line=1):
    return types.Position(line=line, character=len(doc.lines[line]))


def inside(doc, needle, line=1):
    return types.Position(line=line, character=doc.lines[line].index(needle) + 1)


class TestCompletion:
    @pytest.mark.asyncio
    async def test_service_names_after_static_factory(self, indexed_session, php_doc):
        doc = php_doc("<?php", "$m = \\Drupal::service('enti")
        items = await indexed_session.providers.completions(doc, at_end(doc))
        by_label = {i.label: i for i in items}
        item = by_label["entity_type.manager"]
        assert item.detail == "[Core] Drupal\\Core\\Entity\\EntityTypeManager"
        assert item.text_edit.new_text == "entity_type.manager"
        assert item.text_edit.range.start.character == doc.lines[1].index("enti")
        assert item.text_edit.range.end.character == len(doc.lines[1])
        assert "Class: Drupal\\Core\\Entity\\EntityTypeManager" in item.documentation

    @pytest.mark.asyncio
    async def test_custom_services_sort_first(self, indexed_session, php_doc):
        doc = php_doc("<?php", "$container->get('")
        items = await indexed_session.providers.completions(doc, at_end(doc))
        ordered = sorted(items, key=lambda i: i.sort_text)
        assert ordered[0].label.startswith("mymodule.")
        assert ordered[-1].detail.startswith("[Core]")

    @pytest.mark.asyncio
    async def test_route_names_include_builtins(self, indexed_session, php_doc):
        doc = php_doc("<?php", "$url = Url::fromRoute('user.")
        labels = {i.label for i in await indexed_session.providers.completions(doc, at_end(doc))}
        assert "mymodule.settings" in labels
        assert "user.login" in labels

    @pytest.mark.asyncio
    async def test_no_completion_outside_call(self, indexed_session, php_doc):
        doc = php_doc("<?php", "$x = 'entity")
        assert await indexed_session.providers.completions(doc, at_end(doc)) == []


class TestDefinition:
    @pytest.mark.asyncio
    async def test_service_jumps_to_class_file(self, indexed_session, php_doc, drupal_project):
        doc = php_doc("<?php", "\\Drupal::service('mymodule.helper')->build('x');")
        location = await indexed_session.providers.definition(doc, inside(doc, "mymodule.helper"))
        helper = drupal_project / "modules" / "custom" / "mymodule" / "src" / "Helper.php"
        assert uri_to_path(location.uri) == str(helper)
        assert helper.read_text().splitlines()[location.range.start.line].startswith("class Helper")

    @pytest.mark.asyncio
    async def test_service_without_class_file_jumps_to_yaml(self, indexed_session, php_doc):
        doc = php_doc("<?php", "$f = \\Drupal::service('logger.factory');")
        location = await indexed_session.providers.definition(doc, inside(doc, "logger.factory"))
        assert location.uri.endswith("core/core.services.yml")
        assert location.range.start.line == 8
        assert location.range.start.character == 2

    @pytest.mark.asyncio
    async def test_route_jumps_to_routing_file(self, indexed_session, php_doc):
        doc = php_doc("<?php", "$u = Url::fromRoute('mymodule.settings');")
        location = await indexed_session.providers.definition(doc, inside(doc, "mymodule.settings"))
        assert location.uri.endswith("mymodule.routing.yml")
        assert location.range.start.line == 0

    @pytest.mark.asyncio
    async def test_builtin_route_has_no_location(self, indexed_session, php_doc):
        doc = php_doc("<?php", "$u = Url::fromRoute('user.login');")
        assert await indexed_session.providers.definition(doc, inside(doc, "user.login")) is None


class TestHover:
    @pytest.mark.asyncio
    async def test_service_hover(self, indexed_session, php_doc):
        doc = php_doc("<?php", "$h = \\Drupal::service('mymodule.helper');")
        hover = await indexed_session.providers.hover(doc, inside(doc, "mymodule.helper"))
        text = hover.contents.value
        assert "**Service:**" in text
        assert "**Class:**" in text
        assert "Helper.php" in text
        assert "- `@entity_type.manager`" in text
        assert hover.range.start.character == doc.lines[1].index("mymodule.helper")

    @pytest.mark.asyncio
    async def test_unknown_service_hover(self, indexed_session, php_doc):
        doc = php_doc("<?php", "$h = \\Drupal::service('nope.nothing');")
        hover = await indexed_session.providers.hover(doc, inside(doc, "nope.nothing"))
        assert hover.contents.value == "Service `nope.nothing` not found"

    @pytest.mark.asyncio
    async def test_route_hover(self, indexed_session, php_doc):
        doc = php_doc("<?php", "$u = Url::fromRoute('mymodule.settings');")
        hover = await indexed_session.providers.hover(doc, inside(doc, "mymodule.settings"))
        assert "**Path:** `/admin/config/mymodule`" in hover.contents.value
        assert "**Permission:** `administer site configuration`" in hover.contents.value


class TestDiagnostics:
    @pytest.mark.asyncio
    async def test_unknown_references_reported(self, indexed_session, php_doc):
        doc = php_doc(
            "<?php",
            "$a = \\Drupal::service('entity_type.manager');",
            "$b = \\Drupal::service('missing.service');",
            "$c = Url::fromRoute('missing.route');",
            "$d = Url::fromRoute('view.frontpage.page_1');",
            "$e = $request->query->get('page');",
        )
        diagnostics = await indexed_session.providers.diagnostics(doc)
        assert [(d.range.start.line, d.message) for d in diagnostics] == [
            (2, "Service 'missing.service' not found"),
            (3, "Route 'missing.route' not found"),
        ]
        assert all(d.source == "drupal-lsp" for d in diagnostics)
        assert all(d.severity == types.DiagnosticSeverity.Error for d in diagnostics)

    @pytest.mark.asyncio
    async def test_style_messages_merged(self, indexed_session, php_doc):
        class FakeRunner(PhpcsRunner):
            async def check(self, text, display_path, cache_key=None):
                return [StyleMessage("warning", 2, 3, "Bad spacing", "Drupal.WhiteSpace.Scope", True)]

        runner = FakeRunner(PhpcsBinaries(phpcs="/bin/true", phpcbf=None, standard="Drupal"))
        provider = PhpDiagnosticProvider(indexed_session.resolvers, runner)
        doc = php_doc("<?php", "$b = \\Drupal::service('missing.service');")
        diagnostics = await provider.provide_diagnostics(doc)
        assert [d.source for d in diagnostics] == ["drupal-lsp", "phpcs (Drupal.WhiteSpace.Scope)"]


class TestStyleDiagnostic:
    def test_conversion(self):
        diagnostic = style_diagnostic(StyleMessage("error", 4, 10, "Oops", "Drupal.X.Y", False))
        assert diagnostic.range.start == types.Position(line=3, character=9)
        assert diagnostic.range.end == types.Position(line=3, character=10)
        assert diagnostic.severity == types.DiagnosticSeverity.Error
        assert diagnostic.code == "Drupal.X.Y"

    def test_warning(self):
        diagnostic = style_diagnostic(StyleMessage("warning", 1, 1, "Hmm", "Drupal.A", True))
        assert diagnostic.severity == types.DiagnosticSeverity.Warning
