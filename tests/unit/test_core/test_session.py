"""Tests for Session wiring and its index API."""

import pytest

from drupal_lsp.core.session import Session, is_custom_code
from drupal_lsp.index.schema import EntityKind, Tier
from drupal_lsp.tools.phpcs import PhpcsBinaries


class TestIsCustomCode:
    def test_custom_module(self):
        assert is_custom_code("/srv/site/modules/custom/foo/foo.module")

    def test_core_and_contrib_excluded(self):
        assert not is_custom_code("/srv/site/core/modules/node/node.module")
        assert not is_custom_code("/srv/site/modules/contrib/token/token.module")

    def test_root_containing_core_segment(self, tmp_path):
        root = tmp_path / "core" / "site"
        path = str(root / "modules" / "custom" / "foo" / "foo.module")
        assert not is_custom_code(path)
        assert is_custom_code(path, drupal_root=root)


class TestSessionIndexApi:
    def test_detects_project(self, session):
        assert session.detected
        assert not session.is_populated

    def test_scan_populates(self, indexed_session):
        assert indexed_session.is_populated
        names = indexed_session.list_all_names(EntityKind.SERVICE)
        assert "entity_type.manager" in names
        assert "mymodule.helper" in names
        assert "token.entity_mapper" in names

    def test_lookup_by_name(self, indexed_session):
        entity = indexed_session.lookup_by_name(EntityKind.ROUTE, "mymodule.settings")
        assert entity is not None
        assert entity.tier is Tier.CUSTOM
        assert entity.path == "/admin/config/mymodule"

    def test_lookup_builtin_route(self, indexed_session):
        entity = indexed_session.lookup_by_name(EntityKind.ROUTE, "entity.node.canonical")
        assert entity is not None
        assert entity.source_file is None

    def test_lookup_miss_returns_none(self, indexed_session):
        assert indexed_session.lookup_by_name(EntityKind.SERVICE, "no.such.service") is None

    def test_list_all_filters_by_kind(self, indexed_session):
        links = indexed_session.list_all(EntityKind.LINK)
        assert {e.name for e in links} == {"system.admin", "system.admin_config", "mymodule.settings"}
        assert len(indexed_session.list_all()) > len(links)

    def test_tiers_assigned(self, indexed_session):
        assert indexed_session.lookup_by_name(EntityKind.SERVICE, "entity_type.manager").tier is Tier.CORE
        assert indexed_session.lookup_by_name(EntityKind.SERVICE, "token.entity_mapper").tier is Tier.CONTRIB


class TestSessionEvents:
    @pytest.mark.asyncio
    async def test_on_path_changed_reindexes_custom_file(self, indexed_session, drupal_project):
        path = drupal_project / "modules" / "custom" / "mymodule" / "mymodule.services.yml"
        path.write_text("services:\n  mymodule.renamed:\n    class: Drupal\\mymodule\\Helper\n")
        assert await indexed_session.on_path_changed(str(path))
        assert indexed_session.lookup_by_name(EntityKind.SERVICE, "mymodule.renamed") is not None
        assert indexed_session.lookup_by_name(EntityKind.SERVICE, "mymodule.helper") is None

    def test_on_path_deleted(self, indexed_session, drupal_project):
        path = drupal_project / "modules" / "custom" / "mymodule" / "mymodule.routing.yml"
        assert indexed_session.on_path_deleted(str(path))
        assert indexed_session.lookup_by_name(EntityKind.ROUTE, "mymodule.settings") is None

    @pytest.mark.asyncio
    async def test_php_edit_drops_class_memos(self, indexed_session, drupal_project):
        indexed_session.memo.set("class:Drupal\\mymodule\\Helper", "x")
        indexed_session.memo.set("method:/a.php#build", 3)
        indexed_session.memo.set("service:keep", 1)
        php = str(drupal_project / "modules" / "custom" / "mymodule" / "src" / "Helper.php")
        assert await indexed_session.on_document_changed(php, "<?php\n") is False
        assert "class:Drupal\\mymodule\\Helper" not in indexed_session.memo
        assert "method:/a.php#build" not in indexed_session.memo
        assert "service:keep" in indexed_session.memo

    @pytest.mark.asyncio
    async def test_buffer_edit_reindexes_from_content(self, indexed_session, drupal_project):
        path = str(drupal_project / "modules" / "custom" / "mymodule" / "mymodule.links.menu.yml")
        content = "mymodule.other:\n  title: Other\n  route_name: mymodule.settings\n"
        assert await indexed_session.on_document_changed(path, content)
        assert indexed_session.lookup_by_name(EntityKind.LINK, "mymodule.other") is not None


class TestApplySettings:
    @pytest.mark.asyncio
    async def test_phpcs_toggle(self, session):
        session.phpcs.binaries = PhpcsBinaries(
            phpcs="/usr/bin/phpcs", phpcbf="/usr/bin/phpcbf", standard="Drupal"
        )
        assert not session.phpcs.enabled
        rescanned = await session.apply_settings({"phpcs": {"enabled": True}})
        assert rescanned is False
        assert session.phpcs.enabled

    @pytest.mark.asyncio
    async def test_validation_prefixes_update_resolvers(self, session):
        await session.apply_settings({"validation": {"dynamic_service_prefixes": ["plugin.manager."]}})
        assert session.resolvers[EntityKind.SERVICE].allowlist == ("plugin.manager.",)

    @pytest.mark.asyncio
    async def test_index_change_rescans(self, indexed_session):
        rescanned = await indexed_session.apply_settings(
            {"index": {"ignore_dirs": ["contrib"]}}
        )
        assert rescanned is True
        assert indexed_session.is_populated
        assert indexed_session.lookup_by_name(EntityKind.SERVICE, "token.entity_mapper") is None
        assert indexed_session.lookup_by_name(EntityKind.SERVICE, "mymodule.helper") is not None


class TestSessionNotDetected:
    def test_plain_directory(self, tmp_path, config):
        session = Session(tmp_path, config=config)
        assert not session.detected
