"""Shared test fixtures for drupal-lsp: a small fake Drupal installation."""

import asyncio
from pathlib import Path

import pytest

from drupal_lsp.core.config import DrupalLspConfig, PhpcsConfig
from drupal_lsp.core.session import Session
from drupal_lsp.tools.phpcs import PhpcsBinaries

CORE_SERVICES = """\
services:
  entity_type.manager:
    class: Drupal\\Core\\Entity\\EntityTypeManager
    arguments: ['@container.namespaces', '@module_handler']
  module_handler:
    class: Drupal\\Core\\Extension\\ModuleHandler
  container.namespaces:
    class: ArrayObject
  logger.factory:
    class: Drupal\\Core\\Logger\\LoggerChannelFactory
"""

SYSTEM_ROUTING = """\
system.admin_config:
  path: '/admin/config'
  defaults:
    _controller: '\\Drupal\\system\\Controller\\SystemController::overview'
    _title: 'Configuration'
  requirements:
    _permission: 'access administration pages'
system.cron_settings:
  path: '/admin/config/system/cron'
  defaults:
    _form: 'Drupal\\system\\Form\\CronForm'
    _title: 'Cron'
"""

SYSTEM_LINKS = """\
system.admin:
  title: Administration
  route_name: system.admin
system.admin_config:
  title: Configuration
  parent: system.admin
  route_name: system.admin_config
"""

CONTRIB_SERVICES = """\
services:
  token.entity_mapper:
    class: Drupal\\token\\TokenEntityMapper
    arguments: ['@entity_type.manager']
"""

CUSTOM_SERVICES = """\
services:
  mymodule.helper:
    class: Drupal\\mymodule\\Helper
    arguments: ['@entity_type.manager', '@logger.factory']
  mymodule.helper_child:
    parent: mymodule.helper
"""

CUSTOM_ROUTING = """\
mymodule.settings:
  path: '/admin/config/mymodule'
  defaults:
    _form: '\\Drupal\\mymodule\\Form\\SettingsForm'
    _title: 'My module settings'
  requirements:
    _permission: 'administer site configuration'
"""

CUSTOM_LINKS = """\
mymodule.settings:
  title: 'My module'
  parent: system.admin_config
  route_name: mymodule.settings
"""

HELPER_PHP = """\
<?php

namespace Drupal\\mymodule;

/**
 * Helps with things.
 *
 * @see \\Drupal\\mymodule\\Form\\SettingsForm
 */
class Helper {

  /**
   * Builds a render array.
   *
   * @param string $name
   *   The name to render.
   *
   * @return array
   *   The render array.
   */
  public function build($name) {
    return [];
  }

}
"""

ENTITY_TYPE_MANAGER_PHP = """\
<?php

namespace Drupal\\Core\\Entity;

/**
 * Manages entity type plugin definitions.
 */
class EntityTypeManager {
}
"""


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def drupal_project(tmp_path):
    """A Drupal root with core, contrib and custom definition files."""
    root = tmp_path / "site"
    write(root / "core" / "lib" / "Drupal.php", "<?php\n")
    write(
        root / "core" / "lib" / "Drupal" / "Core" / "Entity" / "EntityTypeManager.php",
        ENTITY_TYPE_MANAGER_PHP,
    )
    write(root / "core" / "core.services.yml", CORE_SERVICES)
    write(root / "core" / "modules" / "system" / "system.routing.yml", SYSTEM_ROUTING)
    write(root / "core" / "modules" / "system" / "system.links.menu.yml", SYSTEM_LINKS)
    write(root / "modules" / "contrib" / "token" / "token.services.yml", CONTRIB_SERVICES)

    custom = root / "modules" / "custom" / "mymodule"
    write(custom / "mymodule.services.yml", CUSTOM_SERVICES)
    write(custom / "mymodule.routing.yml", CUSTOM_ROUTING)
    write(custom / "mymodule.links.menu.yml", CUSTOM_LINKS)
    write(custom / "src" / "Helper.php", HELPER_PHP)
    return root.resolve()


@pytest.fixture
def config():
    return DrupalLspConfig(phpcs=PhpcsConfig(enabled=False))


@pytest.fixture
def session(drupal_project, config):
    return Session(
        drupal_project,
        config=config,
        phpcs_binaries=PhpcsBinaries(phpcs=None, phpcbf=None, standard="Drupal"),
    )


@pytest.fixture
def indexed_session(session):
    """A session after its startup scan."""
    asyncio.run(session.scan_and_populate())
    return session
