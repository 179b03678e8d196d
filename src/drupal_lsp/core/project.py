"""Drupal root detection inside a workspace."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Relative directories probed in order.
DRUPAL_ROOT_CANDIDATES = ("", "web", "docroot")

# Any of these present means the directory is a Drupal root.
DRUPAL_INDICATORS = ("core/lib/Drupal.php", "autoload.php", "index.php")


def is_drupal_root(path: Path) -> bool:
    return any((path / indicator).is_file() for indicator in DRUPAL_INDICATORS)


class DrupalProjectResolver:
    """Locate the Drupal root under *workspace_root* and resolve paths in it.

    When no candidate looks like a Drupal root, ``detected`` is False and the
    workspace root itself is used.
    """

    def __init__(self, workspace_root: Path) -> None:
        self.workspace_root = workspace_root.resolve()
        self._relative: str | None = None
        for candidate in DRUPAL_ROOT_CANDIDATES:
            if is_drupal_root(self.workspace_root / candidate):
                self._relative = candidate
                break
        if self._relative is None:
            logger.warning("Drupal root not detected in %s", self.workspace_root)
        else:
            logger.info("Drupal detected at: %s", self._relative or "root")

    @property
    def detected(self) -> bool:
        return self._relative is not None

    @property
    def relative_root(self) -> str:
        return self._relative or ""

    @property
    def drupal_root(self) -> Path:
        return self.workspace_root / self.relative_root

    def resolve(self, relative_path: str) -> Path:
        """Absolute path for *relative_path* under the Drupal root."""
        return self.drupal_root / relative_path

    def exists(self, relative_path: str) -> bool:
        return self.resolve(relative_path).exists()
