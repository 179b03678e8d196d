"""Exception types used inside drupal-lsp.

None of these cross the protocol boundary: parsers, providers and the
phpcs runner catch them and degrade to "no results" for the request.
"""

from __future__ import annotations


class DrupalLspError(Exception):
    """Base class for all drupal-lsp errors."""


class ParseFailure(DrupalLspError):
    """A definition file could not be turned into entities."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class ExternalToolError(DrupalLspError):
    """phpcs/phpcbf could not be run or exited with an unexpected status."""

    def __init__(self, tool: str, message: str, exit_code: int | None = None) -> None:
        super().__init__(f"{tool}: {message}")
        self.tool = tool
        self.exit_code = exit_code
