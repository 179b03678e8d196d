"""Reference extraction from YAML and PHP source lines."""

from drupal_lsp.extract.grammars import (
    CLASS_YAML,
    LINK_YAML,
    ROUTE_PHP,
    ROUTE_YAML,
    SERVICE_PHP,
    SERVICE_YAML,
    Grammar,
)
from drupal_lsp.extract.shapes import Reference, TypedPrefix

__all__ = [
    "CLASS_YAML",
    "Grammar",
    "LINK_YAML",
    "ROUTE_PHP",
    "ROUTE_YAML",
    "Reference",
    "SERVICE_PHP",
    "SERVICE_YAML",
    "TypedPrefix",
]
