"""Resolution, validation and ranking of extracted references."""

from drupal_lsp.resolve.classes import ClassResolver
from drupal_lsp.resolve.ranking import rank, sort_key, sort_text
from drupal_lsp.resolve.resolver import (
    KNOWN_ENTITY_ROUTES,
    Problem,
    Resolver,
    ValidationResult,
)

__all__ = [
    "ClassResolver",
    "KNOWN_ENTITY_ROUTES",
    "Problem",
    "Resolver",
    "ValidationResult",
    "rank",
    "sort_key",
    "sort_text",
]
