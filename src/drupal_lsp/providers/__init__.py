"""LSP capability providers for PHP and YAML documents."""

from drupal_lsp.providers.base import (
    CompletionProvider,
    DefinitionProvider,
    DiagnosticProvider,
    DocumentContext,
    HoverProvider,
)
from drupal_lsp.providers.registry import ProviderRegistry

__all__ = [
    "CompletionProvider",
    "DefinitionProvider",
    "DiagnosticProvider",
    "DocumentContext",
    "HoverProvider",
    "ProviderRegistry",
]
