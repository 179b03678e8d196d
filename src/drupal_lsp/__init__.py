"""drupal-lsp - Drupal service, route and link intelligence over LSP."""

__version__ = "0.1.0"
