"""Configuration system for drupal-lsp using Pydantic."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from drupal_lsp.index.schema import Tier


class TierMarker(BaseModel):
    """A path fragment that classifies a definition file into a tier."""

    marker: str
    tier: Tier


class IndexConfig(BaseModel):
    """Definition-file scanning configuration."""

    # Ordered: the first marker found in the path wins.
    tier_markers: list[TierMarker] = Field(
        default_factory=lambda: [
            TierMarker(marker="/modules/custom/", tier=Tier.CUSTOM),
            TierMarker(marker="/core/", tier=Tier.CORE),
        ]
    )
    default_tier: Tier = Tier.CONTRIB
    ignore_dirs: list[str] = Field(
        default_factory=lambda: ["node_modules", "vendor", "tests", "test"]
    )
    max_file_size_kb: int = 2048


class ValidationConfig(BaseModel):
    """Name prefixes generated at runtime, never reported as missing."""

    dynamic_route_prefixes: list[str] = Field(
        default_factory=lambda: [
            "view.",
            "rest.",
            "jsonapi.",
            "layout_builder.",
            "field_ui.",
        ]
    )
    dynamic_service_prefixes: list[str] = Field(default_factory=list)


class PhpcsConfig(BaseModel):
    """PHP_CodeSniffer integration."""

    enabled: bool = True
    standard: str = ""  # empty = auto-detect phpcs.xml, else "Drupal"


class CacheConfig(BaseModel):
    """Finite-TTL memo cache for derived data."""

    ttl_seconds: float = 300.0
    sweep_interval_seconds: float = 300.0


class DrupalLspConfig(BaseModel):
    """Root configuration model."""

    index: IndexConfig = Field(default_factory=IndexConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    phpcs: PhpcsConfig = Field(default_factory=PhpcsConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    def merged(self, override: dict[str, Any] | None) -> DrupalLspConfig:
        """Return a copy with *override* (e.g. LSP settings) deep-merged on top."""
        if not override:
            return self
        return DrupalLspConfig(**_deep_merge(self.model_dump(mode="json"), override))


class EnvSettings(BaseSettings):
    """Environment variable overrides."""

    model_config = SettingsConfigDict(
        env_prefix="DRUPAL_LSP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    phpcs_enabled: bool | None = None


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dicts, override wins on conflicts."""
    result = {**base}
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load a YAML config file, return empty dict if not found."""
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def load_config(
    project_dir: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> DrupalLspConfig:
    """Load configuration with layered precedence.

    Order (later overrides earlier):
    1. Built-in defaults (Pydantic defaults)
    2. ~/.drupal-lsp/config.yaml (global user config)
    3. <project>/.drupal-lsp/config.yaml (workspace config)
    4. *overrides* (LSP initializationOptions)
    5. Environment variables
    """
    global_config_dir = Path.home() / ".drupal-lsp"
    project_config_dir = (project_dir or Path.cwd()) / ".drupal-lsp"

    merged: dict[str, Any] = {}
    for config_path in [
        global_config_dir / "config.yaml",
        project_config_dir / "config.yaml",
    ]:
        layer = load_yaml_config(config_path)
        merged = _deep_merge(merged, layer)

    if overrides:
        merged = _deep_merge(merged, overrides)

    config = DrupalLspConfig(**merged)

    env = EnvSettings()
    if env.phpcs_enabled is not None:
        config = config.model_copy(
            update={"phpcs": config.phpcs.model_copy(update={"enabled": env.phpcs_enabled})}
        )

    return config
