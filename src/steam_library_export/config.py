"""
Configuration for steam-library-export.

The config is built once at startup and handed to every component; it is
never re-read mid-run. Use ``with_overrides`` to derive a changed copy.
"""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("library-export.yaml")


@dataclass(frozen=True)
class StoreConfig:
    """Steam store API configuration."""

    api_base: str = "https://store.steampowered.com/api"
    timeout_seconds: float = 10.0
    language: str | None = None  # e.g. "english"
    country: str | None = None  # e.g. "us"


@dataclass(frozen=True)
class ExportConfig:
    """Complete steam-library-export configuration."""

    input_dir: Path = field(default_factory=lambda: Path("output/raw_data"))
    output_dir: Path = field(default_factory=lambda: Path("output/obsidian_library"))
    batch_pattern: str = "SteamScrape*.json"
    delay_seconds: float = 1.2
    extension: str = ".md"

    # Template override: inline text wins over a file path
    template: str | None = None
    template_path: Path | None = None

    # Front matter fields that count as "already enriched" in older notes
    marker_fields: tuple[str, ...] = ("image", "cover_url")

    store: StoreConfig = field(default_factory=StoreConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExportConfig":
        """Create config from a dictionary (e.g., from YAML)."""
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a mapping")

        defaults = cls()
        changes: dict[str, Any] = {}

        try:
            if "input_dir" in data:
                changes["input_dir"] = Path(data["input_dir"])
            if "output_dir" in data:
                changes["output_dir"] = Path(data["output_dir"])
            if "batch_pattern" in data:
                changes["batch_pattern"] = str(data["batch_pattern"])
            if "delay_seconds" in data:
                changes["delay_seconds"] = float(data["delay_seconds"])
            if "extension" in data:
                ext = str(data["extension"])
                changes["extension"] = ext if ext.startswith(".") else f".{ext}"
            if "marker_fields" in data:
                changes["marker_fields"] = tuple(str(f) for f in data["marker_fields"])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e

        # markdownTemplate is the key the scraper's settings file uses
        template = data.get("template", data.get("markdownTemplate"))
        if template:
            changes["template"] = str(template)
        if data.get("template_path"):
            changes["template_path"] = Path(data["template_path"])

        if "store" in data:
            store = data["store"] or {}
            if not isinstance(store, dict):
                raise ConfigurationError("'store' must be a mapping")
            try:
                changes["store"] = StoreConfig(
                    api_base=str(store.get("api_base", defaults.store.api_base)).rstrip("/"),
                    timeout_seconds=float(
                        store.get("timeout_seconds", defaults.store.timeout_seconds)
                    ),
                    language=store.get("language"),
                    country=store.get("country"),
                )
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid store configuration: {e}") from e

        config = replace(defaults, **changes)
        if config.delay_seconds < 0:
            raise ConfigurationError("delay_seconds must not be negative")
        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "ExportConfig":
        """Load config from a YAML (or JSON) file; a missing file gives defaults."""
        if not path.exists():
            return cls()

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Could not read config file {path}: {e}") from e

        return cls.from_dict(data)

    def with_overrides(self, **changes: Any) -> "ExportConfig":
        """Return a copy with the given fields replaced; ``None`` values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for logging."""
        return {
            "input_dir": str(self.input_dir),
            "output_dir": str(self.output_dir),
            "batch_pattern": self.batch_pattern,
            "delay_seconds": self.delay_seconds,
            "extension": self.extension,
            "template": "inline" if self.template else None,
            "template_path": str(self.template_path) if self.template_path else None,
            "marker_fields": list(self.marker_fields),
            "store": {
                "api_base": self.store.api_base,
                "timeout_seconds": self.store.timeout_seconds,
                "language": self.store.language,
                "country": self.store.country,
            },
        }


def load_template(config: ExportConfig, default: str) -> str:
    """
    Resolve the template text for a run.

    Inline ``template`` wins, then ``template_path``. An unreadable template
    file falls back to ``default`` with a warning rather than stopping the run.
    """
    if config.template:
        logger.info("Using template from configuration")
        return config.template

    if config.template_path:
        try:
            text = config.template_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(
                f"Could not read template {config.template_path}: {e}. "
                "Using default template."
            )
            return default
        if text.strip():
            logger.info(f"Loaded custom template from {config.template_path}")
            return text
        logger.warning(f"Template {config.template_path} is empty. Using default template.")

    return default
