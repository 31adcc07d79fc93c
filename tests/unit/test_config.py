"""Tests for steam-library-export configuration."""

import tempfile
from pathlib import Path

import pytest

from steam_library_export.config import ExportConfig, StoreConfig, load_template
from steam_library_export.errors import ConfigurationError


class TestExportConfig:
    """Test configuration loading and parsing."""

    def test_default_config(self):
        """Default config should have sensible values."""
        config = ExportConfig()

        assert config.delay_seconds == 1.2
        assert config.batch_pattern == "SteamScrape*.json"
        assert config.extension == ".md"
        assert config.template is None
        assert config.store.api_base == "https://store.steampowered.com/api"

    def test_config_is_immutable(self):
        """Config objects cannot be modified after construction."""
        config = ExportConfig()
        with pytest.raises(AttributeError):
            config.delay_seconds = 5  # type: ignore[misc]

    def test_from_dict(self):
        """Should parse config from dictionary."""
        data = {
            "input_dir": "scrapes",
            "output_dir": "vault/Games",
            "delay_seconds": 2,
            "extension": "markdown",
            "marker_fields": ["cover"],
            "store": {
                "api_base": "http://127.0.0.1:9010/api/",
                "timeout_seconds": 3,
                "language": "english",
            },
        }

        config = ExportConfig.from_dict(data)

        assert config.input_dir == Path("scrapes")
        assert config.output_dir == Path("vault/Games")
        assert config.delay_seconds == 2.0
        assert config.extension == ".markdown"
        assert config.marker_fields == ("cover",)
        assert config.store.api_base == "http://127.0.0.1:9010/api"
        assert config.store.timeout_seconds == 3.0
        assert config.store.language == "english"
        assert config.store.country is None

    def test_from_dict_accepts_scraper_settings_key(self):
        """The scraper's markdownTemplate setting should be used as the template."""
        config = ExportConfig.from_dict({"steamAccountID": "someone", "markdownTemplate": "# ${ game.title }"})
        assert config.template == "# ${ game.title }"

    def test_from_dict_rejects_bad_delay(self):
        """Non-numeric and negative delays are configuration errors."""
        with pytest.raises(ConfigurationError):
            ExportConfig.from_dict({"delay_seconds": "soon"})
        with pytest.raises(ConfigurationError):
            ExportConfig.from_dict({"delay_seconds": -1})

    def test_from_dict_rejects_non_mapping(self):
        """A YAML list at the top level is a configuration error."""
        with pytest.raises(ConfigurationError):
            ExportConfig.from_dict(["not", "a", "mapping"])  # type: ignore[arg-type]

    def test_from_yaml(self):
        """Should load config from YAML file."""
        yaml_content = """
input_dir: scrape_results
output_dir: notes
delay_seconds: 0.5
store:
  country: us
"""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write(yaml_content)
            f.flush()
            yaml_path = Path(f.name)

        try:
            config = ExportConfig.from_yaml(yaml_path)

            assert config.input_dir == Path("scrape_results")
            assert config.output_dir == Path("notes")
            assert config.delay_seconds == 0.5
            assert config.store.country == "us"
            assert config.store.timeout_seconds == 10.0
        finally:
            yaml_path.unlink()

    def test_from_yaml_reads_json_settings(self, tmp_path):
        """The scraper's JSON settings file is valid YAML too."""
        settings = tmp_path / "scraper-settings.json"
        settings.write_text('{"steamAccountID": "me", "markdownTemplate": "${ game.title }"}')

        config = ExportConfig.from_yaml(settings)

        assert config.template == "${ game.title }"

    def test_from_yaml_missing_file(self):
        """Should return defaults for missing file."""
        config = ExportConfig.from_yaml(Path("/nonexistent/config.yaml"))

        assert config == ExportConfig()

    def test_from_yaml_invalid_file(self, tmp_path):
        """Unparsable YAML is a configuration error."""
        path = tmp_path / "broken.yaml"
        path.write_text("input_dir: [unclosed\n")

        with pytest.raises(ConfigurationError):
            ExportConfig.from_yaml(path)

    def test_with_overrides(self):
        """Overrides return a new config and ignore None values."""
        config = ExportConfig()
        changed = config.with_overrides(delay_seconds=0.0, output_dir=None)

        assert changed.delay_seconds == 0.0
        assert changed.output_dir == config.output_dir
        assert config.delay_seconds == 1.2

    def test_to_dict(self):
        """Should serialize config to dictionary."""
        config = ExportConfig(store=StoreConfig(language="german"))

        data = config.to_dict()

        assert data["delay_seconds"] == 1.2
        assert data["store"]["language"] == "german"
        assert data["marker_fields"] == ["image", "cover_url"]


class TestLoadTemplate:
    """Test template resolution."""

    def test_default_when_nothing_configured(self):
        assert load_template(ExportConfig(), "DEFAULT") == "DEFAULT"

    def test_inline_template_wins(self, tmp_path):
        path = tmp_path / "note.md"
        path.write_text("from file")
        config = ExportConfig(template="inline", template_path=path)

        assert load_template(config, "DEFAULT") == "inline"

    def test_template_file(self, tmp_path):
        path = tmp_path / "note.md"
        path.write_text("# ${ game.title }\n")
        config = ExportConfig(template_path=path)

        assert load_template(config, "DEFAULT") == "# ${ game.title }\n"

    def test_unreadable_template_falls_back_with_warning(self, tmp_path, caplog):
        """A missing template file falls back to the default and logs a warning."""
        config = ExportConfig(template_path=tmp_path / "missing.md")

        with caplog.at_level("WARNING"):
            result = load_template(config, "DEFAULT")

        assert result == "DEFAULT"
        assert "Using default template" in caplog.text
