"""Tests for nomenclator/common/config_loader.py"""

import pytest

from nomenclator.common import config_loader
from nomenclator.common.config_loader import (
    load_cima_settings,
    load_config,
    load_pipeline_settings,
)


class TestLoadFromConfigFiles:
    """Tests that load the real config YAML from the repo."""

    def test_pipeline_yaml_has_sections(self):
        config = load_config("pipeline.yaml")
        assert "pipeline" in config
        assert "cima" in config

    def test_pipeline_defaults(self):
        settings = load_pipeline_settings()
        assert settings["dump_url"].endswith("prescripcion.zip")
        assert settings["output_dir"] == "csv_output"
        assert settings["concurrency"] is None
        assert settings["fail_on_error"] is False
        assert settings["delimiter"] == ","

    def test_cima_settings(self):
        settings = load_cima_settings()
        assert settings["base_url"] == "https://cima.aemps.es/cima/rest"
        assert settings["timeout"] == 30

    def test_missing_file_raises(self):
        with pytest.raises(FileNotFoundError):
            load_config("does_not_exist.yaml")


class TestOverrides:
    def test_override_replaces_default(self):
        settings = load_pipeline_settings({"output_dir": "elsewhere", "concurrency": 3})
        assert settings["output_dir"] == "elsewhere"
        assert settings["concurrency"] == 3

    def test_none_override_keeps_default(self):
        settings = load_pipeline_settings({"output_dir": None})
        assert settings["output_dir"] == "csv_output"

    def test_unknown_key_is_added(self):
        settings = load_pipeline_settings({"archive_path": "local.zip"})
        assert settings["archive_path"] == "local.zip"


class TestConfigDir:
    def test_empty_file_loads_as_empty_dict(self, tmp_path, monkeypatch):
        (tmp_path / "empty.yaml").write_text("", encoding="utf-8")
        monkeypatch.setattr(config_loader, "_get_config_dir", lambda: tmp_path)
        assert load_config("empty.yaml") == {}

    def test_missing_section_gives_empty_settings(self, tmp_path, monkeypatch):
        (tmp_path / "pipeline.yaml").write_text("other: 1\n", encoding="utf-8")
        monkeypatch.setattr(config_loader, "_get_config_dir", lambda: tmp_path)
        assert load_pipeline_settings() == {}
        assert load_cima_settings() == {}
