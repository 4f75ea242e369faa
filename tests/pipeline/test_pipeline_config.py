"""Tests for nomenclator/pipeline/config.py"""

from pathlib import Path

import pytest

from nomenclator.pipeline.config import PipelineConfig, default_concurrency


class TestPipelineConfig:
    def test_defaults(self):
        config = PipelineConfig()
        assert config.concurrency == default_concurrency()
        assert config.delimiter == ","
        assert config.download_path == Path("nomenclator_data") / "prescripcion.zip"

    def test_paths_converted(self):
        config = PipelineConfig(output_dir="out", archive_path="dump.zip")
        assert config.output_dir == Path("out")
        assert config.archive_path == Path("dump.zip")

    @pytest.mark.parametrize("value", [0, -2])
    def test_invalid_concurrency(self, value):
        with pytest.raises(ValueError, match="concurrency"):
            PipelineConfig(concurrency=value)

    @pytest.mark.parametrize("value", ["", ";;", '"', "\n"])
    def test_invalid_delimiter(self, value):
        with pytest.raises(ValueError, match="delimiter"):
            PipelineConfig(delimiter=value)

    def test_from_settings(self):
        config = PipelineConfig.from_settings({"concurrency": 3, "delimiter": ";", "unknown": 1})
        assert config.concurrency == 3
        assert config.delimiter == ";"
        assert config.dump_url.endswith("prescripcion.zip")

    def test_from_settings_ignores_none_overrides(self):
        config = PipelineConfig.from_settings({"output_dir": None, "fail_on_error": None})
        assert config.output_dir == Path("csv_output")
        assert config.fail_on_error is False
