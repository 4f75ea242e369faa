"""
Pipeline configuration.

PipelineConfig is built from config/pipeline.yaml plus explicit overrides
(CLI flags, environment variables).
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from ..acquisition.downloader import DEFAULT_DUMP_URL
from ..common.config_loader import load_pipeline_settings


def default_concurrency() -> int:
    return os.cpu_count() or 1


@dataclass
class PipelineConfig:
    """Settings of one table build."""
    output_dir: Path = Path('csv_output')
    work_dir: Path = Path('nomenclator_data')
    dump_url: str = DEFAULT_DUMP_URL
    archive_name: str = 'prescripcion.zip'
    archive_path: Optional[Path] = None     # use a local archive instead of downloading
    concurrency: Optional[int] = None       # None = one worker per CPU core
    fail_on_error: bool = False
    verify_output: bool = False
    delimiter: str = ','
    download_timeout: int = 300
    chunk_size: int = 1024 * 1024

    def __post_init__(self):
        self.output_dir = Path(self.output_dir)
        self.work_dir = Path(self.work_dir)
        if self.archive_path is not None:
            self.archive_path = Path(self.archive_path)
        if self.concurrency is None:
            self.concurrency = default_concurrency()
        self.concurrency = int(self.concurrency)
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        if not isinstance(self.delimiter, str) or len(self.delimiter) != 1:
            raise ValueError(f"delimiter must be a single character, got {self.delimiter!r}")
        if self.delimiter in ('"', '\n', '\r'):
            raise ValueError(f"delimiter {self.delimiter!r} conflicts with CSV quoting")

    @property
    def download_path(self) -> Path:
        return self.work_dir / self.archive_name

    @classmethod
    def from_settings(cls, overrides: Optional[Dict[str, Any]] = None) -> 'PipelineConfig':
        """
        Build a config from pipeline.yaml with overrides applied.

        Keys the dataclass does not know are ignored.

        Raises:
            ValueError: On an invalid concurrency or delimiter
        """
        settings = load_pipeline_settings(overrides)
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in settings.items() if key in known})
