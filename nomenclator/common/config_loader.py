"""
Configuration Loader

Loads YAML configuration files: pipeline defaults (dump URL, directories,
concurrency, error mode) and CIMA client settings.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml


def _get_config_dir() -> Path:
    """Get the config directory path."""
    # Try relative to this file first
    module_dir = Path(__file__).parent.parent.parent
    config_dir = module_dir / 'config'

    if config_dir.exists():
        return config_dir

    # Try current working directory
    cwd_config = Path.cwd() / 'config'
    if cwd_config.exists():
        return cwd_config

    raise FileNotFoundError(
        f"Config directory not found. Tried: {config_dir}, {cwd_config}"
    )


def load_config(filename: str) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        filename: Name of the config file (e.g., 'pipeline.yaml')

    Returns:
        Parsed YAML content as dictionary (empty dict for an empty file)

    Raises:
        FileNotFoundError: If config file doesn't exist
    """
    config_path = _get_config_dir() / filename

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def load_pipeline_settings(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Load pipeline settings, applying non-None overrides on top.

    Args:
        overrides: Values that take precedence over the YAML defaults
            (typically parsed CLI arguments). None values are ignored so an
            unset CLI flag never clobbers a configured default.

    Returns:
        Dictionary with keys dump_url, output_dir, work_dir, archive_name,
        concurrency, fail_on_error, verify_output, delimiter,
        download_timeout, chunk_size

    Example:
        {
            'dump_url': 'https://listadomedicamentos.aemps.gob.es/prescripcion.zip',
            'output_dir': 'csv_output',
            'concurrency': None,
            ...
        }
    """
    settings = dict(load_config('pipeline.yaml').get('pipeline', {}))
    for key, value in (overrides or {}).items():
        if value is not None:
            settings[key] = value
    return settings


def load_cima_settings() -> Dict[str, Any]:
    """
    Load CIMA REST client settings.

    Returns:
        Dictionary with keys base_url and timeout
    """
    return dict(load_config('pipeline.yaml').get('cima', {}))
