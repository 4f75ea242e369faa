# Common utilities
from .config_loader import load_cima_settings, load_config, load_pipeline_settings
from .csv_utils import configure_csv, read_csv, read_header
from .errors import (
    ArchiveError,
    CimaAPIError,
    CimaNotFoundError,
    NomenclatorError,
    NormalizationInvariantError,
    ParseError,
    TransferError,
    WriteError,
)
from .log_config import setup_logging
