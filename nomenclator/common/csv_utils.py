"""
CSV Utilities

Common functions for reading emitted tables back with proper configuration.
Handles large field sizes (supply problem observations, ATC duplicity
recommendations) and the configurable delimiter.
"""

import csv
from typing import Dict, Iterator
from pathlib import Path


def configure_csv(field_size_limit: int = 10 * 1024 * 1024) -> None:
    """
    Configure CSV module for large fields.

    Args:
        field_size_limit: Maximum field size in bytes (default: 10MB)
    """
    csv.field_size_limit(field_size_limit)


def read_csv(
    file_path: str | Path,
    encoding: str = 'utf-8',
    delimiter: str = ',',
) -> Iterator[Dict[str, str]]:
    """
    Read CSV file and yield rows as dictionaries.

    Args:
        file_path: Path to CSV file
        encoding: File encoding (default: utf-8)
        delimiter: Field delimiter (default: comma)

    Yields:
        Dictionary for each row with column names as keys
    """
    configure_csv()

    with open(file_path, 'r', encoding=encoding, newline='') as f:
        reader = csv.DictReader(f, delimiter=delimiter)
        for row in reader:
            yield row


def read_header(file_path: str | Path, encoding: str = 'utf-8', delimiter: str = ',') -> list:
    """Return the header row of a CSV file (empty list for an empty file)."""
    with open(file_path, 'r', encoding=encoding, newline='') as f:
        return next(csv.reader(f, delimiter=delimiter), [])


# Initialize CSV configuration on module import
configure_csv()
