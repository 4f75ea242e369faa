"""
Table output.

Modules:
    table_writer - TableWriter, concurrent-safe CSV sink per table
    integrity - check_referential_integrity over an emitted table set
"""

from .integrity import IntegrityReport, check_referential_integrity
from .table_writer import TableWriter, format_value

__all__ = [
    'TableWriter',
    'format_value',
    'IntegrityReport',
    'check_referential_integrity',
]
