"""
Error Taxonomy

Exceptions raised by the table builder and the CIMA client.

Run-fatal: TransferError, ArchiveError (archive-level), WriteError.
Per-document: ArchiveError (entry-level), ParseError, NormalizationInvariantError.
"""

from __future__ import annotations


class NomenclatorError(Exception):
    """Base class for all project errors."""


class TransferError(NomenclatorError):
    """The dump archive could not be downloaded completely."""


class ArchiveError(NomenclatorError):
    """The archive, or one of its entries, cannot be read."""

    def __init__(self, message: str, entry: str | None = None):
        super().__init__(message)
        self.entry = entry


class ParseError(NomenclatorError):
    """A document is malformed or lacks a required field."""

    def __init__(self, document: str, cause: str):
        super().__init__(f"{document}: {cause}")
        self.document = document
        self.cause = cause


class NormalizationInvariantError(NomenclatorError):
    """
    The key registry reached an impossible state.

    Carries the reference rows that were claimed before the violation so the
    caller can still write them; a claimed key without its row would leave
    dangling foreign keys in sibling documents.
    """

    def __init__(self, message: str, reference_rows: list | None = None):
        super().__init__(message)
        self.reference_rows = list(reference_rows or [])


class WriteError(NomenclatorError):
    """A table sink failed; the table set is unsafe to load."""

    def __init__(self, table: str, cause: str):
        super().__init__(f"{table}: {cause}")
        self.table = table
        self.cause = cause


class CimaAPIError(NomenclatorError):
    """The CIMA REST API request failed (transport, status or payload)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CimaNotFoundError(CimaAPIError):
    """The CIMA REST API has no entity for the requested key."""
