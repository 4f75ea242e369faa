"""
Run summary models.

The summary is created empty by the aggregator, filled as document outcomes
arrive, and frozen into a RunSummary once every dispatched document is done.
"""

from dataclasses import asdict, dataclass, field
from typing import Dict, List


@dataclass(frozen=True)
class DocumentFailure:
    """A document that could not be turned into rows."""
    name: str
    stage: str      # extract | parse | normalize | write | internal
    cause: str


@dataclass(frozen=True)
class SkippedDocument:
    """A document deliberately not processed (cancelled, duplicate)."""
    name: str
    reason: str


@dataclass
class RunSummary:
    """Aggregate outcome of one table build."""

    documents_attempted: int = 0
    documents_succeeded: int = 0
    documents_merged: int = 0       # succeeded, but the product already existed
    documents_failed: int = 0
    documents_skipped: int = 0

    dictionary_records: int = 0
    dictionary_records_skipped: int = 0

    rows_per_table: Dict[str, int] = field(default_factory=dict)
    failures: List[DocumentFailure] = field(default_factory=list)
    skipped: List[SkippedDocument] = field(default_factory=list)
    fatal_errors: List[str] = field(default_factory=list)

    cancelled: bool = False
    incomplete: bool = False
    fail_on_error: bool = False
    elapsed_seconds: float = 0.0

    @property
    def total_rows(self) -> int:
        return sum(self.rows_per_table.values())

    @property
    def ok(self) -> bool:
        """True when the emitted table set is complete and safe to load."""
        if self.fatal_errors or self.cancelled or self.incomplete:
            return False
        if self.fail_on_error and self.documents_failed:
            return False
        return True

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def to_dict(self) -> dict:
        data = asdict(self)
        data['ok'] = self.ok
        data['total_rows'] = self.total_rows
        return data
