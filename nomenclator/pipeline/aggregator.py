"""
Run Aggregator

Collects per-document outcomes from concurrent workers into a RunSummary.
"""

import logging
import threading
from typing import Dict, Optional

from ..models import DocumentFailure, RunSummary, SkippedDocument

logger = logging.getLogger(__name__)


class RunAggregator:
    """
    Thread-safe outcome collector.

    Recording methods only update counters under a lock; they never raise,
    so a worker can always report its outcome.

    Usage:
        aggregator = RunAggregator(fail_on_error=False)
        aggregator.record_success("Prescripcion.xml[1]")
        aggregator.record_failure("Prescripcion.xml[2]", "parse", "missing des_nomco")
        summary = aggregator.finish(writer.row_counts(), elapsed)
    """

    def __init__(self, fail_on_error: bool = False):
        self._lock = threading.Lock()
        self._summary = RunSummary(fail_on_error=fail_on_error)

    def record_success(self, name: str, merged: bool = False) -> None:
        with self._lock:
            self._summary.documents_attempted += 1
            self._summary.documents_succeeded += 1
            if merged:
                self._summary.documents_merged += 1

    def record_failure(self, name: str, stage: str, cause: str) -> None:
        logger.warning("Document %s failed at %s: %s", name, stage, cause)
        with self._lock:
            self._summary.documents_attempted += 1
            self._summary.documents_failed += 1
            self._summary.failures.append(DocumentFailure(name=name, stage=stage, cause=cause))

    def record_skipped(self, name: str, reason: str) -> None:
        logger.debug("Document %s skipped: %s", name, reason)
        with self._lock:
            self._summary.documents_skipped += 1
            self._summary.skipped.append(SkippedDocument(name=name, reason=reason))

    def record_dictionary(self, records: int, skipped: int = 0) -> None:
        with self._lock:
            self._summary.dictionary_records += records
            self._summary.dictionary_records_skipped += skipped

    def record_fatal(self, message: str) -> None:
        logger.error("Fatal: %s", message)
        with self._lock:
            self._summary.fatal_errors.append(message)
            self._summary.incomplete = True

    def mark_cancelled(self) -> None:
        with self._lock:
            self._summary.cancelled = True
            self._summary.incomplete = True

    @property
    def failed(self) -> bool:
        """True once the run can no longer succeed."""
        with self._lock:
            return bool(self._summary.fatal_errors) or (
                self._summary.fail_on_error and self._summary.documents_failed > 0
            )

    def finish(self, rows_per_table: Optional[Dict[str, int]] = None,
               elapsed_seconds: float = 0.0) -> RunSummary:
        """Freeze counters into the final RunSummary."""
        with self._lock:
            summary = self._summary
            summary.rows_per_table = dict(rows_per_table or {})
            summary.elapsed_seconds = round(elapsed_seconds, 3)
            return summary


def print_summary(summary: RunSummary, output_dir=None) -> None:
    """Print the human-readable run report to stdout."""
    print("\n" + "=" * 60)
    print("Table Build Summary")
    print("=" * 60)
    print("\n  Documents:")
    print(f"     Attempted:          {summary.documents_attempted}")
    print(f"     Succeeded:          {summary.documents_succeeded}")
    print(f"     Merged duplicates:  {summary.documents_merged}")
    print(f"     Failed:             {summary.documents_failed}")
    print(f"     Skipped:            {summary.documents_skipped}")
    print("\n  Dictionaries:")
    print(f"     Records seeded:     {summary.dictionary_records}")
    print(f"     Records skipped:    {summary.dictionary_records_skipped}")
    print("\n  Rows per table:")
    for table, count in summary.rows_per_table.items():
        print(f"     {table:<32}{count:>10}")
    print(f"     {'total':<32}{summary.total_rows:>10}")

    if summary.failures:
        print("\n  Failures (first 10):")
        for failure in summary.failures[:10]:
            print(f"     [{failure.stage}] {failure.name}: {failure.cause}")
        if len(summary.failures) > 10:
            print(f"     ... and {len(summary.failures) - 10} more")

    if summary.fatal_errors:
        print("\n  Fatal errors:")
        for message in summary.fatal_errors:
            print(f"     {message}")

    print("\n  Performance:")
    print(f"     Time elapsed:       {summary.elapsed_seconds:.1f} seconds")
    if summary.elapsed_seconds > 0:
        print(f"     Rate:               {summary.documents_attempted / summary.elapsed_seconds:.2f} documents/sec")

    if output_dir is not None:
        print("\n  Output:")
        print(f"     Tables:  {output_dir}")

    status = "OK" if summary.ok else "FAILED"
    if summary.cancelled:
        status += " (cancelled, tables incomplete)"
    elif summary.incomplete:
        status += " (tables incomplete, do not load)"
    print(f"\n  Status: {status}")
    print("=" * 60)
