"""
Table Writer

Writes normalized rows to one CSV file per table, ready for
PostgreSQL `COPY ... CSV HEADER`.

Each table has its own lock; a call to append() or write_rows() holds the
lock of a table while it writes that table's rows, so rows from concurrent
workers never interleave within a line, and one document's batch for a
table stays contiguous.
"""

import csv
import logging
import threading
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..common.csv_utils import configure_csv
from ..common.errors import WriteError
from ..normalization.tables import TABLES, TableSpec

logger = logging.getLogger(__name__)

# Configure CSV for large fields
configure_csv()


def format_value(value) -> str:
    """Render a cell: booleans as true/false, missing values as empty fields."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


class _TableSink:
    """Open CSV file of one table plus its lock and row count."""

    def __init__(self, spec: TableSpec, path: Path, delimiter: str):
        self.spec = spec
        self.path = path
        self.lock = threading.Lock()
        self.rows = 0
        self.columns = frozenset(spec.columns)
        self.file = open(path, 'w', newline='', encoding='utf-8')
        self.writer = csv.DictWriter(
            self.file,
            fieldnames=list(spec.columns),
            delimiter=delimiter,
            quoting=csv.QUOTE_MINIMAL,
            lineterminator='\n',
        )
        self.writer.writeheader()


class TableWriter:
    """
    Concurrent-safe CSV sink for every output table.

    Usage:
        with TableWriter("csv_output") as writer:
            writer.append("laboratories", {"laboratory_id": 1, "name": "Acme Labs"})
            writer.write_rows(document.rows)
        print(writer.row_counts())
    """

    def __init__(self, output_dir, tables: Sequence[TableSpec] = TABLES, delimiter: str = ','):
        """
        Create the output directory and open every table with its header.

        Args:
            output_dir: Directory for the CSV files (created if needed)
            tables: Table catalogue to write
            delimiter: Single-character field delimiter

        Raises:
            WriteError: If a file cannot be created
        """
        self.output_dir = Path(output_dir)
        self.delimiter = delimiter
        self._sinks: Dict[str, _TableSink] = {}
        self._failure: Optional[WriteError] = None
        self._closed = False

        current = 'output'
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            for spec in tables:
                current = spec.name
                self._sinks[spec.name] = _TableSink(spec, self.output_dir / spec.filename, delimiter)
        except OSError as e:
            self._close_files()
            raise WriteError(current, f"cannot create table file: {e}") from e

        logger.debug("Opened %d tables in %s", len(self._sinks), self.output_dir)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    @property
    def paths(self) -> Dict[str, Path]:
        return {name: sink.path for name, sink in self._sinks.items()}

    @property
    def failed(self) -> bool:
        return self._failure is not None

    # ── Writing ──────────────────────────────────────────────────────────────

    def append(self, table: str, row: Mapping[str, object]) -> None:
        """
        Append one row to a table.

        Raises:
            WriteError: For an unknown table or column, or an I/O failure
        """
        self.write_rows([(table, row)])

    def write_rows(self, rows: Iterable[Tuple[str, Mapping[str, object]]]) -> None:
        """
        Append a batch of (table, row) pairs.

        Every row is checked before anything is written, so a batch with an
        unknown table or column writes nothing.

        Raises:
            WriteError: For an unknown table or column, or an I/O failure
        """
        self._check_usable()

        batches: "OrderedDict[str, List[Mapping[str, object]]]" = OrderedDict()
        for table, row in rows:
            sink = self._sinks.get(table)
            if sink is None:
                raise WriteError(table, "unknown table")
            unknown = set(row) - sink.columns
            if unknown:
                raise WriteError(table, f"unknown columns {sorted(unknown)}")
            batches.setdefault(table, []).append(row)

        for table, table_rows in batches.items():
            self._write_batch(self._sinks[table], table_rows)

    def _write_batch(self, sink: _TableSink, rows: List[Mapping[str, object]]) -> None:
        with sink.lock:
            self._check_usable()
            try:
                for row in rows:
                    sink.writer.writerow({column: format_value(row.get(column))
                                          for column in sink.spec.columns})
                    sink.rows += 1
            except (OSError, csv.Error) as e:
                self._failure = WriteError(sink.spec.name, str(e))
                logger.error("Writing %s failed: %s", sink.path, e)
                raise self._failure from e

    def _check_usable(self) -> None:
        if self._failure is not None:
            raise WriteError(self._failure.table, f"writer unusable after earlier failure: {self._failure.cause}")
        if self._closed:
            raise WriteError('output', "writer is closed")

    # ── Results ──────────────────────────────────────────────────────────────

    def row_counts(self) -> Dict[str, int]:
        """Data rows written per table (header excluded)."""
        counts = {}
        for name, sink in self._sinks.items():
            with sink.lock:
                counts[name] = sink.rows
        return counts

    def close(self) -> None:
        """
        Flush and close every table file. Safe to call twice.

        Raises:
            WriteError: If a file cannot be flushed
        """
        if self._closed:
            return
        self._closed = True
        error = self._close_files()
        if error is not None:
            table, cause = error
            self._failure = self._failure or WriteError(table, cause)
            raise WriteError(table, f"cannot close table file: {cause}")

    def _close_files(self) -> Optional[Tuple[str, str]]:
        first_error = None
        for name, sink in self._sinks.items():
            with sink.lock:
                try:
                    sink.file.close()
                except OSError as e:
                    logger.error("Closing %s failed: %s", sink.path, e)
                    first_error = first_error or (name, str(e))
        return first_error
