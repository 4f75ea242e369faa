"""
Referential Integrity Check

Re-reads an emitted table set and verifies what a database import would
enforce: unique and non-empty primary keys, unique natural keys in
reference tables, and a target row for every non-empty foreign key.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Sequence, Set

from ..common.csv_utils import read_csv
from ..normalization.tables import TABLES, TableSpec

logger = logging.getLogger(__name__)

# Stop collecting details after this many violations per check
MAX_REPORTED = 20


@dataclass
class IntegrityReport:
    """Outcome of check_referential_integrity()."""
    tables_checked: int = 0
    rows_checked: int = 0
    duplicate_primary_keys: List[str] = field(default_factory=list)
    duplicate_natural_keys: List[str] = field(default_factory=list)
    empty_primary_keys: List[str] = field(default_factory=list)
    dangling_foreign_keys: List[str] = field(default_factory=list)
    missing_tables: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations()

    def violations(self) -> List[str]:
        messages = [f"missing table {name}" for name in self.missing_tables]
        messages += [f"duplicate primary key {v}" for v in self.duplicate_primary_keys]
        messages += [f"empty primary key column {v}" for v in self.empty_primary_keys]
        messages += [f"duplicate natural key {v}" for v in self.duplicate_natural_keys]
        messages += [f"dangling foreign key {v}" for v in self.dangling_foreign_keys]
        return messages


def _note(bucket: List[str], message: str) -> None:
    if len(bucket) < MAX_REPORTED:
        bucket.append(message)


def check_referential_integrity(
    output_dir,
    tables: Sequence[TableSpec] = TABLES,
    delimiter: str = ',',
) -> IntegrityReport:
    """
    Verify keys across an emitted table set.

    Args:
        output_dir: Directory holding the <table>.csv files
        tables: Table catalogue the files were written with
        delimiter: Field delimiter used when writing

    Returns:
        IntegrityReport; report.ok is True when no violation was found
    """
    output_dir = Path(output_dir)
    report = IntegrityReport()
    rows_by_table: Dict[str, List[Dict[str, str]]] = {}
    primary_keys: Dict[str, Set[str]] = {}

    for spec in tables:
        path = output_dir / spec.filename
        if not path.exists():
            report.missing_tables.append(spec.name)
            continue

        rows = list(read_csv(path, delimiter=delimiter))
        rows_by_table[spec.name] = rows
        report.tables_checked += 1
        report.rows_checked += len(rows)

        seen_keys = set()
        for row in rows:
            key = tuple(row.get(column, '') for column in spec.primary_key)
            empty = [column for column, value in zip(spec.primary_key, key) if not value]
            if empty:
                _note(report.empty_primary_keys, f"{spec.name}.{empty[0]} in row {key}")
            if key in seen_keys:
                _note(report.duplicate_primary_keys, f"{spec.name}{key}")
            seen_keys.add(key)
        if len(spec.primary_key) == 1:
            primary_keys[spec.name] = {key[0] for key in seen_keys}

        if spec.natural_key:
            seen_natural = set()
            for row in rows:
                value = row.get(spec.natural_key, '')
                if value in seen_natural:
                    _note(report.duplicate_natural_keys, f"{spec.name}.{spec.natural_key}={value!r}")
                seen_natural.add(value)

    for spec in tables:
        rows = rows_by_table.get(spec.name)
        if rows is None:
            continue
        for column, target in spec.foreign_keys.items():
            targets = primary_keys.get(target)
            if targets is None:
                continue
            for row in rows:
                value = row.get(column, '')
                if value and value not in targets:
                    _note(report.dangling_foreign_keys, f"{spec.name}.{column}={value} -> {target}")

    if report.ok:
        logger.info("Integrity check passed: %d tables, %d rows",
                    report.tables_checked, report.rows_checked)
    else:
        logger.error("Integrity check found %d violations", len(report.violations()))
    return report
