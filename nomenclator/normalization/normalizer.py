"""
Normalizer

Splits parsed product records into rows of the output tables.

For every reference (laboratory name, ATC code, route code, ...) the shared
registry of that kind is asked to look up or assign a synthetic id; the
worker that assigns an id emits the reference row, everybody else only uses
the id. Reference rows are returned per document and can be written at once.

Product, presentation and link rows are staged instead. The dump repeats a
registration id once per pack, so several records describe one product; each
staged row is keyed on its primary key, and when records disagree the record
with the lowest rank (smallest national code, then document name) wins.
Link rows are the union over all records of a product. Because the winner
never depends on arrival order, staged_rows() returns the same rows for any
number of workers.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from ..common.errors import NormalizationInvariantError
from ..models import PRODUCT_FLAGS, Presentation, ProductRecord, ReferenceEntry
from .registry import RegistrySet, normalize_key
from .tables import PRESENTATIONS, PRODUCTS, REFERENCE_TABLES, TABLES, get_table, reference_table

logger = logging.getLogger(__name__)

Row = Dict[str, object]
TableRow = Tuple[str, Row]
Rank = Tuple[str, str]

_TABLE_ORDER = {spec.name: index for index, spec in enumerate(TABLES)}


@dataclass
class NormalizedDocument:
    """
    Outcome of one product record.

    rows holds the reference rows first assigned by this record; they must be
    written before the staged rows that point at them.
    """
    product_id: str
    rows: List[TableRow] = field(default_factory=list)
    merged: bool = False
    duplicate: bool = False
    repeated_presentations: List[str] = field(default_factory=list)

    def row_counts(self) -> Dict[str, int]:
        return dict(Counter(table for table, _ in self.rows))


def record_rank(record: ProductRecord) -> Rank:
    """Order in which records of one product win conflicting rows."""
    codes = [presentation.code for presentation in record.presentations]
    return (min(codes) if codes else '', record.source or '')


def _sort_key(key: tuple) -> tuple:
    return tuple('' if value is None else str(value) for value in key)


class _ReferenceCollector:
    """Resolves references for one document and keeps the rows it must emit."""

    def __init__(self, registries: RegistrySet):
        self.registries = registries
        self.rows: List[TableRow] = []

    def resolve(self, kind: str, value: Optional[str],
                attributes: Optional[Dict[str, object]] = None) -> Optional[int]:
        key = normalize_key(value)
        if key is None:
            return None

        ref_id, is_new = self.registries.reference(kind).lookup_or_assign(key)
        if is_new:
            spec = reference_table(kind)
            row: Row = dict.fromkeys(spec.columns)
            if attributes:
                row.update(attributes)
            row[spec.id_column] = ref_id
            row[spec.natural_key] = key
            self.rows.append((spec.name, row))
        return ref_id


class _StagedRows:
    """
    Rows keyed on (table, primary key); the lowest rank owns a key.

    A presentation key owns its supply problem rows too, so they always come
    from the same record as the presentation.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[Tuple[str, tuple], Tuple[Rank, List[TableRow]]] = {}

    def offer(self, rank: Rank, table: str, row: Row, dependents: Iterable[TableRow] = ()) -> None:
        key = (table, tuple(row[column] for column in get_table(table).primary_key))
        rows = [(table, row)] + list(dependents)
        with self._lock:
            current = self._entries.get(key)
            if current is None or rank < current[0]:
                self._entries[key] = (rank, rows)

    def rows(self) -> List[TableRow]:
        with self._lock:
            ordered = sorted(self._entries.items(),
                             key=lambda item: (_TABLE_ORDER[item[0][0]], _sort_key(item[0][1])))
        return [row for _, (_, rows) in ordered for row in rows]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class Normalizer:
    """
    Turns ProductRecords and dictionary entries into table rows.

    One Normalizer (and its RegistrySet) is shared by all workers of a run.

    Usage:
        normalizer = Normalizer()
        writer.write_rows(normalizer.seed(dictionary_entries))
        for record in records:                          # any order, any thread
            writer.write_rows(normalizer.normalize(record).rows)
        writer.write_rows(normalizer.staged_rows())     # once, at the end
    """

    def __init__(self, registries: Optional[RegistrySet] = None):
        self.registries = registries or RegistrySet(spec.kind for spec in REFERENCE_TABLES)
        self._staged = _StagedRows()

    # ── Dictionaries ─────────────────────────────────────────────────────────

    def seed(self, entries: Iterable[ReferenceEntry]) -> List[TableRow]:
        """
        Register dictionary entries, returning rows for keys seen first here.

        Entries whose key is already registered produce no row; the first
        sighting wins.

        Raises:
            NormalizationInvariantError: With the rows claimed so far attached
        """
        collector = _ReferenceCollector(self.registries)
        try:
            for entry in entries:
                attributes: Dict[str, object] = dict(entry.attributes)
                for column, (kind, key) in entry.references.items():
                    attributes[column] = collector.resolve(kind, key)
                collector.resolve(entry.kind, entry.key, attributes)
        except NormalizationInvariantError as exc:
            raise NormalizationInvariantError(str(exc), collector.rows) from exc
        return collector.rows

    # ── Products ─────────────────────────────────────────────────────────────

    def normalize(self, record: ProductRecord) -> NormalizedDocument:
        """
        Resolve the references of one record and stage its other rows.

        Returns:
            NormalizedDocument with the new reference rows. merged is set when
            another record already introduced the registration id, duplicate
            when it also introduced every presentation of this record.

        Raises:
            NormalizationInvariantError: If a registry invariant breaks; the
                exception carries the reference rows claimed before the
                failure, which must still be written. Nothing is staged.
        """
        collector = _ReferenceCollector(self.registries)
        try:
            product_row = self._product_row(record, collector)
            link_rows = self._product_links(record, collector)
            presentation_rows = [
                (presentation, self._presentation_row(record.registration_id, presentation, collector))
                for presentation in record.presentations
            ]
        except NormalizationInvariantError as exc:
            raise NormalizationInvariantError(
                f"{record.source or record.registration_id}: {exc}", collector.rows
            ) from exc

        rank = record_rank(record)
        document = NormalizedDocument(product_id=record.registration_id, rows=collector.rows)

        document.merged = not self.registries.products.claim(record.registration_id)
        self._staged.offer(rank, PRODUCTS.name, product_row)
        for table, row in link_rows:
            self._staged.offer(rank, table, row)

        for presentation, row in presentation_rows:
            if not self.registries.presentations.claim(presentation.code):
                document.repeated_presentations.append(presentation.code)
            self._staged.offer(rank, PRESENTATIONS.name, row, _supply_rows(presentation))

        document.duplicate = document.merged and (
            len(document.repeated_presentations) == len(presentation_rows))
        if document.merged:
            logger.debug("Product %s seen before, %s adds %d new presentations",
                         record.registration_id, record.source,
                         len(presentation_rows) - len(document.repeated_presentations))
        return document

    def staged_rows(self) -> List[TableRow]:
        """
        Product, presentation and link rows staged so far, in table order.

        Call once every record has been normalized.
        """
        rows = self._staged.rows()
        logger.debug("Releasing %d staged rows", len(rows))
        return rows

    def _product_row(self, record: ProductRecord, collector: _ReferenceCollector) -> Row:
        row: Row = {
            'product_id': record.registration_id,
            'name': record.name,
            'dosage': record.dosage,
            'dcsa_id': collector.resolve('dcsa', record.dcsa_code),
            'dcp_id': collector.resolve('dcp', record.dcp_code),
            'dcpf_id': collector.resolve('dcpf', record.dcpf_code),
            'registration_status_id': collector.resolve(
                'registration_status', record.registration_status_code),
            'authorization_date': record.authorization_date,
            'registration_status_date': record.registration_status_date,
            'technical_sheet_url': record.technical_sheet_url,
            'leaflet_url': record.leaflet_url,
        }
        for column in PRODUCT_FLAGS.values():
            row[column] = record.flags.get(column)
        return row

    def _product_links(self, record: ProductRecord, collector: _ReferenceCollector) -> List[TableRow]:
        product_id = record.registration_id
        rows: List[TableRow] = []

        for role, name in (('holder', record.holder_laboratory), ('marketer', record.marketing_laboratory)):
            laboratory_id = collector.resolve('laboratory', name)
            if laboratory_id is not None:
                rows.append(('product_laboratories',
                             {'product_id': product_id, 'laboratory_id': laboratory_id, 'role': role}))

        ordinal = 0
        for form in record.forms:
            form_id = collector.resolve('pharmaceutical_form', form.form_code)
            simplified_id = collector.resolve('simplified_form', form.simplified_form_code)
            if form_id is not None:
                rows.append(('product_forms', {
                    'product_id': product_id,
                    'pharmaceutical_form_id': form_id,
                    'simplified_form_id': simplified_id,
                    'active_ingredient_count': form.active_ingredient_count,
                }))
            elif simplified_id is not None:
                logger.debug("Form without cod_forfar in %s, link not emitted", record.source)

            for ingredient in form.ingredients:
                ordinal += 1
                ingredient_id = collector.resolve('active_ingredient', ingredient.active_ingredient_code)
                if ingredient_id is None:
                    logger.debug("Composition without ingredient code in %s", record.source)
                    continue
                rows.append(('product_active_ingredients', {
                    'product_id': product_id,
                    'active_ingredient_id': ingredient_id,
                    'position': ingredient.position or str(ordinal),
                    'dose': ingredient.dose,
                    'dose_unit_id': collector.resolve('dose_unit', ingredient.dose_unit),
                    'composition_dose': ingredient.composition_dose,
                    'composition_unit_id': collector.resolve('dose_unit', ingredient.composition_unit),
                    'administration_dose': ingredient.administration_dose,
                    'administration_unit_id': collector.resolve('dose_unit', ingredient.administration_unit),
                    'prescription_dose': ingredient.prescription_dose,
                    'prescription_unit_id': collector.resolve('dose_unit', ingredient.prescription_unit),
                }))

            for route_code in form.administration_routes:
                route_id = collector.resolve('administration_route', route_code)
                if route_id is not None:
                    rows.append(('product_administration_routes',
                                 {'product_id': product_id, 'administration_route_id': route_id}))

        for atc in record.atc_codes:
            atc_id = collector.resolve('atc_code', atc.code)
            if atc_id is None:
                continue
            rows.append(('product_atc_codes', {'product_id': product_id, 'atc_code_id': atc_id}))
            for duplicate in atc.duplicates:
                duplicate_id = collector.resolve('atc_code', duplicate.atc_code)
                if duplicate_id is None:
                    continue
                rows.append(('product_atc_duplicates', {
                    'product_id': product_id,
                    'atc_code_id': atc_id,
                    'duplicate_atc_code_id': duplicate_id,
                    'description': duplicate.description,
                    'effect': duplicate.effect,
                    'recommendation': duplicate.recommendation,
                }))

        return rows

    def _presentation_row(self, product_id: str, presentation: Presentation,
                          collector: _ReferenceCollector) -> Row:
        return {
            'presentation_id': presentation.code,
            'product_id': product_id,
            'description': presentation.description,
            'container_id': collector.resolve('container', presentation.container_code),
            'content': presentation.content,
            'content_unit_id': collector.resolve('content_unit', presentation.content_unit),
            'unit_count': presentation.unit_count,
            'clinical_package': presentation.clinical_package,
            'marketed': presentation.marketed,
            'marketing_date': presentation.marketing_date,
            'registration_status_id': collector.resolve(
                'registration_status', presentation.registration_status_code),
            'registration_status_date': presentation.registration_status_date,
        }


def _supply_rows(presentation: Presentation) -> List[TableRow]:
    """Distinct supply problems of a presentation, numbered from 1."""
    seen = []
    for problem in presentation.supply_problems:
        values = (problem.start_date, problem.end_date, problem.observations)
        if values not in seen:
            seen.append(values)
    return [
        ('presentation_supply_problems', {
            'presentation_id': presentation.code,
            'position': position,
            'start_date': start_date,
            'end_date': end_date,
            'observations': observations,
        })
        for position, (start_date, end_date, observations) in enumerate(seen, start=1)
    ]
