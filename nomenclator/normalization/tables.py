"""
Table Catalogue

Fixed column layout of every emitted table. Column order here is the output
contract: the header row and every data row follow it exactly.

Reference tables hold shared lookup entities keyed by a synthetic id; the
natural_key column holds the value as it appears in source documents.
Primary key columns are never empty in emitted rows.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class TableSpec:
    """Layout and keys of one output table."""
    name: str
    columns: Tuple[str, ...]
    primary_key: Tuple[str, ...]
    foreign_keys: Dict[str, str] = field(default_factory=dict)   # column -> table
    natural_key: Optional[str] = None
    kind: Optional[str] = None      # reference entity kind, None for entity/link tables

    @property
    def filename(self) -> str:
        return f"{self.name}.csv"

    @property
    def id_column(self) -> str:
        return self.primary_key[0]


def _reference(kind: str, name: str, id_column: str, natural_key: str,
               extra: Tuple[str, ...] = (), foreign_keys: Optional[Dict[str, str]] = None) -> TableSpec:
    columns = (id_column, natural_key) + extra
    return TableSpec(
        name=name,
        columns=columns,
        primary_key=(id_column,),
        foreign_keys=foreign_keys or {},
        natural_key=natural_key,
        kind=kind,
    )


# ── Reference tables ──────────────────────────────────────────────────────────

REFERENCE_TABLES: List[TableSpec] = [
    _reference('laboratory', 'laboratories', 'laboratory_id', 'name',
               ('code', 'address', 'postal_code', 'city', 'vat_number')),
    _reference('active_ingredient', 'active_ingredients', 'active_ingredient_id', 'code',
               ('name', 'number')),
    _reference('administration_route', 'administration_routes', 'administration_route_id', 'code',
               ('name',)),
    _reference('simplified_form', 'simplified_pharmaceutical_forms', 'simplified_form_id', 'code',
               ('name',)),
    _reference('pharmaceutical_form', 'pharmaceutical_forms', 'pharmaceutical_form_id', 'code',
               ('name', 'simplified_form_id'),
               {'simplified_form_id': 'simplified_pharmaceutical_forms'}),
    _reference('atc_code', 'atc_codes', 'atc_code_id', 'code', ('description', 'number')),
    _reference('registration_status', 'registration_statuses', 'registration_status_id', 'code',
               ('name',)),
    _reference('container', 'containers', 'container_id', 'code', ('name',)),
    _reference('content_unit', 'content_units', 'content_unit_id', 'code', ('name',)),
    _reference('dose_unit', 'dose_units', 'dose_unit_id', 'name'),
    _reference('dcsa', 'dcsa', 'dcsa_id', 'code', ('name',)),
    _reference('dcp', 'dcp', 'dcp_id', 'code', ('name', 'dcsa_id'), {'dcsa_id': 'dcsa'}),
    _reference('dcpf', 'dcpf', 'dcpf_id', 'code', ('name', 'dcp_id'), {'dcp_id': 'dcp'}),
    _reference('excipient', 'excipients', 'excipient_id', 'code', ('name',)),
]

# ── Entity and link tables ────────────────────────────────────────────────────

PRODUCTS = TableSpec(
    name='products',
    columns=(
        'product_id', 'name', 'dosage', 'dcsa_id', 'dcp_id', 'dcpf_id',
        'registration_status_id', 'authorization_date', 'registration_status_date',
        'technical_sheet_url', 'leaflet_url',
        'marketed', 'psychotropic', 'narcotic', 'affects_driving', 'black_triangle',
        'prescription_required', 'generic', 'substitutable', 'hospital_use',
        'hospital_diagnosis', 'long_term_treatment', 'special_medical_control',
        'orphan', 'plant_based', 'has_mandatory_excipients', 'biosimilar',
        'parallel_import', 'radiopharmaceutical', 'serialization',
    ),
    primary_key=('product_id',),
    foreign_keys={
        'dcsa_id': 'dcsa',
        'dcp_id': 'dcp',
        'dcpf_id': 'dcpf',
        'registration_status_id': 'registration_statuses',
    },
)

PRESENTATIONS = TableSpec(
    name='presentations',
    columns=(
        'presentation_id', 'product_id', 'description', 'container_id', 'content',
        'content_unit_id', 'unit_count', 'clinical_package', 'marketed', 'marketing_date',
        'registration_status_id', 'registration_status_date',
    ),
    primary_key=('presentation_id',),
    foreign_keys={
        'product_id': 'products',
        'container_id': 'containers',
        'content_unit_id': 'content_units',
        'registration_status_id': 'registration_statuses',
    },
)

LINK_TABLES: List[TableSpec] = [
    TableSpec(
        name='product_laboratories',
        columns=('product_id', 'laboratory_id', 'role'),
        primary_key=('product_id', 'laboratory_id', 'role'),
        foreign_keys={'product_id': 'products', 'laboratory_id': 'laboratories'},
    ),
    TableSpec(
        name='product_forms',
        columns=('product_id', 'pharmaceutical_form_id', 'simplified_form_id', 'active_ingredient_count'),
        primary_key=('product_id', 'pharmaceutical_form_id'),
        foreign_keys={
            'product_id': 'products',
            'pharmaceutical_form_id': 'pharmaceutical_forms',
            'simplified_form_id': 'simplified_pharmaceutical_forms',
        },
    ),
    TableSpec(
        name='product_active_ingredients',
        columns=(
            'product_id', 'active_ingredient_id', 'position', 'dose', 'dose_unit_id',
            'composition_dose', 'composition_unit_id', 'administration_dose',
            'administration_unit_id', 'prescription_dose', 'prescription_unit_id',
        ),
        primary_key=('product_id', 'active_ingredient_id', 'position'),
        foreign_keys={
            'product_id': 'products',
            'active_ingredient_id': 'active_ingredients',
            'dose_unit_id': 'dose_units',
            'composition_unit_id': 'dose_units',
            'administration_unit_id': 'dose_units',
            'prescription_unit_id': 'dose_units',
        },
    ),
    TableSpec(
        name='product_administration_routes',
        columns=('product_id', 'administration_route_id'),
        primary_key=('product_id', 'administration_route_id'),
        foreign_keys={'product_id': 'products', 'administration_route_id': 'administration_routes'},
    ),
    TableSpec(
        name='product_atc_codes',
        columns=('product_id', 'atc_code_id'),
        primary_key=('product_id', 'atc_code_id'),
        foreign_keys={'product_id': 'products', 'atc_code_id': 'atc_codes'},
    ),
    TableSpec(
        name='product_atc_duplicates',
        columns=(
            'product_id', 'atc_code_id', 'duplicate_atc_code_id',
            'description', 'effect', 'recommendation',
        ),
        primary_key=('product_id', 'atc_code_id', 'duplicate_atc_code_id'),
        foreign_keys={
            'product_id': 'products',
            'atc_code_id': 'atc_codes',
            'duplicate_atc_code_id': 'atc_codes',
        },
    ),
    TableSpec(
        name='presentation_supply_problems',
        columns=('presentation_id', 'position', 'start_date', 'end_date', 'observations'),
        primary_key=('presentation_id', 'position'),
        foreign_keys={'presentation_id': 'presentations'},
    ),
]

TABLES: List[TableSpec] = REFERENCE_TABLES + [PRODUCTS, PRESENTATIONS] + LINK_TABLES

TABLES_BY_NAME: Dict[str, TableSpec] = {spec.name: spec for spec in TABLES}

REFERENCE_TABLES_BY_KIND: Dict[str, TableSpec] = {spec.kind: spec for spec in REFERENCE_TABLES}


def get_table(name: str) -> TableSpec:
    """
    Look up a table by name.

    Raises:
        KeyError: If the table is not part of the catalogue
    """
    try:
        return TABLES_BY_NAME[name]
    except KeyError:
        raise KeyError(f"Unknown table: {name}") from None


def reference_table(kind: str) -> TableSpec:
    """Look up the reference table for an entity kind."""
    try:
        return REFERENCE_TABLES_BY_KIND[kind]
    except KeyError:
        raise KeyError(f"Unknown reference kind: {kind}") from None
