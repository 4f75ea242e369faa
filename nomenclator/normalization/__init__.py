"""
Normalization of parsed records into relational table rows.

Modules:
    tables - Table catalogue (columns, primary, natural and foreign keys)
    registry - Shared key registries (synthetic ids, first-claim-wins sets)
    normalizer - Normalizer turning records and dictionary entries into rows
"""

from .normalizer import NormalizedDocument, Normalizer, record_rank
from .registry import ClaimRegistry, ReferenceRegistry, RegistrySet, normalize_key, synthetic_id
from .tables import (
    LINK_TABLES,
    PRESENTATIONS,
    PRODUCTS,
    REFERENCE_TABLES,
    TABLES,
    TableSpec,
    get_table,
    reference_table,
)

__all__ = [
    # Normalizer
    'Normalizer',
    'NormalizedDocument',
    'record_rank',
    # Registries
    'ClaimRegistry',
    'ReferenceRegistry',
    'RegistrySet',
    'normalize_key',
    'synthetic_id',
    # Table catalogue
    'TableSpec',
    'TABLES',
    'REFERENCE_TABLES',
    'LINK_TABLES',
    'PRODUCTS',
    'PRESENTATIONS',
    'get_table',
    'reference_table',
]
