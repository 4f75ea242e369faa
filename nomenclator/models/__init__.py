"""
Data models for the table builder.

This module contains pure data classes with no business logic.
"""

from .product import (
    PRODUCT_FLAGS,
    AtcClassification,
    AtcDuplicate,
    IngredientComposition,
    PharmaceuticalForm,
    Presentation,
    ProductRecord,
    SupplyProblem,
)
from .reference import ReferenceEntry
from .summary import DocumentFailure, RunSummary, SkippedDocument

__all__ = [
    'PRODUCT_FLAGS',
    'AtcClassification',
    'AtcDuplicate',
    'IngredientComposition',
    'PharmaceuticalForm',
    'Presentation',
    'ProductRecord',
    'SupplyProblem',
    'ReferenceEntry',
    'DocumentFailure',
    'RunSummary',
    'SkippedDocument',
]
