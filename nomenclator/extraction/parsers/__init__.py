"""
Parsers for the documents of the Nomenclátor dump.

Each parser handles one document family:
- PrescriptionParser: <prescription> product records
- DictionaryParser: DICCIONARIO_*.xml reference dictionaries
"""

from .dictionary_parser import (
    DICTIONARY_SPECS,
    DictionaryParser,
    DictionarySpec,
    ParsedDictionary,
    get_dictionary_spec,
    seed_rank,
)
from .prescription_parser import PrescriptionParser

__all__ = [
    'PrescriptionParser',
    'DictionaryParser',
    'DictionarySpec',
    'ParsedDictionary',
    'DICTIONARY_SPECS',
    'get_dictionary_spec',
    'seed_rank',
]
