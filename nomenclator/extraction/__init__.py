"""
Record extraction from Nomenclátor documents.

Modules:
    parsers - PrescriptionParser and DictionaryParser
"""

from .parsers import (
    DICTIONARY_SPECS,
    DictionaryParser,
    DictionarySpec,
    ParsedDictionary,
    PrescriptionParser,
    get_dictionary_spec,
    seed_rank,
)

__all__ = [
    'PrescriptionParser',
    'DictionaryParser',
    'DictionarySpec',
    'ParsedDictionary',
    'DICTIONARY_SPECS',
    'get_dictionary_spec',
    'seed_rank',
]
