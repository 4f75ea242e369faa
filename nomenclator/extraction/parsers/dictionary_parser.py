"""
Dictionary Parser

Reads the DICCIONARIO_*.xml documents of the dump into ReferenceEntry
objects used to seed the reference tables.

DICTIONARY_SPECS is listed in seeding order: a dictionary whose entries
reference another kind (DCP -> DCSA, forms -> simplified forms) comes after
the dictionary that defines that kind.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Tuple, Union

from ...models import ReferenceEntry
from .xml_utils import child_text, children, parse_document

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DictionarySpec:
    """How one dictionary document maps onto a reference table."""
    kind: str
    filename: str
    record_tag: str
    key_field: str
    attributes: Dict[str, str] = field(default_factory=dict)      # source tag -> column
    references: Dict[str, Tuple[str, str]] = field(default_factory=dict)  # column -> (kind, source tag)
    strip_code_prefix: Optional[str] = None  # column whose "<code> - " prefix is dropped


DICTIONARY_SPECS: List[DictionarySpec] = [
    DictionarySpec('dcsa', 'DICCIONARIO_DCSA.xml', 'dcsa', 'codigodcsa',
                   {'nombredcsa': 'name'}),
    DictionarySpec('dcp', 'DICCIONARIO_DCP.xml', 'dcp', 'codigodcp',
                   {'nombredcp': 'name'},
                   {'dcsa_id': ('dcsa', 'codigodcsa')}),
    DictionarySpec('dcpf', 'DICCIONARIO_DCPF.xml', 'dcpf', 'codigodcpf',
                   {'nombredcpf': 'name'},
                   {'dcp_id': ('dcp', 'codigodcp')}),
    DictionarySpec('simplified_form', 'DICCIONARIO_FORMA_FARMACEUTICA_SIMPLIFICADAS.xml',
                   'formasfarmaceuticassimplificadas', 'codigoformafarmaceuticasimplificada',
                   {'formafarmaceuticasimplificada': 'name'}),
    DictionarySpec('pharmaceutical_form', 'DICCIONARIO_FORMA_FARMACEUTICA.xml',
                   'formasfarmaceuticas', 'codigoformafarmaceutica',
                   {'formafarmaceutica': 'name'},
                   {'simplified_form_id': ('simplified_form', 'codigoformafarmaceuticasimplificada')}),
    DictionarySpec('laboratory', 'DICCIONARIO_LABORATORIOS.xml', 'laboratorios', 'laboratorio',
                   {'codigolaboratorio': 'code', 'direccion': 'address',
                    'codigopostal': 'postal_code', 'localidad': 'city', 'cif': 'vat_number'}),
    DictionarySpec('active_ingredient', 'DICCIONARIO_PRINCIPIOS_ACTIVOS.xml', 'principiosactivos',
                   'codigoprincipioactivo',
                   {'principioactivo': 'name', 'nroprincipioactivo': 'number'}),
    DictionarySpec('atc_code', 'DICCIONARIO_ATC.xml', 'atc', 'codigoatc',
                   {'descatc': 'description', 'nroatc': 'number'},
                   strip_code_prefix='description'),
    DictionarySpec('registration_status', 'DICCIONARIO_SITUACION_REGISTRO.xml', 'situacionesregistro',
                   'codigosituacionregistro', {'situacionregistro': 'name'}),
    DictionarySpec('container', 'DICCIONARIO_ENVASES.xml', 'envases', 'codigoenvase',
                   {'envase': 'name'}),
    DictionarySpec('content_unit', 'DICCIONARIO_UNIDAD_CONTENIDO.xml', 'unidadescontenido',
                   'codigounidadcontenido', {'unidadcontenido': 'name'}),
    DictionarySpec('administration_route', 'DICCIONARIO_VIAS_ADMINISTRACION.xml', 'viasadministracion',
                   'codigoviaadministracion', {'viaadministracion': 'name'}),
    DictionarySpec('excipient', 'DICCIONARIO_EXCIPIENTES_DECL_OBLIGATORIA.xml', 'excipientes',
                   'codigoedo', {'edo': 'name'}),
]

_SPECS_BY_FILENAME = {spec.filename.lower(): spec for spec in DICTIONARY_SPECS}


def get_dictionary_spec(entry_name: str) -> Optional[DictionarySpec]:
    """Find the spec for an archive entry by its file name (case-insensitive)."""
    return _SPECS_BY_FILENAME.get(PurePosixPath(entry_name).name.lower())


def seed_rank(entry_name: str) -> int:
    """Position of an entry in seeding order; unknown dictionaries sort last."""
    spec = get_dictionary_spec(entry_name)
    return DICTIONARY_SPECS.index(spec) if spec else len(DICTIONARY_SPECS)


@dataclass
class ParsedDictionary:
    """Entries read from one dictionary document."""
    spec: DictionarySpec
    entries: List[ReferenceEntry] = field(default_factory=list)
    skipped: int = 0        # records without their key field


class DictionaryParser:
    """
    Parses dictionary documents into ReferenceEntry lists.

    Usage:
        parser = DictionaryParser()
        spec = get_dictionary_spec(handle.entry)
        parsed = parser.parse(handle.read(), handle.name, spec)
    """

    def parse(self, content: Union[bytes, str], name: str, spec: DictionarySpec) -> ParsedDictionary:
        """
        Parse one dictionary document.

        Raises:
            ParseError: On malformed or undecodable XML
        """
        root = parse_document(content, name)
        result = ParsedDictionary(spec=spec)

        for record in children(root, spec.record_tag):
            key = child_text(record, spec.key_field)
            if not key:
                result.skipped += 1
                continue

            attributes = {column: child_text(record, tag) for tag, column in spec.attributes.items()}
            if spec.strip_code_prefix and attributes.get(spec.strip_code_prefix):
                attributes[spec.strip_code_prefix] = _strip_code_prefix(
                    attributes[spec.strip_code_prefix], key)

            references = {}
            for column, (kind, tag) in spec.references.items():
                value = child_text(record, tag)
                if value:
                    references[column] = (kind, value)

            result.entries.append(ReferenceEntry(
                kind=spec.kind,
                key=key,
                attributes=attributes,
                references=references,
            ))

        if result.skipped:
            logger.warning("%s: skipped %d records without %s", name, result.skipped, spec.key_field)
        logger.debug("%s: %d %s entries", name, len(result.entries), spec.kind)
        return result


def _strip_code_prefix(value: str, code: str) -> str:
    """'A01 - DIGESTIVE' -> 'DIGESTIVE' for code A01."""
    match = re.match(rf'^\s*{re.escape(code)}\s*-\s*', value)
    if not match:
        return value
    return value[match.end():] or value
