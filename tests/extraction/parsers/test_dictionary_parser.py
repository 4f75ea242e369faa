"""Tests for nomenclator/extraction/parsers/dictionary_parser.py"""

import pytest

from conftest import dictionary_xml
from nomenclator.common.errors import ParseError
from nomenclator.extraction.parsers.dictionary_parser import (
    DICTIONARY_SPECS,
    DictionaryParser,
    get_dictionary_spec,
    seed_rank,
)
from nomenclator.normalization.tables import reference_table


@pytest.fixture
def parser():
    return DictionaryParser()


class TestSpecs:
    def test_every_spec_targets_known_columns(self):
        for spec in DICTIONARY_SPECS:
            table = reference_table(spec.kind)
            assert set(spec.attributes.values()) <= set(table.columns), spec.filename
            assert set(spec.references) <= set(table.foreign_keys), spec.filename

    def test_seed_order_starts_with_clinical_descriptions(self):
        kinds = [spec.kind for spec in DICTIONARY_SPECS]
        assert kinds[:3] == ["dcsa", "dcp", "dcpf"]
        assert kinds.index("simplified_form") < kinds.index("pharmaceutical_form")
        assert kinds[-1] == "excipient"

    def test_lookup_by_entry_name(self):
        assert get_dictionary_spec("dump/DICCIONARIO_ATC.xml").kind == "atc_code"
        assert get_dictionary_spec("diccionario_atc.XML").kind == "atc_code"
        assert get_dictionary_spec("Prescripcion.xml") is None

    def test_seed_rank(self):
        assert seed_rank("DICCIONARIO_DCSA.xml") < seed_rank("DICCIONARIO_DCP.xml")
        assert seed_rank("DICCIONARIO_UNKNOWN.xml") == len(DICTIONARY_SPECS)


class TestParse:
    def test_atc_prefix_stripped(self, parser):
        xml = dictionary_xml(
            "aemps_prescripcion_atc", "atc",
            {"nroatc": "1", "codigoatc": "A01", "descatc": "A01 - DIGESTIVE"},
            {"nroatc": "2", "codigoatc": "B01", "descatc": "B01 - BLOOD"},
        )
        parsed = parser.parse(xml, "DICCIONARIO_ATC.xml", get_dictionary_spec("DICCIONARIO_ATC.xml"))
        assert [(e.key, e.attributes["description"]) for e in parsed.entries] == [
            ("A01", "DIGESTIVE"), ("B01", "BLOOD"),
        ]
        assert parsed.entries[0].attributes["number"] == "1"

    def test_description_without_prefix_kept(self, parser):
        xml = dictionary_xml("aemps_prescripcion_atc", "atc",
                             {"codigoatc": "A01", "descatc": "DIGESTIVE - TRACT"})
        parsed = parser.parse(xml, "d.xml", get_dictionary_spec("DICCIONARIO_ATC.xml"))
        assert parsed.entries[0].attributes["description"] == "DIGESTIVE - TRACT"

    def test_laboratory_keyed_by_name(self, parser):
        xml = dictionary_xml(
            "aemps_prescripcion_laboratorios", "laboratorios",
            {"codigolaboratorio": "123", "laboratorio": "Acme Labs", "localidad": "Madrid", "cif": "B1234"},
        )
        parsed = parser.parse(xml, "d.xml", get_dictionary_spec("DICCIONARIO_LABORATORIOS.xml"))
        entry = parsed.entries[0]
        assert entry.kind == "laboratory"
        assert entry.key == "Acme Labs"
        assert entry.attributes["code"] == "123"
        assert entry.attributes["city"] == "Madrid"
        assert entry.attributes["vat_number"] == "B1234"
        assert entry.attributes["address"] is None

    def test_references(self, parser):
        xml = dictionary_xml(
            "aemps_prescripcion_dcp", "dcp",
            {"codigodcp": "2001", "nombredcp": "Ibuprofeno 400 mg", "codigodcsa": "1001"},
            {"codigodcp": "2002", "nombredcp": "Sin DCSA"},
        )
        parsed = parser.parse(xml, "d.xml", get_dictionary_spec("DICCIONARIO_DCP.xml"))
        assert parsed.entries[0].references == {"dcsa_id": ("dcsa", "1001")}
        assert parsed.entries[1].references == {}

    def test_records_without_key_skipped(self, parser):
        xml = dictionary_xml(
            "aemps_prescripcion_envases", "envases",
            {"codigoenvase": "7", "envase": "Blister"},
            {"envase": "Sin código"},
        )
        parsed = parser.parse(xml, "d.xml", get_dictionary_spec("DICCIONARIO_ENVASES.xml"))
        assert len(parsed.entries) == 1
        assert parsed.skipped == 1

    def test_malformed(self, parser):
        with pytest.raises(ParseError):
            parser.parse("<aemps_prescripcion_envases>", "d.xml",
                         get_dictionary_spec("DICCIONARIO_ENVASES.xml"))
