"""Shared test fixtures."""

import zipfile
from pathlib import Path

import pytest

from nomenclator.models import (
    AtcClassification,
    AtcDuplicate,
    IngredientComposition,
    PharmaceuticalForm,
    Presentation,
    ProductRecord,
    SupplyProblem,
)


def xml_fields(fields: dict) -> str:
    """Render {tag: text} as sibling elements; None values are left out."""
    return "".join(f"<{tag}>{value}</{tag}>" for tag, value in fields.items() if value is not None)


def prescription_xml(registration_id="51347", name="Test 500mg comprimidos",
                     nested: str = "", **fields) -> str:
    """One <prescription> record; extra keyword fields become child elements."""
    body = xml_fields({"nro_definitivo": registration_id, "des_nomco": name, **fields})
    return f"<prescription>{body}{nested}</prescription>"


def presentation_xml(code="12345678", problems: str = "", **fields) -> str:
    return f"<presentacion>{xml_fields({'cod_nacion': code, **fields})}{problems}</presentacion>"


def container_xml(*records: str) -> str:
    return f"<aemps_prescripcion>{''.join(records)}</aemps_prescripcion>"


def dictionary_xml(root: str, record_tag: str, *records: dict) -> str:
    body = "".join(f"<{record_tag}>{xml_fields(record)}</{record_tag}>" for record in records)
    return f"<{root}>{body}</{root}>"


def write_archive(path: Path, entries: dict) -> Path:
    """Write a ZIP with {entry name: str | bytes} content."""
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in entries.items():
            if isinstance(content, str):
                content = content.encode("utf-8")
            zf.writestr(name, content)
    return path


@pytest.fixture
def make_archive(tmp_path):
    """Factory writing a dump archive under tmp_path."""
    counter = {"n": 0}

    def _make(entries: dict, name: str = None) -> Path:
        counter["n"] += 1
        return write_archive(tmp_path / (name or f"dump{counter['n']}.zip"), entries)

    return _make


@pytest.fixture
def two_product_archive(make_archive):
    """Two products sharing the laboratory 'Acme Labs'; only 51347 has a presentation."""
    return make_archive({
        "51347.xml": prescription_xml(
            "51347", "Acmeprofen 400mg",
            laboratorio_titular="Acme Labs",
            nested=presentation_xml("12345678", des_prese="Acmeprofen 400mg 20 comprimidos"),
        ),
        "51348.xml": prescription_xml("51348", "Acmeprofen 600mg", laboratorio_titular="Acme Labs"),
    })


@pytest.fixture
def full_record():
    """Record populated in every section."""
    return ProductRecord(
        registration_id="51347",
        name="Acmeprofen 400mg comprimidos",
        dosage="400 mg",
        holder_laboratory="Acme Labs",
        marketing_laboratory="Acme Distribución",
        dcsa_code="1001",
        dcp_code="2001",
        dcpf_code="3001",
        registration_status_code="1",
        authorization_date="2001-04-12",
        technical_sheet_url="https://cima.aemps.es/cima/pdfs/ft/51347/FT_51347.pdf",
        flags={"marketed": True, "generic": False},
        presentations=[
            Presentation(
                code="12345678",
                description="Acmeprofen 400mg 20 comprimidos",
                container_code="7",
                content="20",
                content_unit="14",
                marketed=True,
                supply_problems=[SupplyProblem(start_date="2024-01-10", observations="Sin stock")],
            ),
        ],
        forms=[
            PharmaceuticalForm(
                form_code="40",
                simplified_form_code="9",
                active_ingredient_count="1",
                ingredients=[IngredientComposition(
                    active_ingredient_code="160", position="1", dose="400", dose_unit="mg",
                )],
                administration_routes=["48"],
            ),
        ],
        atc_codes=[
            AtcClassification(code="M01AE01", duplicates=[
                AtcDuplicate(atc_code="M01AE02", description="Naproxeno", effect="Duplicidad AINE"),
            ]),
        ],
        source="51347.xml",
    )
