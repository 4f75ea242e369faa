"""
Product record models.

Pure data classes for one parsed prescription record.
No business logic - only data structure definitions.

Repeated nested elements are always lists (possibly empty), never None;
optional scalar fields are None when the source omits them.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class SupplyProblem:
    """Supply problem reported for a presentation."""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    observations: Optional[str] = None


@dataclass
class Presentation:
    """A sellable pack of a product, identified by its national code."""
    code: str                                   # cod_nacion
    description: Optional[str] = None           # des_prese
    container_code: Optional[str] = None        # cod_envase
    content: Optional[str] = None               # contenido
    content_unit: Optional[str] = None          # unid_contenido
    unit_count: Optional[str] = None            # nro_conte
    clinical_package: Optional[bool] = None     # sw_envase_clinico
    marketed: Optional[bool] = None             # sw_comercializado
    marketing_date: Optional[str] = None        # fec_comer
    registration_status_code: Optional[str] = None  # cod_sitreg_presen
    registration_status_date: Optional[str] = None  # fec_sitreg_presen
    supply_problems: List[SupplyProblem] = field(default_factory=list)

    def __post_init__(self):
        if not self.code:
            raise ValueError("Presentation code is required")


@dataclass(frozen=True)
class IngredientComposition:
    """Active ingredient dosage within a pharmaceutical form."""
    active_ingredient_code: Optional[str] = None
    position: Optional[str] = None              # orden_colacion
    dose: Optional[str] = None
    dose_unit: Optional[str] = None
    composition_dose: Optional[str] = None
    composition_unit: Optional[str] = None
    administration_dose: Optional[str] = None
    administration_unit: Optional[str] = None
    prescription_dose: Optional[str] = None
    prescription_unit: Optional[str] = None


@dataclass
class PharmaceuticalForm:
    """Pharmaceutical form with its composition and administration routes."""
    form_code: Optional[str] = None
    simplified_form_code: Optional[str] = None
    active_ingredient_count: Optional[str] = None
    ingredients: List[IngredientComposition] = field(default_factory=list)
    administration_routes: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AtcDuplicate:
    """Therapeutic duplicity warning between two ATC codes."""
    atc_code: str
    description: Optional[str] = None
    effect: Optional[str] = None
    recommendation: Optional[str] = None


@dataclass
class AtcClassification:
    """ATC code assigned to a product."""
    code: str
    duplicates: List[AtcDuplicate] = field(default_factory=list)


# Source flag element -> products table column
PRODUCT_FLAGS: Dict[str, str] = {
    'sw_comercializado': 'marketed',
    'sw_psicotropo': 'psychotropic',
    'sw_estupefaciente': 'narcotic',
    'sw_afecta_conduccion': 'affects_driving',
    'sw_triangulo_negro': 'black_triangle',
    'sw_receta': 'prescription_required',
    'sw_generico': 'generic',
    'sw_sustituible': 'substitutable',
    'sw_uso_hospitalario': 'hospital_use',
    'sw_diagnostico_hospitalario': 'hospital_diagnosis',
    'sw_tld': 'long_term_treatment',
    'sw_especial_control_medico': 'special_medical_control',
    'sw_huerfano': 'orphan',
    'sw_base_a_plantas': 'plant_based',
    'sw_tiene_excipientes_decl_obligatoria': 'has_mandatory_excipients',
    'biosimilar': 'biosimilar',
    'importacion_paralela': 'parallel_import',
    'radiofarmaco': 'radiopharmaceutical',
    'serializacion': 'serialization',
}


@dataclass
class ProductRecord:
    """
    One medicinal product parsed from a single document.

    Field Groups:
    - Identity: registration id (primary key across the run) and name
    - Reference keys: natural keys of laboratories, clinical descriptions
      (DCSA/DCP/DCPF) and registration status
    - Dates and document URLs
    - Flags: keyed by products table column, None when not declared
    - Nested collections: presentations, pharmaceutical forms, ATC codes
    """

    # Identity (required)
    registration_id: str
    name: str

    # Reference natural keys
    dosage: Optional[str] = None
    holder_laboratory: Optional[str] = None
    marketing_laboratory: Optional[str] = None
    dcsa_code: Optional[str] = None
    dcp_code: Optional[str] = None
    dcpf_code: Optional[str] = None
    registration_status_code: Optional[str] = None

    # Dates (ISO yyyy-mm-dd) and URLs
    authorization_date: Optional[str] = None
    registration_status_date: Optional[str] = None
    technical_sheet_url: Optional[str] = None
    leaflet_url: Optional[str] = None

    flags: Dict[str, Optional[bool]] = field(default_factory=dict)

    presentations: List[Presentation] = field(default_factory=list)
    forms: List[PharmaceuticalForm] = field(default_factory=list)
    atc_codes: List[AtcClassification] = field(default_factory=list)

    # Name of the document the record came from (for error reporting)
    source: str = ""

    def __post_init__(self):
        """Validate required fields after initialization."""
        if not self.registration_id:
            raise ValueError("Product registration id is required")
        if not self.name:
            raise ValueError("Product name is required")
