"""
Prescription Parser

Turns one <prescription> document of the Nomenclátor dump into a
ProductRecord.

Presentations appear in two shapes:
- nested <presentacion> elements (directly under the record or inside
  <presentaciones>)
- the flat AEMPS shape, where cod_nacion and the other pack fields sit
  directly under <prescription>; they form one implicit presentation
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Union

from ...common.errors import ParseError
from ...models import (
    PRODUCT_FLAGS,
    AtcClassification,
    AtcDuplicate,
    IngredientComposition,
    PharmaceuticalForm,
    Presentation,
    ProductRecord,
    SupplyProblem,
)
from .xml_utils import child_text, children, local_name, parse_document

logger = logging.getLogger(__name__)

RECORD_TAG = 'prescription'

TRUE_VALUES = {'1', 'true'}
FALSE_VALUES = {'0', 'false'}

DATE_FORMATS = ('%d/%m/%Y', '%d-%m-%Y', '%Y-%m-%d')


class PrescriptionParser:
    """
    Parses product documents into ProductRecords.

    The parser holds no state between documents, so one instance can be
    shared by every worker.

    Usage:
        parser = PrescriptionParser()
        record = parser.parse(handle.read(), handle.name)
    """

    def parse(self, content: Union[bytes, str], name: str) -> ProductRecord:
        """
        Parse one product document.

        Args:
            content: Raw document (bytes honour the XML encoding declaration)
            name: Document name used in error messages

        Returns:
            ProductRecord

        Raises:
            ParseError: On malformed XML, a missing <prescription> record,
                missing required fields, or malformed flags and dates
        """
        root = parse_document(content, name)
        record = self._find_record(root, name)
        return self._build_record(record, name)

    def _find_record(self, root, name: str):
        if local_name(root) == RECORD_TAG:
            return root
        records = children(root, RECORD_TAG)
        if len(records) != 1:
            raise ParseError(name, f"expected one <{RECORD_TAG}> record, found {len(records)}")
        return records[0]

    # ── Record ───────────────────────────────────────────────────────────────

    def _build_record(self, element, name: str) -> ProductRecord:
        registration_id = child_text(element, 'nro_definitivo')
        if not registration_id:
            raise ParseError(name, "missing required field nro_definitivo")
        product_name = child_text(element, 'des_nomco')
        if not product_name:
            raise ParseError(name, "missing required field des_nomco")

        flags: Dict[str, Optional[bool]] = {
            column: self._flag(element, tag, name)
            for tag, column in PRODUCT_FLAGS.items()
        }

        return ProductRecord(
            registration_id=registration_id,
            name=product_name,
            dosage=child_text(element, 'des_dosific'),
            holder_laboratory=child_text(element, 'laboratorio_titular'),
            marketing_laboratory=child_text(element, 'laboratorio_comercializador'),
            dcsa_code=child_text(element, 'cod_dcsa'),
            dcp_code=child_text(element, 'cod_dcp'),
            dcpf_code=child_text(element, 'cod_dcpf'),
            registration_status_code=child_text(element, 'cod_sitreg'),
            authorization_date=self._date(element, 'fecha_autorizacion', name),
            registration_status_date=self._date(element, 'fecha_situacion_registro', name),
            technical_sheet_url=child_text(element, 'url_fictec'),
            leaflet_url=child_text(element, 'url_prosp'),
            flags=flags,
            presentations=self._presentations(element, name),
            forms=[self._form(form) for form in children(element, 'formasfarmaceuticas')],
            atc_codes=self._atc_codes(element),
            source=name,
        )

    # ── Presentations ────────────────────────────────────────────────────────

    def _presentations(self, record, name: str) -> List[Presentation]:
        elements = children(record, 'presentacion')
        for group in children(record, 'presentaciones'):
            elements.extend(children(group, 'presentacion'))

        presentations = [self._presentation(element, name)
                         for element in elements]

        # Flat shape: pack fields, sw_comercializado included, directly under the record
        if child_text(record, 'cod_nacion'):
            presentations.insert(0, self._presentation(record, name))

        return presentations

    def _presentation(self, element, name: str) -> Presentation:
        code = child_text(element, 'cod_nacion')
        if not code:
            raise ParseError(name, "presentation without cod_nacion")

        return Presentation(
            code=code,
            description=child_text(element, 'des_prese'),
            container_code=child_text(element, 'cod_envase'),
            content=child_text(element, 'contenido'),
            content_unit=child_text(element, 'unid_contenido'),
            unit_count=child_text(element, 'nro_conte'),
            clinical_package=self._flag(element, 'sw_envase_clinico', name),
            marketed=self._flag(element, 'sw_comercializado', name),
            marketing_date=self._date(element, 'fec_comer', name),
            registration_status_code=child_text(element, 'cod_sitreg_presen'),
            registration_status_date=self._date(element, 'fec_sitreg_presen', name),
            supply_problems=[
                SupplyProblem(
                    start_date=self._date(problem, 'fecha_inicio', name),
                    end_date=self._date(problem, 'fecha_fin', name),
                    observations=child_text(problem, 'observaciones'),
                )
                for problem in children(element, 'problemassuministro')
            ],
        )

    # ── Forms and ATC ────────────────────────────────────────────────────────

    def _form(self, element) -> PharmaceuticalForm:
        ingredients = [
            IngredientComposition(
                active_ingredient_code=child_text(composition, 'cod_principio_activo'),
                position=child_text(composition, 'orden_colacion'),
                dose=child_text(composition, 'dosis_pa'),
                dose_unit=child_text(composition, 'unidad_dosis_pa'),
                composition_dose=child_text(composition, 'dosis_composicion'),
                composition_unit=child_text(composition, 'unidad_composicion'),
                administration_dose=child_text(composition, 'dosis_administracion'),
                administration_unit=child_text(composition, 'unidad_administracion'),
                prescription_dose=child_text(composition, 'dosis_prescripcion'),
                prescription_unit=child_text(composition, 'unidad_prescripcion'),
            )
            for composition in children(element, 'composicion_pa')
        ]

        routes = []
        for route in children(element, 'viasadministracion'):
            code = child_text(route, 'cod_via_admin')
            if code:
                routes.append(code)

        return PharmaceuticalForm(
            form_code=child_text(element, 'cod_forfar'),
            simplified_form_code=child_text(element, 'cod_forfar_simplificada'),
            active_ingredient_count=child_text(element, 'nro_pactiv'),
            ingredients=ingredients,
            administration_routes=routes,
        )

    def _atc_codes(self, record) -> List[AtcClassification]:
        result = []
        for element in children(record, 'atc'):
            code = child_text(element, 'cod_atc')
            if not code:
                logger.debug("Skipping <atc> without cod_atc")
                continue
            duplicates = []
            for duplicate in children(element, 'duplicidades'):
                duplicate_code = child_text(duplicate, 'atc_duplicidad')
                if not duplicate_code:
                    continue
                duplicates.append(AtcDuplicate(
                    atc_code=duplicate_code,
                    description=child_text(duplicate, 'descripcion_atc_duplicidad'),
                    effect=child_text(duplicate, 'efecto_duplicidad'),
                    recommendation=child_text(duplicate, 'recomendacion_duplicidad'),
                ))
            result.append(AtcClassification(code=code, duplicates=duplicates))
        return result

    # ── Scalars ──────────────────────────────────────────────────────────────

    @staticmethod
    def _flag(element, tag: str, name: str) -> Optional[bool]:
        value = child_text(element, tag)
        if value is None:
            return None
        lowered = value.lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
        raise ParseError(name, f"invalid flag {tag}={value!r}")

    @staticmethod
    def _date(element, tag: str, name: str) -> Optional[str]:
        value = child_text(element, tag)
        if value is None:
            return None
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(value, fmt).date().isoformat()
            except ValueError:
                continue
        raise ParseError(name, f"invalid date {tag}={value!r}")
