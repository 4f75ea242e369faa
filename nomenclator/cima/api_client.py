"""
CIMA API Client

Read-only client for the AEMPS CIMA REST API: medicines, presentations,
registration changes, supply problems, segmented documents, safety notes,
informative materials, clinical descriptions (VMP/VMPP) and master catalogues.

The table builder itself never calls CIMA; the client is used to look up
individual products next to a build (see scripts/query_cima.py).
"""

import logging
import time
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import requests

from ..common.errors import CimaAPIError, CimaNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://cima.aemps.es/cima/rest"

# Master catalogue ids accepted by the "maestras" endpoint
MAESTRA_TYPES = {
    'pa': 1,    # active ingredients
    'ff': 3,    # pharmaceutical forms
    'va': 4,    # administration routes
    'lab': 6,   # laboratories
    'atc': 7,   # ATC codes
}

# Document types of the segmented document endpoints
DOCUMENT_TYPES = {
    'ft': 1,    # technical sheet
    'p': 2,     # package leaflet
    'ipe': 3,   # public assessment report
    'pgr': 4,   # risk management plan
}

Params = List[Tuple[str, str]]


def _param_value(value: Any) -> str:
    if isinstance(value, bool):
        return '1' if value else '0'
    return str(value)


def _to_params(filters: Dict[str, Any]) -> Params:
    """Turn keyword filters into query pairs; lists become repeated keys, None is dropped."""
    params: Params = []
    for key, value in filters.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            params.extend((key, _param_value(item)) for item in value)
        else:
            params.append((key, _param_value(value)))
    return params


def _document_type(tipo_doc: Union[str, int]) -> int:
    if isinstance(tipo_doc, str):
        if tipo_doc not in DOCUMENT_TYPES:
            raise ValueError(f"Unknown document type {tipo_doc!r}. Supported: {', '.join(DOCUMENT_TYPES)}")
        return DOCUMENT_TYPES[tipo_doc]
    return tipo_doc


def _document_params(nregistro: Optional[str], cn: Optional[str]) -> Params:
    if not nregistro and not cn:
        raise ValueError("Provide nregistro or cn")
    return _to_params({'nregistro': nregistro, 'cn': cn})


class CimaAPIClient:
    """
    Client for the CIMA REST API.

    Handles:
    - Retries with Retry-After backoff on 429/502/503/504
    - Mapping of "no such entity" answers (404, 204, empty body) to
      CimaNotFoundError and every other failure to CimaAPIError
    - Pagination of list endpoints

    Usage:
        with CimaAPIClient() as client:
            medicine = client.get_medicamento(nregistro="51347")
            for item in client.iter_medicamentos(nombre="paracetamol"):
                print(item["nombre"])
    """

    MAX_RETRIES = 5
    RETRYABLE_STATUS_CODES = {429, 502, 503, 504}
    NOT_FOUND_STATUS_CODES = {204, 404}

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: int = 30,
                 session: Optional[requests.Session] = None):
        """
        Initialize the API client.

        Args:
            base_url: API root (default: production CIMA)
            timeout: Request timeout in seconds
            session: Optional pre-configured session (tests inject a mock)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        self.requests_made = 0

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.session.close()

    def close(self):
        self.session.close()

    def _request(self, endpoint: str, params: Optional[Params] = None) -> Any:
        """
        GET an endpoint and decode its JSON body.

        Raises:
            CimaNotFoundError: On 404, 204 or an empty body
            CimaAPIError: On transport failure, another non-success status,
                exhausted retries, or invalid JSON
        """
        url = f"{self.base_url}/{endpoint}"

        for attempt in range(self.MAX_RETRIES):
            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                raise CimaAPIError(f"Request to {endpoint} failed: {e}") from e
            self.requests_made += 1

            # Retry on rate limiting or server errors
            if response.status_code in self.RETRYABLE_STATUS_CODES:
                retry_after = self._retry_after(response, attempt)
                logger.warning("HTTP %d on %s, retry %d/%d in %ds...",
                               response.status_code, endpoint, attempt + 1,
                               self.MAX_RETRIES, retry_after)
                time.sleep(retry_after)
                continue

            if response.status_code in self.NOT_FOUND_STATUS_CODES:
                raise CimaNotFoundError(f"No result for {endpoint} {params or ''}".rstrip(),
                                        status_code=response.status_code)

            if response.status_code >= 400:
                raise CimaAPIError(f"API Error {response.status_code} on {endpoint}: {response.text[:200]}",
                                   status_code=response.status_code)

            if not response.content or not response.content.strip():
                raise CimaNotFoundError(f"Empty response for {endpoint}", status_code=response.status_code)

            try:
                return response.json()
            except ValueError as e:
                raise CimaAPIError(f"Invalid JSON from {endpoint}: {e}",
                                   status_code=response.status_code) from e

        raise CimaAPIError(f"Max retries ({self.MAX_RETRIES}) exceeded for {endpoint}")

    @staticmethod
    def _retry_after(response, attempt: int) -> int:
        try:
            return int(response.headers.get("Retry-After", 2 ** attempt))
        except (TypeError, ValueError):
            return 2 ** attempt

    # ── Medicines ────────────────────────────────────────────────────────────

    def get_medicamento(self, nregistro: Optional[str] = None, cn: Optional[str] = None) -> Dict:
        """
        Get one medicine by registration number or national code.

        Raises:
            ValueError: If neither key is given
        """
        if not nregistro and not cn:
            raise ValueError("Provide nregistro or cn")
        return self._request("medicamento", _to_params({'nregistro': nregistro, 'cn': cn}))

    def search_medicamentos(self, **filters) -> Dict:
        """
        Search medicines; returns one page (totalFilas, pagina, tamanioPagina, resultados).

        Common filters: nombre, laboratorio, practiv1, cn, atc, nregistro,
        comerc, receta, generico, pagina.
        """
        return self._request("medicamentos", _to_params(filters))

    def iter_medicamentos(self, **filters) -> Iterator[Dict]:
        """Yield every medicine matching filters, following pagination."""
        return self._paginate("medicamentos", filters)

    # ── Presentations ────────────────────────────────────────────────────────

    def get_presentacion(self, cn: str) -> Dict:
        return self._request(f"presentacion/{cn}")

    def search_presentaciones(self, **filters) -> Dict:
        return self._request("presentaciones", _to_params(filters))

    # ── Changes and supply ───────────────────────────────────────────────────

    def get_registro_cambios(self, fecha: str, nregistros: Optional[Sequence[str]] = None) -> Dict:
        """
        Registration changes since fecha.

        Args:
            fecha: Start of the date range, dd/mm/yyyy
            nregistros: Optional registration numbers to restrict the result
        """
        return self._request("registroCambios",
                             _to_params({'fecha': fecha, 'nregistro': list(nregistros or [])}))

    def get_problemas_suministro(self, cn: Optional[str] = None) -> Dict:
        """Supply problems for one national code, or all current ones."""
        if cn:
            return self._request(f"psuministro/{cn}")
        return self._request("psuministro")

    # ── Segmented documents ──────────────────────────────────────────────────

    def get_secciones(self, tipo_doc: Union[str, int], nregistro: Optional[str] = None,
                      cn: Optional[str] = None) -> List[Dict]:
        """
        Section list (numbers and titles, no text) of a product document.

        Args:
            tipo_doc: 'ft', 'p', 'ipe', 'pgr' or the numeric document type
            nregistro: Registration number
            cn: National code, instead of nregistro

        Raises:
            ValueError: On an unknown tipo_doc or when neither key is given
        """
        return self._request(f"docSegmentado/secciones/{_document_type(tipo_doc)}",
                             _document_params(nregistro, cn))

    def get_contenido(self, tipo_doc: Union[str, int], nregistro: Optional[str] = None,
                      cn: Optional[str] = None, seccion: Optional[str] = None) -> List[Dict]:
        """Section texts of a product document; all sections unless seccion (e.g. '4.2') is given."""
        params = _document_params(nregistro, cn) + _to_params({'seccion': seccion})
        return self._request(f"docSegmentado/contenido/{_document_type(tipo_doc)}", params)

    # ── Safety notes and materials ───────────────────────────────────────────

    def get_notas(self, nregistro: str) -> List[Dict]:
        """Safety notes referencing a medicine."""
        return self._request("notas", _to_params({'nregistro': nregistro}))

    def get_materiales(self, nregistro: str) -> Dict:
        # One object (not a list) with the material groups of the medicine
        return self._request("materiales", _to_params({'nregistro': nregistro}))

    # ── Clinical descriptions ────────────────────────────────────────────────

    def search_vmpp(self, modo_arbol: bool = False, **filters) -> Dict:
        """
        Search clinical descriptions (VMP/VMPP); returns one page.

        Common filters: practiv1, idpractiv1, dosis, forma, atc, nombre, pagina.
        modo_arbol asks for the hierarchical VMP -> VMPP result.
        """
        params = _to_params(filters)
        if modo_arbol:
            params.append(('modoArbol', 'true'))
        return self._request("vmpp", params)

    # ── Master catalogues ────────────────────────────────────────────────────

    def get_maestra(self, tipo: Union[str, int], **filters) -> Dict:
        """
        Query a master catalogue.

        Args:
            tipo: 'pa', 'ff', 'va', 'lab', 'atc' or the numeric catalogue id
            **filters: nombre, id, codigo, estupefaciente, psicotropo,
                estuopsico, enuso, pagina; at least one is required since
                the API answers 204 to an unfiltered query

        Raises:
            ValueError: On an unknown tipo or no filters
        """
        if isinstance(tipo, str):
            if tipo not in MAESTRA_TYPES:
                raise ValueError(f"Unknown maestra {tipo!r}. Supported: {', '.join(MAESTRA_TYPES)}")
            tipo = MAESTRA_TYPES[tipo]
        params = _to_params(filters)
        if not [key for key, _ in params if key != 'pagina']:
            raise ValueError("get_maestra needs at least one filter")
        return self._request("maestras", [('maestra', str(tipo))] + params)

    # ── Pagination ───────────────────────────────────────────────────────────

    def _paginate(self, endpoint: str, filters: Dict[str, Any]) -> Iterator[Dict]:
        filters = dict(filters)
        page = int(filters.pop('pagina', 1))

        while True:
            try:
                data = self._request(endpoint, _to_params({**filters, 'pagina': page}))
            except CimaNotFoundError:
                return

            results = data.get('resultados') or []
            yield from results

            total = int(data.get('totalFilas') or 0)
            page_size = int(data.get('tamanioPagina') or len(results) or 1)
            current = int(data.get('pagina') or page)
            if not results or current * page_size >= total:
                return
            page = current + 1
