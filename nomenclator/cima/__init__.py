"""
AEMPS CIMA REST API integration.

Modules:
    api_client - CimaAPIClient for medicines, presentations, changes,
                 supply problems, segmented documents, safety notes,
                 materials, VMP/VMPP and master catalogues
"""

from .api_client import DEFAULT_BASE_URL, DOCUMENT_TYPES, MAESTRA_TYPES, CimaAPIClient

__all__ = [
    'CimaAPIClient',
    'DEFAULT_BASE_URL',
    'DOCUMENT_TYPES',
    'MAESTRA_TYPES',
]
