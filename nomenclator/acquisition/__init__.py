"""
Dump acquisition and extraction.

Modules:
    downloader - ArchiveDownloader streaming the dump ZIP to local storage
    archive - DumpArchive and DocumentHandle enumerating the ZIP's documents
"""

from .archive import DocumentHandle, DumpArchive
from .downloader import DEFAULT_DUMP_URL, ArchiveDownloader

__all__ = [
    'ArchiveDownloader',
    'DEFAULT_DUMP_URL',
    'DocumentHandle',
    'DumpArchive',
]
