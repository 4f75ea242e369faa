"""
Dump Archive

Enumerates the documents inside the Nomenclátor ZIP archive.

Entries come in two shapes:
- single record: the root element is <prescription>; the entry becomes one
  handle whose content is read lazily by the worker
- container: any other root (the AEMPS dump uses <aemps_prescripcion>)
  holding many <prescription> children; the entry is streamed with lxml
  iterparse and each record becomes its own handle named "<entry>[<n>]"

DICCIONARIO_*.xml entries are reference dictionaries and are only returned
by dictionaries().

Every call to documents() or dictionaries() reopens the archive, so a
DumpArchive can be iterated any number of times.
"""

import logging
import re
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Callable, Iterator, List

from lxml import etree

from ..common.errors import ArchiveError

logger = logging.getLogger(__name__)

RECORD_TAG = 'prescription'
DICTIONARY_PATTERN = re.compile(r'^DICCIONARIO_.+\.xml$', re.IGNORECASE)

# Failures zipfile can raise while inflating one entry
_ENTRY_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, OSError, NotImplementedError)


@dataclass
class DocumentHandle:
    """
    Reference to one document of the archive.

    read() returns the raw document bytes; it raises ArchiveError when the
    underlying entry could not be read.
    """
    name: str
    entry: str
    kind: str               # 'product' | 'dictionary'
    loader: Callable[[], bytes]

    def read(self) -> bytes:
        return self.loader()


def _is_xml(entry_name: str) -> bool:
    return entry_name.lower().endswith('.xml')


def _is_dictionary(entry_name: str) -> bool:
    return bool(DICTIONARY_PATTERN.match(PurePosixPath(entry_name).name))


def _local_name(element) -> str:
    return etree.QName(element).localname


class DumpArchive:
    """
    Restartable view over the dump archive.

    Usage:
        archive = DumpArchive("nomenclator_data/prescripcion.zip")
        archive.validate()
        for handle in archive.dictionaries():
            ...
        for handle in archive.documents():
            content = handle.read()
    """

    def __init__(self, path):
        self.path = Path(path)

    def __iter__(self) -> Iterator[DocumentHandle]:
        return self.documents()

    def _open(self) -> zipfile.ZipFile:
        try:
            return zipfile.ZipFile(self.path)
        except (zipfile.BadZipFile, OSError) as e:
            raise ArchiveError(f"Cannot open archive {self.path}: {e}") from e

    def validate(self) -> List[str]:
        """
        Check that the archive opens and list its XML entries.

        Raises:
            ArchiveError: If the file is missing or not a readable ZIP
        """
        with self._open() as zf:
            names = [info.filename for info in zf.infolist()
                     if not info.is_dir() and _is_xml(info.filename)]
        logger.info("Archive %s: %d XML entries", self.path.name, len(names))
        return names

    # ── Entry access ─────────────────────────────────────────────────────────

    def _entry_loader(self, entry: str) -> Callable[[], bytes]:
        """Loader that reads one entry through its own ZipFile handle."""
        def load() -> bytes:
            try:
                with self._open() as zf:
                    return zf.read(entry)
            except ArchiveError as e:
                raise ArchiveError(str(e), entry=entry) from e
            except (KeyError, *_ENTRY_ERRORS) as e:
                raise ArchiveError(f"Cannot read entry {entry}: {e}", entry=entry) from e
        return load

    @staticmethod
    def _broken_loader(entry: str, cause: Exception) -> Callable[[], bytes]:
        message = f"Cannot read entry {entry}: {cause}"

        def load() -> bytes:
            raise ArchiveError(message, entry=entry)
        return load

    def dictionaries(self) -> Iterator[DocumentHandle]:
        """Yield one handle per DICCIONARIO_*.xml entry, in archive order."""
        with self._open() as zf:
            infos = [info for info in zf.infolist()
                     if not info.is_dir() and _is_dictionary(info.filename)]
        for info in infos:
            yield DocumentHandle(
                name=info.filename,
                entry=info.filename,
                kind='dictionary',
                loader=self._entry_loader(info.filename),
            )

    def documents(self) -> Iterator[DocumentHandle]:
        """
        Yield one handle per product record, in archive order.

        Raises:
            ArchiveError: If the archive itself cannot be opened
        """
        with self._open() as zf:
            for info in zf.infolist():
                if info.is_dir() or not _is_xml(info.filename) or _is_dictionary(info.filename):
                    continue
                yield from self._entry_documents(zf, info)

    def _entry_documents(self, zf: zipfile.ZipFile, info: zipfile.ZipInfo) -> Iterator[DocumentHandle]:
        entry = info.filename
        count = 0
        root_tag = None

        try:
            with zf.open(info) as stream:
                context = etree.iterparse(
                    stream,
                    events=('start', 'end'),
                    resolve_entities=False,
                    no_network=True,
                    huge_tree=True,
                )
                depth = 0
                for event, element in context:
                    if event == 'start':
                        if root_tag is None:
                            root_tag = _local_name(element)
                            if root_tag == RECORD_TAG:
                                break
                        depth += 1
                        continue

                    depth -= 1
                    if depth != 1:
                        continue
                    if _local_name(element) == RECORD_TAG:
                        count += 1
                        content = etree.tostring(element, encoding='UTF-8', xml_declaration=True)
                        yield DocumentHandle(
                            name=f"{entry}[{count}]",
                            entry=entry,
                            kind='product',
                            loader=lambda content=content: content,
                        )
                    element.clear()
                    while element.getprevious() is not None:
                        del element.getparent()[0]
        except (etree.XMLSyntaxError, *_ENTRY_ERRORS) as e:
            if root_tag is None:
                # Root never reached: hand the raw entry to the parser,
                # which reports malformed content per document
                logger.debug("Cannot determine root of %s: %s", entry, e)
                yield DocumentHandle(entry, entry, 'product', self._entry_loader(entry))
                return
            logger.warning("Entry %s is broken after %d records: %s", entry, count, e)
            yield DocumentHandle(
                name=f"{entry}[{count + 1}]",
                entry=entry,
                kind='product',
                loader=self._broken_loader(entry, e),
            )
            return

        if root_tag == RECORD_TAG:
            yield DocumentHandle(entry, entry, 'product', self._entry_loader(entry))
        elif count == 0:
            logger.warning("Container entry %s holds no <%s> records", entry, RECORD_TAG)
        else:
            logger.info("Split %s into %d records", entry, count)
