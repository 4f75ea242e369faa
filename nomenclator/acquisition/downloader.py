"""
Archive Downloader

Fetches the Nomenclátor dump from the AEMPS site.

The archive is streamed into a temporary file next to the destination and
moved into place only after the full body has arrived, so a failed or
truncated download never leaves a partial archive at the destination path.
Retrying is left to the caller.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

import requests

from ..common.errors import TransferError

logger = logging.getLogger(__name__)

DEFAULT_DUMP_URL = "https://listadomedicamentos.aemps.gob.es/prescripcion.zip"


class ArchiveDownloader:
    """
    Streams the dump archive to local storage.

    Usage:
        downloader = ArchiveDownloader()
        path = downloader.download("nomenclator_data/prescripcion.zip")
    """

    USER_AGENT = "nomenclator-table-builder/1.0"

    def __init__(
        self,
        url: str = DEFAULT_DUMP_URL,
        session: Optional[requests.Session] = None,
        timeout: int = 300,
        chunk_size: int = 1024 * 1024,
    ):
        """
        Args:
            url: Location of the dump archive
            session: Optional pre-configured session (tests inject a mock)
            timeout: Connect/read timeout in seconds
            chunk_size: Bytes per streamed chunk
        """
        self.url = url
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": self.USER_AGENT})

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.session.close()

    def close(self):
        self.session.close()

    def download(self, destination) -> Path:
        """
        Download the archive to destination.

        Args:
            destination: Target file path; its directory is created if needed

        Returns:
            Path of the completed archive

        Raises:
            TransferError: On network failure, non-success status, or a body
                shorter than the announced Content-Length
        """
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)

        logger.info("Downloading %s -> %s", self.url, destination)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{destination.name}.", suffix=".part", dir=destination.parent
        )
        try:
            with os.fdopen(fd, "wb") as tmp_file:
                received, expected = self._stream_to(tmp_file)

            if expected is not None and received < expected:
                raise TransferError(
                    f"Truncated download from {self.url}: got {received} of {expected} bytes"
                )

            os.replace(tmp_name, destination)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.info("Downloaded %d bytes", received)
        return destination

    def _stream_to(self, sink):
        """Write the response body to sink, returning (received, expected)."""
        try:
            with self.session.get(self.url, stream=True, timeout=self.timeout) as response:
                if not 200 <= response.status_code < 300:
                    raise TransferError(f"HTTP {response.status_code} fetching {self.url}")

                expected = self._content_length(response)
                received = 0
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if not chunk:
                        continue
                    sink.write(chunk)
                    received += len(chunk)
                return received, expected
        except requests.exceptions.RequestException as e:
            raise TransferError(f"Failed to download {self.url}: {e}") from e
        except OSError as e:
            raise TransferError(f"Failed to store download from {self.url}: {e}") from e

    @staticmethod
    def _content_length(response) -> Optional[int]:
        value = response.headers.get("Content-Length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            logger.warning("Ignoring invalid Content-Length header: %r", value)
            return None
