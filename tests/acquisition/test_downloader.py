"""Tests for nomenclator/acquisition/downloader.py"""

from unittest.mock import MagicMock

import pytest
import requests

from nomenclator.acquisition.downloader import ArchiveDownloader
from nomenclator.common.errors import TransferError


class FakeResponse:
    """Streaming response stand-in usable as a context manager."""

    def __init__(self, status_code=200, chunks=(b"PK",), headers=None, fail_after=None):
        self.status_code = status_code
        self.chunks = list(chunks)
        self.headers = headers or {}
        self.fail_after = fail_after

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False

    def iter_content(self, chunk_size=None):
        for index, chunk in enumerate(self.chunks):
            if self.fail_after is not None and index == self.fail_after:
                raise requests.exceptions.ChunkedEncodingError("connection reset")
            yield chunk


def make_downloader(response=None, error=None):
    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = response
    return ArchiveDownloader(url="https://example.test/prescripcion.zip", session=session), session


class TestDownload:
    def test_writes_archive(self, tmp_path):
        response = FakeResponse(chunks=[b"abc", b"", b"def"], headers={"Content-Length": "6"})
        downloader, session = make_downloader(response)

        path = downloader.download(tmp_path / "data" / "prescripcion.zip")

        assert path.read_bytes() == b"abcdef"
        session.get.assert_called_once()
        assert session.get.call_args.kwargs["stream"] is True

    def test_no_content_length(self, tmp_path):
        downloader, _ = make_downloader(FakeResponse(chunks=[b"abc"]))
        path = downloader.download(tmp_path / "prescripcion.zip")
        assert path.read_bytes() == b"abc"

    def test_leaves_no_temp_files(self, tmp_path):
        downloader, _ = make_downloader(FakeResponse(chunks=[b"abc"]))
        downloader.download(tmp_path / "prescripcion.zip")
        assert [p.name for p in tmp_path.iterdir()] == ["prescripcion.zip"]


class TestFailures:
    def test_http_error_status(self, tmp_path):
        downloader, _ = make_downloader(FakeResponse(status_code=503))
        with pytest.raises(TransferError, match="HTTP 503"):
            downloader.download(tmp_path / "prescripcion.zip")
        assert list(tmp_path.iterdir()) == []

    def test_connection_error(self, tmp_path):
        downloader, _ = make_downloader(error=requests.exceptions.ConnectionError("refused"))
        with pytest.raises(TransferError, match="refused"):
            downloader.download(tmp_path / "prescripcion.zip")

    def test_truncated_body(self, tmp_path):
        response = FakeResponse(chunks=[b"abc"], headers={"Content-Length": "10"})
        downloader, _ = make_downloader(response)
        with pytest.raises(TransferError, match="got 3 of 10 bytes"):
            downloader.download(tmp_path / "prescripcion.zip")
        assert list(tmp_path.iterdir()) == []

    def test_stream_interrupted(self, tmp_path):
        response = FakeResponse(chunks=[b"abc", b"def"], fail_after=1)
        downloader, _ = make_downloader(response)
        with pytest.raises(TransferError):
            downloader.download(tmp_path / "prescripcion.zip")
        assert list(tmp_path.iterdir()) == []

    def test_failure_keeps_previous_archive(self, tmp_path):
        target = tmp_path / "prescripcion.zip"
        target.write_bytes(b"old")
        downloader, _ = make_downloader(FakeResponse(status_code=404))
        with pytest.raises(TransferError):
            downloader.download(target)
        assert target.read_bytes() == b"old"
