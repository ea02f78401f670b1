"""Tests for streaming export archive downloads."""

from unittest import mock

import pytest
import requests

from archive.archive_downloader import ArchiveDownloader
from errors import DownloadError

URL = 'https://file.notion.so/export.zip'


def fake_response(chunks, content_length=None):
    response = mock.MagicMock()
    response.headers = {}
    if content_length is not None:
        response.headers['Content-Length'] = str(content_length)
    response.iter_content.return_value = iter(chunks)
    return response


def make_downloader(response):
    client = mock.MagicMock()
    client.open_download.return_value = response
    return ArchiveDownloader(client, chunk_size=4, show_progress=False), client


class TestDownload:
    """Test successful downloads."""

    def test_writes_stream_to_file(self, tmp_path):
        """Chunks are written in order and the byte count is returned."""
        response = fake_response([b'PK\x03\x04', b'abcd', b'ef'], content_length=10)
        downloader, client = make_downloader(response)
        destination = tmp_path / 'workspace.zip'

        written = downloader.download(URL, 'ft-1', destination)

        assert written == 10
        assert destination.read_bytes() == b'PK\x03\x04abcdef'
        client.open_download.assert_called_once_with(URL, 'ft-1')
        response.iter_content.assert_called_once_with(chunk_size=4)
        response.close.assert_called_once()

    def test_unknown_length(self, tmp_path):
        """Without Content-Length every received byte is accepted."""
        downloader, _ = make_downloader(fake_response([b'abc', b'', b'de']))

        assert downloader.download(URL, 'ft-1', tmp_path / 'a.zip') == 5
        assert downloader.get_stats()['declared_bytes'] is None

    def test_creates_parent_directory(self, tmp_path):
        """The archive's parent directory is created when missing."""
        downloader, _ = make_downloader(fake_response([b'abc'], content_length=3))
        destination = tmp_path / 'downloads' / 'workspace.zip'

        downloader.download(URL, 'ft-1', destination)

        assert destination.exists()


class TestDownloadErrors:
    """Test download failure handling."""

    def test_truncated_stream(self, tmp_path):
        """A stream ending before Content-Length bytes raises DownloadError."""
        downloader, _ = make_downloader(fake_response([b'abcd'], content_length=10))
        destination = tmp_path / 'workspace.zip'

        with pytest.raises(DownloadError, match='4 of 10'):
            downloader.download(URL, 'ft-1', destination)

        assert not destination.exists()

    def test_connection_dropped_mid_stream(self, tmp_path):
        """A transport error while streaming raises DownloadError and removes the file."""
        response = fake_response([], content_length=10)

        def broken_stream(chunk_size):
            yield b'abcd'
            raise requests.exceptions.ChunkedEncodingError("connection reset")

        response.iter_content.side_effect = broken_stream
        downloader, _ = make_downloader(response)
        destination = tmp_path / 'workspace.zip'

        with pytest.raises(DownloadError):
            downloader.download(URL, 'ft-1', destination)

        assert not destination.exists()
        response.close.assert_called_once()

    def test_request_failure(self, tmp_path):
        """HTTP errors opening the stream raise DownloadError."""
        client = mock.MagicMock()
        client.open_download.side_effect = requests.exceptions.HTTPError("403 Forbidden")
        downloader = ArchiveDownloader(client, show_progress=False)

        with pytest.raises(DownloadError):
            downloader.download(URL, 'ft-1', tmp_path / 'workspace.zip')

    def test_invalid_content_length(self, tmp_path):
        """A non-numeric Content-Length raises DownloadError."""
        response = fake_response([b'abc'])
        response.headers['Content-Length'] = 'lots'
        downloader, _ = make_downloader(response)

        with pytest.raises(DownloadError):
            downloader.download(URL, 'ft-1', tmp_path / 'workspace.zip')


class TestFromConfig:
    """Test configuration wiring."""

    def test_from_config(self):
        """Chunk size and progress bars come from the advanced section."""
        config = {'advanced': {'download_chunk_size': 1024, 'progress_bars': False}}

        downloader = ArchiveDownloader.from_config(mock.MagicMock(), config)

        assert downloader.chunk_size == 1024
        assert downloader.show_progress is False
