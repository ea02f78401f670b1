"""Streaming downloader for finished export archives."""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Union

import requests
from tqdm import tqdm

from errors import DownloadError
from notion_client import NotionClient

DEFAULT_CHUNK_SIZE = 64 * 1024


class ArchiveDownloader:
    """
    Streams an export archive to disk without buffering it in memory.

    A download is only successful when the number of bytes written matches the
    declared Content-Length. Failed downloads are not retried and leave no
    partial file behind.
    """

    def __init__(
        self,
        client: NotionClient,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        show_progress: bool = True,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize archive downloader.

        Args:
            client: NotionClient used to open the download stream
            chunk_size: Bytes read per chunk
            show_progress: Show a tqdm progress bar when attached to a TTY
            logger: Optional logger instance
        """
        self.client = client
        self.chunk_size = chunk_size
        self.show_progress = show_progress
        self.logger = logger or logging.getLogger('notion_workspace_exporter.archive.archive_downloader')

        self.stats = {
            'declared_bytes': None,
            'bytes_written': 0,
            'chunks_written': 0,
        }

    def download(self, reference: str, file_token: str, destination_path: Union[str, Path]) -> int:
        """
        Download an export archive to destination_path.

        Args:
            reference: Export URL reported by the finished task
            file_token: file_token cookie bound to the URL
            destination_path: Local file to write

        Returns:
            Number of bytes written

        Raises:
            DownloadError: On transport errors, write errors or a truncated stream
        """
        destination = Path(destination_path)
        self.stats = {'declared_bytes': None, 'bytes_written': 0, 'chunks_written': 0}

        try:
            response = self.client.open_download(reference, file_token)
        except requests.exceptions.RequestException as e:
            raise DownloadError(f"Failed to start download: {e}") from e

        try:
            declared = self._declared_length(response)
            self.stats['declared_bytes'] = declared
            if declared is not None:
                self.logger.info(f"Downloading {round(declared / 1000 / 1000, 2)}mb...")
            else:
                self.logger.info("Downloading export archive (size unknown)...")

            self._stream_to_file(response, destination, declared)
        except (requests.exceptions.RequestException, OSError) as e:
            self._remove_partial(destination)
            raise DownloadError(f"Download of {destination.name} failed: {e}") from e
        except DownloadError:
            self._remove_partial(destination)
            raise
        finally:
            response.close()

        bytes_written = self.stats['bytes_written']
        if declared is not None and bytes_written < declared:
            self._remove_partial(destination)
            raise DownloadError(
                f"Download terminated early: received {bytes_written} of {declared} bytes"
            )

        self.logger.info(
            f"Download complete: {bytes_written} bytes in {self.stats['chunks_written']} chunks "
            f"-> {destination}"
        )
        return bytes_written

    def _stream_to_file(self, response: requests.Response, destination: Path, declared: Optional[int]) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)

        progress = None
        if self._should_show_progress():
            progress = tqdm(total=declared, unit='B', unit_scale=True, desc=destination.name, leave=False)

        try:
            with open(destination, 'wb') as f:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if not chunk:
                        continue
                    f.write(chunk)
                    self.stats['bytes_written'] += len(chunk)
                    self.stats['chunks_written'] += 1
                    if progress is not None:
                        progress.update(len(chunk))

                    if self.stats['chunks_written'] % 100 == 0:
                        self.logger.debug(f"Downloaded {self.stats['bytes_written']} bytes")
        finally:
            if progress is not None:
                progress.close()

    @staticmethod
    def _declared_length(response: requests.Response) -> Optional[int]:
        value = response.headers.get('Content-Length')
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            raise DownloadError(f"Invalid Content-Length header: {value!r}")

    def _remove_partial(self, destination: Path) -> None:
        try:
            destination.unlink(missing_ok=True)
        except OSError as e:
            self.logger.warning(f"Could not remove partial download {destination}: {e}")

    def _should_show_progress(self) -> bool:
        """Check if progress bars should be displayed."""
        if not self.show_progress:
            return False
        return sys.stdout.isatty()

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics of the last download."""
        return self.stats.copy()

    @classmethod
    def from_config(cls, client: NotionClient, config: Dict[str, Any]) -> 'ArchiveDownloader':
        """Initialize downloader from the 'advanced' configuration section."""
        advanced_config = config.get('advanced', {})
        return cls(
            client=client,
            chunk_size=advanced_config.get('download_chunk_size', DEFAULT_CHUNK_SIZE),
            show_progress=advanced_config.get('progress_bars', True),
        )
