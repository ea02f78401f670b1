"""
Export orchestrator for coordinating the complete workspace export pipeline.

This module sequences all phases: Export → Download → Extract → Cleanup.
Any failure aborts the run. The archive is flattened into a staging directory
next to the destination, which replaces the previous export only once it is complete.
"""

import logging
import shutil
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from archive import ArchiveDownloader, ArchiveNormalizer
from errors import ExtractionError
from exporters import ExportJobDriver
from logger import log_section
from notion_client import NotionClient
from orchestrator.export_report import ExportReport


class ExportOrchestrator:
    """Central coordinator sequencing all export phases: Export → Download → Extract → Cleanup."""

    def __init__(
        self,
        config: Dict[str, Any],
        client: Optional[NotionClient] = None,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize export orchestrator.

        Args:
            config: Validated configuration dictionary
            client: Optional NotionClient (created from config by default)
            sleep: Sleep function handed to the export job driver
            logger: Optional logger instance
        """
        self.config = config
        self.logger = logger or logging.getLogger('notion_workspace_exporter.orchestrator')
        self._owns_client = client is None
        self.client = client or NotionClient.from_config(config)

        export_config = config.get('export', {})
        self.output_dir = Path(export_config.get('output_directory', './workspace'))
        resolved_output = self.output_dir.resolve()
        self.staging_dir = resolved_output.parent / f".{resolved_output.name}.partial"
        self.archive_path = Path(export_config.get('archive_path', './workspace.zip'))
        self.keep_archive = export_config.get('keep_archive', False)

        self.driver = ExportJobDriver.from_config(self.client, config, sleep=sleep)
        self.downloader = ArchiveDownloader.from_config(self.client, config)
        self.normalizer = ArchiveNormalizer()
        self.report_generator = ExportReport()

        self.logger.info(
            f"ExportOrchestrator initialized: output={self.output_dir}, archive={self.archive_path}"
        )

    def run(self) -> Dict[str, Any]:
        """
        Run the complete export pipeline.

        Returns:
            Report dictionary

        Raises:
            ExportError: Any failure in any phase
        """
        try:
            return self._run_phases()
        finally:
            if self._owns_client:
                self.client.close()

    def _run_phases(self) -> Dict[str, Any]:
        start_time = time.time()
        phase_stats: Dict[str, Dict[str, Any]] = {}

        log_section("Export")
        phase_start = time.time()
        result = self.driver.run()
        phase_stats['export'] = {
            **result.to_dict(),
            'duration': time.time() - phase_start,
        }

        log_section("Download")
        phase_start = time.time()
        bytes_written = self.downloader.download(result.download_url, result.file_token, self.archive_path)
        phase_stats['download'] = {
            'bytes': bytes_written,
            'archive_path': str(self.archive_path),
            'duration': time.time() - phase_start,
        }

        log_section("Extract")
        phase_start = time.time()
        extraction_stats = self._extract_into_place()
        phase_stats['extract'] = {
            **extraction_stats,
            'output_directory': str(self.output_dir),
            'duration': time.time() - phase_start,
        }

        phase_stats['cleanup'] = {'archive_removed': self._cleanup_archive()}

        self.logger.info("Export downloaded and unzipped.")
        return self.report_generator.generate_report(
            result, phase_stats, time.time() - start_time, self.output_dir
        )

    def _extract_into_place(self) -> Dict[str, int]:
        """
        Flatten the archive into a staging directory, then swap it in for the output directory.

        The previous export stays untouched until the flattened tree is complete.
        """
        self._remove_tree(self.staging_dir)
        try:
            extraction_stats = self.normalizer.flatten(self.archive_path, self.staging_dir)
        except ExtractionError:
            self._remove_tree(self.staging_dir)
            raise

        try:
            if self.output_dir.exists():
                self.logger.info(f"Removing previous export at {self.output_dir}")
                shutil.rmtree(self.output_dir)
            self.staging_dir.rename(self.output_dir)
        except OSError as e:
            raise ExtractionError(f"Cannot replace output directory {self.output_dir}: {e}") from e

        return extraction_stats

    def _remove_tree(self, path: Path) -> None:
        try:
            if path.exists():
                shutil.rmtree(path)
        except OSError as e:
            raise ExtractionError(f"Cannot remove {path}: {e}") from e

    def _cleanup_archive(self) -> bool:
        if self.keep_archive:
            self.logger.info(f"Keeping downloaded archive at {self.archive_path}")
            return False

        try:
            self.archive_path.unlink()
        except OSError as e:
            self.logger.warning(f"Failed to remove archive {self.archive_path}: {e}")
            return False

        self.logger.debug(f"Removed archive {self.archive_path}")
        return True
