"""
Export report generator for summarizing a workspace export run.

Reports can be rendered for the console or written out as JSON.
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from models import ExportResult


class ExportReport:
    """Builds and formats the summary of one export run."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('notion_workspace_exporter.orchestrator.report')

    def generate_report(
        self,
        result: ExportResult,
        phase_stats: Dict[str, Dict[str, Any]],
        duration: float,
        output_dir: Path
    ) -> Dict[str, Any]:
        """
        Generate the report dictionary.

        Args:
            result: Export result of the finished task
            phase_stats: Statistics per phase (export, download, extract, cleanup)
            duration: Total run duration in seconds
            output_dir: Flattened output directory

        Returns:
            Report dictionary
        """
        file_count, dir_count = self._count_tree(Path(output_dir))
        extract = phase_stats.get('extract', {})

        return {
            'summary': {
                'task_id': result.task_id,
                'pages_exported': result.pages_exported,
                'bytes_downloaded': phase_stats.get('download', {}).get('bytes', 0),
                'parts_extracted': extract.get('parts_extracted', 0),
                'export_folders_flattened': extract.get('export_folders_flattened', 0),
                'files': file_count,
                'directories': dir_count,
                'output_directory': str(output_dir),
                'duration': duration,
                'duration_formatted': self._format_duration(duration),
                'finished_at': datetime.now().isoformat(timespec='seconds'),
            },
            'phases': phase_stats,
        }

    @staticmethod
    def _count_tree(root: Path):
        files = 0
        dirs = 0
        if not root.is_dir():
            return files, dirs
        for _, dirnames, filenames in os.walk(root):
            dirs += len(dirnames)
            files += len(filenames)
        return files, dirs

    @staticmethod
    def _format_duration(seconds: float) -> str:
        """Format duration in human-readable form."""
        if seconds < 60:
            return f"{seconds:.1f}s"

        minutes = int(seconds // 60)
        seconds = int(seconds % 60)

        if minutes < 60:
            return f"{minutes}m {seconds}s"

        hours = minutes // 60
        minutes = minutes % 60
        return f"{hours}h {minutes}m {seconds}s"

    def format_console_report(self, report: Dict[str, Any]) -> str:
        """Render the report summary as console text."""
        summary = report.get('summary', {})
        size_mb = (summary.get('bytes_downloaded') or 0) / 1000 / 1000

        lines = [
            "=" * 60,
            "EXPORT SUMMARY",
            "=" * 60,
            f"Task ID:                  {summary.get('task_id')}",
            f"Pages exported:           {summary.get('pages_exported') or 'unknown'}",
            f"Downloaded:               {size_mb:.2f}mb",
            f"Part archives extracted:  {summary.get('parts_extracted', 0)}",
            f"Export folders flattened: {summary.get('export_folders_flattened', 0)}",
            f"Files / directories:      {summary.get('files', 0)} / {summary.get('directories', 0)}",
            f"Output directory:         {summary.get('output_directory')}",
            f"Duration:                 {summary.get('duration_formatted')}",
            "=" * 60,
        ]
        return "\n".join(lines)

    def export_json_report(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export report to JSON file.

        Args:
            report: Report dictionary
            filepath: Output file path
        """
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(report, f, indent=2, ensure_ascii=False, default=str)

        self.logger.info(f"JSON report exported to {filepath}")
