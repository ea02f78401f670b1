"""Export job package for the Notion workspace export pipeline.

Package Structure:
- export_job_driver: Submits the exportSpace task and polls getTasks until the
  remote job yields a download URL and its file token

Configuration Referenced:
- notion.space_id: Workspace to export
- export.*: Export format, locale, time zone, collection view export type
- polling.interval / polling.max_attempts: Poll cadence and attempt ceiling
"""

from .export_job_driver import ExportJobDriver

__all__ = [
    'ExportJobDriver'
]
