"""
Orchestration package for coordinating the export pipeline phases.

This package sequences Export → Download → Extract → Cleanup and reports
on the finished run.
"""

from .export_orchestrator import ExportOrchestrator
from .export_report import ExportReport

__all__ = [
    'ExportOrchestrator',
    'ExportReport'
]
