"""
Orchestration package for coordinating import and export runs.

This package sequences the import flow (parse, translate, sequence, persist
per page) and the export flow (resolve, write, finalize) and reports on each
run.
"""

from .migration_orchestrator import MigrationOrchestrator
from .migration_report import MigrationReport

__all__ = [
    'MigrationOrchestrator',
    'MigrationReport'
]
