"""
Migration report generator for import and export runs.

Builds a report dictionary from a run's statistics and state transitions and
formats it for console display or JSON export.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from errors import MigrationError


class MigrationReport:
    """Generates reports summarizing a single import or export run."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize migration report generator.

        Args:
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger('wiki_topic_migrator.orchestrator.migration_report')

    def generate_report(
        self,
        operation: str,
        path: str,
        virtual_wiki: str,
        stats: Dict[str, Any],
        duration: float,
        transitions: Sequence[str] = (),
        error: Optional[MigrationError] = None
    ) -> Dict[str, Any]:
        """
        Generate a run report.

        Args:
            operation: 'import' or 'export'
            path: File that was read or written
            virtual_wiki: Virtual wiki of the run
            stats: Statistics collected by the importer or exporter
            duration: Run duration in seconds
            transitions: Most recent state names, oldest first
            error: Failure that aborted the run, if any

        Returns:
            Report dictionary
        """
        report = {
            'operation': operation,
            'status': 'aborted' if error is not None else 'completed',
            'path': str(path),
            'virtual_wiki': virtual_wiki,
            'summary': self._build_summary(stats, duration),
            'transitions': list(transitions),
            'error': self._build_error(error),
            'timestamp': datetime.now().isoformat()
        }

        self.logger.debug(f"Report generated for {operation} of {path}: {report['status']}")
        return report

    def _build_summary(self, stats: Dict[str, Any], duration: float) -> Dict[str, Any]:
        summary = dict(stats)
        summary['duration_seconds'] = duration
        summary['duration_formatted'] = self._format_duration(duration)
        return summary

    @staticmethod
    def _build_error(error: Optional[MigrationError]) -> Optional[Dict[str, Any]]:
        if error is None:
            return None
        return {
            'type': type(error).__name__,
            'message': error.message,
            'page': error.page_title,
            'stage': error.stage,
            'committed_topics': list(error.committed_topics),
            'unresolved_topics': list(error.unresolved_topics)
        }

    def _format_duration(self, seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            minutes = int(seconds // 60)
            secs = int(seconds % 60)
            return f"{minutes}m {secs}s"
        else:
            hours = int(seconds // 3600)
            minutes = int((seconds % 3600) // 60)
            secs = int(seconds % 60)
            return f"{hours}h {minutes}m {secs}s"

    def format_console_report(self, report: Dict[str, Any]) -> str:
        """
        Format report for console display.

        Args:
            report: Report dictionary from generate_report

        Returns:
            Formatted console string
        """
        sections = []

        sections.append("=" * 60)
        sections.append(f"{report.get('operation', 'migration').upper()} REPORT")
        sections.append("=" * 60)
        sections.append("")

        summary = report.get('summary', {})
        sections.append("Summary:")
        sections.append(f"  Status:      {report.get('status', 'unknown').upper()}")
        sections.append(f"  File:        {report.get('path', '')}")
        sections.append(f"  Wiki:        {report.get('virtual_wiki', '')}")
        sections.append(f"  Topics:      {summary.get('topics', 0)}")
        sections.append(f"  Versions:    {summary.get('versions', 0)}")
        if summary.get('encoding'):
            sections.append(f"  Encoding:    {summary['encoding']}")
        sections.append(f"  Duration:    {summary.get('duration_formatted', '0s')}")
        sections.append("")

        topic_names: List[str] = summary.get('topic_names', [])
        if topic_names:
            sections.append("Topics:")
            sections.append("-" * 60)
            for name in topic_names[:20]:
                sections.append(f"  {name}")
            if len(topic_names) > 20:
                sections.append(f"  ... and {len(topic_names) - 20} more")
            sections.append("")

        error = report.get('error')
        if error:
            sections.append("Failure:")
            sections.append("-" * 60)
            sections.append(f"  {error['type']}: {error['message']}")
            if error.get('page'):
                sections.append(f"  Page:        {error['page']}")
            if error.get('stage'):
                sections.append(f"  Stage:       {error['stage']}")
            if error.get('unresolved_topics'):
                sections.append(f"  Not found:   {', '.join(error['unresolved_topics'])}")
            if report.get('operation') == 'import':
                committed = error.get('committed_topics', [])
                sections.append(f"  Committed before failure: {len(committed)}")
                for name in committed[:20]:
                    sections.append(f"    {name}")
            sections.append("")

        sections.append("=" * 60)

        return "\n".join(sections)

    def export_json_report(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export report to JSON file.

        Args:
            report: Report dictionary
            filepath: Output file path
        """
        try:
            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(report, f, indent=2, ensure_ascii=False, default=str)

            self.logger.info(f"JSON report exported to {filepath}")

        except OSError as e:
            self.logger.error(f"Failed to export JSON report: {str(e)}")
