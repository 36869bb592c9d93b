"""
Migration orchestrator coordinating import and export runs.

Export: Idle -> Resolving -> Writing -> Finalized, or Aborted on failure.
Import: Idle -> Parsing(n) -> Translating(n) -> Sequencing(n) -> Persisting(n)
-> Parsing(n+1) | Done, or Aborted(n) on failure.

The two flows keep separate state and can run on separate orchestrators
concurrently.
"""

import logging
import time
from collections import deque
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from config_loader import get_nested
from errors import MigrationError
from exporters import MediaWikiExporter
from importers import TopicImporter
from logger import log_section
from models import ExportState, ImportStage, ResolvedUser
from orchestrator.migration_report import MigrationReport
from repository import TopicRepository

# Transitions kept for the report; a large import enters five per page
MAX_REPORTED_TRANSITIONS = 100


class MigrationOrchestrator:
    """Entry point for moving topics between a wiki and MediaWiki export files."""

    def __init__(
        self,
        config: Dict[str, Any],
        repository: TopicRepository,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize migration orchestrator.

        Args:
            config: Configuration dictionary
            repository: Repository topics are read from and written to
            logger: Optional logger instance
        """
        self.config = config or {}
        self.repository = repository
        self.logger = logger or logging.getLogger('wiki_topic_migrator.orchestrator.migration_orchestrator')

        self.report_generator = MigrationReport(logger=self.logger)

        self.export_state = ExportState.IDLE
        self.import_stage = ImportStage.IDLE
        self.import_page_number = 0
        self.max_transitions = MAX_REPORTED_TRANSITIONS
        self._transitions: deque = deque(maxlen=self.max_transitions)

        self.last_report: Optional[Dict[str, Any]] = None

    def export_to_file(
        self,
        path: Union[str, Path],
        virtual_wiki: str,
        topic_names: Sequence[str],
        exclude_history: Optional[bool] = None
    ) -> None:
        """
        Export topics of a virtual wiki to a MediaWiki XML file.

        Args:
            path: Target file
            virtual_wiki: Virtual wiki the topics belong to
            topic_names: Topic names to export, in output order
            exclude_history: Write only current versions; defaults to
                migration.exclude_history

        Raises:
            MigrationError: If any topic cannot be resolved or the file
                cannot be written; no output file is left in either case
        """
        if exclude_history is None:
            exclude_history = get_nested(self.config, 'migration.exclude_history', False)

        log_section(f"Export to {path}")
        start_time = time.time()
        self._transitions = deque(maxlen=self.max_transitions)
        self.export_state = ExportState.IDLE

        exporter = MediaWikiExporter(
            self.repository,
            config=self.config,
            logger=self.logger,
            state_listener=self._on_export_state
        )

        try:
            exporter.export_topics(path, virtual_wiki, list(topic_names), exclude_history=exclude_history)
        except MigrationError as e:
            self.last_report = self.report_generator.generate_report(
                'export', str(path), virtual_wiki,
                self._export_stats(exporter, topic_names),
                time.time() - start_time,
                transitions=self._transitions,
                error=e
            )
            self.logger.error(f"Export aborted: {e}")
            raise

        self.last_report = self.report_generator.generate_report(
            'export', str(path), virtual_wiki,
            self._export_stats(exporter, topic_names),
            time.time() - start_time,
            transitions=self._transitions
        )

    def import_from_file(
        self,
        path: Union[str, Path],
        virtual_wiki: str,
        user: Optional[ResolvedUser] = None,
        author_display_fallback: Optional[str] = None,
        locale: Optional[str] = None
    ) -> List[str]:
        """
        Import a MediaWiki XML file into a virtual wiki.

        Args:
            path: Export file to read
            virtual_wiki: Virtual wiki receiving the topics
            user: Wiki user performing the import, if any
            author_display_fallback: Author text for revisions without a contributor
            locale: Locale of the import marker comment

        Returns:
            Names of the imported topics in file order, without duplicates

        Raises:
            MigrationError: On the first failing page; ``committed_topics``
                lists the topics imported before it
        """
        log_section(f"Import from {path}")
        start_time = time.time()
        self._transitions = deque(maxlen=self.max_transitions)
        self.import_stage = ImportStage.IDLE
        self.import_page_number = 0

        importer = TopicImporter(
            self.repository,
            config=self.config,
            logger=self.logger,
            stage_listener=self._on_import_stage
        )

        try:
            result = importer.import_file(
                path,
                virtual_wiki,
                user=user,
                author_display_fallback=author_display_fallback,
                locale=locale
            )
        except MigrationError as e:
            stats = {
                'topics': len(e.committed_topics),
                'versions': None,
                'topic_names': list(e.committed_topics)
            }
            self.last_report = self.report_generator.generate_report(
                'import', str(path), virtual_wiki, stats,
                time.time() - start_time,
                transitions=self._transitions,
                error=e
            )
            raise

        stats = {
            'topics': len(result.topic_names),
            'versions': result.versions_written,
            'pages_read': result.pages_read,
            'encoding': result.encoding,
            'topic_names': list(result.topic_names)
        }
        self.last_report = self.report_generator.generate_report(
            'import', str(path), virtual_wiki, stats,
            time.time() - start_time,
            transitions=self._transitions
        )
        return list(result.topic_names)

    def format_last_report(self) -> str:
        if self.last_report is None:
            return ''
        return self.report_generator.format_console_report(self.last_report)

    @staticmethod
    def _export_stats(exporter: MediaWikiExporter, topic_names: Sequence[str]) -> Dict[str, Any]:
        return {
            'topics': exporter.stats['topics_exported'],
            'versions': exporter.stats['versions_exported'],
            'bytes_written': exporter.stats['bytes_written'],
            'topic_names': list(topic_names) if exporter.state is ExportState.FINALIZED else []
        }

    def _on_export_state(self, state: ExportState) -> None:
        self.logger.debug(f"Export state: {self.export_state.value} -> {state.value}")
        self.export_state = state
        self._transitions.append(state.value)

    def _on_import_stage(self, stage: ImportStage, page_title: Optional[str]) -> None:
        if stage is ImportStage.PARSING_PAGE:
            self.import_page_number += 1

        if stage in (ImportStage.DONE, ImportStage.IDLE):
            label = stage.value
        else:
            label = f"{stage.value}({self.import_page_number})"

        self.logger.debug(
            f"Import stage: {self.import_stage.value} -> {label}"
            + (f" for '{page_title}'" if page_title else "")
        )
        self.import_stage = stage
        self._transitions.append(label)
