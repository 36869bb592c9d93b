"""
Topic importer for MediaWiki XML export files.

Reads pages from an export file, translates titles and link prefixes into
the target wiki's namespaces, orders each page's revisions and persists
every page's revision chain through the repository as one unit.
"""

import logging
import time
from contextlib import closing
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from tqdm import tqdm

from config_loader import get_nested, message_for_locale
from converters import LinkDirection, NamespaceTranslator, extract_categories, extract_links
from errors import MigrationError
from models import Author, DisplayString, ImportStage, Page, ResolvedUser, Revision, Topic, TopicVersion
from repository import TopicRepository

from .mediawiki_reader import MediaWikiXmlReader
from .revision_sequencer import RevisionChain, RevisionSequencer

IMPORT_EDIT_TYPE = 'import'

StageListener = Callable[[ImportStage, Optional[str]], None]


@dataclass
class ImportResult:
    """Outcome of a completed import run."""

    path: str
    virtual_wiki: str
    topic_names: List[str] = field(default_factory=list)
    pages_read: int = 0
    versions_written: int = 0
    encoding: Optional[str] = None
    elapsed_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'virtual_wiki': self.virtual_wiki,
            'topic_names': list(self.topic_names),
            'pages_read': self.pages_read,
            'versions_written': self.versions_written,
            'encoding': self.encoding,
            'elapsed_seconds': self.elapsed_seconds
        }


class TopicImporter:
    """
    Imports MediaWiki export files into a topic repository.

    For each page, in file order:
    1. Translate the title into an internal namespace and page name
    2. Rewrite namespace prefixes in every revision body
    3. Order the revisions and attach them after any existing history
    4. Persist the whole chain in one repository transaction
    """

    def __init__(
        self,
        repository: TopicRepository,
        config: Optional[Dict[str, Any]] = None,
        logger: Optional[logging.Logger] = None,
        stage_listener: Optional[StageListener] = None
    ):
        """
        Initialize the importer.

        Args:
            repository: Repository receiving the imported topics
            config: Configuration dictionary
            logger: Logger instance
            stage_listener: Called with (stage, page title) on every stage change
        """
        self.repository = repository
        self.config = config or {}
        self.logger = logger or logging.getLogger('wiki_topic_migrator.importers.topic_importer')
        self.stage_listener = stage_listener

        self.sequencer = RevisionSequencer(logger=self.logger)
        self.record_import_version = get_nested(self.config, 'migration.record_import_version', False)
        self.show_progress = get_nested(self.config, 'migration.show_progress', False)
        self.default_author_display = get_nested(self.config, 'migration.author_display_fallback')
        self.default_locale = get_nested(self.config, 'migration.locale')

        self.stage = ImportStage.IDLE

    def import_file(
        self,
        path: Union[str, Path],
        virtual_wiki: str,
        user: Optional[ResolvedUser] = None,
        author_display_fallback: Optional[str] = None,
        locale: Optional[str] = None
    ) -> ImportResult:
        """
        Import every page of an export file.

        Pages completed before a failure stay imported; the failing page is
        not imported at all.

        Args:
            path: Export file to read
            virtual_wiki: Virtual wiki receiving the topics
            user: Wiki user performing the import, if any
            author_display_fallback: Author text for revisions without a
                contributor (typically the importer's IP address)
            locale: Locale of the import comment, e.g. 'en_US'

        Returns:
            ImportResult listing the imported topic names in file order

        Raises:
            MigrationError: On malformed input, unsupported history splices
                or repository failures; ``committed_topics`` lists the topics
                imported before the failure
        """
        path = Path(path)
        start_time = time.time()
        fallback = author_display_fallback or self.default_author_display or ''
        locale = locale or self.default_locale

        result = ImportResult(path=str(path), virtual_wiki=virtual_wiki)
        translator = NamespaceTranslator(self.repository.lookup_namespaces(virtual_wiki), logger=self.logger)
        reader = MediaWikiXmlReader(path, logger=self.logger)
        page_translator: Optional[NamespaceTranslator] = None
        current_title: Optional[str] = None
        seen_names = set()

        self.logger.info(f"Importing {path} into virtual wiki '{virtual_wiki}'")

        try:
            with tqdm(desc="Importing pages", unit="page", disable=not self.show_progress) as pbar, \
                    closing(reader.pages()) as pages:
                self._set_stage(ImportStage.PARSING_PAGE)
                for page in pages:
                    if page_translator is None:
                        # siteinfo precedes the first page
                        page_translator = translator.with_site_namespaces(reader.site_info)

                    current_title = page.title
                    topic_name, versions_written = self._import_page(
                        page, path, virtual_wiki, page_translator, user, fallback, locale
                    )
                    if topic_name not in seen_names:
                        seen_names.add(topic_name)
                        result.topic_names.append(topic_name)
                    result.versions_written += versions_written
                    pbar.update(1)
                    self._set_stage(ImportStage.PARSING_PAGE)

        except MigrationError as e:
            self._set_stage(ImportStage.ABORTED, current_title)
            if e.path is None:
                e.path = str(path)
            e.committed_topics = list(result.topic_names)
            self.logger.error(
                f"Import aborted: {e}. {len(result.topic_names)} topics were committed before the failure"
            )
            raise

        result.pages_read = reader.pages_read
        result.encoding = reader.encoding
        result.elapsed_seconds = time.time() - start_time
        self._set_stage(ImportStage.DONE)

        self.logger.info(
            f"Imported {len(result.topic_names)} topics ({result.versions_written} versions) "
            f"from {path} in {result.elapsed_seconds:.2f}s"
        )
        return result

    def resolve_author(self, revision: Revision, fallback: str) -> Author:
        """
        Decide who a revision is attributed to.

        A username known to the wiki resolves to that user; an unknown
        username or an IP address is kept as display text; a revision with
        no contributor gets the fallback text.
        """
        if revision.username:
            user = self.repository.lookup_user(revision.username)
            if user is not None:
                return user
            return DisplayString(revision.username)
        if revision.ip:
            return DisplayString(revision.ip)
        return DisplayString(fallback)

    def _import_page(
        self,
        page: Page,
        path: Path,
        virtual_wiki: str,
        translator: NamespaceTranslator,
        user: Optional[ResolvedUser],
        fallback: str,
        locale: Optional[str]
    ):
        self._set_stage(ImportStage.TRANSLATING, page.title)
        namespace, page_name = translator.translate_title(page.title)
        topic_name = translator.topic_name(namespace, page_name)
        revisions = [
            replace(revision, content=translator.rewrite_links(revision.content, LinkDirection.IMPORT))
            for revision in page.revisions
        ]
        if topic_name != page.title:
            self.logger.debug(f"Translated title '{page.title}' to '{topic_name}'")

        self._set_stage(ImportStage.SEQUENCING, page.title)
        existing = self.repository.lookup_topic(virtual_wiki, topic_name, include_deleted=True)
        history = self.repository.get_topic_history(existing) if existing is not None else []
        chain = self.sequencer.splice(revisions, history, page_title=page.title)

        self._set_stage(ImportStage.PERSISTING, page.title)
        topic = existing or Topic(
            virtual_wiki=virtual_wiki,
            name=topic_name,
            namespace_id=namespace.id,
            page_name=page_name
        )
        if topic.deleted:
            self.logger.info(f"Restoring deleted topic '{topic_name}' with imported revisions")
            topic.delete_date = None

        try:
            with self.repository.transaction():
                versions_written = self._persist_chain(topic, chain, path, user, fallback, locale)
        except MigrationError:
            raise
        except Exception as e:
            raise MigrationError(
                f"Failed to persist topic '{topic_name}': {e}",
                path=path,
                page_title=page.title,
                stage=ImportStage.PERSISTING.value
            ) from e

        self.logger.debug(f"Imported '{topic_name}' with {versions_written} versions")
        return topic_name, versions_written

    def _persist_chain(
        self,
        topic: Topic,
        chain: RevisionChain,
        path: Path,
        user: Optional[ResolvedUser],
        fallback: str,
        locale: Optional[str]
    ) -> int:
        previous_version_id = chain.anchor_version_id
        written = 0

        for revision in chain.revisions:
            version = TopicVersion(
                author=self.resolve_author(revision, fallback),
                edit_date=revision.timestamp,
                version_content=revision.content,
                edit_comment=revision.comment,
                previous_version_id=previous_version_id,
                edit_type=IMPORT_EDIT_TYPE
            )
            topic.topic_content = revision.content
            self.repository.write_topic(
                topic,
                version,
                extract_categories(revision.content),
                extract_links(revision.content)
            )
            previous_version_id = version.topic_version_id
            written += 1

        if self.record_import_version:
            latest = chain.latest
            edit_date = datetime.now(timezone.utc)
            if latest is not None and latest.timestamp > edit_date:
                edit_date = latest.timestamp
            marker = TopicVersion(
                author=user if user is not None else DisplayString(fallback),
                edit_date=edit_date,
                version_content=topic.topic_content,
                edit_comment=message_for_locale(self.config, locale).format(source=path.name),
                previous_version_id=previous_version_id,
                edit_type=IMPORT_EDIT_TYPE
            )
            self.repository.write_topic(
                topic,
                marker,
                extract_categories(topic.topic_content),
                extract_links(topic.topic_content)
            )
            written += 1

        return written

    def _set_stage(self, stage: ImportStage, page_title: Optional[str] = None) -> None:
        self.stage = stage
        if self.stage_listener is not None:
            self.stage_listener(stage, page_title)
