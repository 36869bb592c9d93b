"""MediaWiki XML exporter for wiki topics and their version history."""

import ipaddress
import logging
import os
import tempfile
from datetime import timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from lxml import etree

from config_loader import get_nested
from converters import LinkDirection, NamespaceTranslator
from errors import MigrationError
from logger import ProgressTracker
from models import Author, ExportState, Namespace, Pagination, ResolvedUser, Topic, TopicVersion
from repository import TopicRepository

EXPORT_NAMESPACE = 'http://www.mediawiki.org/xml/export-0.11/'
EXPORT_SCHEMA_VERSION = '0.11'
XML_NAMESPACE = 'http://www.w3.org/XML/1998/namespace'
NSMAP = {None: EXPORT_NAMESPACE}
TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%SZ'

StateListener = Callable[[ExportState], None]


def _tag(name: str) -> str:
    return f'{{{EXPORT_NAMESPACE}}}{name}'


def format_timestamp(value) -> str:
    """Format a datetime as a MediaWiki UTC timestamp."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TIMESTAMP_FORMAT)


def is_ip_address(text: str) -> bool:
    try:
        ipaddress.ip_address(text.strip())
    except ValueError:
        return False
    return True


class MediaWikiExporter:
    """
    Writes topics to a MediaWiki XML export file.

    The export is all-or-nothing:
    1. Every requested topic is resolved before anything is written
    2. The document is streamed into a temporary file next to the target
    3. The temporary file replaces the target only when writing succeeded
    """

    def __init__(
        self,
        repository: TopicRepository,
        config: Optional[Dict[str, Any]] = None,
        logger: Optional[logging.Logger] = None,
        state_listener: Optional[StateListener] = None
    ):
        """
        Initialize the exporter.

        Args:
            repository: Repository the topics are read from
            config: Configuration dictionary with export settings
            logger: Logger instance
            state_listener: Called with the new state on every transition
        """
        self.repository = repository
        self.config = config or {}
        self.logger = logger or logging.getLogger('wiki_topic_migrator.exporters.mediawiki_exporter')
        self.state_listener = state_listener

        self.sitename = get_nested(self.config, 'export.sitename', 'Wiki')
        self.base_url = get_nested(self.config, 'export.base_url')
        self.generator = get_nested(self.config, 'export.generator', 'wiki-topic-migrator')
        self.case = get_nested(self.config, 'export.case', 'first-letter')

        self.state = ExportState.IDLE
        self.stats = {
            'topics_exported': 0,
            'versions_exported': 0,
            'bytes_written': 0
        }

    def export_topics(
        self,
        path: Union[str, Path],
        virtual_wiki: str,
        topic_names: Sequence[str],
        exclude_history: bool = False
    ) -> Dict[str, Any]:
        """
        Export topics to a file.

        Args:
            path: Target file
            virtual_wiki: Virtual wiki the topics belong to
            topic_names: Topic names, written in this order
            exclude_history: Write only the current version of each topic

        Returns:
            Statistics dictionary

        Raises:
            MigrationError: If a topic does not exist or the file cannot be
                written; no output file is left behind in either case
        """
        target = Path(path)
        self.stats = {'topics_exported': 0, 'versions_exported': 0, 'bytes_written': 0}

        try:
            self._set_state(ExportState.RESOLVING)
            translator = NamespaceTranslator(self.repository.lookup_namespaces(virtual_wiki), logger=self.logger)
            resolved = self._resolve(target, virtual_wiki, topic_names, exclude_history)

            self._set_state(ExportState.WRITING)
            self._write(target, translator, resolved)
        except MigrationError:
            self._set_state(ExportState.ABORTED)
            self._remove(target)
            raise
        except Exception as e:
            self._set_state(ExportState.ABORTED)
            self._remove(target)
            raise MigrationError(
                f"Export failed: {e}",
                path=target,
                stage=ExportState.WRITING.value
            ) from e

        self._set_state(ExportState.FINALIZED)
        self.logger.info(
            f"Exported {self.stats['topics_exported']} topics "
            f"({self.stats['versions_exported']} versions) to {target}"
        )
        return self.stats.copy()

    def _resolve(
        self,
        target: Path,
        virtual_wiki: str,
        topic_names: Sequence[str],
        exclude_history: bool
    ) -> List[Tuple[Topic, List[TopicVersion]]]:
        resolved = []
        unresolved = []

        for name in topic_names:
            topic = self.repository.lookup_topic(virtual_wiki, name)
            if topic is None:
                unresolved.append(name)
                continue
            if exclude_history:
                versions = self.repository.get_topic_history(topic, Pagination(num_results=1), descending=True)
            else:
                versions = self.repository.get_topic_history(topic)
            if not versions:
                unresolved.append(name)
                continue
            resolved.append((topic, versions))

        if unresolved:
            raise MigrationError(
                f"Topics not found in virtual wiki '{virtual_wiki}': {', '.join(unresolved)}",
                path=target,
                stage=ExportState.RESOLVING.value,
                unresolved_topics=unresolved
            )

        self.logger.debug(f"Resolved {len(resolved)} topics for export")
        return resolved

    def _write(
        self,
        target: Path,
        translator: NamespaceTranslator,
        resolved: List[Tuple[Topic, List[TopicVersion]]]
    ) -> None:
        tmp = tempfile.NamedTemporaryFile(
            'wb', delete=False, dir=target.parent, prefix=f'.{target.name}.', suffix='.tmp'
        )
        tmp_path = Path(tmp.name)

        try:
            with tmp:
                with etree.xmlfile(tmp, encoding='utf-8') as xf:
                    xf.write_declaration()
                    # Only the tree serializer maps xml:space to the reserved prefix
                    with xf.element(_tag('mediawiki'), {'version': EXPORT_SCHEMA_VERSION}, nsmap=NSMAP):
                        xf.write(self._site_info_element(translator.namespaces))
                        with ProgressTracker(total_items=len(resolved), item_type='topics') as tracker:
                            for topic, versions in resolved:
                                xf.write(self._page_element(translator, topic, versions))
                                self.stats['topics_exported'] += 1
                                tracker.increment(success=True)

            self.stats['bytes_written'] = tmp_path.stat().st_size
            os.replace(tmp_path, target)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def _site_info_element(self, namespaces: Sequence[Namespace]) -> etree._Element:
        siteinfo = etree.Element(_tag('siteinfo'), nsmap=NSMAP)
        self._leaf(siteinfo, 'sitename', self.sitename)
        if self.base_url:
            self._leaf(siteinfo, 'base', self.base_url)
        self._leaf(siteinfo, 'generator', self.generator)
        self._leaf(siteinfo, 'case', self.case)
        container = etree.SubElement(siteinfo, _tag('namespaces'))
        for namespace in sorted(namespaces, key=lambda ns: ns.id):
            attrib = {'key': str(namespace.id), 'case': self.case}
            self._leaf(container, 'namespace', namespace.foreign_prefix, attrib)
        return siteinfo

    def _page_element(
        self,
        translator: NamespaceTranslator,
        topic: Topic,
        versions: List[TopicVersion]
    ) -> etree._Element:
        page = etree.Element(_tag('page'), nsmap=NSMAP)
        self._leaf(page, 'title', translator.foreign_title(topic.name))
        self._leaf(page, 'ns', str(topic.namespace_id))
        self._leaf(page, 'id', str(topic.topic_id))
        for version in versions:
            self._add_revision(page, translator, version)
            self.stats['versions_exported'] += 1
        return page

    def _add_revision(self, page: etree._Element, translator: NamespaceTranslator, version: TopicVersion) -> None:
        content = translator.rewrite_links(version.version_content, LinkDirection.EXPORT)
        revision = etree.SubElement(page, _tag('revision'))
        self._leaf(revision, 'id', str(version.topic_version_id))
        if version.previous_version_id is not None:
            self._leaf(revision, 'parentid', str(version.previous_version_id))
        self._leaf(revision, 'timestamp', format_timestamp(version.edit_date))
        self._add_contributor(revision, version.author)
        if version.edit_comment:
            self._leaf(revision, 'comment', version.edit_comment)
        self._leaf(revision, 'model', 'wikitext')
        self._leaf(revision, 'format', 'text/x-wiki')
        attrib = {
            f'{{{XML_NAMESPACE}}}space': 'preserve',
            'bytes': str(len(content.encode('utf-8')))
        }
        self._leaf(revision, 'text', content, attrib)

    def _add_contributor(self, revision: etree._Element, author: Author) -> None:
        contributor = etree.SubElement(revision, _tag('contributor'))
        if isinstance(author, ResolvedUser):
            self._leaf(contributor, 'username', author.username)
            self._leaf(contributor, 'id', str(author.user_id))
        elif is_ip_address(author.display):
            self._leaf(contributor, 'ip', author.display.strip())
        else:
            self._leaf(contributor, 'username', author.display)

    @staticmethod
    def _leaf(
        parent: etree._Element,
        name: str,
        text: Optional[str],
        attrib: Optional[Dict[str, str]] = None
    ) -> etree._Element:
        elem = etree.SubElement(parent, _tag(name), attrib or {})
        elem.text = text or None
        return elem

    def _remove(self, target: Path) -> None:
        # A failed export never leaves a file at the target path
        try:
            if target.is_file():
                target.unlink()
                self.logger.debug(f"Removed {target} after failed export")
        except OSError as e:
            self.logger.warning(f"Could not remove {target} after failed export: {e}")

    def _set_state(self, state: ExportState) -> None:
        self.state = state
        if self.state_listener is not None:
            self.state_listener(state)
