"""
Streaming reader for MediaWiki XML export files.

Pages are parsed one at a time with lxml's iterparse and each processed
element is discarded, so memory use is bounded by the largest single page
rather than by the size of the dump.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional, Union

from dateutil.parser import isoparse
from lxml import etree

from errors import MigrationError
from models import ImportStage, Page, Revision, SiteInfo

ROOT_ELEMENT = 'mediawiki'
DEFAULT_ENCODING = 'UTF-8'


def localname(tag) -> str:
    """Strip the namespace URI from an element tag; '' for comments and PIs."""
    if not isinstance(tag, str):
        return ''
    return tag.rsplit('}', 1)[-1]


def _child(elem, name: str):
    for child in elem:
        if localname(child.tag) == name:
            return child
    return None


def _child_text(elem, name: str) -> Optional[str]:
    child = _child(elem, name)
    if child is None:
        return None
    return child.text or ''


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or not value.strip():
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp and normalize it to UTC."""
    timestamp = isoparse(value.strip())
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


class MediaWikiXmlReader:
    """
    Lazily reads pages and their revisions from a MediaWiki export.

    Elements are matched by local name so any export schema version is
    accepted. Entity expansion and network access are disabled because
    dumps are untrusted input.
    """

    def __init__(self, path: Union[str, Path], logger: Optional[logging.Logger] = None):
        """
        Initialize the reader.

        Args:
            path: Path to the export file
            logger: Logger instance
        """
        self.path = Path(path)
        self.logger = logger or logging.getLogger('wiki_topic_migrator.importers.mediawiki_reader')

        self.encoding: Optional[str] = None
        self.site_info: Optional[SiteInfo] = None
        self.pages_read = 0
        self._last_title: Optional[str] = None

    def pages(self) -> Iterator[Page]:
        """
        Yield pages in file order.

        Raises:
            MigrationError: If the file cannot be read, is not well-formed
                XML, or a page lacks required data
        """
        self.logger.debug(f"Reading MediaWiki export {self.path}")

        try:
            with open(self.path, 'rb') as source:
                context = etree.iterparse(
                    source,
                    events=('start', 'end'),
                    resolve_entities=False,
                    no_network=True,
                    load_dtd=False,
                    remove_comments=True,
                    remove_pis=True,
                    huge_tree=True
                )
                root_seen = False

                for event, elem in context:
                    name = localname(elem.tag)

                    if event == 'start':
                        if not root_seen:
                            root_seen = True
                            self._check_root(elem)
                        continue

                    if name == 'siteinfo':
                        self.site_info = self._parse_site_info(elem)
                        self._discard(elem)
                    elif name == 'page':
                        page = self._parse_page(elem)
                        self._discard(elem)
                        self.pages_read += 1
                        self._last_title = page.title
                        yield page

                # libxml2 may only record the declared encoding at end of document
                if context.root is not None:
                    self.encoding = context.root.getroottree().docinfo.encoding or self.encoding

        except etree.XMLSyntaxError as e:
            raise MigrationError(
                f"Malformed XML: {e}",
                path=self.path,
                page_title=self._last_title,
                stage=ImportStage.PARSING_PAGE.value
            ) from e
        except OSError as e:
            raise MigrationError(
                f"Cannot read import file: {e}",
                path=self.path,
                stage=ImportStage.PARSING_PAGE.value
            ) from e

        self.logger.debug(f"Finished reading {self.pages_read} pages from {self.path}")

    def _check_root(self, elem) -> None:
        self.encoding = elem.getroottree().docinfo.encoding or DEFAULT_ENCODING
        if localname(elem.tag) != ROOT_ELEMENT:
            raise MigrationError(
                f"Not a MediaWiki export: root element is <{localname(elem.tag)}>",
                path=self.path,
                stage=ImportStage.PARSING_PAGE.value
            )
        self.logger.debug(
            f"Export schema version {elem.get('version', 'unknown')}, encoding {self.encoding}"
        )

    @staticmethod
    def _discard(elem) -> None:
        elem.clear()
        parent = elem.getparent()
        if parent is not None:
            while elem.getprevious() is not None:
                del parent[0]

    def _parse_site_info(self, elem) -> SiteInfo:
        site_info = SiteInfo(
            sitename=_child_text(elem, 'sitename'),
            base=_child_text(elem, 'base'),
            generator=_child_text(elem, 'generator'),
            case=_child_text(elem, 'case')
        )
        namespaces = _child(elem, 'namespaces')
        if namespaces is not None:
            for namespace in namespaces:
                if localname(namespace.tag) != 'namespace':
                    continue
                key = _optional_int(namespace.get('key'))
                if key is not None and namespace.text:
                    site_info.namespaces[key] = namespace.text
        return site_info

    def _parse_page(self, elem) -> Page:
        title = _child_text(elem, 'title')
        if title is None or not title.strip():
            raise MigrationError(
                "Page element without a title",
                path=self.path,
                page_title=self._last_title,
                stage=ImportStage.PARSING_PAGE.value
            )

        page = Page(
            title=title.strip(),
            namespace_key=_optional_int(_child_text(elem, 'ns')),
            page_id=_optional_int(_child_text(elem, 'id'))
        )

        for child in elem:
            if localname(child.tag) == 'revision':
                page.revisions.append(self._parse_revision(child, page.title))

        if not page.revisions:
            raise MigrationError(
                "Page has no revisions",
                path=self.path,
                page_title=page.title,
                stage=ImportStage.PARSING_PAGE.value
            )

        return page

    def _parse_revision(self, elem, title: str) -> Revision:
        timestamp_text = _child_text(elem, 'timestamp')
        if not timestamp_text or not timestamp_text.strip():
            raise MigrationError(
                "Revision without a timestamp",
                path=self.path,
                page_title=title,
                stage=ImportStage.PARSING_PAGE.value
            )
        try:
            timestamp = parse_timestamp(timestamp_text)
        except (ValueError, OverflowError) as e:
            raise MigrationError(
                f"Invalid revision timestamp '{timestamp_text.strip()}'",
                path=self.path,
                page_title=title,
                stage=ImportStage.PARSING_PAGE.value
            ) from e

        username = None
        ip = None
        contributor = _child(elem, 'contributor')
        if contributor is not None:
            username = (_child_text(contributor, 'username') or '').strip() or None
            ip = (_child_text(contributor, 'ip') or '').strip() or None

        return Revision(
            timestamp=timestamp,
            content=_child_text(elem, 'text') or '',
            comment=_child_text(elem, 'comment') or '',
            username=username,
            ip=ip,
            revision_id=_optional_int(_child_text(elem, 'id')),
            minor=_child(elem, 'minor') is not None
        )
