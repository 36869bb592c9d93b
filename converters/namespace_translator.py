"""Namespace translation between foreign (MediaWiki) prefixes and internal namespaces."""

import logging
import re
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from models import NAMESPACE_SEPARATOR, Namespace, SiteInfo

MAIN_NAMESPACE_ID = 0


def normalize_prefix(prefix: str) -> str:
    """Collapse underscores and runs of spaces the way MediaWiki does for titles."""
    return ' '.join(prefix.replace('_', ' ').split())


class LinkDirection(Enum):
    """Which way link prefixes are rewritten."""
    IMPORT = "import"  # foreign prefix -> internal name
    EXPORT = "export"  # internal name -> preferred foreign prefix


def default_namespaces() -> List[Namespace]:
    """Standard mapping of MediaWiki namespaces onto internal namespaces.

    Namespace ids follow the MediaWiki namespace numbers so that the
    ``<siteinfo>`` table of a dump can be matched by key.
    """
    return [
        Namespace(MAIN_NAMESPACE_ID, ''),
        Namespace(1, 'Comments', ('Talk',)),
        Namespace(2, 'User', ('User',)),
        Namespace(3, 'User comments', ('User talk',)),
        Namespace(4, 'Project', ('Project', 'Wikipedia')),
        Namespace(5, 'Project comments', ('Project talk', 'Wikipedia talk')),
        Namespace(6, 'File', ('File', 'Image')),
        Namespace(7, 'File comments', ('File talk', 'Image talk')),
        Namespace(10, 'Template', ('Template',)),
        Namespace(11, 'Template comments', ('Template talk',)),
        Namespace(12, 'Help', ('Help',)),
        Namespace(13, 'Help comments', ('Help talk',)),
        Namespace(14, 'Category', ('Category',)),
        Namespace(15, 'Category comments', ('Category talk',)),
    ]


def apply_alias_overrides(
    namespaces: Iterable[Namespace],
    overrides: Mapping[str, Sequence[str]]
) -> List[Namespace]:
    """Replace the alias list of namespaces named in ``overrides``.

    Raises:
        ValueError: If an override names an unknown namespace
    """
    result = []
    remaining = dict(overrides or {})
    for namespace in namespaces:
        if namespace.name in remaining:
            aliases = tuple(remaining.pop(namespace.name))
            namespace = Namespace(namespace.id, namespace.name, aliases)
        result.append(namespace)
    if remaining:
        raise ValueError(f"Alias overrides for unknown namespaces: {sorted(remaining)}")
    return result


class NamespaceTranslator:
    """
    Maps foreign namespace prefixes onto internal namespaces.

    Works on page titles (``translate_title``) and on wiki-link and
    transclusion targets inside content (``rewrite_links``). Instances hold
    no mutable state after construction and can be shared between threads.
    """

    def __init__(self, namespaces: Iterable[Namespace], logger: Optional[logging.Logger] = None):
        """
        Initialize the translator.

        Args:
            namespaces: Namespaces of the target virtual wiki
            logger: Logger instance

        Raises:
            ValueError: If a prefix is claimed by two namespaces, or the
                main namespace is given aliases
        """
        self.logger = logger or logging.getLogger('wiki_topic_migrator.converters.namespace_translator')

        self.namespaces: List[Namespace] = list(namespaces)
        if not any(ns.id == MAIN_NAMESPACE_ID for ns in self.namespaces):
            self.namespaces.insert(0, Namespace(MAIN_NAMESPACE_ID, ''))

        self._by_id: Dict[int, Namespace] = {}
        self._by_name: Dict[str, Namespace] = {}
        self._exact: Dict[str, Namespace] = {}
        self._folded: Dict[str, Namespace] = {}
        ambiguous_folded = set()

        for namespace in self.namespaces:
            if namespace.id in self._by_id:
                raise ValueError(f"Duplicate namespace id {namespace.id}")
            self._by_id[namespace.id] = namespace

            if namespace.is_main:
                if namespace.aliases:
                    raise ValueError("The main namespace cannot have aliases")
                continue

            self._by_name[namespace.name] = namespace
            for prefix in self._prefixes_of(namespace):
                owner = self._exact.get(prefix)
                if owner is not None and owner.id != namespace.id:
                    raise ValueError(
                        f"Prefix '{prefix}' is claimed by namespaces '{owner.name}' and '{namespace.name}'"
                    )
                self._exact[prefix] = namespace

                folded = prefix.casefold()
                folded_owner = self._folded.get(folded)
                if folded_owner is not None and folded_owner.id != namespace.id:
                    ambiguous_folded.add(folded)
                self._folded[folded] = namespace

        # Case-insensitive fallback only where it is unambiguous
        for folded in ambiguous_folded:
            self.logger.debug(f"Prefix '{folded}' is ambiguous when case is ignored")
            del self._folded[folded]

        self._import_pattern = self._compile_link_pattern(self._exact.keys())
        self._export_pattern = self._compile_link_pattern(self._by_name.keys())

    @staticmethod
    def _prefixes_of(namespace: Namespace) -> Tuple[str, ...]:
        if namespace.name in namespace.aliases:
            return namespace.aliases
        return (namespace.name,) + namespace.aliases

    @staticmethod
    def _compile_link_pattern(prefixes: Iterable[str]) -> Optional['re.Pattern']:
        # Longest first so that "User talk" wins over "User"
        ordered = sorted(set(prefixes), key=lambda p: (-len(p), p))
        if not ordered:
            return None
        # Underscore and space are interchangeable inside a prefix
        alternation = '|'.join(
            r'[ _]+'.join(re.escape(part) for part in prefix.split())
            for prefix in ordered
        )
        return re.compile(
            r'(?P<open>\[\[|\{\{)'
            r'(?P<lead>[ \t]*:?[ \t]*)'
            r'(?P<prefix>' + alternation + r')'
            r'(?P<trail>[ \t]*):',
            re.IGNORECASE
        )

    @property
    def main_namespace(self) -> Namespace:
        return self._by_id[MAIN_NAMESPACE_ID]

    def namespace_by_id(self, namespace_id: int) -> Optional[Namespace]:
        return self._by_id.get(namespace_id)

    def lookup_prefix(self, prefix: str) -> Optional[Namespace]:
        """Find the namespace for a prefix, exact match first, then ignoring case."""
        namespace = self._exact.get(prefix)
        if namespace is None:
            prefix = normalize_prefix(prefix)
            namespace = self._exact.get(prefix)
        if namespace is None:
            namespace = self._folded.get(prefix.casefold())
        return namespace

    def translate_title(self, foreign_title: str) -> Tuple[Namespace, str]:
        """
        Split a foreign title into internal namespace and page name.

        Unrecognized prefixes stay part of the page name.

        Args:
            foreign_title: Title as found in the export file

        Returns:
            Tuple of (namespace, page_name)
        """
        title = foreign_title.strip()
        if NAMESPACE_SEPARATOR in title:
            prefix, page_name = title.split(NAMESPACE_SEPARATOR, 1)
            page_name = page_name.strip()
            namespace = self.lookup_prefix(prefix.strip())
            if namespace is not None and page_name:
                return namespace, page_name
        return self.main_namespace, title

    def topic_name(self, namespace: Namespace, page_name: str) -> str:
        """Compose the internal, namespace-qualified topic name."""
        if namespace.is_main:
            return page_name
        return f"{namespace.name}{NAMESPACE_SEPARATOR}{page_name}"

    def split_topic_name(self, topic_name: str) -> Tuple[Namespace, str]:
        """Split an internal topic name into namespace and page name."""
        if NAMESPACE_SEPARATOR in topic_name:
            prefix, page_name = topic_name.split(NAMESPACE_SEPARATOR, 1)
            namespace = self._by_name.get(prefix)
            if namespace is not None and page_name:
                return namespace, page_name
        return self.main_namespace, topic_name

    def foreign_title(self, topic_name: str) -> str:
        """Map an internal topic name to its title in the export format."""
        namespace, page_name = self.split_topic_name(topic_name)
        if namespace.is_main:
            return topic_name
        return f"{namespace.foreign_prefix}{NAMESPACE_SEPARATOR}{page_name}"

    def rewrite_links(self, content: str, direction: LinkDirection = LinkDirection.IMPORT) -> str:
        """
        Rewrite namespace prefixes of link and transclusion targets.

        Handles ``[[Prefix:Target]]``, ``[[:Prefix:Target]]``,
        ``{{Prefix:Target}}`` and ``{{:Prefix:Target}}``, tolerating
        whitespace around the prefix. Whitespace is preserved.

        Args:
            content: Wikitext content
            direction: IMPORT maps foreign prefixes to internal names, EXPORT
                maps internal names to preferred foreign prefixes

        Returns:
            Content with rewritten prefixes
        """
        if not content:
            return content

        if direction is LinkDirection.IMPORT:
            pattern = self._import_pattern
            lookup = self.lookup_prefix
            replacement_for = lambda namespace: namespace.name
        else:
            pattern = self._export_pattern
            lookup = lambda prefix: self._by_name.get(normalize_prefix(prefix))
            replacement_for = lambda namespace: namespace.foreign_prefix

        if pattern is None:
            return content

        def replace_prefix(match):
            namespace = lookup(match.group('prefix'))
            if namespace is None:
                return match.group(0)
            return (
                f"{match.group('open')}{match.group('lead')}"
                f"{replacement_for(namespace)}{match.group('trail')}{NAMESPACE_SEPARATOR}"
            )

        return pattern.sub(replace_prefix, content)

    def with_site_namespaces(self, site_info: Optional[SiteInfo]) -> 'NamespaceTranslator':
        """
        Return a translator that also accepts the prefixes a dump declares.

        Prefixes from ``<siteinfo>`` are added as extra aliases of the
        internal namespace with the same number. Unknown numbers and
        prefixes already claimed elsewhere are ignored.
        """
        if site_info is None or not site_info.namespaces:
            return self

        extra: Dict[int, List[str]] = {}
        claimed = set()
        for key, prefix in site_info.namespaces.items():
            prefix = (prefix or '').strip()
            namespace = self._by_id.get(key)
            if not prefix or namespace is None or namespace.is_main:
                continue
            owner = self.lookup_prefix(prefix)
            if owner is not None or prefix.casefold() in claimed:
                if owner is not None and owner.id != namespace.id:
                    self.logger.debug(
                        f"Ignoring site prefix '{prefix}' for namespace {key}: already used by '{owner.name}'"
                    )
                continue
            claimed.add(prefix.casefold())
            extra.setdefault(key, []).append(prefix)

        if not extra:
            return self

        self.logger.debug(f"Adding site namespace prefixes: {extra}")
        namespaces = [
            Namespace(ns.id, ns.name, ns.aliases + tuple(extra.get(ns.id, ())))
            for ns in self.namespaces
        ]
        return NamespaceTranslator(namespaces, logger=self.logger)
