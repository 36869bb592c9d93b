"""Import package for MediaWiki XML export files.

This package reads MediaWiki exports and persists their pages as topics with
full revision history.

Package Structure:
- mediawiki_reader: Streaming lxml reader yielding pages and revisions
- revision_sequencer: Orders revisions and attaches them to existing history
- topic_importer: Translates, sequences and persists pages one at a time

Key Features:
- Bounded memory use for large dumps
- Namespace prefix translation for titles and link targets
- Page-level atomicity through repository transactions
- Optional import marker version with a localized comment

Configuration Referenced:
- migration.author_display_fallback: Author text for revisions without a contributor
- migration.record_import_version: Append an import marker version per topic
- migration.locale: Locale of the import marker comment
- messages.*: Import marker comment templates per language
"""

from .mediawiki_reader import MediaWikiXmlReader, parse_timestamp
from .revision_sequencer import RevisionChain, RevisionSequencer
from .topic_importer import ImportResult, TopicImporter

__all__ = [
    'MediaWikiXmlReader',
    'parse_timestamp',
    'RevisionChain',
    'RevisionSequencer',
    'ImportResult',
    'TopicImporter'
]
