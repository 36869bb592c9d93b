"""Export package for writing wiki topics as MediaWiki XML.

Package Structure:
- mediawiki_exporter: Resolves topics and streams them, with or without
  version history, into an export file

Key Features:
- All-or-nothing output through a temporary file and atomic rename
- Self-describing files with a siteinfo namespace table
- Namespace prefixes converted to the foreign names expected on re-import

Configuration Referenced:
- export.sitename, export.base_url, export.generator, export.case: siteinfo header
- migration.exclude_history: Default for writing only current versions
"""

from .mediawiki_exporter import MediaWikiExporter, format_timestamp

__all__ = [
    'MediaWikiExporter',
    'format_timestamp'
]
