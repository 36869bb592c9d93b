"""Converters package for wikitext content translation.

Package Structure:
- namespace_translator: Maps foreign namespace prefixes onto internal
  namespaces in page titles and link targets
- wikitext_links: Extracts link targets and category assignments
"""

from .namespace_translator import (
    LinkDirection,
    NamespaceTranslator,
    apply_alias_overrides,
    default_namespaces
)
from .wikitext_links import extract_categories, extract_links

__all__ = [
    'LinkDirection',
    'NamespaceTranslator',
    'apply_alias_overrides',
    'default_namespaces',
    'extract_categories',
    'extract_links'
]
