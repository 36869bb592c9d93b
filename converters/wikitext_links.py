"""Link and category extraction from wikitext."""

import re
from typing import Dict, List

MAX_CHARS_BETWEEN_BRACKETS = 1000  # Prevent catastrophic backtracking

LINK_PATTERN = re.compile(r'\[\[([^\[\]\n]{1,' + str(MAX_CHARS_BETWEEN_BRACKETS) + r'})\]\]')

CATEGORY_NAMESPACE = 'Category'


def _split_link(inner: str):
    target, _, label = inner.partition('|')
    return target.strip(), label.strip()


def _category_name(target: str, category_namespace: str):
    """Return the category name if target categorizes the page, else None."""
    if target.startswith(':') or ':' not in target:
        return None
    prefix, name = target.split(':', 1)
    if prefix.strip().casefold() != category_namespace.casefold():
        return None
    return name.strip() or None


def extract_categories(content: str, category_namespace: str = CATEGORY_NAMESPACE) -> Dict[str, str]:
    """
    Collect categories assigned by ``[[Category:Name|sort key]]`` links.

    A leading colon (``[[:Category:Name]]``) links to the category instead of
    assigning it and is ignored here.

    Returns:
        Mapping of category name to sort key ('' when none given)
    """
    categories: Dict[str, str] = {}
    for match in LINK_PATTERN.finditer(content or ''):
        target, sort_key = _split_link(match.group(1))
        name = _category_name(target, category_namespace)
        if name and name not in categories:
            categories[name] = sort_key
    return categories


def extract_links(content: str, category_namespace: str = CATEGORY_NAMESPACE) -> List[str]:
    """
    Collect distinct link targets in first-seen order.

    Section anchors are dropped (``[[Page#Section]]`` links to ``Page``),
    same-page anchors and category assignments are skipped.
    """
    links: List[str] = []
    seen = set()
    for match in LINK_PATTERN.finditer(content or ''):
        target, _ = _split_link(match.group(1))
        if _category_name(target, category_namespace):
            continue
        target = target.lstrip(':').split('#', 1)[0].strip()
        if not target or target in seen:
            continue
        seen.add(target)
        links.append(target)
    return links


__all__ = ['extract_categories', 'extract_links']
