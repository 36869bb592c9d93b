"""Tests for link and category extraction."""

from converters import extract_categories, extract_links


class TestExtractCategories:
    """Category assignments in wikitext."""

    def test_categories_with_sort_keys(self):
        content = "Text [[Category:Birds]] more [[Category:Animals|Sparrow]]"
        assert extract_categories(content) == {'Birds': '', 'Animals': 'Sparrow'}

    def test_category_link_with_leading_colon_ignored(self):
        assert extract_categories("See [[:Category:Birds]]") == {}

    def test_first_assignment_wins(self):
        content = "[[Category:Birds|A]] [[category:Birds|B]]"
        assert extract_categories(content) == {'Birds': 'A'}

    def test_empty_content(self):
        assert extract_categories('') == {}
        assert extract_categories(None) == {}


class TestExtractLinks:
    """Link targets in wikitext."""

    def test_distinct_targets_in_order(self):
        content = "[[Main Page]] [[User comments:Bob|Bob]] [[Main Page|again]]"
        assert extract_links(content) == ['Main Page', 'User comments:Bob']

    def test_anchor_and_leading_colon(self):
        content = "[[Main Page#History]] [[:Category:Birds]] [[#Local]]"
        assert extract_links(content) == ['Main Page', 'Category:Birds']

    def test_category_assignment_skipped(self):
        assert extract_links("[[Category:Birds]] [[Sparrow]]") == ['Sparrow']

    def test_transclusions_are_not_links(self):
        assert extract_links("{{Template comments:Box}}") == []
