"""Tests for the streaming MediaWiki XML reader."""

from datetime import datetime, timezone

import pytest

from errors import MigrationError
from importers import MediaWikiXmlReader, parse_timestamp


class TestMediaWikiXmlReader:
    """Reading pages, revisions and site information."""

    def test_reads_pages_in_file_order(self, data_dir):
        reader = MediaWikiXmlReader(data_dir / 'mediawiki-two-topics.xml')
        pages = list(reader.pages())

        assert [page.title for page in pages] == ['Test Topic One', 'Template talk:Test Template']
        assert reader.pages_read == 2
        assert reader.encoding.upper() == 'UTF-8'

    def test_site_info(self, data_dir):
        reader = MediaWikiXmlReader(data_dir / 'mediawiki-two-topics.xml')
        list(reader.pages())

        assert reader.site_info.sitename == 'Wikipedia'
        assert reader.site_info.case == 'first-letter'
        assert reader.site_info.namespaces[11] == 'Template talk'
        assert 0 not in reader.site_info.namespaces

    def test_revision_fields(self, data_dir):
        reader = MediaWikiXmlReader(data_dir / 'mediawiki-two-topics.xml')
        first, second = reader.pages()

        assert first.page_id == 101
        assert first.namespace_key == 0
        assert first.prefix is None
        created, edited = first.revisions
        assert created.timestamp == datetime(2012, 3, 1, 10, 0, tzinfo=timezone.utc)
        assert created.username == 'Test User'
        assert created.comment == 'Created page'
        assert created.revision_id == 1001
        assert edited.username is None
        assert edited.ip == '192.168.0.1'
        assert '[[Category:Test Category]]' in edited.content

        assert second.prefix == 'Template talk'
        revision = second.revisions[0]
        assert revision.minor is True
        assert revision.comment == ''
        assert '&' in revision.content

    def test_declared_encoding(self, data_dir):
        reader = MediaWikiXmlReader(data_dir / 'mediawiki-iso-8859-1.xml')
        pages = list(reader.pages())

        assert pages[0].revisions[0].content == 'Grüße aus München'
        assert reader.encoding.upper() in ('ISO-8859-1', 'ISO8859-1', 'LATIN1')

    def test_truncated_file(self, data_dir):
        reader = MediaWikiXmlReader(data_dir / 'mediawiki-truncated.xml')
        titles = []
        with pytest.raises(MigrationError) as excinfo:
            for page in reader.pages():
                titles.append(page.title)

        assert titles == ['Complete Page']
        assert excinfo.value.stage == 'parsing'
        assert excinfo.value.path.endswith('mediawiki-truncated.xml')

    def test_missing_file(self, tmp_path):
        reader = MediaWikiXmlReader(tmp_path / 'missing.xml')
        with pytest.raises(MigrationError):
            list(reader.pages())

    def test_wrong_root_element(self, tmp_path):
        path = tmp_path / 'other.xml'
        path.write_text('<rss><channel /></rss>', encoding='utf-8')
        with pytest.raises(MigrationError) as excinfo:
            list(MediaWikiXmlReader(path).pages())
        assert 'root element' in str(excinfo.value)

    def test_revision_without_timestamp(self, tmp_path):
        path = tmp_path / 'no-timestamp.xml'
        path.write_text(
            '<mediawiki><page><title>A</title><revision><text>x</text></revision></page></mediawiki>',
            encoding='utf-8'
        )
        with pytest.raises(MigrationError) as excinfo:
            list(MediaWikiXmlReader(path).pages())
        assert excinfo.value.page_title == 'A'

    def test_page_without_revisions(self, tmp_path):
        path = tmp_path / 'empty-page.xml'
        path.write_text('<mediawiki><page><title>A</title></page></mediawiki>', encoding='utf-8')
        with pytest.raises(MigrationError):
            list(MediaWikiXmlReader(path).pages())

    def test_entities_are_not_expanded(self, tmp_path):
        path = tmp_path / 'entity.xml'
        path.write_text(
            '<?xml version="1.0"?>\n'
            '<!DOCTYPE mediawiki [<!ENTITY boom "expanded">]>\n'
            '<mediawiki><page><title>A</title><revision>'
            '<timestamp>2015-01-01T00:00:00Z</timestamp><text>&boom;</text>'
            '</revision></page></mediawiki>',
            encoding='utf-8'
        )
        pages = list(MediaWikiXmlReader(path).pages())
        assert 'expanded' not in pages[0].revisions[0].content


class TestParseTimestamp:
    """Timestamp normalization."""

    def test_utc_suffix(self):
        assert parse_timestamp('2012-03-01T10:00:00Z') == datetime(2012, 3, 1, 10, tzinfo=timezone.utc)

    def test_offset_normalized_to_utc(self):
        value = parse_timestamp('2012-03-01T12:00:00+02:00')
        assert value == datetime(2012, 3, 1, 10, tzinfo=timezone.utc)
        assert value.utcoffset().total_seconds() == 0

    def test_naive_treated_as_utc(self):
        assert parse_timestamp(' 2012-03-01T10:00:00 ').tzinfo is not None

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_timestamp('yesterday')
