"""Tests for revision ordering and history splicing."""

from datetime import datetime, timedelta, timezone

import pytest

from errors import MigrationError, SequencingError
from importers import RevisionSequencer
from models import DisplayString, Revision, TopicVersion

BASE = datetime(2013, 5, 1, 12, 0, tzinfo=timezone.utc)


def revision(days: int, content: str = '') -> Revision:
    return Revision(timestamp=BASE + timedelta(days=days), content=content or f"day {days}")


def version(version_id: int, days: int, previous=None) -> TopicVersion:
    return TopicVersion(
        author=DisplayString('127.0.0.1'),
        edit_date=BASE + timedelta(days=days),
        previous_version_id=previous,
        topic_version_id=version_id
    )


class TestSequence:
    """Chronological ordering."""

    def test_sorts_oldest_first(self):
        sequencer = RevisionSequencer()
        ordered = sequencer.sequence([revision(2), revision(0), revision(1)])
        assert [r.content for r in ordered] == ['day 0', 'day 1', 'day 2']

    def test_equal_timestamps_keep_input_order(self):
        sequencer = RevisionSequencer()
        ordered = sequencer.sequence([revision(1, 'b'), revision(0, 'a'), revision(1, 'c')])
        assert [r.content for r in ordered] == ['a', 'b', 'c']


class TestSplice:
    """Attaching revisions to existing history."""

    def test_new_topic_has_no_anchor(self):
        chain = RevisionSequencer().splice([revision(1), revision(0)])
        assert chain.anchor_version_id is None
        assert len(chain) == 2
        assert chain.latest.content == 'day 1'

    def test_appends_after_current_version(self):
        history = [version(10, 0), version(11, 1, previous=10)]
        chain = RevisionSequencer().splice([revision(3), revision(2)], history)
        assert chain.anchor_version_id == 11
        assert [r.content for r in chain.revisions] == ['day 2', 'day 3']

    def test_interleaved_revision_rejected(self):
        history = [version(10, 0), version(11, 2, previous=10)]
        with pytest.raises(SequencingError) as excinfo:
            RevisionSequencer().splice([revision(1)], history, page_title='Unsorted History')
        assert excinfo.value.page_title == 'Unsorted History'
        assert excinfo.value.stage == 'sequencing'

    def test_revision_at_current_timestamp_rejected(self):
        history = [version(10, 0)]
        with pytest.raises(SequencingError):
            RevisionSequencer().splice([revision(0)], history)

    def test_prepending_rejected(self):
        history = [version(10, 1)]
        with pytest.raises(SequencingError) as excinfo:
            RevisionSequencer().splice([revision(0)], history)
        assert 'older' in str(excinfo.value)

    def test_sequencing_error_is_migration_error(self):
        assert issubclass(SequencingError, MigrationError)
