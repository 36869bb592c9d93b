"""Tests for the in-memory topic repository."""

from datetime import datetime, timedelta, timezone

import pytest

from errors import RepositoryError
from models import DisplayString, Namespace, Pagination, ResolvedUser, Topic, TopicVersion
from repository import InMemoryTopicRepository

BASE = datetime(2014, 1, 1, tzinfo=timezone.utc)


def new_version(days=0, previous=None, content='content', author=None):
    return TopicVersion(
        author=author or DisplayString('127.0.0.1'),
        edit_date=BASE + timedelta(days=days),
        version_content=content,
        previous_version_id=previous
    )


def create_topic(repository, name='Page', versions=1):
    topic = Topic(virtual_wiki='en', name=name)
    previous = None
    for day in range(versions):
        version = new_version(day, previous, content=f'v{day}')
        topic.topic_content = version.version_content
        repository.write_topic(topic, version)
        previous = version.topic_version_id
    return topic


class TestWriteTopic:
    """Topic and version persistence."""

    def test_ids_assigned(self, repository):
        topic = create_topic(repository)
        assert topic.topic_id is not None
        assert topic.current_version_id is not None
        stored = repository.lookup_topic('en', 'Page')
        assert stored.current_version_id == topic.current_version_id

    def test_lookup_returns_copy(self, repository):
        create_topic(repository)
        copy = repository.lookup_topic('en', 'Page')
        copy.topic_content = 'changed'
        assert repository.lookup_topic('en', 'Page').topic_content == 'v0'

    def test_duplicate_new_topic_rejected(self, repository):
        create_topic(repository)
        with pytest.raises(RepositoryError):
            repository.write_topic(Topic(virtual_wiki='en', name='Page'), new_version(5))

    def test_version_must_follow_current(self, repository):
        topic = create_topic(repository, versions=2)
        with pytest.raises(RepositoryError):
            repository.write_topic(topic, new_version(5, previous=None))

    def test_version_cannot_go_back_in_time(self, repository):
        topic = create_topic(repository, versions=3)
        with pytest.raises(RepositoryError):
            repository.write_topic(topic, new_version(0, previous=topic.current_version_id))

    def test_naive_edit_date_rejected(self, repository):
        version = TopicVersion(author=DisplayString('x'), edit_date=datetime(2014, 1, 1))
        with pytest.raises(RepositoryError):
            repository.write_topic(Topic(virtual_wiki='en', name='Naive'), version)

    @pytest.mark.parametrize('name', ['', '   ', 'a[b', 'a|b', 'line\nbreak'])
    def test_invalid_names(self, repository, name):
        with pytest.raises(RepositoryError):
            repository.write_topic(Topic(virtual_wiki='en', name=name), new_version())

    def test_deleted_topics_hidden(self, repository):
        topic = create_topic(repository)
        topic.delete_date = BASE
        repository.write_topic(topic, None)

        assert repository.lookup_topic('en', 'Page') is None
        assert repository.lookup_topic('en', 'Page', include_deleted=True) is not None
        assert repository.topic_names('en') == []
        assert repository.topic_names('en', include_deleted=True) == ['Page']


class TestHistory:
    """Version chain traversal."""

    def test_linear_chain(self, repository):
        topic = create_topic(repository, versions=3)
        history = repository.get_topic_history(topic)

        assert [v.version_content for v in history] == ['v0', 'v1', 'v2']
        assert history[0].previous_version_id is None
        for older, newer in zip(history, history[1:]):
            assert newer.previous_version_id == older.topic_version_id

    def test_descending_and_pagination(self, repository):
        topic = create_topic(repository, versions=3)

        newest = repository.get_topic_history(topic, Pagination(num_results=1), descending=True)
        assert [v.version_content for v in newest] == ['v2']
        page = repository.get_topic_history(topic, Pagination(num_results=2, offset=1))
        assert [v.version_content for v in page] == ['v1', 'v2']

    def test_unknown_topic(self, repository):
        assert repository.get_topic_history(Topic(virtual_wiki='en', name='Nope')) == []


class TestTransaction:
    """All-or-nothing writes."""

    def test_rollback_of_new_topic(self, repository):
        with pytest.raises(RuntimeError):
            with repository.transaction():
                create_topic(repository, versions=2)
                raise RuntimeError("boom")

        assert repository.lookup_topic('en', 'Page') is None

    def test_rollback_of_appended_versions(self, repository):
        topic = create_topic(repository, versions=1)
        before = repository.lookup_topic('en', 'Page')

        with pytest.raises(RuntimeError):
            with repository.transaction():
                repository.write_topic(topic, new_version(3, topic.current_version_id, content='new'), {'Cat': ''})
                raise RuntimeError("boom")

        after = repository.lookup_topic('en', 'Page')
        assert after == before
        assert len(repository.get_topic_history(after)) == 1
        assert repository.lookup_categories(after) == {}

    def test_nested_transactions_join(self, repository):
        with pytest.raises(RuntimeError):
            with repository.transaction():
                create_topic(repository, name='Outer')
                with repository.transaction():
                    create_topic(repository, name='Inner')
                raise RuntimeError("boom")

        assert repository.topic_names('en') == []

    def test_commit(self, repository):
        with repository.transaction():
            create_topic(repository)
        assert repository.topic_names('en') == ['Page']


class TestUsersAndNamespaces:
    def test_users(self, repository):
        user = repository.add_user('Alice')
        assert isinstance(user, ResolvedUser)
        assert repository.add_user('Alice') == user
        assert repository.lookup_user('Alice') == user
        assert repository.lookup_user('Bob') is None

    def test_namespaces_per_virtual_wiki(self, repository):
        custom = [Namespace(0, ''), Namespace(1, 'Diskussion', ('Talk',))]
        repository.set_namespaces('de', custom)
        assert repository.lookup_namespaces('de') == custom
        assert any(ns.name == 'Template comments' for ns in repository.lookup_namespaces('en'))


class TestSnapshot:
    def test_save_and_load(self, repository, tmp_path):
        user = repository.add_user('Alice')
        topic = create_topic(repository, versions=2)
        repository.write_topic(
            topic,
            new_version(5, topic.current_version_id, content='[[Link]]', author=user),
            {'Cat': 'key'},
            ['Link']
        )
        repository.set_namespaces('de', [Namespace(0, ''), Namespace(1, 'Diskussion', ('Talk',))])

        path = tmp_path / 'snapshot.json'
        repository.save_snapshot(path)
        loaded = InMemoryTopicRepository.load_snapshot(path)

        stored = loaded.lookup_topic('en', 'Page')
        assert stored == repository.lookup_topic('en', 'Page')
        assert loaded.get_topic_history(stored) == repository.get_topic_history(stored)
        assert loaded.get_topic_history(stored)[-1].author == user
        assert loaded.lookup_categories(stored) == {'Cat': 'key'}
        assert loaded.lookup_links(stored) == ['Link']
        assert loaded.lookup_user('Alice') == user
        assert loaded.lookup_namespaces('de')[1].aliases == ('Talk',)

        # Identifiers continue after the loaded ones
        other = create_topic(loaded, name='Other')
        assert other.topic_id > stored.topic_id

    def test_unsupported_snapshot_version(self, tmp_path):
        path = tmp_path / 'snapshot.json'
        path.write_text('{"snapshot_version": "0.1"}', encoding='utf-8')
        with pytest.raises(ValueError):
            InMemoryTopicRepository.load_snapshot(path)
