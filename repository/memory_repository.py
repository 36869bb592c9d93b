"""In-memory topic repository with JSON snapshot persistence."""

import copy
import json
import logging
import re
import threading
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

from converters.namespace_translator import default_namespaces
from errors import RepositoryError
from models import Namespace, Pagination, ResolvedUser, Topic, TopicVersion

from .base_repository import TopicRepository

SNAPSHOT_VERSION = '1.0'

INVALID_TOPIC_NAME_PATTERN = re.compile(r'[\[\]{}|<>\n\r\t]')

TopicKey = Tuple[str, str]


class InMemoryTopicRepository(TopicRepository):
    """
    Reference repository keeping everything in process memory.

    Enforces the invariants the migration engine relies on:
    1. At most one topic per (virtual wiki, name)
    2. Each new version follows the topic's current version
    3. Versions of a topic never go back in time
    """

    def __init__(
        self,
        namespaces: Optional[List[Namespace]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the repository.

        Args:
            namespaces: Namespaces for every virtual wiki without its own set
            logger: Logger instance
        """
        self.logger = logger or logging.getLogger('wiki_topic_migrator.repository.memory_repository')

        self._default_namespaces = list(namespaces) if namespaces is not None else default_namespaces()
        self._namespaces: Dict[str, List[Namespace]] = {}
        self._users: Dict[str, ResolvedUser] = {}
        self._topics: Dict[TopicKey, Topic] = {}
        self._versions: Dict[int, TopicVersion] = {}
        self._categories: Dict[int, Dict[str, str]] = {}
        self._links: Dict[int, List[str]] = {}
        self._next_topic_id = 1
        self._next_version_id = 1
        self._next_user_id = 1

        self._lock = threading.RLock()
        self._journal: Optional[List[Callable[[], None]]] = None

    # Configuration

    def set_namespaces(self, virtual_wiki: str, namespaces: List[Namespace]) -> None:
        with self._lock:
            self._namespaces[virtual_wiki] = list(namespaces)

    def add_user(self, username: str) -> ResolvedUser:
        """Register a wiki user so imported revisions can be linked to it."""
        with self._lock:
            if username in self._users:
                return self._users[username]
            user = ResolvedUser(user_id=self._next_user_id, username=username)
            self._next_user_id += 1
            self._users[username] = user
            return user

    # TopicRepository

    def lookup_topic(self, virtual_wiki: str, name: str, include_deleted: bool = False) -> Optional[Topic]:
        with self._lock:
            topic = self._topics.get((virtual_wiki, name))
            if topic is None or (topic.deleted and not include_deleted):
                return None
            return replace(topic)

    def write_topic(
        self,
        topic: Topic,
        version: Optional[TopicVersion],
        categories: Optional[Dict[str, str]] = None,
        links: Optional[List[str]] = None
    ) -> None:
        self._validate_topic_name(topic.name)

        with self._lock:
            key = (topic.virtual_wiki, topic.name)
            existing = self._topics.get(key)

            if topic.topic_id is None:
                if existing is not None:
                    raise RepositoryError(
                        f"Topic '{topic.name}' already exists in virtual wiki '{topic.virtual_wiki}'"
                    )
                topic_id = self._next_topic_id
                self._next_topic_id += 1
            else:
                if existing is None or existing.topic_id != topic.topic_id:
                    raise RepositoryError(
                        f"Topic '{topic.name}' with id {topic.topic_id} does not match the stored topic"
                    )
                topic_id = topic.topic_id

            current_version_id = existing.current_version_id if existing is not None else None

            if version is not None:
                self._validate_version(topic, version, current_version_id)

            self._record_undo(self._topic_restorer(key, existing, topic_id))

            if version is not None:
                version_id = self._next_version_id
                self._next_version_id += 1
                version.topic_version_id = version_id
                version.topic_id = topic_id
                self._versions[version_id] = replace(version)
                self._record_undo(lambda: self._versions.pop(version_id, None))
                current_version_id = version_id

            topic.topic_id = topic_id
            topic.current_version_id = current_version_id
            self._topics[key] = replace(topic)
            self._categories[topic_id] = dict(categories or {})
            self._links[topic_id] = list(links or [])

        self.logger.debug(f"Wrote topic '{topic.name}' (version {topic.current_version_id})")

    def get_topic_history(
        self,
        topic: Topic,
        pagination: Optional[Pagination] = None,
        descending: bool = False
    ) -> List[TopicVersion]:
        with self._lock:
            stored = self._topics.get((topic.virtual_wiki, topic.name))
            if stored is None:
                return []

            chain = []
            version_id = stored.current_version_id
            while version_id is not None:
                version = self._versions[version_id]
                chain.append(replace(version))
                version_id = version.previous_version_id

        if not descending:
            chain.reverse()
        if pagination is not None:
            chain = chain[pagination.offset:pagination.offset + pagination.num_results]
        return chain

    def lookup_namespaces(self, virtual_wiki: str) -> List[Namespace]:
        with self._lock:
            return list(self._namespaces.get(virtual_wiki, self._default_namespaces))

    def lookup_user(self, username: str) -> Optional[ResolvedUser]:
        with self._lock:
            return self._users.get(username)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._journal is not None:
                # Nested blocks join the outer transaction
                yield
                return

            self._journal = []
            try:
                yield
            except BaseException:
                undo_count = len(self._journal)
                for undo in reversed(self._journal):
                    undo()
                self.logger.debug(f"Transaction rolled back ({undo_count} changes undone)")
                raise
            finally:
                self._journal = None

    # Queries used by tooling and tests

    def topic_names(self, virtual_wiki: str, include_deleted: bool = False) -> List[str]:
        with self._lock:
            return sorted(
                name for (wiki, name), topic in self._topics.items()
                if wiki == virtual_wiki and (include_deleted or not topic.deleted)
            )

    def lookup_categories(self, topic: Topic) -> Dict[str, str]:
        with self._lock:
            return dict(self._categories.get(topic.topic_id, {}))

    def lookup_links(self, topic: Topic) -> List[str]:
        with self._lock:
            return list(self._links.get(topic.topic_id, []))

    # Snapshots

    def save_snapshot(self, snapshot_path: Union[str, Path]) -> None:
        """Write the repository contents to a JSON file."""
        with self._lock:
            snapshot = {
                'snapshot_version': SNAPSHOT_VERSION,
                'default_namespaces': [ns.to_dict() for ns in self._default_namespaces],
                'namespaces': {
                    wiki: [ns.to_dict() for ns in namespaces]
                    for wiki, namespaces in self._namespaces.items()
                },
                'users': [
                    {'user_id': user.user_id, 'username': user.username}
                    for user in self._users.values()
                ],
                'topics': [topic.to_dict() for topic in self._topics.values()],
                'versions': [version.to_dict() for version in self._versions.values()],
                'categories': {str(k): v for k, v in self._categories.items()},
                'links': {str(k): v for k, v in self._links.items()},
                'counters': {
                    'topic': self._next_topic_id,
                    'version': self._next_version_id,
                    'user': self._next_user_id
                }
            }

        with open(snapshot_path, 'w', encoding='utf-8') as f:
            json.dump(snapshot, f, indent=2, ensure_ascii=False)

        self.logger.info(f"Repository snapshot saved to {snapshot_path}")

    @classmethod
    def load_snapshot(
        cls,
        snapshot_path: Union[str, Path],
        logger: Optional[logging.Logger] = None
    ) -> 'InMemoryTopicRepository':
        """Rebuild a repository from a JSON file written by save_snapshot."""
        with open(snapshot_path, 'r', encoding='utf-8') as f:
            snapshot: Dict[str, Any] = json.load(f)

        if snapshot.get('snapshot_version') != SNAPSHOT_VERSION:
            raise ValueError(
                f"Unsupported snapshot version {snapshot.get('snapshot_version')!r} in {snapshot_path}"
            )

        repository = cls(
            namespaces=[Namespace.from_dict(ns) for ns in snapshot.get('default_namespaces', [])] or None,
            logger=logger
        )
        for wiki, namespaces in snapshot.get('namespaces', {}).items():
            repository._namespaces[wiki] = [Namespace.from_dict(ns) for ns in namespaces]
        for user in snapshot.get('users', []):
            repository._users[user['username']] = ResolvedUser(user['user_id'], user['username'])
        for topic_data in snapshot.get('topics', []):
            topic = Topic.from_dict(topic_data)
            repository._topics[(topic.virtual_wiki, topic.name)] = topic
        for version_data in snapshot.get('versions', []):
            version = TopicVersion.from_dict(version_data)
            repository._versions[version.topic_version_id] = version
        repository._categories = {int(k): v for k, v in snapshot.get('categories', {}).items()}
        repository._links = {int(k): v for k, v in snapshot.get('links', {}).items()}

        counters = snapshot.get('counters', {})
        repository._next_topic_id = counters.get('topic', 1)
        repository._next_version_id = counters.get('version', 1)
        repository._next_user_id = counters.get('user', 1)

        repository.logger.info(
            f"Loaded repository snapshot from {snapshot_path}: "
            f"{len(repository._topics)} topics, {len(repository._versions)} versions"
        )
        return repository

    # Internals

    @staticmethod
    def _validate_topic_name(name: str) -> None:
        if not name or not name.strip():
            raise RepositoryError("Topic name cannot be empty")
        if INVALID_TOPIC_NAME_PATTERN.search(name):
            raise RepositoryError(f"Topic name '{name}' contains invalid characters")

    def _validate_version(self, topic: Topic, version: TopicVersion, current_version_id: Optional[int]) -> None:
        if version.previous_version_id != current_version_id:
            raise RepositoryError(
                f"Version for topic '{topic.name}' follows version {version.previous_version_id}, "
                f"but the current version is {current_version_id}"
            )
        if version.edit_date is None or version.edit_date.tzinfo is None:
            raise RepositoryError(f"Version for topic '{topic.name}' needs a timezone-aware edit date")
        if current_version_id is not None:
            previous = self._versions[current_version_id]
            if version.edit_date < previous.edit_date:
                raise RepositoryError(
                    f"Version for topic '{topic.name}' dated {version.edit_date.isoformat()} "
                    f"is older than the current version ({previous.edit_date.isoformat()})"
                )

    def _record_undo(self, undo: Callable[[], None]) -> None:
        if self._journal is not None:
            self._journal.append(undo)

    def _topic_restorer(self, key: TopicKey, previous: Optional[Topic], topic_id: int) -> Callable[[], None]:
        previous = copy.copy(previous)
        previous_categories = self._categories.get(topic_id)
        previous_links = self._links.get(topic_id)

        def restore() -> None:
            if previous is None:
                self._topics.pop(key, None)
            else:
                self._topics[key] = previous
            if previous_categories is None:
                self._categories.pop(topic_id, None)
            else:
                self._categories[topic_id] = previous_categories
            if previous_links is None:
                self._links.pop(topic_id, None)
            else:
                self._links[topic_id] = previous_links

        return restore
