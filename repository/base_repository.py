"""Abstract repository interface consumed by the migration engine."""

from abc import ABC, abstractmethod
from typing import ContextManager, Dict, List, Optional

from models import Namespace, Pagination, ResolvedUser, Topic, TopicVersion


class TopicRepository(ABC):
    """Read/write access to topics, versions, namespaces and users.

    The migration engine only talks to this interface; how topics are stored
    is up to the implementation. Implementations are responsible for
    serializing concurrent writes to the same topic.
    """

    @abstractmethod
    def lookup_topic(self, virtual_wiki: str, name: str, include_deleted: bool = False) -> Optional[Topic]:
        """
        Retrieve a topic by its namespace-qualified name.

        Args:
            virtual_wiki: Virtual wiki the topic belongs to
            name: Namespace-qualified topic name
            include_deleted: Whether deleted topics may be returned

        Returns:
            A detached copy of the topic, or None if no match exists
        """
        pass

    @abstractmethod
    def write_topic(
        self,
        topic: Topic,
        version: Optional[TopicVersion],
        categories: Optional[Dict[str, str]] = None,
        links: Optional[List[str]] = None
    ) -> None:
        """
        Add or update a topic, recording a new version when one is given.

        On success ``topic.topic_id``, ``topic.current_version_id`` and
        ``version.topic_version_id`` are populated.

        Args:
            topic: Topic to add (no topic_id) or update
            version: New current version; its previous_version_id must be the
                topic's current version
            categories: Category name to sort key for the topic content
            links: Topic names linked from the topic content

        Raises:
            RepositoryError: If the topic or version data is invalid
        """
        pass

    @abstractmethod
    def get_topic_history(
        self,
        topic: Topic,
        pagination: Optional[Pagination] = None,
        descending: bool = False
    ) -> List[TopicVersion]:
        """
        Retrieve the versions of a topic in chronological order.

        Args:
            topic: Topic whose history is requested (deleted topics included)
            pagination: Result window, all versions when None
            descending: Newest first when True
        """
        pass

    @abstractmethod
    def lookup_namespaces(self, virtual_wiki: str) -> List[Namespace]:
        """Return all namespaces defined for a virtual wiki."""
        pass

    @abstractmethod
    def lookup_user(self, username: str) -> Optional[ResolvedUser]:
        """Return the known user with this username, or None."""
        pass

    @abstractmethod
    def transaction(self) -> ContextManager[None]:
        """
        Group writes so they are committed together.

        Writes made inside the block are discarded when the block raises.
        """
        pass
