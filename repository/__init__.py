"""Repository port for the migration engine.

The engine reads and writes topics, versions and namespaces only through
``TopicRepository``. ``InMemoryTopicRepository`` is the reference
implementation used by the command line tool (persisted as a JSON snapshot)
and by the tests.
"""

from .base_repository import TopicRepository
from .memory_repository import InMemoryTopicRepository

__all__ = [
    'TopicRepository',
    'InMemoryTopicRepository'
]
