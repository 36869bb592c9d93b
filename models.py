"""Data models for the wiki topic migration engine."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

logger = logging.getLogger('wiki_topic_migrator')

NAMESPACE_SEPARATOR = ':'


class ExportState(Enum):
    """States of an export run."""
    IDLE = "idle"
    RESOLVING = "resolving"
    WRITING = "writing"
    FINALIZED = "finalized"
    ABORTED = "aborted"


class ImportStage(Enum):
    """Stages an import run moves through for every page."""
    IDLE = "idle"
    PARSING_PAGE = "parsing"
    TRANSLATING = "translating"
    SEQUENCING = "sequencing"
    PERSISTING = "persisting"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True)
class Namespace:
    """A topic namespace and the foreign prefixes that map onto it."""

    id: int
    name: str
    aliases: Tuple[str, ...] = ()

    @property
    def is_main(self) -> bool:
        return self.name == ''

    @property
    def foreign_prefix(self) -> str:
        """Prefix written when exporting topics of this namespace."""
        return self.aliases[0] if self.aliases else self.name

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'aliases': list(self.aliases)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Namespace':
        return cls(id=data['id'], name=data['name'], aliases=tuple(data.get('aliases', [])))


@dataclass(frozen=True)
class ResolvedUser:
    """An author that maps onto a known wiki user."""

    user_id: int
    username: str

    @property
    def display(self) -> str:
        return self.username


@dataclass(frozen=True)
class DisplayString:
    """An author recorded only as text (foreign username or IP address)."""

    text: str

    @property
    def display(self) -> str:
        return self.text


Author = Union[ResolvedUser, DisplayString]


def author_to_dict(author: Author) -> Dict[str, Any]:
    if isinstance(author, ResolvedUser):
        return {'type': 'user', 'user_id': author.user_id, 'username': author.username}
    return {'type': 'display', 'text': author.text}


def author_from_dict(data: Dict[str, Any]) -> Author:
    if data.get('type') == 'user':
        return ResolvedUser(user_id=data['user_id'], username=data['username'])
    return DisplayString(text=data['text'])


@dataclass(frozen=True)
class Revision:
    """One revision of a page as parsed from an export file."""

    timestamp: datetime
    content: str = ''
    comment: str = ''
    username: Optional[str] = None
    ip: Optional[str] = None
    revision_id: Optional[int] = None
    minor: bool = False


@dataclass
class Page:
    """A page parsed from an export file; lives only for one import run."""

    title: str
    revisions: List[Revision] = field(default_factory=list)
    namespace_key: Optional[int] = None
    page_id: Optional[int] = None

    @property
    def prefix(self) -> Optional[str]:
        """Text before the first separator, if any."""
        if NAMESPACE_SEPARATOR not in self.title:
            return None
        return self.title.split(NAMESPACE_SEPARATOR, 1)[0]


@dataclass
class SiteInfo:
    """Header information from an export file."""

    sitename: Optional[str] = None
    base: Optional[str] = None
    generator: Optional[str] = None
    case: Optional[str] = None
    namespaces: Dict[int, str] = field(default_factory=dict)


@dataclass
class Topic:
    """Current persistent state of a wiki page."""

    virtual_wiki: str
    name: str
    namespace_id: int = 0
    page_name: str = ''
    topic_content: str = ''
    current_version_id: Optional[int] = None
    topic_id: Optional[int] = None
    delete_date: Optional[datetime] = None

    @property
    def deleted(self) -> bool:
        return self.delete_date is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'virtual_wiki': self.virtual_wiki,
            'name': self.name,
            'namespace_id': self.namespace_id,
            'page_name': self.page_name,
            'topic_content': self.topic_content,
            'current_version_id': self.current_version_id,
            'topic_id': self.topic_id,
            'delete_date': self.delete_date.isoformat() if self.delete_date else None
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Topic':
        delete_date = data.get('delete_date')
        return cls(
            virtual_wiki=data['virtual_wiki'],
            name=data['name'],
            namespace_id=data.get('namespace_id', 0),
            page_name=data.get('page_name', ''),
            topic_content=data.get('topic_content', ''),
            current_version_id=data.get('current_version_id'),
            topic_id=data.get('topic_id'),
            delete_date=datetime.fromisoformat(delete_date) if delete_date else None
        )


@dataclass
class TopicVersion:
    """One immutable historical snapshot of a topic."""

    author: Author
    edit_date: datetime
    version_content: str = ''
    edit_comment: str = ''
    previous_version_id: Optional[int] = None
    topic_version_id: Optional[int] = None
    topic_id: Optional[int] = None
    edit_type: str = 'edit'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'author': author_to_dict(self.author),
            'edit_date': self.edit_date.isoformat(),
            'version_content': self.version_content,
            'edit_comment': self.edit_comment,
            'previous_version_id': self.previous_version_id,
            'topic_version_id': self.topic_version_id,
            'topic_id': self.topic_id,
            'edit_type': self.edit_type
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TopicVersion':
        return cls(
            author=author_from_dict(data['author']),
            edit_date=datetime.fromisoformat(data['edit_date']),
            version_content=data.get('version_content', ''),
            edit_comment=data.get('edit_comment', ''),
            previous_version_id=data.get('previous_version_id'),
            topic_version_id=data.get('topic_version_id'),
            topic_id=data.get('topic_id'),
            edit_type=data.get('edit_type', 'edit')
        )


@dataclass(frozen=True)
class Pagination:
    """Result window for history queries."""

    num_results: int = 1000
    offset: int = 0


__all__ = [
    'Author',
    'DisplayString',
    'ExportState',
    'ImportStage',
    'NAMESPACE_SEPARATOR',
    'Namespace',
    'Page',
    'Pagination',
    'ResolvedUser',
    'Revision',
    'SiteInfo',
    'Topic',
    'TopicVersion',
    'author_from_dict',
    'author_to_dict'
]
