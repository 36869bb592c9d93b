"""Exceptions raised by the migration engine and its repository port."""

from typing import Iterable, Optional


class RepositoryError(Exception):
    """Raised by a repository when topic or version data is invalid."""
    pass


class MigrationError(Exception):
    """Failure of an import or export run.

    Carries enough context to diagnose the failure: the file being read or
    written, the page being processed, the stage the run was in, and for
    imports the topics that were already committed before the failure.
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        page_title: Optional[str] = None,
        stage: Optional[str] = None,
        committed_topics: Iterable[str] = (),
        unresolved_topics: Iterable[str] = ()
    ):
        self.message = message
        self.path = str(path) if path is not None else None
        self.page_title = page_title
        self.stage = stage
        self.committed_topics = list(committed_topics)
        self.unresolved_topics = list(unresolved_topics)
        super().__init__(message)

    def __str__(self) -> str:
        context = []
        if self.path:
            context.append(f"file={self.path}")
        if self.page_title is not None:
            context.append(f"page='{self.page_title}'")
        if self.stage:
            context.append(f"stage={self.stage}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class SequencingError(MigrationError):
    """Revisions that cannot be spliced onto an existing version chain."""
    pass


__all__ = ['MigrationError', 'RepositoryError', 'SequencingError']
