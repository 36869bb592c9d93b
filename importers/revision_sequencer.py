"""
Revision sequencing for imported pages.

Orders the revisions of one page chronologically and works out where the
resulting chain attaches to a topic's existing version history.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from errors import SequencingError
from models import ImportStage, Revision, TopicVersion


@dataclass
class RevisionChain:
    """Chronologically ordered revisions ready to be persisted."""

    revisions: List[Revision] = field(default_factory=list)
    anchor_version_id: Optional[int] = None  # existing version the first revision follows

    @property
    def latest(self) -> Optional[Revision]:
        return self.revisions[-1] if self.revisions else None

    def __len__(self) -> int:
        return len(self.revisions)


class RevisionSequencer:
    """Builds linear revision chains from unordered revisions."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('wiki_topic_migrator.importers.revision_sequencer')

    def sequence(self, revisions: Iterable[Revision]) -> List[Revision]:
        """
        Order revisions by timestamp, oldest first.

        The sort is stable: revisions sharing a timestamp keep their input
        order.
        """
        return sorted(revisions, key=lambda revision: revision.timestamp)

    def splice(
        self,
        revisions: Iterable[Revision],
        history: Sequence[TopicVersion] = (),
        page_title: Optional[str] = None
    ) -> RevisionChain:
        """
        Sequence revisions and attach them after an existing history.

        Args:
            revisions: Revisions of one page, in any order
            history: Existing versions of the topic (empty for a new topic)
            page_title: Title used in error messages

        Returns:
            RevisionChain whose anchor is the existing current version

        Raises:
            SequencingError: If a revision is older than the existing
                history or falls within it
        """
        ordered = self.sequence(revisions)

        if not history:
            return RevisionChain(revisions=ordered)

        earliest = min(version.edit_date for version in history)
        current = max(history, key=lambda version: version.edit_date)
        latest = current.edit_date

        for revision in ordered:
            if revision.timestamp < earliest:
                raise SequencingError(
                    f"Revision dated {revision.timestamp.isoformat()} is older than the "
                    f"topic's first version ({earliest.isoformat()}); history cannot be prepended",
                    page_title=page_title,
                    stage=ImportStage.SEQUENCING.value
                )
            if revision.timestamp <= latest:
                raise SequencingError(
                    f"Revision dated {revision.timestamp.isoformat()} falls within the topic's "
                    f"existing history ({earliest.isoformat()} - {latest.isoformat()}); "
                    f"interleaving revisions is not supported",
                    page_title=page_title,
                    stage=ImportStage.SEQUENCING.value
                )

        self.logger.debug(
            f"Appending {len(ordered)} revisions after version {current.topic_version_id}"
            + (f" of '{page_title}'" if page_title else "")
        )
        return RevisionChain(revisions=ordered, anchor_version_id=current.topic_version_id)
