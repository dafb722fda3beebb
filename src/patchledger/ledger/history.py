"""Read the feature branch's commits back as ledger records."""

from __future__ import annotations

import logging
from typing import List, Protocol, Sequence

from ..errors import DirtyWorkingTreeError
from ..tools.vcs import LogEntry
from .commit_message import CommitMessageCodec
from .schema import CommitRecord

LOGGER = logging.getLogger(__name__)

__all__ = ["ensure_clean_working_tree", "read_feature_history", "records_from_log"]


class HistorySource(Protocol):
    def log_unique_commits(self, tip: str, base: str) -> Sequence[LogEntry]: ...


class WorkingTree(Protocol):
    def is_clean(self) -> bool: ...


def ensure_clean_working_tree(repo: WorkingTree) -> None:
    """Raise :class:`DirtyWorkingTreeError` unless the working tree is clean."""
    if not repo.is_clean():
        raise DirtyWorkingTreeError()


def records_from_log(entries: Sequence[LogEntry], codec: CommitMessageCodec) -> List[CommitRecord]:
    """Decode raw log entries; untagged commits stay in place."""
    records: List[CommitRecord] = []
    for entry in entries:
        tag = codec.decode(entry.message)
        records.append(CommitRecord(sha=entry.sha, message=entry.message, tag=tag))
    return records


def read_feature_history(
    repo: HistorySource,
    feature_tip: str,
    base: str,
    codec: CommitMessageCodec,
) -> List[CommitRecord]:
    """Return commits unique to the feature branch, oldest first."""
    records = records_from_log(repo.log_unique_commits(feature_tip, base), codec)
    tagged = sum(1 for record in records if record.is_tagged)
    LOGGER.debug(
        "Read %d commit(s) between %s and %s (%d tagged).",
        len(records),
        base,
        feature_tip,
        tagged,
    )
    return records
