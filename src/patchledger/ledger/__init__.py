"""Ledger records, the commit message codec, and the reconciliation engine."""

from .commit_message import CommitMessageCodec
from .history import ensure_clean_working_tree, read_feature_history
from .reconcile import reconcile
from .schema import (
    CandidateMatch,
    CommitRecord,
    PatchCandidate,
    ProvenanceTag,
    ReconciliationPlan,
    TagDirection,
)

__all__ = [
    "CandidateMatch",
    "CommitMessageCodec",
    "CommitRecord",
    "PatchCandidate",
    "ProvenanceTag",
    "ReconciliationPlan",
    "TagDirection",
    "ensure_clean_working_tree",
    "read_feature_history",
    "reconcile",
]
