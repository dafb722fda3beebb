"""Compare the ledger in commit history with the issue's current attachments.

The feature branch history is the only persistent state. A candidate is
matched when a tagged commit records it: applied tags match on file id and
comment id, provisional (posted) tags match on filename alone, because the
tracker assigns the real ids only after upload. Tags left by the predecessor
tool carry the visible comment number, so they match on file id and that
number. Hidden attachments never match.

Once a candidate at index ``k`` is matched, every candidate at or below ``k``
is out of reach for good: a later patch on the issue supersedes earlier ones,
so a patch that failed to apply before a later one succeeded is never retried.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from .schema import (
    CandidateMatch,
    CommitRecord,
    PatchCandidate,
    ProvenanceTag,
    ReconciliationPlan,
    TagDirection,
)

__all__ = ["match_history", "reconcile", "tag_matches_candidate"]


def tag_matches_candidate(tag: ProvenanceTag, candidate: PatchCandidate) -> bool:
    """Return ``True`` when ``tag`` records ``candidate``."""
    if tag.direction is TagDirection.APPLIED_FROM_ISSUE:
        if tag.file_id != candidate.file_id:
            return False
        if tag.from_legacy_tool:
            return tag.comment_id == candidate.comment_number
        return tag.comment_id == candidate.comment_id
    return tag.filename == candidate.filename


def match_history(
    history: Sequence[CommitRecord],
    candidates: Sequence[PatchCandidate],
) -> List[CandidateMatch]:
    """Pair tagged commits with candidates, oldest commit first.

    Each commit satisfies at most one candidate and each candidate is
    satisfied at most once; the first valid pairing in index order wins.
    """

    ordered = sorted(candidates, key=lambda item: item.order_index)
    claimed: set[int] = set()
    matches: List[CandidateMatch] = []
    for record in history:
        tag = record.tag
        if tag is None:
            continue
        candidate = _first_match(tag, ordered, claimed)
        if candidate is None:
            continue
        claimed.add(candidate.order_index)
        matches.append(CandidateMatch(order_index=candidate.order_index, commit_sha=record.sha))
    return matches


def _first_match(
    tag: ProvenanceTag,
    candidates: Iterable[PatchCandidate],
    claimed: set[int],
) -> Optional[PatchCandidate]:
    for candidate in candidates:
        if candidate.order_index in claimed or not candidate.is_displayable:
            continue
        if tag_matches_candidate(tag, candidate):
            return candidate
    return None


def reconcile(
    history: Sequence[CommitRecord],
    candidates: Sequence[PatchCandidate],
) -> ReconciliationPlan:
    """Return the patches still to apply, in posting order."""

    matches = match_history(history, candidates)
    high_water = max((match.order_index for match in matches), default=0)
    matched_indexes = {match.order_index for match in matches}

    pending: List[PatchCandidate] = []
    superseded: List[PatchCandidate] = []
    for candidate in sorted(candidates, key=lambda item: item.order_index):
        if not candidate.is_applicable:
            continue
        if candidate.order_index > high_water:
            pending.append(candidate)
        elif candidate.order_index not in matched_indexes:
            superseded.append(candidate)

    return ReconciliationPlan(
        high_water_index=high_water,
        pending=tuple(pending),
        matches=tuple(matches),
        superseded=tuple(superseded),
    )
