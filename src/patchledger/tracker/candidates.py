"""Turn the issue's attachment listing into ordered patch candidates."""

from __future__ import annotations

import logging
from typing import List, Sequence

from ..ledger.schema import PatchCandidate
from .client import IssueTracker, PatchAttachment

LOGGER = logging.getLogger(__name__)

DEFAULT_PATCH_SUFFIX = ".patch"

__all__ = ["DEFAULT_PATCH_SUFFIX", "build_candidates", "fetch_candidates", "is_recognized_patch"]


def is_recognized_patch(filename: str, suffix: str = DEFAULT_PATCH_SUFFIX) -> bool:
    """Return ``True`` when ``filename`` ends in ``suffix`` and nothing follows it.

    ``fix.patch.txt`` is rejected because the patch suffix is not the final
    token; a bare ``.patch`` is rejected because there is no name.
    """
    name = filename.strip()
    if not name.endswith(suffix):
        return False
    return bool(name[: -len(suffix)])


def build_candidates(
    attachments: Sequence[PatchAttachment],
    suffix: str = DEFAULT_PATCH_SUFFIX,
) -> List[PatchCandidate]:
    """Map attachments to candidates, numbering them in posting order.

    Hidden attachments keep their index slot so numbering never shifts.
    """
    candidates: List[PatchCandidate] = []
    for position, attachment in enumerate(attachments, start=1):
        candidates.append(
            PatchCandidate(
                order_index=position,
                file_id=attachment.file_id,
                comment_id=attachment.comment_id,
                filename=attachment.filename,
                is_displayable=attachment.displayable,
                is_recognized_patch=is_recognized_patch(attachment.filename, suffix),
                url=attachment.url,
                comment_number=attachment.comment_number,
            )
        )
    return candidates


def fetch_candidates(
    tracker: IssueTracker,
    issue_id: str,
    suffix: str = DEFAULT_PATCH_SUFFIX,
) -> List[PatchCandidate]:
    """Fetch the issue's attachments and return them as candidates."""
    candidates = build_candidates(tracker.list_patch_attachments(issue_id), suffix)
    applicable = sum(1 for candidate in candidates if candidate.is_applicable)
    LOGGER.info("Issue %s has %d attachment(s), %d applicable patch(es).", issue_id, len(candidates), applicable)
    return candidates
