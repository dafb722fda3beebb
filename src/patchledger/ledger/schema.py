"""Typed records describing the patch ledger and the issue's attachments."""

from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RecordModel(BaseModel):
    """Base Pydantic model with strict, immutable field handling."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class TagDirection(str, Enum):
    """Which way a patch travelled between the branch and the issue."""

    APPLIED_FROM_ISSUE = "from"
    POSTED_TO_ISSUE = "for"


class ProvenanceTag(RecordModel):
    """Structured metadata embedded in a tool-generated commit message.

    Applied tags always carry the tracker's file id. Posted tags are
    provisional: the comment id is the one expected at upload time and the
    file id is not known yet.

    Tags decoded from commits written by a predecessor tool set
    ``from_legacy_tool``; their ``comment_id`` holds the visible comment
    number rather than the tracker's comment id.
    """

    direction: TagDirection
    comment_id: int = Field(ge=0)
    file_id: Optional[int] = Field(default=None, ge=0)
    filename: str = Field(min_length=1)
    url: Optional[str] = None
    from_legacy_tool: bool = False

    @model_validator(mode="after")
    def _check_direction_fields(self) -> "ProvenanceTag":
        if self.direction is TagDirection.APPLIED_FROM_ISSUE and self.file_id is None:
            raise ValueError("Applied tags require a file id.")
        if self.direction is TagDirection.POSTED_TO_ISSUE and self.file_id is not None:
            raise ValueError("Posted tags cannot carry a file id.")
        return self

    @classmethod
    def applied(
        cls,
        *,
        comment_id: int,
        file_id: int,
        filename: str,
        url: str | None = None,
    ) -> "ProvenanceTag":
        return cls(
            direction=TagDirection.APPLIED_FROM_ISSUE,
            comment_id=comment_id,
            file_id=file_id,
            filename=filename,
            url=url,
        )

    @classmethod
    def posted(
        cls,
        *,
        expected_comment_id: int,
        filename: str,
        url: str | None = None,
    ) -> "ProvenanceTag":
        return cls(
            direction=TagDirection.POSTED_TO_ISSUE,
            comment_id=expected_comment_id,
            filename=filename,
            url=url,
        )

    @property
    def is_provisional(self) -> bool:
        return self.direction is TagDirection.POSTED_TO_ISSUE


class CommitRecord(RecordModel):
    """Single commit on the feature branch; ``tag`` is ``None`` for manual commits."""

    sha: str
    message: str
    tag: Optional[ProvenanceTag] = None

    @property
    def is_tagged(self) -> bool:
        return self.tag is not None


class PatchCandidate(RecordModel):
    """Attachment currently listed on the issue."""

    order_index: int = Field(ge=1)
    file_id: int
    comment_id: int
    filename: str
    is_displayable: bool = True
    is_recognized_patch: bool = True
    url: Optional[str] = None
    comment_number: Optional[int] = None

    @property
    def is_applicable(self) -> bool:
        """Return ``True`` when the candidate may ever be applied."""
        return self.is_displayable and self.is_recognized_patch

    def describe(self) -> str:
        label = f"#{self.comment_number}" if self.comment_number is not None else f"cid {self.comment_id}"
        return f"{self.filename} ({label}, fid {self.file_id})"


class CandidateMatch(RecordModel):
    """Pairing between an issue attachment and the commit that recorded it."""

    order_index: int
    commit_sha: str


class ReconciliationPlan(RecordModel):
    """Outcome of comparing the ledger with the issue's attachments."""

    high_water_index: int = 0
    pending: Tuple[PatchCandidate, ...] = ()
    matches: Tuple[CandidateMatch, ...] = ()
    superseded: Tuple[PatchCandidate, ...] = ()

    @property
    def is_up_to_date(self) -> bool:
        return not self.pending


__all__ = [
    "CandidateMatch",
    "CommitRecord",
    "PatchCandidate",
    "ProvenanceTag",
    "ReconciliationPlan",
    "RecordModel",
    "TagDirection",
]
