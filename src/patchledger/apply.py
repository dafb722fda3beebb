"""Apply pending patches to the feature branch and record each one in history."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Mapping, Protocol, Sequence, Tuple

from .ledger.commit_message import CommitMessageCodec
from .ledger.schema import PatchCandidate, ProvenanceTag, ReconciliationPlan
from .tools.vcs import PatchApplyResult
from .tracker.client import IssueTracker, TrackerResponseError

__all__ = ["ApplyFailure", "ApplyReport", "AppliedPatch", "PatchApplier", "download_dir_for"]

LOGGER = logging.getLogger(__name__)
TELEMETRY_LOGGER = logging.getLogger("patchledger.telemetry")


class PatchTarget(Protocol):
    def apply_patch_file(self, path: Path | str) -> PatchApplyResult: ...

    def commit_all(self, message: str, *, allow_empty: bool = False) -> str | None: ...


@dataclass(slots=True, frozen=True)
class AppliedPatch:
    """Candidate that applied cleanly and the ledger commit recording it."""

    candidate: PatchCandidate
    commit_sha: str | None


@dataclass(slots=True, frozen=True)
class ApplyFailure:
    """Candidate whose patch did not apply."""

    candidate: PatchCandidate
    reason: str


@dataclass(slots=True)
class ApplyReport:
    """Summary of an update run."""

    applied: List[AppliedPatch] = field(default_factory=list)
    failed: List[ApplyFailure] = field(default_factory=list)
    skipped: Tuple[PatchCandidate, ...] = ()
    ignored: Tuple[PatchCandidate, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failed

    def format_summary(self) -> str:
        return (
            f"{len(self.applied)} applied, {len(self.skipped)} already done or superseded, "
            f"{len(self.failed)} failed"
        )


def download_dir_for(git_dir: Path) -> Path:
    """Directory inside the git directory that holds downloaded patch files."""
    return git_dir / "patchledger" / "patches"


def _serialise_event_value(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, (list, tuple, set)):
        return [_serialise_event_value(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): _serialise_event_value(child) for key, child in value.items()}
    return str(value)


def _emit_event(event: str, **fields: Any) -> None:
    """Log a structured JSON event on the telemetry logger."""
    payload = {"event": event, "timestamp": datetime.now(timezone.utc).isoformat()}
    for key, value in fields.items():
        payload[key] = _serialise_event_value(value)
    TELEMETRY_LOGGER.info(json.dumps(payload, separators=(",", ":"), ensure_ascii=True))


class PatchApplier:
    """Drive the download/apply/commit cycle over a reconciliation plan."""

    def __init__(
        self,
        repo: PatchTarget,
        tracker: IssueTracker,
        codec: CommitMessageCodec,
        *,
        download_dir: Path,
    ) -> None:
        self._repo = repo
        self._tracker = tracker
        self._codec = codec
        self._download_dir = Path(download_dir)

    def apply_plan(
        self,
        plan: ReconciliationPlan,
        candidates: Sequence[PatchCandidate] = (),
    ) -> ApplyReport:
        """Apply every pending candidate in order; failures do not stop the loop.

        ``candidates`` is the full listing the plan was built from; it only
        feeds the skipped/ignored counts of the report.
        """

        report = ApplyReport(
            skipped=tuple(
                candidate
                for candidate in candidates
                if candidate.is_applicable and candidate.order_index <= plan.high_water_index
            ),
            ignored=tuple(candidate for candidate in candidates if not candidate.is_applicable),
        )
        for candidate in plan.pending:
            _emit_event(
                "patch_apply_started",
                filename=candidate.filename,
                file_id=candidate.file_id,
                comment_id=candidate.comment_id,
                order_index=candidate.order_index,
            )
            patch_path = self._download(candidate)
            result = self._repo.apply_patch_file(patch_path)
            if not result.applied:
                LOGGER.warning("Patch %s did not apply: %s", candidate.filename, result.reason)
                report.failed.append(ApplyFailure(candidate=candidate, reason=result.reason))
                _emit_event(
                    "patch_apply_failed",
                    filename=candidate.filename,
                    order_index=candidate.order_index,
                    reason=result.reason,
                )
                continue

            tag = ProvenanceTag.applied(
                comment_id=candidate.comment_id,
                file_id=candidate.file_id,
                filename=candidate.filename,
                url=self._codec.recordable_url(candidate.url),
            )
            sha = self._repo.commit_all(self._codec.encode(tag), allow_empty=True)
            report.applied.append(AppliedPatch(candidate=candidate, commit_sha=sha))
            _emit_event(
                "patch_applied",
                filename=candidate.filename,
                order_index=candidate.order_index,
                commit=sha,
            )
        return report

    def _download(self, candidate: PatchCandidate) -> Path:
        if not candidate.url:
            raise TrackerResponseError(f"No download URL for {candidate.describe()}.")
        payload = self._tracker.download_patch(candidate.url)
        self._download_dir.mkdir(parents=True, exist_ok=True)
        target = self._download_dir / f"{candidate.file_id}-{Path(candidate.filename).name}"
        target.write_bytes(payload)
        LOGGER.debug("Downloaded %s to %s (%d bytes).", candidate.filename, target, len(payload))
        return target
