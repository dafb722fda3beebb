"""Wiring for the update run: preconditions, reconciliation, then apply."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from .analyser import deduce_issue_number
from .apply import ApplyReport, PatchApplier, download_dir_for
from .config import Settings
from .errors import NoBaseBranchError, NoFeatureBranchError, NotOnFeatureBranchError
from .ledger.history import ensure_clean_working_tree, read_feature_history
from .ledger.reconcile import reconcile
from .ledger.schema import CommitRecord, PatchCandidate, ReconciliationPlan
from .tools.branches import (
    BaseBranch,
    FeatureBranch,
    feature_branch_name,
    find_feature_branch,
    is_base_branch_name,
    resolve_base_branch,
)
from .tools.vcs import GitRepository
from .tracker.candidates import fetch_candidates
from .tracker.client import IssueTracker

__all__ = ["UpdateContext", "UpdateWorkflow"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class UpdateContext:
    """Everything derived for one run before any commit is made."""

    issue_number: str
    feature: FeatureBranch
    base: BaseBranch
    history: List[CommitRecord] = field(default_factory=list)
    candidates: List[PatchCandidate] = field(default_factory=list)
    plan: ReconciliationPlan = field(default_factory=ReconciliationPlan)
    created_branch: bool = False

    @property
    def ledger(self) -> List[CommitRecord]:
        return [record for record in self.history if record.is_tagged]


class UpdateWorkflow:
    """Coordinator for the ``update`` and ``status`` commands."""

    def __init__(
        self,
        *,
        repo: GitRepository,
        tracker: IssueTracker,
        settings: Settings | None = None,
    ) -> None:
        self._repo = repo
        self._tracker = tracker
        self._settings = settings or Settings()
        self._codec = self._settings.codec()

    @property
    def settings(self) -> Settings:
        return self._settings

    def prepare(self, issue_argument: str | None = None, *, create_branch: bool = False) -> UpdateContext:
        """Check preconditions, then read history and the issue and reconcile them.

        The only mutation possible here is creating the feature branch, and only
        when ``create_branch`` is set and no feature branch exists.
        """

        ensure_clean_working_tree(self._repo)

        current = self._repo.current_branch()
        issue_number = deduce_issue_number(issue_argument, current)

        created = False
        try:
            feature = find_feature_branch(self._repo.branch_list(), issue_number)
        except NoFeatureBranchError:
            if not create_branch:
                raise
            feature = self._create_feature_branch(issue_number, current)
            created = True
        else:
            if current != feature.name:
                raise NotOnFeatureBranchError(feature.name, current)

        base = resolve_base_branch(self._repo, feature, self._settings.base_branch_pattern)
        LOGGER.info("Feature branch %s is based on %s.", feature.name, base.name)

        history = read_feature_history(self._repo, feature.sha, base.sha, self._codec)
        candidates = fetch_candidates(self._tracker, issue_number, self._settings.patch_suffix)
        plan = reconcile(history, candidates)
        LOGGER.info(
            "High-water mark %d; %d pending patch(es).",
            plan.high_water_index,
            len(plan.pending),
        )
        return UpdateContext(
            issue_number=issue_number,
            feature=feature,
            base=base,
            history=history,
            candidates=candidates,
            plan=plan,
            created_branch=created,
        )

    def apply(self, context: UpdateContext) -> ApplyReport:
        """Apply the context's pending patches to the checked-out feature branch."""

        applier = PatchApplier(
            self._repo,
            self._tracker,
            self._codec,
            download_dir=download_dir_for(self._repo.git_dir),
        )
        return applier.apply_plan(context.plan, context.candidates)

    def _create_feature_branch(self, issue_number: str, current: str | None) -> FeatureBranch:
        if not current or not is_base_branch_name(current, self._settings.base_branch_pattern):
            raise NoBaseBranchError(current or "HEAD")
        title = self._tracker.issue_title(issue_number)
        name = feature_branch_name(issue_number, title)
        self._repo.create_branch(name, "HEAD")
        sha = self._repo.rev_parse("HEAD")
        LOGGER.info("Created feature branch %s from %s.", name, current)
        return FeatureBranch(name=name, sha=sha)
