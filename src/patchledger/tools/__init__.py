"""Git integrations used by the update workflow."""

from .branches import (
    BaseBranch,
    FeatureBranch,
    feature_branch_name,
    find_feature_branch,
    is_base_branch_name,
    resolve_base_branch,
)
from .vcs import GitError, GitRepository, LogEntry, PatchApplyResult

__all__ = [
    "BaseBranch",
    "FeatureBranch",
    "GitError",
    "GitRepository",
    "LogEntry",
    "PatchApplyResult",
    "feature_branch_name",
    "find_feature_branch",
    "is_base_branch_name",
    "resolve_base_branch",
]
