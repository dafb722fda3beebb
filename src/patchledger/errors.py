"""Error taxonomy shared by the update workflow."""

from __future__ import annotations

__all__ = [
    "DirtyWorkingTreeError",
    "NoBaseBranchError",
    "NoFeatureBranchError",
    "NoIssueNumberError",
    "NotOnFeatureBranchError",
    "PatchLedgerError",
    "PreconditionError",
]


class PatchLedgerError(RuntimeError):
    """Base error for failures raised by patchledger itself."""


class PreconditionError(PatchLedgerError):
    """Raised when the run cannot start; nothing has been mutated yet."""


class DirtyWorkingTreeError(PreconditionError):
    """Raised when the working tree has uncommitted changes."""

    def __init__(self) -> None:
        super().__init__("Git working tree has pending changes; commit or stash them first.")


class NoIssueNumberError(PreconditionError):
    """Raised when no issue number was given and none can be deduced."""

    def __init__(self, branch: str | None = None) -> None:
        if branch:
            message = f"Unable to deduce an issue number from the current branch '{branch}'."
        else:
            message = "Unable to deduce an issue number; pass one explicitly."
        super().__init__(message)


class NoFeatureBranchError(PreconditionError):
    """Raised when no local branch exists for the issue."""

    def __init__(self, issue_number: str) -> None:
        super().__init__(f"No feature branch found for issue {issue_number}.")
        self.issue_number = issue_number


class NotOnFeatureBranchError(PreconditionError):
    """Raised when the checked-out branch is not the feature branch."""

    def __init__(self, feature_branch: str, current: str | None) -> None:
        super().__init__(
            f"Feature branch '{feature_branch}' is not checked out "
            f"(current branch: {current or 'detached HEAD'})."
        )
        self.feature_branch = feature_branch
        self.current = current


class NoBaseBranchError(PreconditionError):
    """Raised when no long-lived branch is an ancestor of the feature branch."""

    def __init__(self, feature_ref: str) -> None:
        super().__init__(f"Unable to find a base branch for '{feature_ref}'.")
        self.feature_ref = feature_ref
