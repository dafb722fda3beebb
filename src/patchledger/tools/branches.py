"""Locate the feature branch for an issue and the base branch it diverged from."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Mapping, Pattern, Protocol

from ..errors import NoBaseBranchError, NoFeatureBranchError
from ..utils.slug import slugify

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_BRANCH_PATTERN = r"^(\d+\.x-)?\d+(\.\d+)*\.x$"

__all__ = [
    "BaseBranch",
    "DEFAULT_BASE_BRANCH_PATTERN",
    "FeatureBranch",
    "feature_branch_name",
    "find_feature_branch",
    "is_base_branch_name",
    "resolve_base_branch",
]


class BranchSource(Protocol):
    def branches_reachable_from(self, tip: str) -> Mapping[str, str]: ...

    def count_commits(self, base: str, tip: str) -> int: ...


@dataclass(slots=True, frozen=True)
class FeatureBranch:
    """Local branch that carries the ledger for one issue."""

    name: str
    sha: str


@dataclass(slots=True, frozen=True)
class BaseBranch:
    """Long-lived branch the feature branch was created from."""

    name: str
    sha: str
    distance: int


def _compile(pattern: str | Pattern[str] | None) -> Pattern[str]:
    if pattern is None:
        return re.compile(DEFAULT_BASE_BRANCH_PATTERN)
    if isinstance(pattern, str):
        return re.compile(pattern)
    return pattern


def is_base_branch_name(name: str, pattern: str | Pattern[str] | None = None) -> bool:
    """Return ``True`` when ``name`` looks like a long-lived release branch."""
    return _compile(pattern).search(name) is not None


def _version_key(name: str) -> tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", name))


def resolve_base_branch(
    repo: BranchSource,
    feature: FeatureBranch,
    pattern: str | Pattern[str] | None = None,
) -> BaseBranch:
    """Pick the closest release branch reachable from the feature branch tip.

    Closeness is the number of commits on the feature branch that the
    candidate does not contain. Equal distances prefer the highest version,
    then the name.
    """

    compiled = _compile(pattern)
    reachable = repo.branches_reachable_from(feature.sha)
    candidates: list[BaseBranch] = []
    for name, sha in reachable.items():
        if name == feature.name or not compiled.search(name):
            continue
        distance = repo.count_commits(sha, feature.sha)
        candidates.append(BaseBranch(name=name, sha=sha, distance=distance))

    if not candidates:
        raise NoBaseBranchError(feature.name)

    candidates.sort(key=lambda item: (item.distance, tuple(-part for part in _version_key(item.name)), item.name))
    chosen = candidates[0]
    if len(candidates) > 1:
        LOGGER.debug(
            "Base branch candidates for %s: %s; using %s",
            feature.name,
            ", ".join(f"{item.name}(+{item.distance})" for item in candidates),
            chosen.name,
        )
    return chosen


def find_feature_branch(branches: Mapping[str, str], issue_number: str) -> FeatureBranch:
    """Return the local branch named after ``issue_number``."""

    prefix = f"{issue_number}-"
    matches = sorted(name for name in branches if name == issue_number or name.startswith(prefix))
    if not matches:
        raise NoFeatureBranchError(issue_number)
    if len(matches) > 1:
        LOGGER.warning(
            "Several branches match issue %s (%s); using %s.",
            issue_number,
            ", ".join(matches),
            matches[0],
        )
    name = matches[0]
    return FeatureBranch(name=name, sha=branches[name])


def feature_branch_name(issue_number: str, title: str | None) -> str:
    """Return the branch name used when creating a feature branch."""
    slug = slugify(title, fallback="issue", max_length=60, lowercase=True)
    return f"{issue_number}-{slug}"
