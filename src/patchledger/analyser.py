"""Work out which issue the current run is about."""

from __future__ import annotations

import re

from .errors import NoIssueNumberError

__all__ = ["deduce_issue_number", "issue_number_from_branch", "parse_issue_reference"]

_BARE_NUMBER_RE = re.compile(r"^\d+$")
_ISSUE_URL_RE = re.compile(r"/(?:issues|node)/(?P<number>\d+)(?:[/?#]|$)")
_BRANCH_RE = re.compile(r"^(?P<number>\d+)(?:-|$)")


def parse_issue_reference(value: str) -> str:
    """Return the issue number from a bare number or an issue URL.

    Raises ``ValueError`` when ``value`` is neither.
    """
    text = value.strip()
    if _BARE_NUMBER_RE.match(text):
        return text
    match = _ISSUE_URL_RE.search(text)
    if match:
        return match.group("number")
    raise ValueError(f"Not an issue number or issue URL: {value!r}")


def issue_number_from_branch(branch: str | None) -> str | None:
    if not branch:
        return None
    match = _BRANCH_RE.match(branch)
    return match.group("number") if match else None


def deduce_issue_number(argument: str | None, current_branch: str | None) -> str:
    """Prefer the explicit argument, else the leading digits of the current branch."""
    if argument and argument.strip():
        return parse_issue_reference(argument)
    number = issue_number_from_branch(current_branch)
    if number is None:
        raise NoIssueNumberError(current_branch)
    return number
