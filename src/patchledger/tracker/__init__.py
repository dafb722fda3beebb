"""Issue tracker integrations."""

from .candidates import build_candidates, fetch_candidates, is_recognized_patch
from .client import (
    IssueTracker,
    PatchAttachment,
    TrackerClient,
    TrackerError,
    TrackerResponseError,
    TrackerTransportError,
)
from .drupal_org import DrupalOrgClient

__all__ = [
    "DrupalOrgClient",
    "IssueTracker",
    "PatchAttachment",
    "TrackerClient",
    "TrackerError",
    "TrackerResponseError",
    "TrackerTransportError",
    "build_candidates",
    "fetch_candidates",
    "is_recognized_patch",
]
