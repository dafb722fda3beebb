"""Issue tracker client base class and shared transport plumbing."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, Sequence

__all__ = [
    "IssueTracker",
    "PatchAttachment",
    "TrackerClient",
    "TrackerError",
    "TrackerResponseError",
    "TrackerTransportError",
    "Transport",
]

LOGGER = logging.getLogger(__name__)

Transport = Callable[[str], bytes]


class TrackerError(RuntimeError):
    """Base error raised for issue tracker failures."""


class TrackerTransportError(TrackerError):
    """Raised when the tracker cannot be reached or times out."""


class TrackerResponseError(TrackerError):
    """Raised when the tracker answers with something we cannot use."""


@dataclass(slots=True, frozen=True)
class PatchAttachment:
    """File attached to an issue, in the tracker's posting order."""

    file_id: int
    comment_id: int
    filename: str
    displayable: bool
    url: Optional[str] = None
    comment_number: Optional[int] = None


class IssueTracker(Protocol):
    def list_patch_attachments(self, issue_id: str) -> Sequence[PatchAttachment]: ...

    def issue_title(self, issue_id: str) -> str: ...

    def download_patch(self, url: str) -> bytes: ...


class TrackerClient:
    """Retrying JSON-over-HTTP helper shared by tracker integrations."""

    def __init__(
        self,
        *,
        transport: Transport,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
    ) -> None:
        self._transport = transport
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay

    def fetch(self, url: str) -> bytes:
        """Fetch ``url``, retrying transport failures."""
        last_error: Optional[Exception] = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                return self._transport(url)
            except TrackerTransportError as error:
                last_error = error
                LOGGER.debug("Attempt %d/%d for %s failed: %s", attempt, self._max_attempts, url, error)
                if attempt >= self._max_attempts:
                    break
                time.sleep(self._retry_delay)
        raise TrackerTransportError(
            f"Failed to fetch {url} after {self._max_attempts} attempt(s): {last_error}"
        ) from last_error

    def fetch_json(self, url: str) -> Any:
        raw = self.fetch(url)
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as error:
            snippet = raw[:200].decode("utf-8", errors="replace")
            raise TrackerResponseError(f"Tracker returned invalid JSON from {url}: {snippet}") from error

    @staticmethod
    def _as_list(value: Any) -> List[Any]:
        if isinstance(value, list):
            return value
        if isinstance(value, dict):
            return [value]
        return []
