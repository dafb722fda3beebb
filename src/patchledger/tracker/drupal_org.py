"""Drupal.org client that speaks the ``api-d7`` REST endpoints."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

from .client import (
    PatchAttachment,
    TrackerClient,
    TrackerResponseError,
    TrackerTransportError,
    Transport,
)

__all__ = ["DEFAULT_BASE_URL", "DrupalOrgClient"]

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.drupal.org/api-d7"
USER_AGENT = "patchledger/0.1"


class DrupalOrgClient(TrackerClient):
    """Thin adapter around the Drupal.org issue, file and comment resources."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        transport: Optional[Transport] = None,
        timeout: float = 30.0,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
    ) -> None:
        timeout_override = os.getenv("PATCHLEDGER_TIMEOUT")
        if timeout_override:
            try:
                parsed = float(timeout_override)
                if parsed > 0:
                    timeout = parsed
            except ValueError:
                LOGGER.warning("Ignoring invalid PATCHLEDGER_TIMEOUT value %r.", timeout_override)
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")
        super().__init__(
            transport=transport or self._http_transport,
            max_attempts=max_attempts,
            retry_delay=retry_delay,
        )
        self._nodes: Dict[str, Dict[str, Any]] = {}

    # ------------------------------------------------------------- transport
    def _http_transport(self, url: str) -> bytes:
        """Default HTTP transport based on ``urllib``."""
        import urllib.error
        import urllib.request

        request = urllib.request.Request(
            url,
            headers={"Accept": "application/json", "User-Agent": USER_AGENT},
            method="GET",
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read()
                status = getattr(response, "status", 200)
        except TimeoutError as error:  # pragma: no cover - network-dependent
            raise TrackerTransportError(f"Request to {url} timed out.") from error
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            if 400 <= error.code < 500:
                raise TrackerResponseError(f"HTTP {error.code} for {url}") from error
            raise TrackerTransportError(f"HTTP {error.code} for {url}") from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            raise TrackerTransportError(f"Failed to reach {url}: {error.reason}") from error

        if status >= 400:
            raise TrackerTransportError(f"Unexpected HTTP status {status} for {url}")
        return raw

    # ------------------------------------------------------------- resources
    def _resource_url(self, resource: str, identifier: str | int) -> str:
        return f"{self._base_url}/{resource}/{identifier}.json"

    def _node(self, issue_id: str) -> Dict[str, Any]:
        node = self._nodes.get(issue_id)
        if node is None:
            data = self.fetch_json(self._resource_url("node", issue_id))
            if not isinstance(data, dict):
                raise TrackerResponseError(f"Issue {issue_id} response is not an object.")
            node = data
            self._nodes[issue_id] = node
        return node

    def _file(self, file_id: int) -> Dict[str, Any]:
        data = self.fetch_json(self._resource_url("file", file_id))
        if not isinstance(data, dict):
            raise TrackerResponseError(f"File {file_id} response is not an object.")
        return data

    def issue_title(self, issue_id: str) -> str:
        title = self._node(issue_id).get("title")
        if not isinstance(title, str) or not title.strip():
            raise TrackerResponseError(f"Issue {issue_id} has no title.")
        return title.strip()

    def list_patch_attachments(self, issue_id: str) -> List[PatchAttachment]:
        """Return the issue's file attachments in posting order."""
        node = self._node(issue_id)
        comment_numbers = self._comment_numbers(node)

        attachments: List[PatchAttachment] = []
        for item in self._as_list(node.get("field_issue_files")):
            if not isinstance(item, dict):
                continue
            file_ref = item.get("file") or {}
            file_id = _as_int(file_ref.get("id"))
            if file_id is None:
                raise TrackerResponseError(f"Issue {issue_id} lists a file without an id.")
            comment_id = _as_int(file_ref.get("cid"))
            if comment_id is None:
                LOGGER.debug("File %s on issue %s has no comment id.", file_id, issue_id)
                comment_id = 0

            details = self._file(file_id)
            filename = str(details.get("name") or "").strip()
            if not filename:
                raise TrackerResponseError(f"File {file_id} has no name.")
            url = details.get("url")
            attachments.append(
                PatchAttachment(
                    file_id=file_id,
                    comment_id=comment_id,
                    filename=filename,
                    displayable=_as_flag(item.get("display")),
                    url=url if isinstance(url, str) and url else None,
                    comment_number=comment_numbers.get(comment_id),
                )
            )
        LOGGER.debug("Issue %s lists %d file(s).", issue_id, len(attachments))
        return attachments

    def download_patch(self, url: str) -> bytes:
        return self.fetch(url)

    def _comment_numbers(self, node: Dict[str, Any]) -> Dict[int, int]:
        numbers: Dict[int, int] = {}
        for position, comment in enumerate(self._as_list(node.get("comments")), start=1):
            if not isinstance(comment, dict):
                continue
            comment_id = _as_int(comment.get("id"))
            if comment_id is not None:
                numbers[comment_id] = position
        return numbers


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _as_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return False
