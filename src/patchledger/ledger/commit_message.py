"""Encode and decode provenance tags carried by commit messages.

Tool-generated commits use a fixed single-line grammar::

    Patch from <Source>. Comment: <cid>; [URL: <url>; ]file: <name>; fid: <fid>. Automatic commit by <tool>.
    Patch for <Source>. Comment (expected): <cid>; [URL: <url>; ]file: <name>. Automatic commit by <tool>.

The format is read back on every run, so it must stay byte-stable. Anything
that does not match decodes to ``None``: that is how manual commits are told
apart from ledger entries.
"""

from __future__ import annotations

import re
from typing import Iterable, Pattern

from .schema import ProvenanceTag, TagDirection

__all__ = ["CommitMessageCodec", "DEFAULT_SOURCE_LABEL", "DEFAULT_TOOL_NAME"]

DEFAULT_SOURCE_LABEL = "Drupal.org"
DEFAULT_TOOL_NAME = "patchledger"

# Every character str.splitlines() treats as a line boundary.
_LINE_BREAKS = r"\n\r\x0b\x0c\x1c\x1d\x1e\x85\u2028\u2029"


class CommitMessageCodec:
    """Strict encoder/decoder for the commit message grammar."""

    def __init__(
        self,
        *,
        source_label: str = DEFAULT_SOURCE_LABEL,
        tool_name: str = DEFAULT_TOOL_NAME,
        legacy_tool_names: Iterable[str] = (),
    ) -> None:
        if not source_label.strip() or not tool_name.strip():
            raise ValueError("Source label and tool name must be non-empty.")
        self.source_label = source_label
        self.tool_name = tool_name
        accepted = [tool_name, *(name for name in legacy_tool_names if name and name != tool_name)]
        self.accepted_tool_names: tuple[str, ...] = tuple(accepted)
        self._pattern = self._compile(source_label, self.accepted_tool_names)

    @staticmethod
    def _compile(source_label: str, tool_names: tuple[str, ...]) -> Pattern[str]:
        tools = "|".join(re.escape(name) for name in tool_names)
        return re.compile(
            r"Patch (?P<preposition>from|for) "
            + re.escape(source_label)
            + r"\. Comment(?P<expected> \(expected\))?: (?P<comment_id>\d+); "
            r"(?:URL: (?P<url>[^;\s]+); )?"
            r"file: (?P<filename>[^;" + _LINE_BREAKS + r"]+?)"
            r"(?:; fid: (?P<file_id>\d+))?"
            r"\. Automatic commit by (?P<tool>" + tools + r")\."
        )

    # ---------------------------------------------------------------- decode
    def decode(self, message: str) -> ProvenanceTag | None:
        """Return the tag carried by ``message`` or ``None`` for other commits."""

        lines = (message or "").strip().splitlines()
        if not lines:
            return None
        match = self._pattern.fullmatch(lines[0].strip())
        if match is None:
            return None

        expected = match.group("expected") is not None
        file_id_text = match.group("file_id")
        filename = match.group("filename")
        legacy = match.group("tool") != self.tool_name
        if match.group("preposition") == "from":
            if expected or file_id_text is None:
                return None
            return ProvenanceTag(
                direction=TagDirection.APPLIED_FROM_ISSUE,
                comment_id=int(match.group("comment_id")),
                file_id=int(file_id_text),
                filename=filename,
                url=match.group("url"),
                from_legacy_tool=legacy,
            )

        if not expected or file_id_text is not None:
            return None
        return ProvenanceTag(
            direction=TagDirection.POSTED_TO_ISSUE,
            comment_id=int(match.group("comment_id")),
            filename=filename,
            url=match.group("url"),
            from_legacy_tool=legacy,
        )

    # ---------------------------------------------------------------- encode
    def encode(self, tag: ProvenanceTag) -> str:
        """Render ``tag`` as a commit message subject."""

        if tag.from_legacy_tool:
            raise ValueError("Tags read from predecessor tool commits are never re-encoded.")
        if ";" in tag.filename or len(tag.filename.splitlines()) != 1 or tag.filename != tag.filename.strip():
            raise ValueError(f"Filename cannot be recorded in a commit message: {tag.filename!r}")
        if tag.url is not None and self.recordable_url(tag.url) is None:
            raise ValueError(f"URL cannot be recorded in a commit message: {tag.url!r}")

        applied = tag.direction is TagDirection.APPLIED_FROM_ISSUE
        parts = [f"Patch {tag.direction.value} {self.source_label}."]
        comment_label = "Comment" if applied else "Comment (expected)"
        parts.append(f" {comment_label}: {tag.comment_id};")
        if tag.url is not None:
            parts.append(f" URL: {tag.url};")
        if applied:
            parts.append(f" file: {tag.filename}; fid: {tag.file_id}.")
        else:
            parts.append(f" file: {tag.filename}.")
        parts.append(f" Automatic commit by {self.tool_name}.")
        return "".join(parts)

    @staticmethod
    def recordable_url(url: str | None) -> str | None:
        """Return ``url`` when the grammar can carry it, else ``None``."""
        if not url or re.search(r"[;\s]", url):
            return None
        return url
