"""Branch-safe slugs derived from issue titles."""

from __future__ import annotations

import hashlib
import re
from typing import Pattern

_LOWERCASE_PATTERN: Pattern[str] = re.compile(r"[^a-z0-9_-]+")
_MIXED_CASE_PATTERN: Pattern[str] = re.compile(r"[^A-Za-z0-9_-]+")
_HYPHEN_COLLAPSE = re.compile(r"-{2,}")
_APOSTROPHES = re.compile(r"['’]")


def slugify(
    value: str | None,
    *,
    fallback: str = "issue",
    max_length: int = 60,
    lowercase: bool = True,
) -> str:
    """Normalize ``value`` into a slug usable inside a git branch name.

    Dots become hyphens like other punctuation, so the result can never
    contain ``..`` or end in ``.lock``. Apostrophes vanish rather than split
    words (``don't`` becomes ``dont``).
    """
    source = _APOSTROPHES.sub("", (value or "").strip())
    processed_fallback = (fallback or "").strip() or "issue"
    if lowercase:
        source = source.lower()
        processed_fallback = processed_fallback.lower()

    pattern = _LOWERCASE_PATTERN if lowercase else _MIXED_CASE_PATTERN

    slug = _normalize(source, pattern)
    if not slug:
        slug = _normalize(processed_fallback, pattern) or "issue"

    if len(slug) > max_length:
        slug = abbreviate_slug(slug, max_length=max_length)
    return slug


def abbreviate_slug(segment: str, *, max_length: int = 60) -> str:
    """Trim ``segment`` to ``max_length`` while preserving uniqueness via hashing."""
    slug = segment.strip("-") or "issue"
    if len(slug) <= max_length:
        return slug

    digest = hashlib.sha256(slug.encode("utf-8")).hexdigest()[:8]
    prefix_length = max(max_length - len(digest) - 1, 1)
    prefix = slug[:prefix_length].rstrip("-") or slug[:prefix_length]
    return f"{prefix}-{digest}"


def _normalize(value: str, pattern: Pattern[str]) -> str:
    slug = pattern.sub("-", value)
    slug = _HYPHEN_COLLAPSE.sub("-", slug)
    return slug.strip("-")
