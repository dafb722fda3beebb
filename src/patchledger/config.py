"""Configuration defaults and the typed view the workflow reads."""

from __future__ import annotations

import copy
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

from .errors import PatchLedgerError
from .ledger.commit_message import DEFAULT_SOURCE_LABEL, DEFAULT_TOOL_NAME, CommitMessageCodec
from .tools.branches import DEFAULT_BASE_BRANCH_PATTERN
from .tracker.candidates import DEFAULT_PATCH_SUFFIX
from .tracker.drupal_org import DEFAULT_BASE_URL

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_CONFIG_TEMPLATE",
    "Settings",
    "default_config",
    "default_config_path",
    "merge_config",
]

DEFAULT_CONFIG_NAME = "config.yaml"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "tracker": {
        "base_url": DEFAULT_BASE_URL,
        "source_label": DEFAULT_SOURCE_LABEL,
        "timeout": 30,
        "max_attempts": 3,
        "retry_delay": 0.5,
    },
    "ledger": {
        "tool_name": DEFAULT_TOOL_NAME,
        "legacy_tool_names": ["dorgflow"],
        "patch_suffix": DEFAULT_PATCH_SUFFIX,
        "base_branch_pattern": DEFAULT_BASE_BRANCH_PATTERN,
    },
    "logging": {
        "level": "WARNING",
    },
}


class ConfigError(PatchLedgerError):
    """Raised when configuration values cannot be used."""


def default_config() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def merge_config(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` onto ``base`` without mutating either."""
    merged: Dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _section(config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = config.get(name)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Configuration section '{name}' must be a mapping.")
    return value


def _string(section: Mapping[str, Any], key: str, default: str) -> str:
    value = section.get(key, default)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _positive_number(section: Mapping[str, Any], key: str, default: float) -> float:
    value = section.get(key, default)
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
        return float(value)
    return default


@dataclass(slots=True, frozen=True)
class Settings:
    """Resolved configuration values."""

    tracker_base_url: str = DEFAULT_BASE_URL
    source_label: str = DEFAULT_SOURCE_LABEL
    timeout: float = 30.0
    max_attempts: int = 3
    retry_delay: float = 0.5
    tool_name: str = DEFAULT_TOOL_NAME
    legacy_tool_names: Tuple[str, ...] = ("dorgflow",)
    patch_suffix: str = DEFAULT_PATCH_SUFFIX
    base_branch_pattern: str = DEFAULT_BASE_BRANCH_PATTERN
    log_level: str = "WARNING"

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "Settings":
        tracker = _section(config, "tracker")
        ledger = _section(config, "ledger")
        logging_section = _section(config, "logging")

        base_url = os.getenv("PATCHLEDGER_TRACKER_URL") or _string(tracker, "base_url", DEFAULT_BASE_URL)

        max_attempts_value = tracker.get("max_attempts", 3)
        max_attempts = 3
        if isinstance(max_attempts_value, int) and not isinstance(max_attempts_value, bool) and max_attempts_value > 0:
            max_attempts = max_attempts_value

        retry_delay_value = tracker.get("retry_delay", 0.5)
        retry_delay = 0.5
        if isinstance(retry_delay_value, (int, float)) and not isinstance(retry_delay_value, bool) and retry_delay_value >= 0:
            retry_delay = float(retry_delay_value)

        legacy_value = ledger.get("legacy_tool_names", ["dorgflow"])
        if isinstance(legacy_value, str):
            legacy_value = [legacy_value]
        if not isinstance(legacy_value, (list, tuple)):
            raise ConfigError("ledger.legacy_tool_names must be a list of names.")
        legacy = tuple(str(name).strip() for name in legacy_value if str(name).strip())

        pattern = _string(ledger, "base_branch_pattern", DEFAULT_BASE_BRANCH_PATTERN)
        try:
            re.compile(pattern)
        except re.error as error:
            raise ConfigError(f"ledger.base_branch_pattern is not a valid regular expression: {error}") from error

        level = _string(logging_section, "level", "WARNING").upper()

        return cls(
            tracker_base_url=base_url,
            source_label=_string(tracker, "source_label", DEFAULT_SOURCE_LABEL),
            timeout=_positive_number(tracker, "timeout", 30.0),
            max_attempts=max_attempts,
            retry_delay=retry_delay,
            tool_name=_string(ledger, "tool_name", DEFAULT_TOOL_NAME),
            legacy_tool_names=legacy,
            patch_suffix=_string(ledger, "patch_suffix", DEFAULT_PATCH_SUFFIX),
            base_branch_pattern=pattern,
            log_level=level,
        )

    def codec(self) -> CommitMessageCodec:
        return CommitMessageCodec(
            source_label=self.source_label,
            tool_name=self.tool_name,
            legacy_tool_names=self.legacy_tool_names,
        )


def default_config_path() -> Path:
    """Return the user-level configuration path.

    ``PATCHLEDGER_CONFIG`` wins, then ``$XDG_CONFIG_HOME/patchledger/config.yaml``.
    The file lives outside the repository so it never dirties the working tree.
    """
    explicit = os.getenv("PATCHLEDGER_CONFIG")
    if explicit:
        return Path(explicit).expanduser()
    config_home = os.getenv("XDG_CONFIG_HOME")
    base = Path(config_home).expanduser() if config_home else Path.home() / ".config"
    return base / "patchledger" / DEFAULT_CONFIG_NAME
