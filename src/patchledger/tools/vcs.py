"""Minimal git helpers
The helpers below provide just enough structure to inspect branches, read
the commits unique to a feature branch, apply patch files, and record
ledger commits.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence, Set

import subprocess

_RECORD_SEPARATOR = "\x1e"
_FIELD_SEPARATOR = "\x00"


class GitError(RuntimeError):
    """Raised when a git command fails or the repository cannot be used."""


@dataclass(slots=True)
class LogEntry:
    """Raw commit as reported by ``git log``."""

    sha: str
    message: str


@dataclass(slots=True)
class PatchApplyResult:
    """Outcome of ``git apply`` for a single patch file."""

    path: Path
    applied: bool
    stdout: str
    stderr: str

    @property
    def reason(self) -> str:
        return self.stderr.strip() or self.stdout.strip() or "git apply failed"


class GitRepository:
    """Lightweight wrapper around ``git`` commands."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()
        if not (self.root / ".git").exists():
            raise GitError(f"Not a git repository: {self.root}")

    @classmethod
    def discover(cls, start: Path | str | None = None) -> "GitRepository":
        """Locate the nearest git repository starting from ``start``."""

        path = Path(start or Path.cwd()).resolve()
        for candidate in (path, *path.parents):
            if (candidate / ".git").exists():
                return cls(candidate)
        raise GitError(f"Unable to locate a git repository from {path}")

    @classmethod
    def initialise(cls, root: Path | str, *, branch: str = "main") -> "GitRepository":
        """Initialise a new git repository at ``root`` with an initial commit."""

        path = Path(root).resolve()
        path.mkdir(parents=True, exist_ok=True)
        _run(path, ["init"])
        _run(path, ["symbolic-ref", "HEAD", f"refs/heads/{branch}"])

        def _ensure_config(key: str, value: str) -> None:
            probe = _run(path, ["config", "--get", key], check=False)
            if probe.returncode != 0 or not probe.stdout.strip():
                _run(path, ["config", key, value])

        _ensure_config("user.email", "patchledger@example.com")
        _ensure_config("user.name", "patchledger")

        _run(path, ["add", "."])
        _run(path, ["commit", "--allow-empty", "-m", "Initial commit"])

        return cls(path)

    # ------------------------------------------------------------------ git IO
    def _run_git(self, args: Sequence[str], *, check: bool = True) -> subprocess.CompletedProcess[str]:
        return _run(self.root, args, check=check)

    @property
    def git_dir(self) -> Path:
        """Return the absolute path of the repository's git directory."""

        result = self._run_git(["rev-parse", "--git-dir"], check=True)
        git_dir = Path(result.stdout.strip())
        if not git_dir.is_absolute():
            git_dir = self.root / git_dir
        return git_dir.resolve()

    def rev_parse(self, ref: str) -> str:
        """Resolve ``ref`` to a full commit SHA."""

        result = self._run_git(["rev-parse", "--verify", f"{ref}^{{commit}}"], check=True)
        return result.stdout.strip()

    # -------------------------------------------------------------- branches
    def current_branch(self) -> str | None:
        """Return the current branch name or ``None`` when detached."""

        result = self._run_git(["rev-parse", "--abbrev-ref", "HEAD"], check=False)
        if result.returncode != 0:
            return None
        branch = result.stdout.strip()
        if not branch or branch == "HEAD":
            return None
        return branch

    def _branch_refs(self, *extra: str) -> Dict[str, str]:
        args: List[str] = [
            "for-each-ref",
            "--format=%(refname:short)%00%(objectname)",
            *extra,
            "refs/heads/",
        ]
        result = self._run_git(args, check=True)
        branches: Dict[str, str] = {}
        for line in result.stdout.splitlines():
            if _FIELD_SEPARATOR not in line:
                continue
            name, sha = line.split(_FIELD_SEPARATOR, 1)
            branches[name.strip()] = sha.strip()
        return branches

    def branch_list(self) -> Dict[str, str]:
        """Return local branch names mapped to their tip SHAs."""

        return self._branch_refs()

    def branches_reachable_from(self, tip: str) -> Dict[str, str]:
        """Return local branches whose tips are ancestors of (or equal to) ``tip``."""

        return self._branch_refs(f"--merged={tip}")

    def create_branch(self, name: str, start_point: str, *, checkout: bool = True) -> None:
        """Create ``name`` at ``start_point`` and optionally switch to it."""

        if checkout:
            self._run_git(["checkout", "-b", name, start_point], check=True)
        else:
            self._run_git(["branch", name, start_point], check=True)

    # ----------------------------------------------------------------- history
    def log_unique_commits(self, tip: str, base: str) -> List[LogEntry]:
        """Return commits reachable from ``tip`` but not ``base``, oldest first."""

        result = self._run_git(
            [
                "log",
                "--reverse",
                "--format=%H%x00%B%x1e",
                f"{base}..{tip}",
            ],
            check=True,
        )
        entries: List[LogEntry] = []
        for record in result.stdout.split(_RECORD_SEPARATOR):
            record = record.lstrip("\n")
            if not record or _FIELD_SEPARATOR not in record:
                continue
            sha, message = record.split(_FIELD_SEPARATOR, 1)
            entries.append(LogEntry(sha=sha.strip(), message=message))
        return entries

    def count_commits(self, base: str, tip: str) -> int:
        """Return the number of commits reachable from ``tip`` but not ``base``."""

        result = self._run_git(["rev-list", "--count", f"{base}..{tip}"], check=True)
        try:
            return int(result.stdout.strip() or "0")
        except ValueError as error:
            raise GitError(f"Unexpected rev-list output: {result.stdout.strip()}") from error

    # ------------------------------------------------------------- repo status
    def _status_entries(self) -> List[tuple[str, Path]]:
        result = self._run_git(["status", "--porcelain"], check=True)
        entries: List[tuple[str, Path]] = []
        for line in result.stdout.splitlines():
            if not line:
                continue
            status = line[:2]
            raw_path = line[3:]
            if status[0] in {"R", "C"} and " -> " in raw_path:
                raw_path = raw_path.split(" -> ", 1)[1]
            status_clean = status.strip() or status
            entries.append((status_clean, Path(raw_path.strip())))
        return entries

    def working_tree_changes(self, *, include_untracked: bool = True) -> List[Path]:
        """Return the set of paths with pending modifications."""

        entries = self._status_entries()
        paths: Set[Path] = set()
        for status, path in entries:
            if status == "??" and not include_untracked:
                continue
            paths.add(path)
        return sorted(paths, key=lambda item: item.as_posix())

    def is_clean(self, *, include_untracked: bool = True) -> bool:
        """Return ``True`` when the working tree has no pending changes."""

        return not self.working_tree_changes(include_untracked=include_untracked)

    # ----------------------------------------------------------------- patches
    def apply_patch_file(self, path: Path | str) -> PatchApplyResult:
        """Apply ``path`` to the working tree and index.

        A failing ``git apply`` is reported in the result rather than raised;
        the working tree is left exactly as git left it.
        """

        patch_path = Path(path).resolve()
        result = self._run_git(["apply", "--index", "--verbose", str(patch_path)], check=False)
        return PatchApplyResult(
            path=patch_path,
            applied=result.returncode == 0,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    def commit_all(self, message: str, *, allow_empty: bool = False) -> str | None:
        """Add all changes to the index and create a commit.

        Returns the new commit SHA when a commit was created.  Returns ``None`` when
        there were no changes to commit (and ``allow_empty`` is ``False``).
        """

        self._run_git(["add", "--all"], check=True)

        commit_args: List[str] = ["commit", "-m", message]
        if allow_empty:
            commit_args.append("--allow-empty")

        commit = self._run_git(commit_args, check=False)
        if commit.returncode != 0:
            output = commit.stderr.strip() or commit.stdout.strip() or ""
            if "nothing to commit" in output.lower():
                return None
            raise GitError(f"git commit failed: {output}")

        rev = self._run_git(["rev-parse", "HEAD"], check=True)
        return rev.stdout.strip()


def _run(cwd: Path, args: Sequence[str], *, check: bool = True) -> subprocess.CompletedProcess[str]:
    command = ["git", *args]
    process = subprocess.run(
        command,
        cwd=cwd,
        capture_output=True,
        text=False,
        check=False,
    )
    stdout = process.stdout.decode("utf-8", errors="replace") if process.stdout else ""
    stderr = process.stderr.decode("utf-8", errors="replace") if process.stderr else ""
    result = subprocess.CompletedProcess(process.args, process.returncode, stdout, stderr)
    if check and result.returncode != 0:
        message = result.stderr.strip() or result.stdout.strip() or "unknown git error"
        raise GitError(f"git {' '.join(args)} failed: {message}")
    return result


__all__ = ["GitError", "GitRepository", "LogEntry", "PatchApplyResult"]
