from __future__ import annotations

import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from patchledger.tools.vcs import GitRepository  # noqa: E402
from patchledger.tracker.client import PatchAttachment  # noqa: E402

BASE_BRANCH = "8.x-1.x"
ISSUE_NUMBER = "123456"


def new_file_patch(path: str, content: str) -> bytes:
    """Return a git-style patch creating ``path`` with a single line."""
    return (
        f"diff --git a/{path} b/{path}\n"
        "new file mode 100644\n"
        "--- /dev/null\n"
        f"+++ b/{path}\n"
        "@@ -0,0 +1 @@\n"
        f"+{content}\n"
    ).encode("utf-8")


def broken_patch(path: str = "README.txt") -> bytes:
    """Return a patch whose context does not exist in the fixture repository."""
    return (
        f"diff --git a/{path} b/{path}\n"
        f"--- a/{path}\n"
        f"+++ b/{path}\n"
        "@@ -1 +1 @@\n"
        "-this line is not there\n"
        "+replacement\n"
    ).encode("utf-8")


@dataclass
class FakeTracker:
    """In-memory issue tracker serving attachments and patch bodies."""

    title: str = "Terribly awful bug"
    attachments: List[PatchAttachment] = field(default_factory=list)
    files: Dict[str, bytes] = field(default_factory=dict)
    calls: List[str] = field(default_factory=list)

    def add(
        self,
        *,
        file_id: int,
        comment_id: int,
        filename: str,
        body: bytes | None = None,
        displayable: bool = True,
        comment_number: int | None = None,
    ) -> PatchAttachment:
        url = f"https://tracker.example/files/{file_id}/{filename}"
        attachment = PatchAttachment(
            file_id=file_id,
            comment_id=comment_id,
            filename=filename,
            displayable=displayable,
            url=url,
            comment_number=comment_number,
        )
        self.attachments.append(attachment)
        if body is not None:
            self.files[url] = body
        return attachment

    def list_patch_attachments(self, issue_id: str) -> List[PatchAttachment]:
        self.calls.append(f"list:{issue_id}")
        return list(self.attachments)

    def issue_title(self, issue_id: str) -> str:
        self.calls.append(f"title:{issue_id}")
        return self.title

    def download_patch(self, url: str) -> bytes:
        self.calls.append(f"download:{url}")
        return self.files[url]


def run_git(root: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=root,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout


@pytest.fixture()
def git_repo(tmp_path: Path) -> GitRepository:
    """Create a repository whose only branch is the release branch ``8.x-1.x``."""

    repo_root = tmp_path / "project"
    repo_root.mkdir()
    (repo_root / "README.txt").write_text("line one\n", encoding="utf-8")
    return GitRepository.initialise(repo_root, branch=BASE_BRANCH)


@pytest.fixture()
def feature_repo(git_repo: GitRepository) -> GitRepository:
    """Repository with the feature branch for ``ISSUE_NUMBER`` checked out."""

    git_repo.create_branch(f"{ISSUE_NUMBER}-terribly-awful-bug", BASE_BRANCH)
    return git_repo


@pytest.fixture()
def fake_tracker() -> FakeTracker:
    return FakeTracker()
