from __future__ import annotations

import pytest

from conftest import BASE_BRANCH, ISSUE_NUMBER, FakeTracker, broken_patch, new_file_patch, run_git
from patchledger.errors import (
    DirtyWorkingTreeError,
    NoBaseBranchError,
    NoFeatureBranchError,
    NoIssueNumberError,
    NotOnFeatureBranchError,
)
from patchledger.ledger.commit_message import CommitMessageCodec
from patchledger.ledger.schema import ProvenanceTag
from patchledger.tools.vcs import GitRepository
from patchledger.workflow import UpdateWorkflow

FEATURE_BRANCH = f"{ISSUE_NUMBER}-terribly-awful-bug"


def _subjects(repo: GitRepository) -> list[str]:
    return run_git(repo.root, "log", "--format=%s", f"{BASE_BRANCH}..HEAD").splitlines()[::-1]


def _run(repo: GitRepository, tracker: FakeTracker, issue: str | None = None, **kwargs):
    workflow = UpdateWorkflow(repo=repo, tracker=tracker)
    context = workflow.prepare(issue, **kwargs)
    report = workflow.apply(context)
    return context, report


def test_new_patches_are_committed_once_each(feature_repo: GitRepository, fake_tracker: FakeTracker) -> None:
    fake_tracker.add(file_id=11, comment_id=1, filename="123456-1.patch", body=new_file_patch("one.txt", "one"))
    fake_tracker.add(file_id=12, comment_id=2, filename="interdiff.txt", body=b"ignored")
    fake_tracker.add(file_id=13, comment_id=3, filename="123456-3.patch", body=new_file_patch("three.txt", "three"))

    context, report = _run(feature_repo, fake_tracker)

    assert context.issue_number == ISSUE_NUMBER
    assert context.base.name == BASE_BRANCH
    assert report.ok
    assert [item.candidate.file_id for item in report.applied] == [11, 13]
    assert _subjects(feature_repo) == [
        "Patch from Drupal.org. Comment: 1; URL: https://tracker.example/files/11/123456-1.patch; "
        "file: 123456-1.patch; fid: 11. Automatic commit by patchledger.",
        "Patch from Drupal.org. Comment: 3; URL: https://tracker.example/files/13/123456-3.patch; "
        "file: 123456-3.patch; fid: 13. Automatic commit by patchledger.",
    ]
    assert (feature_repo.root / "three.txt").read_text(encoding="utf-8") == "three\n"
    assert feature_repo.is_clean()
    assert (feature_repo.git_dir / "patchledger" / "patches" / "11-123456-1.patch").exists()


def test_second_run_is_a_no_op(feature_repo: GitRepository, fake_tracker: FakeTracker) -> None:
    fake_tracker.add(file_id=11, comment_id=1, filename="123456-1.patch", body=new_file_patch("one.txt", "one"))
    _run(feature_repo, fake_tracker)
    head = feature_repo.rev_parse("HEAD")
    fake_tracker.calls.clear()

    context, report = _run(feature_repo, fake_tracker)

    assert context.plan.is_up_to_date
    assert context.plan.high_water_index == 1
    assert report.applied == []
    assert feature_repo.rev_parse("HEAD") == head
    assert not any(call.startswith("download:") for call in fake_tracker.calls)


def test_only_patches_after_the_last_recorded_one_are_applied(
    feature_repo: GitRepository,
    fake_tracker: FakeTracker,
) -> None:
    fake_tracker.add(file_id=11, comment_id=1, filename="123456-1.patch", body=new_file_patch("one.txt", "one"))
    _run(feature_repo, fake_tracker)
    (feature_repo.root / "manual.txt").write_text("by hand\n", encoding="utf-8")
    feature_repo.commit_all("Manual tweak.")
    fake_tracker.add(file_id=14, comment_id=4, filename="123456-4.patch", body=new_file_patch("four.txt", "four"))

    context, report = _run(feature_repo, fake_tracker)

    assert [candidate.file_id for candidate in context.plan.pending] == [14]
    assert [item.candidate.file_id for item in report.applied] == [14]
    assert len(context.ledger) == 1
    assert len(context.history) == 2


def test_failed_patch_is_superseded_by_a_later_success(
    feature_repo: GitRepository,
    fake_tracker: FakeTracker,
) -> None:
    fake_tracker.add(file_id=11, comment_id=1, filename="123456-1.patch", body=new_file_patch("one.txt", "one"))
    fake_tracker.add(file_id=12, comment_id=2, filename="123456-2.patch", body=broken_patch())
    fake_tracker.add(file_id=13, comment_id=3, filename="123456-3.patch", body=new_file_patch("three.txt", "three"))

    _, first = _run(feature_repo, fake_tracker)
    fake_tracker.calls.clear()
    context, second = _run(feature_repo, fake_tracker)

    assert [item.candidate.file_id for item in first.applied] == [11, 13]
    assert [failure.candidate.file_id for failure in first.failed] == [12]
    assert feature_repo.is_clean()
    assert context.plan.high_water_index == 3
    assert [candidate.file_id for candidate in context.plan.superseded] == [12]
    assert second.applied == [] and second.failed == []
    assert not any(call.startswith("download:") for call in fake_tracker.calls)


def test_locally_posted_patch_is_not_reapplied(feature_repo: GitRepository, fake_tracker: FakeTracker) -> None:
    codec = CommitMessageCodec()
    (feature_repo.root / "mine.txt").write_text("mine\n", encoding="utf-8")
    posted = ProvenanceTag.posted(expected_comment_id=2, filename="123456-2.my-fix.patch")
    feature_repo.commit_all(codec.encode(posted))
    fake_tracker.add(file_id=11, comment_id=1, filename="123456-1.patch", body=new_file_patch("one.txt", "one"))
    # The tracker assigned a different comment id than expected.
    fake_tracker.add(file_id=12, comment_id=5, filename="123456-2.my-fix.patch", body=new_file_patch("mine.txt", "x"))
    fake_tracker.add(file_id=13, comment_id=6, filename="123456-3.patch", body=new_file_patch("three.txt", "three"))

    context, report = _run(feature_repo, fake_tracker)

    assert context.plan.high_water_index == 2
    assert [item.candidate.file_id for item in report.applied] == [13]
    assert not (feature_repo.root / "one.txt").exists()


def test_legacy_tool_commits_count_as_ledger_entries(
    feature_repo: GitRepository,
    fake_tracker: FakeTracker,
) -> None:
    # The predecessor tool recorded the visible comment number (#10), not the comment id (410).
    (feature_repo.root / "ten.txt").write_text("ten\n", encoding="utf-8")
    feature_repo.commit_all(
        "Patch from Drupal.org. Comment: 10; URL: http://url.com/1234; file: applied.patch; fid: 210. "
        "Automatic commit by dorgflow."
    )
    fake_tracker.add(
        file_id=201,
        comment_id=401,
        comment_number=1,
        filename="123456-1.patch",
        body=new_file_patch("one.txt", "one"),
    )
    fake_tracker.add(
        file_id=210,
        comment_id=410,
        comment_number=10,
        filename="applied.patch",
        body=new_file_patch("ten.txt", "ten"),
    )
    fake_tracker.add(
        file_id=212,
        comment_id=412,
        comment_number=12,
        filename="123456-12.patch",
        body=new_file_patch("twelve.txt", "twelve"),
    )

    context, report = _run(feature_repo, fake_tracker)

    assert context.plan.high_water_index == 2
    assert [candidate.file_id for candidate in context.plan.superseded] == [201]
    assert [item.candidate.file_id for item in report.applied] == [212]
    assert not (feature_repo.root / "one.txt").exists()


def test_create_branch_from_the_release_branch(git_repo: GitRepository, fake_tracker: FakeTracker) -> None:
    fake_tracker.add(file_id=11, comment_id=1, filename="123456-1.patch", body=new_file_patch("one.txt", "one"))

    context, report = _run(git_repo, fake_tracker, ISSUE_NUMBER, create_branch=True)

    assert context.created_branch
    assert context.feature.name == FEATURE_BRANCH
    assert git_repo.current_branch() == FEATURE_BRANCH
    assert context.base.name == BASE_BRANCH
    assert context.base.distance == 0
    assert [item.candidate.file_id for item in report.applied] == [11]
    assert fake_tracker.calls[0] == f"title:{ISSUE_NUMBER}"


def test_create_branch_requires_a_release_branch(git_repo: GitRepository, fake_tracker: FakeTracker) -> None:
    run_git(git_repo.root, "checkout", "-b", "scratch")

    with pytest.raises(NoBaseBranchError):
        UpdateWorkflow(repo=git_repo, tracker=fake_tracker).prepare(ISSUE_NUMBER, create_branch=True)

    assert fake_tracker.calls == []


def test_existing_feature_branch_is_not_recreated(feature_repo: GitRepository, fake_tracker: FakeTracker) -> None:
    context = UpdateWorkflow(repo=feature_repo, tracker=fake_tracker).prepare(create_branch=True)

    assert not context.created_branch
    assert f"title:{ISSUE_NUMBER}" not in fake_tracker.calls


def test_dirty_tree_stops_before_anything_else(feature_repo: GitRepository, fake_tracker: FakeTracker) -> None:
    (feature_repo.root / "README.txt").write_text("edited\n", encoding="utf-8")

    with pytest.raises(DirtyWorkingTreeError):
        UpdateWorkflow(repo=feature_repo, tracker=fake_tracker).prepare()

    assert fake_tracker.calls == []


def test_no_issue_number_on_a_release_branch(git_repo: GitRepository, fake_tracker: FakeTracker) -> None:
    with pytest.raises(NoIssueNumberError):
        UpdateWorkflow(repo=git_repo, tracker=fake_tracker).prepare()

    assert fake_tracker.calls == []


def test_missing_feature_branch(git_repo: GitRepository, fake_tracker: FakeTracker) -> None:
    with pytest.raises(NoFeatureBranchError):
        UpdateWorkflow(repo=git_repo, tracker=fake_tracker).prepare(ISSUE_NUMBER)

    assert fake_tracker.calls == []


def test_feature_branch_must_be_checked_out(feature_repo: GitRepository, fake_tracker: FakeTracker) -> None:
    run_git(feature_repo.root, "checkout", BASE_BRANCH)

    with pytest.raises(NotOnFeatureBranchError) as excinfo:
        UpdateWorkflow(repo=feature_repo, tracker=fake_tracker).prepare(ISSUE_NUMBER)

    assert excinfo.value.feature_branch == FEATURE_BRANCH
    assert excinfo.value.current == BASE_BRANCH
    assert fake_tracker.calls == []
