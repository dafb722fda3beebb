"""CLI commands for keeping an issue's feature branch in step with its patches."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import yaml

from .apply import ApplyReport
from .config import ConfigError, Settings, default_config, default_config_path, merge_config
from .errors import PreconditionError
from .tools.vcs import GitError, GitRepository
from .tracker.client import IssueTracker, TrackerError
from .tracker.drupal_org import DrupalOrgClient
from .workflow import UpdateContext, UpdateWorkflow

APP_HELP = "Apply an issue's patches to its feature branch, one commit per patch."

app = typer.Typer(help=APP_HELP)


def load_config(config: Optional[str]) -> Dict[str, Any]:
    """Load YAML configuration and merge it over the defaults.

    An explicit path must exist; the default user-level path is optional.
    """
    if config:
        config_path = Path(config)
        if not config_path.exists():
            raise typer.BadParameter(f"Config file not found: {config_path}")
    else:
        config_path = default_config_path()
        if not config_path.exists():
            return default_config()

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        typer.echo(f"Failed to parse config: {error}")
        raise typer.Exit(code=1) from error

    if not isinstance(data, dict):
        typer.echo("Configuration must be a mapping at the top level.")
        raise typer.Exit(code=1)

    return merge_config(default_config(), data)


def _load_settings(config: Optional[str]) -> Settings:
    config_data = load_config(config)
    try:
        return Settings.from_config(config_data)
    except ConfigError as error:
        typer.echo(f"Invalid configuration: {error}")
        raise typer.Exit(code=1) from error


def _configure_logging(settings: Settings, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level, logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _open_repository() -> GitRepository:
    try:
        return GitRepository.discover()
    except GitError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error


def _build_tracker(settings: Settings) -> IssueTracker:
    """Create the issue tracker client for ``settings``."""
    return DrupalOrgClient(
        base_url=settings.tracker_base_url,
        timeout=settings.timeout,
        max_attempts=settings.max_attempts,
        retry_delay=settings.retry_delay,
    )


def _prepare(workflow: UpdateWorkflow, issue: Optional[str], *, create_branch: bool) -> UpdateContext:
    try:
        return workflow.prepare(issue, create_branch=create_branch)
    except ValueError as error:
        raise typer.BadParameter(str(error), param_hint="ISSUE") from error
    except PreconditionError as error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1) from error
    except (GitError, TrackerError) as error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1) from error


def _render_plan(context: UpdateContext) -> None:
    """Display the reconciliation outcome."""
    plan = context.plan
    if context.created_branch:
        typer.echo(f"Created feature branch {context.feature.name}.")
    typer.echo(f"Issue {context.issue_number}: branch {context.feature.name} (base {context.base.name})")
    ledger = context.ledger
    typer.echo(f"- Ledger: {len(ledger)} tagged commit(s) of {len(context.history)}")
    for record in ledger:
        tag = record.tag
        if tag is None:
            continue
        label = "posted" if tag.is_provisional else "applied"
        typer.echo(f"    {record.sha[:7]} {label} {tag.filename}")
    typer.echo(f"- High-water mark: {plan.high_water_index}")
    if plan.superseded:
        typer.echo("- Superseded (never retried):")
        for candidate in plan.superseded:
            typer.echo(f"    {candidate.order_index}: {candidate.describe()}")
    if plan.pending:
        typer.echo("- Pending:")
        for candidate in plan.pending:
            typer.echo(f"    {candidate.order_index}: {candidate.describe()}")
    else:
        typer.echo("- Pending: none, branch is up to date")


def _render_report(report: ApplyReport) -> None:
    """Display a concise summary of the apply loop."""
    for applied in report.applied:
        sha = (applied.commit_sha or "")[:7]
        typer.echo(f"Applied {applied.candidate.describe()}{(' as ' + sha) if sha else ''}")
    for failure in report.failed:
        typer.echo(f"FAILED {failure.candidate.describe()}")
        first_line = failure.reason.splitlines()[0] if failure.reason else ""
        if first_line:
            typer.echo(f"  Reason: {first_line}")
    typer.echo(f"Summary: {report.format_summary()}")
    if not report.ok:
        typer.echo("Resolve the failed patch by hand; it will not be retried once a later patch is committed.")


@app.command()
def update(
    issue: Optional[str] = typer.Argument(
        None,
        help="Issue number or URL; defaults to the number at the start of the current branch name.",
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a patchledger configuration file.",
    ),
    create_branch: bool = typer.Option(
        False,
        "--create-branch",
        help="Create the feature branch from the current release branch if it does not exist.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show the patches that would be applied without applying them.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Apply new patches from the issue to its feature branch."""
    settings = _load_settings(config)
    _configure_logging(settings, verbose)
    repo = _open_repository()
    workflow = UpdateWorkflow(repo=repo, tracker=_build_tracker(settings), settings=settings)

    context = _prepare(workflow, issue, create_branch=create_branch and not dry_run)
    _render_plan(context)
    if dry_run:
        return

    try:
        report = workflow.apply(context)
    except (GitError, TrackerError) as error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1) from error

    _render_report(report)
    if not report.ok:
        raise typer.Exit(code=1)


@app.command()
def status(
    issue: Optional[str] = typer.Argument(None, help="Issue number or URL."),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a patchledger configuration file.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Report the ledger and the pending patches without changing anything."""
    settings = _load_settings(config)
    _configure_logging(settings, verbose)
    repo = _open_repository()
    workflow = UpdateWorkflow(repo=repo, tracker=_build_tracker(settings), settings=settings)
    context = _prepare(workflow, issue, create_branch=False)
    _render_plan(context)


if __name__ == "__main__":
    app()
