"""
gnulinwiz — CLI entrypoint.

Usage:
    gnulinwiz detect
    gnulinwiz plan [--file gnulinwiz.yml]
    gnulinwiz run [--dry-run] [--mock]
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from gnulinwiz import __version__
from gnulinwiz.core.observability.logging_config import (
    ENV_FILE,
    ENV_FILE_LEVEL,
    resolve_level,
    setup_logging,
)

_STATUS_STYLE = {
    "succeeded": ("✓", "green"),
    "failed": ("✗", "red"),
    "skipped": ("⊘", "yellow"),
}


@click.group()
@click.version_option(version=__version__, prog_name="gnulinwiz")
@click.option("--verbose", "-v", is_flag=True, help="Log every step and command.")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, debug: bool) -> None:
    """gnulinwiz — set up a fresh Linux workstation."""
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet

    if debug:
        flag_level = "DEBUG"
    elif verbose:
        flag_level = "INFO"
    elif quiet:
        flag_level = "ERROR"
    else:
        flag_level = None

    setup_logging(
        level=resolve_level(flag_level),
        log_file=os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
        quiet_third_party=not debug,
    )


# ── detect ──────────────────────────────────────────────────────────


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def detect(as_json: bool) -> None:
    """Show the detected distribution and package manager."""
    from gnulinwiz.core.use_cases.detect import detect_system

    result = detect_system()

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error or result.profile is None:
        click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(result.exit_code)

    profile = result.profile
    click.secho(f"\n🐧 {profile.pretty_name or profile.os_id or 'Linux'}", fg="cyan", bold=True)
    click.echo(f"   Family:          {profile.distribution.value}")
    click.echo(f"   Package manager: {profile.package_manager.value}")
    click.echo()
    for name, info in result.managers.items():
        marker = "✓" if info["available"] else "·"
        click.echo(f"   {marker} {name:<7} ({info['executable']})")
    click.echo()


# ── plan ────────────────────────────────────────────────────────────


def _task_file_option(fn):
    fn = click.option(
        "--defaults",
        "use_defaults",
        is_flag=True,
        help="Use the bundled task list even if gnulinwiz.yml exists.",
    )(fn)
    return click.option(
        "--file",
        "-f",
        "task_file",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        help="Task file (default: gnulinwiz.yml, searched upwards).",
    )(fn)


@cli.command("plan")
@_task_file_option
@click.option("--allow-root", is_flag=True, help="Permit running as root.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def plan_cmd(task_file: Path | None, use_defaults: bool, allow_root: bool, as_json: bool) -> None:
    """Load the task list and print the execution order."""
    from gnulinwiz.core.use_cases.run import prepare_plan

    result = prepare_plan(task_file=task_file, use_defaults=use_defaults, allow_root=allow_root)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error or result.plan is None:
        click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(result.exit_code)

    click.secho(f"\n📋 Plan ({len(result.plan)} tasks) from {result.task_file}", fg="cyan", bold=True)
    for index, task in enumerate(result.plan, start=1):
        deps = f"  ← {', '.join(sorted(task.depends_on))}" if task.depends_on else ""
        optional = " (optional)" if task.allow_failure else ""
        click.echo(f"   {index:>3}. {task.id}{optional}: {task.label}{deps}")
    click.echo()


# ── run ─────────────────────────────────────────────────────────────


@cli.command()
@_task_file_option
@click.option("--dry-run", is_flag=True, help="Show what would be done, change nothing.")
@click.option("--mock", is_flag=True, help="Simulate package manager, commands and writes.")
@click.option("--allow-root", is_flag=True, help="Permit running as root.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run(
    ctx: click.Context,
    task_file: Path | None,
    use_defaults: bool,
    dry_run: bool,
    mock: bool,
    allow_root: bool,
    as_json: bool,
) -> None:
    """Set up this system. Ctrl-C stops after the current step."""
    from gnulinwiz.core.use_cases.run import run_setup

    result = run_setup(
        task_file=task_file,
        use_defaults=use_defaults,
        dry_run=dry_run,
        mock_mode=mock,
        allow_root=allow_root,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error or result.report is None:
        click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(result.exit_code)

    report = result.report
    quiet = ctx.obj.get("quiet", False)

    for outcome in report.outcomes:
        marker, color = _STATUS_STYLE[outcome.status.value]
        if quiet and outcome.ok:
            continue
        line = f"   {marker} {outcome.task_id}"
        if outcome.reason:
            first_line = outcome.reason.splitlines()[0]
            line += f": {first_line}"
        if outcome.failed and outcome.allow_failure:
            line += " (allowed)"
        click.secho(line, fg=color)

    counts = report.counts()
    click.echo()
    summary = (
        f"   {counts['succeeded']} succeeded, {counts['failed']} failed, "
        f"{counts['skipped']} skipped"
    )
    if report.cancelled:
        click.secho(f"⏹  Cancelled.{summary}", fg="yellow", bold=True)
    elif report.dry_run:
        click.secho(f"🔍 Dry run: {len(report.outcomes)} tasks would run.", fg="cyan", bold=True)
    elif report.success:
        click.secho(f"✅ Done.{summary}", fg="green", bold=True)
    else:
        click.secho(f"⚠️  Finished with failures.{summary}", fg="red", bold=True)

    if result.audit_path and not quiet:
        click.echo(f"   Audit log: {result.audit_path}")

    sys.exit(report.exit_code)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
