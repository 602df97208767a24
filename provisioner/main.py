"""
Provisioner — CLI entrypoint.

Usage:
    provision run              # start, or resume after a restart
    provision status
    provision probe
    python -m provisioner.main --help

Exit codes for ``run``:
    0  completed, or restart requested after a durable checkpoint
    1  a step failed (checkpoint unchanged, re-run to retry it)
    3  the checkpoint could not be read or written
    4  checkpoint written but the OS refused the restart
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from provisioner import __version__
from provisioner.core.observability.logging_config import (
    ENV_LOG_FILE,
    ENV_LOG_FILE_LEVEL,
    ENV_LOG_LEVEL,
    resolve_level,
    setup_logging,
)

if TYPE_CHECKING:
    from provisioner.core.use_cases.provision import ProvisionResult

EXIT_STEP_FAILED = 1
EXIT_PERSISTENCE = 3
EXIT_RESTART_FAILED = 4


@click.group()
@click.version_option(version=__version__, prog_name="provision")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to provision.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Provisioner — bootstrap a host across restarts."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug, verbose, quiet, os.environ.get(ENV_LOG_LEVEL)),
        log_file=os.environ.get(ENV_LOG_FILE),
        log_file_level=os.environ.get(ENV_LOG_FILE_LEVEL),
        quiet_third_party=not debug,
    )


def _attach_config_log_file(config_log_file: str | None) -> None:
    """Honor ``log_file`` from provision.yml when no env override is set."""
    if not config_log_file or os.environ.get(ENV_LOG_FILE):
        return

    root = logging.getLogger()
    console_level = root.handlers[0].level if root.handlers else logging.WARNING
    setup_logging(
        level=logging.getLevelName(console_level),
        log_file=config_log_file,
        log_file_level=os.environ.get(ENV_LOG_FILE_LEVEL),
    )


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--dry-run", is_flag=True, help="List the steps that would run; change nothing.")
@click.option("--no-restart", is_flag=True, help="Record the checkpoint but don't restart.")
@click.pass_context
def run(ctx: click.Context, as_json: bool, dry_run: bool, no_restart: bool) -> None:
    """Run the workflow, resuming from the last checkpoint.

    Safe to re-run at any time: a completed workflow does nothing.
    """
    from provisioner.core.errors import ConfigError
    from provisioner.core.use_cases.provision import open_workspace, run_provisioning

    try:
        workspace = open_workspace(ctx.obj.get("config_path"))
    except ConfigError as e:
        _fail(str(e), as_json)
        return

    _attach_config_log_file(workspace.config.log_file)

    result = run_provisioning(dry_run=dry_run, restart=not no_restart, workspace=workspace)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(_exit_code(result))

    if result.error:
        _fail(result.error, as_json=False)
        return

    if dry_run:
        if not result.planned:
            click.secho("✅ Nothing to do — workflow complete", fg="green")
            return
        click.secho(f"\n📋 {len(result.planned)} step(s) would run:", fg="cyan", bold=True)
        for name in result.planned:
            click.echo(f"   • {name}")
        click.echo()
        return

    report = result.report
    assert report is not None
    quiet = ctx.obj.get("quiet", False)

    if not quiet:
        for r in report.results:
            if r.status == "success":
                click.secho(f"   ✓ {r.step}", fg="green")
            elif r.status == "skipped":
                click.secho(f"   ⊘ {r.step} ", fg="yellow", nl=False)
                click.echo(f"({r.reason})")
            else:
                click.secho(f"   ✗ {r.step}", fg="red")

    state = report.state.value
    if state == "completed":
        if not quiet:
            click.secho(
                f"\n✅ Provisioning complete ({report.changed} changed, {report.skipped} skipped)",
                fg="green",
                bold=True,
            )
    elif state == "awaiting_reboot":
        click.secho(
            f"\n🔁 Restart required after '{report.reboot_step}'. "
            "The host is about to restart; provisioning resumes automatically after logon.",
            fg="cyan",
            bold=True,
        )
        if report.restart_error:
            click.secho(
                f"❌ Restart request failed: {report.restart_error}. Restart the host manually.",
                fg="red",
                err=True,
            )
    elif report.persistence_failure:
        click.secho(f"❌ Cannot track progress: {report.error}", fg="red", err=True)
    else:
        click.secho(
            f"❌ Step '{report.failed_step}' failed: {report.error}",
            fg="red",
            err=True,
        )
        click.echo("   Fix the cause and run again; the same step will be retried.", err=True)

    sys.exit(_exit_code(result))


def _exit_code(result: ProvisionResult) -> int:
    if result.error:
        return EXIT_STEP_FAILED
    report = result.report
    if report is None:
        return 0
    if report.persistence_failure:
        return EXIT_PERSISTENCE
    if report.state.value == "aborted":
        return EXIT_STEP_FAILED
    if report.restart_error:
        return EXIT_RESTART_FAILED
    return 0


def _fail(message: str, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps({"error": message}, indent=2))
    else:
        click.secho(f"❌ {message}", fg="red", err=True)
    sys.exit(1)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--no-probe", is_flag=True, help="Skip the pending-reboot check.")
@click.pass_context
def status(ctx: click.Context, as_json: bool, no_probe: bool) -> None:
    """Show the checkpoint and the step sequence."""
    from provisioner.core.use_cases.provision import get_status

    result = get_status(config_path=ctx.obj.get("config_path"), check_reboot=not no_probe)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        _fail(result.error, as_json=False)
        return

    cp = result.checkpoint
    click.secho(f"\n📋 Checkpoint: {result.checkpoint_path}", fg="cyan", bold=True)
    if cp is None:
        click.echo("   Not started")
    else:
        click.echo(f"   Next step: {cp.next_step_index + 1}/{len(result.steps)}")
        click.echo(f"   Update passes: {cp.update_retry_count}/{result.max_update_passes}")
    click.echo()

    next_index = cp.next_step_index if cp else 0
    for i, step in enumerate(result.steps):
        if i < next_index:
            click.secho(f"   ✓ {step.name}", fg="green")
        elif i == next_index:
            click.secho(f"   ▶ {step.name}", fg="cyan", bold=True)
        else:
            click.echo(f"   • {step.name}")

    if result.complete:
        click.echo()
        click.secho("   ✅ Workflow complete", fg="green")

    if result.reboot_pending is not None:
        click.echo()
        if result.reboot_pending:
            click.secho("   ⚠️  A reboot is pending on this host", fg="yellow")
        else:
            click.echo("   No reboot pending")
    click.echo()


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Don't ask for confirmation.")
@click.pass_context
def reset(ctx: click.Context, yes: bool) -> None:
    """Delete the checkpoint so the next run starts over."""
    from provisioner.core.errors import ConfigError, PersistenceError
    from provisioner.core.use_cases.provision import reset_checkpoint

    if not yes:
        click.confirm("Discard provisioning progress?", abort=True)

    try:
        removed = reset_checkpoint(config_path=ctx.obj.get("config_path"))
    except (ConfigError, PersistenceError) as e:
        _fail(str(e), as_json=False)
        return

    if removed:
        click.secho("🗑  Checkpoint removed", fg="green")
    else:
        click.echo("No checkpoint to remove")


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def probe(as_json: bool) -> None:
    """Show each pending-reboot signal."""
    from provisioner.core.services.reboot_probe import RebootProbe

    rp = RebootProbe()
    signals = rp.explain()
    pending = any(signals.values())

    if as_json:
        click.echo(json.dumps({"pending": pending, "signals": signals}, indent=2))
        return

    if not signals:
        click.secho("⚠️  No reboot signals available on this platform", fg="yellow")
        return

    for name, value in signals.items():
        if value:
            click.secho(f"   ⚠️  {name}", fg="yellow")
        else:
            click.echo(f"   ✓ {name}")
    click.echo()
    if pending:
        click.secho("Reboot pending", fg="yellow", bold=True)
    else:
        click.secho("No reboot pending", fg="green")


@cli.command()
@click.argument("program")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def check(program: str, as_json: bool) -> None:
    """Check whether a program or package is installed."""
    from provisioner.core.services.capabilities import PackageInspector

    installed = PackageInspector().is_satisfied(program)

    if as_json:
        click.echo(json.dumps({"program": program, "installed": installed}))
    elif installed:
        click.secho(f"✅ {program} is installed", fg="green")
    else:
        click.secho(f"❌ {program} is not installed", fg="red")
    sys.exit(0 if installed else 1)


@cli.command()
@click.option("-n", "count", default=20, type=int, help="Number of entries.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history(ctx: click.Context, count: int, as_json: bool) -> None:
    """Show recent runs from the audit ledger."""
    from provisioner.core.errors import ConfigError
    from provisioner.core.use_cases.provision import open_workspace

    try:
        workspace = open_workspace(ctx.obj.get("config_path"))
    except ConfigError as e:
        _fail(str(e), as_json)
        return

    entries = workspace.audit.read_recent(count)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.echo("No runs recorded")
        return

    colors = {"completed": "green", "awaiting_reboot": "cyan", "aborted": "red"}
    for entry in entries:
        click.echo(f"   {entry.timestamp}  ", nl=False)
        click.secho(f"{entry.outcome:<16}", fg=colors.get(entry.outcome, "white"), nl=False)
        click.echo(f" steps {entry.start_index + 1}→{entry.end_index}/{entry.total_steps}")
        if entry.error:
            click.echo(f"     │ {entry.error}")


# ── Register sub-command groups from provisioner/ui/cli/ ─────────

from provisioner.ui.cli.select import select

cli.add_command(select)


if __name__ == "__main__":
    cli()
