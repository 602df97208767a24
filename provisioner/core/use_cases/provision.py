"""
Provision use cases — wire config, store, probe and steps into a runner.

This is the vertical slice behind the CLI: load config, build the
step sequence, then run / inspect / reset the workflow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from provisioner.core.config.loader import (
    checkpoint_path,
    download_dir,
    find_config_file,
    load_config,
)
from provisioner.core.engine.runner import RunReport, WorkflowRunner
from provisioner.core.errors import ConfigError, PersistenceError
from provisioner.core.models.checkpoint import Checkpoint
from provisioner.core.models.config import ProvisionConfig
from provisioner.core.models.step import Step
from provisioner.core.persistence.audit import DEFAULT_AUDIT_FILE, AuditWriter
from provisioner.core.persistence.checkpoint_store import CheckpointStore
from provisioner.core.services.reboot_probe import RebootProbe
from provisioner.core.services.restart import HostRestarter
from provisioner.core.services.workflow import build_steps

logger = logging.getLogger(__name__)


@dataclass
class Workspace:
    """Everything a command needs, resolved from config."""

    config: ProvisionConfig
    store: CheckpointStore
    audit: AuditWriter
    steps: list[Step]
    config_path: Path | None = None


def open_workspace(
    config_path: Path | None = None,
    steps: list[Step] | None = None,
) -> Workspace:
    """Load config and resolve the checkpoint, ledger and steps.

    Raises:
        ConfigError: If the config is invalid or inconsistent.
    """
    source = config_path if config_path is not None else find_config_file()
    config = load_config(source)
    path = checkpoint_path(config)
    if steps is None:
        try:
            steps = build_steps(config, download_dir(config))
        except ValueError as e:
            raise ConfigError(str(e)) from e
    return Workspace(
        config=config,
        store=CheckpointStore(path),
        audit=AuditWriter(path.parent / DEFAULT_AUDIT_FILE),
        steps=steps,
        config_path=source.resolve() if source is not None else None,
    )


@dataclass
class ProvisionResult:
    """Result of ``provision run``."""

    report: RunReport | None = None
    dry_run: bool = False
    planned: list[str] = field(default_factory=list)
    checkpoint_path: Path | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.error:
            return {"error": self.error}
        result: dict[str, Any] = {"checkpoint_path": str(self.checkpoint_path)}
        if self.dry_run:
            result["dry_run"] = True
            result["planned"] = self.planned
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def run_provisioning(
    config_path: Path | None = None,
    dry_run: bool = False,
    restart: bool = True,
    restarter: Callable[[], None] | None = None,
    probe: RebootProbe | None = None,
    workspace: Workspace | None = None,
) -> ProvisionResult:
    """Run or resume the provisioning workflow.

    Args:
        config_path: Optional explicit path to provision.yml.
        dry_run: List the steps that would run; execute nothing.
        restart: When False, record the checkpoint but don't restart.
        restarter: Override the host restarter (tests, embedding).
        probe: Override the reboot probe.
        workspace: Pre-built workspace (skips config loading).
    """
    result = ProvisionResult(dry_run=dry_run)

    try:
        ws = workspace or open_workspace(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result

    result.checkpoint_path = ws.store.path

    if restarter is None:
        if restart:
            restarter = HostRestarter(
                delay_seconds=ws.config.restart_delay_seconds,
                register=ws.config.register_resume,
                config_path=ws.config_path,
            )
        else:
            restarter = _restart_skipped

    runner = WorkflowRunner(
        steps=ws.steps,
        store=ws.store,
        probe=probe or RebootProbe(),
        restart=restarter,
        max_update_passes=ws.config.max_update_passes,
        audit=ws.audit,
    )

    if dry_run:
        try:
            result.planned = [s.name for s in runner.pending_steps()]
        except PersistenceError as e:
            result.error = str(e)
        return result

    result.report = runner.run()
    return result


def _restart_skipped() -> None:
    logger.warning("Restart skipped (--no-restart); restart the host to continue")


@dataclass
class StatusResult:
    """Checkpoint position and pending-reboot state."""

    steps: list[Step] = field(default_factory=list)
    checkpoint: Checkpoint | None = None
    checkpoint_path: Path | None = None
    max_update_passes: int = 0
    reboot_pending: bool | None = None
    error: str | None = None

    @property
    def complete(self) -> bool:
        return self.checkpoint is not None and self.checkpoint.is_complete(len(self.steps))

    def to_dict(self) -> dict[str, Any]:
        if self.error:
            return {"error": self.error}
        cp = self.checkpoint or Checkpoint()
        return {
            "checkpoint_path": str(self.checkpoint_path),
            "checkpoint": cp.to_json_dict() if self.checkpoint else None,
            "complete": self.complete,
            "max_update_passes": self.max_update_passes,
            "reboot_pending": self.reboot_pending,
            "steps": [
                {
                    "index": i,
                    "name": s.name,
                    "reboot_policy": s.reboot_policy.value,
                    "done": i < cp.next_step_index,
                }
                for i, s in enumerate(self.steps)
            ],
        }


def get_status(
    config_path: Path | None = None,
    probe: RebootProbe | None = None,
    check_reboot: bool = True,
    workspace: Workspace | None = None,
) -> StatusResult:
    """Report where the workflow stands without changing anything."""
    result = StatusResult()
    try:
        ws = workspace or open_workspace(config_path)
        result.steps = ws.steps
        result.checkpoint_path = ws.store.path
        result.max_update_passes = ws.config.max_update_passes
        result.checkpoint = ws.store.read()
    except (ConfigError, PersistenceError) as e:
        result.error = str(e)
        return result

    if check_reboot:
        result.reboot_pending = (probe or RebootProbe()).is_reboot_pending()
    return result


def reset_checkpoint(config_path: Path | None = None, workspace: Workspace | None = None) -> bool:
    """Delete the checkpoint so the next run starts over.

    Raises:
        ConfigError, PersistenceError
    """
    ws = workspace or open_workspace(config_path)
    return ws.store.clear()
