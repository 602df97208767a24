"""
Workflow runner — the resumable provisioning state machine.

Every process start runs the same loop:

    load checkpoint → execute steps from the cursor → (restart | abort | complete)

States: idle → running → {awaiting_reboot, completed, aborted}.

The checkpoint is written before a restart is requested, when a step
fails, and once at completion. Between those points progress lives
only in memory; a crash re-runs the steps since the last write, which
is safe because every step is idempotent.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Callable, Sequence

from provisioner.core.errors import PersistenceError, RetryExhaustedError
from provisioner.core.models.checkpoint import Checkpoint
from provisioner.core.models.step import RebootPolicy, Step, StepResult
from provisioner.core.persistence.audit import AuditWriter, RunEntry
from provisioner.core.persistence.checkpoint_store import CheckpointStore
from provisioner.core.services.reboot_probe import RebootProbe

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPDATE_PASSES = 3


class WorkflowState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    AWAITING_REBOOT = "awaiting_reboot"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class RunReport:
    """Result of one runner invocation."""

    run_id: str = ""
    state: WorkflowState = WorkflowState.IDLE
    total_steps: int = 0
    start_index: int = 0
    end_index: int = 0
    results: list[StepResult] = field(default_factory=list)

    failed_step: str | None = None
    error: str | None = None
    persistence_failure: bool = False

    reboot_step: str | None = None
    restart_error: str | None = None
    duration_ms: int = 0

    @property
    def changed(self) -> int:
        return sum(1 for r in self.results if r.status == "success")

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status == "skipped")

    @property
    def executed_steps(self) -> list[str]:
        return [r.step for r in self.results]

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "state": self.state.value,
            "total_steps": self.total_steps,
            "start_index": self.start_index,
            "end_index": self.end_index,
            "changed": self.changed,
            "skipped": self.skipped,
            "failed_step": self.failed_step,
            "error": self.error,
            "persistence_failure": self.persistence_failure,
            "reboot_step": self.reboot_step,
            "restart_error": self.restart_error,
            "duration_ms": self.duration_ms,
            "results": [r.model_dump(mode="json") for r in self.results],
        }


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    return f"run-{now}-{uuid.uuid4().hex[:6]}"


class WorkflowRunner:
    """Drive a fixed, linear step sequence across restarts.

    Args:
        steps: The step sequence. Names must be unique.
        store: Durable checkpoint store.
        probe: Pending-reboot probe, queried after every completed step.
        restart: Called once to restart the host after the checkpoint
            has been written. May raise if the OS refuses.
        max_update_passes: Bound on passes of the settle step.
        audit: Optional run ledger.
    """

    def __init__(
        self,
        steps: Sequence[Step],
        store: CheckpointStore,
        probe: RebootProbe,
        restart: Callable[[], None],
        max_update_passes: int = DEFAULT_MAX_UPDATE_PASSES,
        audit: AuditWriter | None = None,
    ):
        names = [s.name for s in steps]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate step names: {', '.join(duplicates)}")
        if max_update_passes < 1:
            raise ValueError("max_update_passes must be at least 1")

        self._steps = list(steps)
        self._store = store
        self._probe = probe
        self._restart = restart
        self._max_update_passes = max_update_passes
        self._audit = audit
        self._state = WorkflowState.IDLE

    @property
    def steps(self) -> list[Step]:
        return list(self._steps)

    @property
    def state(self) -> WorkflowState:
        return self._state

    def pending_steps(self, checkpoint: Checkpoint | None = None) -> list[Step]:
        """Steps a run would start with, read-only (no checkpoint is created)."""
        if checkpoint is None:
            checkpoint = self._store.read() or Checkpoint()
        return self._steps[checkpoint.next_step_index:]

    # ── Main loop ───────────────────────────────────────────────

    def run(self) -> RunReport:
        """Resume the workflow from the stored checkpoint.

        Never raises for step or persistence failures; they are
        reported through ``RunReport.state == ABORTED``.
        """
        start = time.monotonic()
        self._state = WorkflowState.IDLE
        report = RunReport(run_id=generate_run_id(), total_steps=len(self._steps))

        try:
            checkpoint = self._store.load()
        except PersistenceError as e:
            return self._finish(report, start, self._persistence_abort(report, e))

        report.start_index = report.end_index = checkpoint.next_step_index

        if checkpoint.is_complete(len(self._steps)):
            logger.info("Workflow already complete (%d steps)", len(self._steps))
            return self._finish(report, start, WorkflowState.COMPLETED)

        self._state = WorkflowState.RUNNING
        logger.info(
            "Resuming at step %d/%d", checkpoint.next_step_index + 1, len(self._steps),
        )

        index = checkpoint.next_step_index
        while index < len(self._steps):
            step = self._steps[index]
            logger.info("▶ [%d/%d] %s", index + 1, len(self._steps), step.label)

            result = step.execute()
            pending: bool | None = None

            if step.settle and not result.failed:
                checkpoint.update_retry_count += 1
                pending = self._probe.is_reboot_pending()
                if pending and checkpoint.update_retry_count >= self._max_update_passes:
                    exhausted = RetryExhaustedError(step.name, checkpoint.update_retry_count)
                    result = StepResult.failure(step.name, reason=exhausted.cause)
                    checkpoint.update_retry_count = 0
                elif pending:
                    # Same step again after the restart
                    report.results.append(result)
                    self._log_result(result)
                    logger.info(
                        "%s: pass %d/%d left a reboot pending",
                        step.name, checkpoint.update_retry_count, self._max_update_passes,
                    )
                    return self._finish(report, start, self._await_reboot(report, checkpoint, step))
                else:
                    checkpoint.update_retry_count = 0

            report.results.append(result)
            self._log_result(result)

            if result.failed:
                report.failed_step = step.name
                report.error = result.reason
                checkpoint.next_step_index = index
                return self._finish(report, start, self._abort(report, checkpoint))

            index += 1
            checkpoint.next_step_index = index
            report.end_index = index

            if self._reboot_required(step, result, pending):
                return self._finish(report, start, self._await_reboot(report, checkpoint, step))

        try:
            self._store.save(checkpoint)
        except PersistenceError as e:
            return self._finish(report, start, self._persistence_abort(report, e))

        logger.info("Workflow complete: %d changed, %d skipped", report.changed, report.skipped)
        return self._finish(report, start, WorkflowState.COMPLETED)

    # ── Decisions ───────────────────────────────────────────────

    def _reboot_required(self, step: Step, result: StepResult, pending: bool | None) -> bool:
        if step.reboot_policy is RebootPolicy.ALWAYS:
            return True
        if step.reboot_policy is RebootPolicy.IF_CHANGED and result.changed:
            return True
        if pending is None:
            pending = self._probe.is_reboot_pending()
        return pending

    # ── Transitions ─────────────────────────────────────────────

    def _await_reboot(self, report: RunReport, checkpoint: Checkpoint, step: Step) -> WorkflowState:
        try:
            self._store.save(checkpoint)
        except PersistenceError as e:
            return self._persistence_abort(report, e)

        report.end_index = checkpoint.next_step_index
        report.reboot_step = step.name
        self._state = WorkflowState.AWAITING_REBOOT
        logger.warning(
            "Restart required after '%s'; the workflow resumes at step %d after logon",
            step.name, checkpoint.next_step_index + 1,
        )

        try:
            self._restart()
        except Exception as e:
            report.restart_error = str(e)
            logger.error("Restart request failed: %s", e)

        return WorkflowState.AWAITING_REBOOT

    def _abort(self, report: RunReport, checkpoint: Checkpoint) -> WorkflowState:
        logger.error("Step '%s' failed: %s", report.failed_step, report.error)
        try:
            self._store.save(checkpoint)
        except PersistenceError as e:
            return self._persistence_abort(report, e)
        report.end_index = checkpoint.next_step_index
        return WorkflowState.ABORTED

    def _persistence_abort(self, report: RunReport, error: PersistenceError) -> WorkflowState:
        logger.error("%s", error)
        report.persistence_failure = True
        report.error = f"{report.error}; {error}" if report.error else str(error)
        return WorkflowState.ABORTED

    def _finish(self, report: RunReport, start: float, state: WorkflowState) -> RunReport:
        self._state = state
        report.state = state
        report.duration_ms = int((time.monotonic() - start) * 1000)
        if self._audit is not None:
            self._audit.write(
                RunEntry(
                    run_id=report.run_id,
                    outcome=state.value,
                    start_index=report.start_index,
                    end_index=report.end_index,
                    total_steps=report.total_steps,
                    steps={r.step: r.status for r in report.results},
                    error=report.error,
                    duration_ms=report.duration_ms,
                )
            )
        return report

    @staticmethod
    def _log_result(result: StepResult) -> None:
        marker = {"success": "✓", "skipped": "⊘", "failed": "✗"}[result.status]
        logger.info("%s %s → %s", marker, result.step, result.status)
