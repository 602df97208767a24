"""
Step and StepResult — the unit of provisioning work and its outcome.

A Step is a small value record: a name, an action, an optional
capability check and a reboot policy. Steps hold no progress; all
mutable progress lives in the Checkpoint.

StepResult mirrors the action/receipt contract used elsewhere: the
step never raises, failures are captured in the result.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Callable, Literal, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class RebootPolicy(str, Enum):
    """Whether completing a step should be followed by a restart."""

    NEVER = "never"
    IF_CHANGED = "if_changed"
    ALWAYS = "always"


class StepResult(BaseModel):
    """Outcome of executing one step."""

    step: str = ""
    status: Literal["success", "skipped", "failed"] = "success"
    reason: str = ""
    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        """Success or skipped: the workflow may advance."""
        return self.status != "failed"

    @property
    def changed(self) -> bool:
        """Whether the step mutated host state."""
        return self.status == "success"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(cls, step: str = "", reason: str = "", **kwargs) -> StepResult:
        """Create a success result."""
        return cls(step=step, status="success", reason=reason, **kwargs)

    @classmethod
    def skip(cls, step: str = "", reason: str = "already satisfied", **kwargs) -> StepResult:
        """Create a skipped result."""
        return cls(step=step, status="skipped", reason=reason, **kwargs)

    @classmethod
    def failure(cls, step: str = "", reason: str = "", **kwargs) -> StepResult:
        """Create a failure result."""
        return cls(step=step, status="failed", reason=reason, **kwargs)


StepAction = Callable[[], Optional[StepResult]]
CapabilityCheck = Callable[[], bool]


@dataclass(frozen=True)
class Step:
    """A named, idempotent unit of provisioning work.

    Attributes:
        name: Stable identifier, unique within the sequence.
        action: Side-effecting callable. Returning ``None`` means success;
            raising means failure with the exception text as the reason.
        reboot_policy: Restart behavior after the step completes.
        check: Capability check. ``True`` means already satisfied and
            the action is not called.
        settle: Marks the bounded "ensure host software current" step.
        description: Human-readable label for status output.
    """

    name: str
    action: StepAction
    reboot_policy: RebootPolicy = RebootPolicy.NEVER
    check: CapabilityCheck | None = None
    settle: bool = False
    description: str = ""

    @property
    def label(self) -> str:
        return self.description or self.name

    def is_satisfied(self) -> bool:
        """Run the capability check; any error counts as not satisfied."""
        if self.check is None:
            return False
        try:
            return bool(self.check())
        except Exception as e:
            logger.warning("Capability check for '%s' failed: %s", self.name, e)
            return False

    def execute(self) -> StepResult:
        """Run the step: skip when satisfied, otherwise perform the action.

        Never raises. Any exception from the action becomes a failed result.
        """
        start = time.monotonic()

        if self.is_satisfied():
            logger.debug("Step '%s' already satisfied", self.name)
            return StepResult.skip(self.name)

        try:
            result = self.action()
        except Exception as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.debug("Step '%s' raised", self.name, exc_info=True)
            return StepResult.failure(self.name, reason=str(e) or type(e).__name__, duration_ms=elapsed_ms)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if result is None:
            return StepResult.success(self.name, duration_ms=elapsed_ms)

        return result.model_copy(update={"step": self.name, "duration_ms": elapsed_ms})
