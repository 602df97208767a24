"""
Error taxonomy for the provisioning workflow.

Two failure families are kept apart on purpose for operators:

    StepExecutionError: provisioning logic failed (exit 1)
    PersistenceError:   progress cannot be tracked (exit 3)

TransientEnvironmentError never leaves the probe/inspector that raised
it; callers recover it to the safe default (not pending, not installed).
"""

from __future__ import annotations

from pathlib import Path


class ProvisionError(Exception):
    """Base class for all provisioner errors."""


class TransientEnvironmentError(ProvisionError):
    """A host query failed because an optional subsystem is absent."""


class StepExecutionError(ProvisionError):
    """A step's mutating action failed.

    Not raised across the runner: step failures travel as failed
    ``StepResult``s (``Step.execute`` never raises). The class names the
    failure and formats ``cause``, which becomes the result's reason.
    """

    def __init__(self, step: str, cause: str):
        self.step = step
        self.cause = cause
        super().__init__(f"Step '{step}' failed: {cause}")


class RetryExhaustedError(StepExecutionError):
    """The bounded update policy ran out of passes with a reboot still pending."""

    def __init__(self, step: str, passes: int):
        self.passes = passes
        super().__init__(
            step,
            f"reboot still pending after {passes} update pass(es); "
            "cannot guarantee the host is current",
        )


class PersistenceError(ProvisionError):
    """The checkpoint could not be read or written."""

    def __init__(self, path: Path, cause: str):
        self.path = path
        self.cause = cause
        super().__init__(f"Cannot track progress at {path}: {cause}")


class ConfigError(ProvisionError):
    """Raised when the provisioning configuration is invalid."""
