"""
Domain models — step, result, checkpoint and configuration types.

All models are re-exported here for convenient access:

    from provisioner.core.models import Step, StepResult, Checkpoint
"""

from provisioner.core.models.checkpoint import Checkpoint
from provisioner.core.models.config import (
    DownloadSpec,
    PackageSpec,
    ProvisionConfig,
)
from provisioner.core.models.step import RebootPolicy, Step, StepResult

__all__ = [
    # checkpoint.py
    "Checkpoint",
    # config.py
    "DownloadSpec",
    "PackageSpec",
    "ProvisionConfig",
    # step.py
    "RebootPolicy",
    "Step",
    "StepResult",
]
