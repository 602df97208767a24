"""
Capability inspectors — idempotency guards for steps.

Each inspector answers one question, "is this capability already
satisfied?", for one kind of capability:

    FeatureInspector  — optional OS feature is Enabled
    PackageInspector  — program/package is installed
    FileInspector     — artifact already downloaded

Checks are side-effect free and never touch the network. A failing
query is not an error here: it means "not satisfied", and the step
simply runs its (idempotent) action.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable

from provisioner.core.errors import TransientEnvironmentError
from provisioner.core.services.command import run_powershell
from provisioner.core.services.program_detect import is_program_installed

logger = logging.getLogger(__name__)


class CapabilityInspector(ABC):
    """Base class for all capability inspectors."""

    kind: str = ""

    @abstractmethod
    def _query(self, capability_id: str) -> bool:
        """Inspect the host. May raise TransientEnvironmentError."""

    def is_satisfied(self, capability_id: str) -> bool:
        """Whether the capability is already in place. Never raises."""
        try:
            satisfied = self._query(capability_id)
        except TransientEnvironmentError as e:
            logger.info("%s check for '%s' unavailable: %s", self.kind, capability_id, e)
            return False
        except Exception as e:
            logger.warning("%s check for '%s' failed: %s", self.kind, capability_id, e)
            return False
        logger.debug("%s '%s' satisfied=%s", self.kind, capability_id, satisfied)
        return satisfied

    def checker(self, capability_id: str) -> Callable[[], bool]:
        """A zero-argument check suitable for ``Step.check``."""
        return lambda: self.is_satisfied(capability_id)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} kind={self.kind!r}>"


def query_optional_feature(feature: str) -> str:
    """Return the state of a Windows optional feature (``Enabled``, ``Disabled``, ...)."""
    result = run_powershell(
        f"(Get-WindowsOptionalFeature -Online -FeatureName '{feature}').State",
        timeout=60,
    )
    if not result["ok"]:
        raise TransientEnvironmentError(result.get("error", "feature query failed"))
    return result["stdout"].strip()


class FeatureInspector(CapabilityInspector):
    """Optional OS feature state: satisfied when ``Enabled``."""

    kind = "feature"

    def __init__(self, query: Callable[[str], str] = query_optional_feature):
        self._state_of = query

    def _query(self, capability_id: str) -> bool:
        return self._state_of(capability_id).lower() == "enabled"


class PackageInspector(CapabilityInspector):
    """Installed package/program lookup, composed over the program detector."""

    kind = "package"

    def __init__(self, detect: Callable[[str], bool] = is_program_installed):
        self._detect = detect

    def _query(self, capability_id: str) -> bool:
        return bool(self._detect(capability_id))


class FileInspector(CapabilityInspector):
    """A previously downloaded artifact is present and non-empty.

    Relative capability ids are resolved against ``base_dir``.
    """

    kind = "file"

    def __init__(self, base_dir: Path | None = None):
        self._base_dir = base_dir

    def resolve(self, capability_id: str) -> Path:
        path = Path(capability_id)
        if self._base_dir is not None and not path.is_absolute():
            path = self._base_dir / path
        return path

    def _query(self, capability_id: str) -> bool:
        path = self.resolve(capability_id)
        return path.is_file() and path.stat().st_size > 0
