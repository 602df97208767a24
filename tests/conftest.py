"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from provisioner.core.models.step import RebootPolicy, Step
from provisioner.core.persistence.checkpoint_store import CheckpointStore
from provisioner.core.services.reboot_probe import RebootProbe, RebootSignal


class RecordingRestarter:
    """Stands in for the host restart; counts requests."""

    def __init__(self, fail: bool = False):
        self.calls = 0
        self.fail = fail

    def __call__(self) -> None:
        self.calls += 1
        if self.fail:
            raise RuntimeError("shutdown refused")


class FakeHost:
    """A host whose features, programs and pending-reboot flag tests control."""

    def __init__(self):
        self.enabled: set[str] = set()
        self.installed: set[str] = set()
        self.pending: bool = False
        self.pending_sequence: list[bool] = []
        self.actions: list[str] = []

    def is_pending(self) -> bool:
        if self.pending_sequence:
            return self.pending_sequence.pop(0)
        return self.pending

    def probe(self) -> RebootProbe:
        return RebootProbe([RebootSignal("fake", self.is_pending)])

    def feature_step(self, feature: str, policy: RebootPolicy = RebootPolicy.IF_CHANGED) -> Step:
        def action() -> None:
            self.actions.append(f"enable:{feature}")
            self.enabled.add(feature)

        return Step(
            name=f"enable-{feature}",
            action=action,
            reboot_policy=policy,
            check=lambda: feature in self.enabled,
        )

    def package_step(self, program: str, policy: RebootPolicy = RebootPolicy.NEVER) -> Step:
        def action() -> None:
            self.actions.append(f"install:{program}")
            self.installed.add(program)

        return Step(
            name=f"install-{program}",
            action=action,
            reboot_policy=policy,
            check=lambda: program in self.installed,
        )

    def update_step(self) -> Step:
        def action() -> None:
            self.actions.append("update")

        return Step(name="ensure-updates", action=action, settle=True)


@pytest.fixture
def tmp_state_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for state files."""
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def store(tmp_state_dir: Path) -> CheckpointStore:
    return CheckpointStore(tmp_state_dir / "checkpoint.json")


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def restarter() -> RecordingRestarter:
    return RecordingRestarter()


@pytest.fixture(autouse=True)
def isolated_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep every test's checkpoint and config lookup inside tmp_path."""
    monkeypatch.setenv("PROVISION_STATE_DIR", str(tmp_path / "default-state"))
    monkeypatch.delenv("PROVISION_CONFIG", raising=False)
    monkeypatch.delenv("PROVISION_LOG_FILE", raising=False)
    monkeypatch.delenv("PROVISION_LOG_LEVEL", raising=False)
    monkeypatch.chdir(tmp_path)
