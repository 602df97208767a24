"""
Tests for domain models — Step, StepResult, Checkpoint, ProvisionConfig.
"""

from __future__ import annotations

import dataclasses

import pytest
from pydantic import ValidationError

from provisioner.core.errors import RetryExhaustedError, StepExecutionError
from provisioner.core.models import Checkpoint, ProvisionConfig, RebootPolicy, Step, StepResult


class TestStepResult:
    def test_success(self):
        r = StepResult.success("a")
        assert r.ok
        assert r.changed
        assert not r.failed

    def test_skip(self):
        r = StepResult.skip("a")
        assert r.ok
        assert not r.changed
        assert r.reason == "already satisfied"

    def test_failure(self):
        r = StepResult.failure("a", reason="boom")
        assert not r.ok
        assert r.failed
        assert r.reason == "boom"


class TestStep:
    def test_satisfied_check_skips_action(self):
        calls = []
        step = Step(name="s", action=lambda: calls.append(1), check=lambda: True)
        result = step.execute()
        assert result.status == "skipped"
        assert calls == []

    def test_unsatisfied_runs_action(self):
        calls = []
        step = Step(name="s", action=lambda: calls.append(1), check=lambda: False)
        result = step.execute()
        assert result.status == "success"
        assert result.step == "s"
        assert calls == [1]

    def test_no_check_always_runs(self):
        calls = []
        step = Step(name="s", action=lambda: calls.append(1))
        assert step.execute().status == "success"
        assert calls == [1]

    def test_action_exception_becomes_failure(self):
        def action():
            raise RuntimeError("exit 1")

        result = Step(name="s", action=action).execute()
        assert result.failed
        assert result.reason == "exit 1"

    def test_check_exception_means_not_satisfied(self):
        def check():
            raise OSError("agent missing")

        calls = []
        step = Step(name="s", action=lambda: calls.append(1), check=check)
        assert step.execute().status == "success"
        assert calls == [1]

    def test_returned_result_is_stamped_with_step_name(self):
        step = Step(name="s", action=lambda: StepResult.skip(reason="nothing to do"))
        result = step.execute()
        assert result.step == "s"
        assert result.status == "skipped"

    def test_steps_are_frozen(self):
        step = Step(name="s", action=lambda: None)
        with pytest.raises(dataclasses.FrozenInstanceError):
            step.name = "other"  # type: ignore[misc]

    def test_defaults(self):
        step = Step(name="s", action=lambda: None)
        assert step.reboot_policy is RebootPolicy.NEVER
        assert step.settle is False
        assert step.label == "s"


class TestCheckpoint:
    def test_defaults(self):
        cp = Checkpoint()
        assert cp.next_step_index == 0
        assert cp.update_retry_count == 0

    def test_camel_case_on_disk(self):
        cp = Checkpoint(next_step_index=2, update_retry_count=1)
        assert cp.to_json_dict() == {"nextStepIndex": 2, "updateRetryCount": 1}

    def test_parse_camel_case(self):
        cp = Checkpoint.model_validate({"nextStepIndex": 4, "updateRetryCount": 2})
        assert cp.next_step_index == 4
        assert cp.update_retry_count == 2

    def test_negative_rejected(self):
        with pytest.raises(ValidationError):
            Checkpoint.model_validate({"nextStepIndex": -1, "updateRetryCount": 0})

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValidationError):
            Checkpoint.model_validate({"nextStepIndex": 0, "cursor": 3})

    def test_is_complete(self):
        assert Checkpoint(next_step_index=3).is_complete(3)
        assert not Checkpoint(next_step_index=2).is_complete(3)


class TestProvisionConfig:
    def test_defaults(self):
        cfg = ProvisionConfig()
        assert cfg.target_os == "windows"
        assert cfg.max_update_passes == 3
        assert "Microsoft-Windows-Subsystem-Linux" in cfg.features
        assert cfg.get_download("docker-desktop") is not None

    def test_target_os_lowercased(self):
        assert ProvisionConfig(target_os="Ubuntu").target_os == "ubuntu"

    def test_unknown_os_rejected(self):
        with pytest.raises(ValidationError):
            ProvisionConfig(target_os="beos")

    def test_update_passes_at_least_one(self):
        with pytest.raises(ValidationError):
            ProvisionConfig(max_update_passes=0)

    def test_download_target_name_from_url(self):
        cfg = ProvisionConfig()
        assert cfg.get_download("wsl-kernel").target_name == "wsl_update_x64.msi"
        assert cfg.get_download("docker-desktop").target_name == "DockerDesktopInstaller.exe"


class TestErrors:
    def test_step_failure_message(self):
        err = StepExecutionError("install-docker", "installer exited 1603")
        assert err.step == "install-docker"
        assert err.cause == "installer exited 1603"
        assert str(err) == "Step 'install-docker' failed: installer exited 1603"

    def test_exhausted_update_passes_is_a_step_failure(self):
        err = RetryExhaustedError("ensure-updates", 3)
        assert isinstance(err, StepExecutionError)
        assert err.passes == 3
        assert "reboot still pending after 3 update pass(es)" in err.cause
