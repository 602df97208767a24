"""
Tests for capability inspectors and program detection.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from provisioner.core.errors import TransientEnvironmentError
from provisioner.core.services import program_detect
from provisioner.core.services.capabilities import (
    FeatureInspector,
    FileInspector,
    PackageInspector,
)
from provisioner.core.services.program_detect import detectors_for, is_program_installed


class TestFeatureInspector:
    @pytest.mark.parametrize("state,expected", [
        ("Enabled", True),
        ("Disabled", False),
        ("EnablePending", False),
        ("enabled", True),
    ])
    def test_state_mapping(self, state, expected):
        inspector = FeatureInspector(query=lambda feature: state)
        assert inspector.is_satisfied("VirtualMachinePlatform") is expected

    def test_query_failure_means_not_satisfied(self):
        def query(feature):
            raise TransientEnvironmentError("DISM unavailable")

        assert FeatureInspector(query=query).is_satisfied("x") is False

    def test_checker_is_deferred(self):
        states = {"wsl": "Disabled"}
        check = FeatureInspector(query=lambda f: states[f]).checker("wsl")
        assert check() is False
        states["wsl"] = "Enabled"
        assert check() is True


class TestPackageInspector:
    def test_uses_detector(self):
        inspector = PackageInspector(detect=lambda name: name == "git")
        assert inspector.is_satisfied("git")
        assert not inspector.is_satisfied("docker")

    def test_detector_error_means_not_installed(self):
        def detect(name):
            raise RuntimeError("registry unreadable")

        assert PackageInspector(detect=detect).is_satisfied("git") is False


class TestFileInspector:
    def test_missing(self, tmp_path: Path):
        assert not FileInspector(tmp_path).is_satisfied("setup.exe")

    def test_empty_file_not_satisfied(self, tmp_path: Path):
        (tmp_path / "setup.exe").write_bytes(b"")
        assert not FileInspector(tmp_path).is_satisfied("setup.exe")

    def test_present(self, tmp_path: Path):
        (tmp_path / "setup.exe").write_bytes(b"MZ")
        assert FileInspector(tmp_path).is_satisfied("setup.exe")

    def test_absolute_path_ignores_base(self, tmp_path: Path):
        target = tmp_path / "elsewhere.msi"
        target.write_bytes(b"data")
        inspector = FileInspector(tmp_path / "downloads")
        assert inspector.resolve(str(target)) == target
        assert inspector.is_satisfied(str(target))


class TestProgramDetection:
    def test_any_probe_detects(self):
        detectors = [("a", lambda n: False), ("b", lambda n: n == "vagrant")]
        assert is_program_installed("vagrant", detectors=detectors)
        assert not is_program_installed("virtualbox", detectors=detectors)

    def test_failing_probe_is_ignored(self):
        def broken(name):
            raise FileNotFoundError("dpkg-query")

        detectors = [("broken", broken), ("path", lambda n: True)]
        assert is_program_installed("git", detectors=detectors)

    def test_all_failing_is_not_installed(self):
        def broken(name):
            raise OSError("no access")

        assert not is_program_installed("git", detectors=[("broken", broken)])

    @pytest.mark.parametrize("platform,names", [
        ("win32", ["where", "registry"]),
        ("darwin", ["path", "package", "macos"]),
        ("linux", ["path", "package", "desktop"]),
    ])
    def test_detectors_per_platform(self, platform, names):
        assert [name for name, _ in detectors_for(platform)] == names

    def test_desktop_entry(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        apps = tmp_path / "applications"
        apps.mkdir()
        (apps / "virt-manager.desktop").write_text("[Desktop Entry]\n")
        monkeypatch.setattr(program_detect, "desktop_dirs", lambda: [apps])

        assert program_detect.is_dot_desktop_installed("virt-manager")
        assert program_detect.is_dot_desktop_installed("virt-manager.desktop")
        assert not program_detect.is_dot_desktop_installed("gnome-boxes")

    def test_system_package_without_manager(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(program_detect, "detect_package_manager", lambda: None)
        assert program_detect.is_system_package("git") is False

    def test_unknown_package_manager(self):
        assert program_detect.is_package_installed("git", "emerge") is False
