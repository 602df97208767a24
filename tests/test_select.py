"""
Tests for target selection — available platforms and the select prompts.
"""

import pytest
from click.testing import CliRunner

from provisioner.core.services import platforms
from provisioner.core.services.platforms import PLATFORM_PROVIDERS, available_platforms
from provisioner.main import cli
from provisioner.ui.cli.select import decorate_system


def _installed(*names):
    return lambda name: name in names


class TestAvailablePlatforms:
    def test_linux(self):
        choices = available_platforms(
            "linux",
            installed=_installed("kvm", "virtualbox", "vmware"),
            feature_enabled=lambda f: True,
        )
        assert choices == ["KVM", "VirtualBox", "VMWare Workstation"]

    def test_macos(self):
        choices = available_platforms(
            "darwin",
            installed=_installed("kvm", "Parallels Desktop.app", "virtualbox", "VMware Fusion.app", "vmware"),
            feature_enabled=lambda f: True,
        )
        assert choices == ["KVM", "Parallels", "VirtualBox", "VMWare Fusion"]

    def test_windows_hyperv_from_feature(self):
        choices = available_platforms(
            "win32",
            installed=_installed("virtualbox", "kvm"),
            feature_enabled=lambda f: f == "Microsoft-Hyper-V-All",
        )
        assert choices == ["Hyper-V", "VirtualBox"]

    def test_nothing_installed(self):
        assert available_platforms("linux", installed=_installed(), feature_enabled=lambda f: False) == []

    def test_every_platform_has_provider(self):
        choices = available_platforms(
            "darwin", installed=lambda name: True, feature_enabled=lambda f: True,
        )
        assert all(c in PLATFORM_PROVIDERS for c in choices)


class TestDecorateSystem:
    def test_label_kept(self):
        assert decorate_system("Ubuntu").endswith("Ubuntu")

    def test_unknown_label(self):
        assert "Plan9" in decorate_system("Plan9")


class TestSelectCommands:
    @pytest.fixture
    def platforms_available(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(platforms, "available_platforms", lambda: ["KVM", "VirtualBox"])

    def test_select_os(self):
        result = CliRunner().invoke(cli, ["select", "os"], input="6\n")
        assert result.exit_code == 0
        assert result.output.splitlines()[-1] == "ubuntu"

    def test_select_os_default(self):
        result = CliRunner().invoke(cli, ["select", "os"], input="\n")
        assert result.exit_code == 0
        assert result.output.splitlines()[-1] == "archlinux"

    def test_select_platform(self, platforms_available):
        result = CliRunner().invoke(cli, ["select", "platform"], input="2\n")
        assert result.exit_code == 0
        assert result.output.splitlines()[-1] == "virtualbox"

    def test_no_platform_available(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(platforms, "available_platforms", lambda: [])
        result = CliRunner().invoke(cli, ["select", "platform"])
        assert result.exit_code == 1
        assert "No supported virtualization platform" in result.output

    def test_select_vagrant(self, platforms_available):
        result = CliRunner().invoke(cli, ["select", "vagrant"], input="7\n1\n")
        assert result.exit_code == 0
        assert result.output.splitlines()[-1] == "--provider=libvirt windows"
