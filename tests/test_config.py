"""
Tests for configuration loading — provision.yml → ProvisionConfig.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from provisioner.core.config.loader import (
    checkpoint_path,
    download_dir,
    find_config_file,
    load_config,
    state_dir,
)
from provisioner.core.errors import ConfigError
from provisioner.core.models.config import ProvisionConfig


class TestFindConfig:
    def test_not_found(self, tmp_path: Path):
        assert find_config_file(tmp_path) is None

    def test_found_in_parent(self, tmp_path: Path):
        (tmp_path / "provision.yml").write_text("name: lab\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == (tmp_path / "provision.yml").resolve()

    def test_env_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        target = tmp_path / "custom.yml"
        monkeypatch.setenv("PROVISION_CONFIG", str(target))
        assert find_config_file(tmp_path) == target


class TestLoadConfig:
    def test_no_file_gives_defaults(self):
        config = load_config()
        assert config == ProvisionConfig()

    def test_flat_yaml(self, tmp_path: Path):
        path = tmp_path / "provision.yml"
        path.write_text(
            "name: lab-box\n"
            "max_update_passes: 5\n"
            "features: [VirtualMachinePlatform]\n"
            "remote_management: false\n"
        )
        config = load_config(path)
        assert config.name == "lab-box"
        assert config.max_update_passes == 5
        assert config.features == ["VirtualMachinePlatform"]
        assert config.remote_management is False

    def test_wrapped_yaml(self, tmp_path: Path):
        path = tmp_path / "provision.yml"
        path.write_text("provision:\n  name: wrapped\n  target_os: ubuntu\n")
        config = load_config(path)
        assert config.name == "wrapped"
        assert config.target_os == "ubuntu"

    def test_empty_file_gives_defaults(self, tmp_path: Path):
        path = tmp_path / "provision.yml"
        path.write_text("")
        assert load_config(path).name == "workstation"

    def test_discovered_from_cwd(self, tmp_path: Path):
        (tmp_path / "provision.yml").write_text("name: discovered\n")
        assert load_config().name == "discovered"

    def test_explicit_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.yml")

    def test_env_missing_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PROVISION_CONFIG", str(tmp_path / "missing.yml"))
        with pytest.raises(ConfigError):
            load_config()

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "provision.yml"
        path.write_text("name: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "provision.yml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_schema_violation(self, tmp_path: Path):
        path = tmp_path / "provision.yml"
        path.write_text("target_os: solaris\n")
        with pytest.raises(ConfigError, match="Invalid provisioning configuration"):
            load_config(path)

    def test_package_entries(self, tmp_path: Path):
        path = tmp_path / "provision.yml"
        path.write_text(
            "downloads:\n"
            "  - name: vagrant\n"
            "    url: https://example.invalid/vagrant.msi\n"
            "packages:\n"
            "  - name: vagrant\n"
            "    installer: vagrant\n"
            "    args: [/quiet]\n"
        )
        config = load_config(path)
        assert [d.name for d in config.downloads] == ["vagrant"]
        assert config.packages[0].installer == "vagrant"
        assert config.packages[0].detect_name == "vagrant"


class TestStateLocations:
    def test_state_dir_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PROVISION_STATE_DIR", str(tmp_path / "state"))
        assert state_dir() == tmp_path / "state"

    def test_state_dir_default(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("PROVISION_STATE_DIR", raising=False)
        assert state_dir().name == "provisioner"

    def test_checkpoint_path_default(self, tmp_path: Path):
        assert checkpoint_path(ProvisionConfig()) == tmp_path / "default-state" / "checkpoint.json"

    def test_checkpoint_path_explicit(self, tmp_path: Path):
        config = ProvisionConfig(checkpoint_path=str(tmp_path / "cp.json"))
        assert checkpoint_path(config) == tmp_path / "cp.json"

    def test_relative_paths_follow_config_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        project = tmp_path / "project"
        project.mkdir()
        path = project / "provision.yml"
        path.write_text(
            "checkpoint_path: state/cp.json\n"
            "download_dir: payloads\n"
            f"log_file: '{tmp_path / 'abs.log'}'\n"
        )
        monkeypatch.chdir(tmp_path)

        config = load_config(path)
        assert checkpoint_path(config) == project.resolve() / "state" / "cp.json"
        assert download_dir(config) == project.resolve() / "payloads"
        assert config.log_file == str(tmp_path / "abs.log")

    def test_download_dir_default(self, tmp_path: Path):
        assert download_dir(ProvisionConfig()) == tmp_path / "default-state" / "downloads"
