"""
Default workflow — the fixed step sequence built from ProvisionConfig.

Order matters and is stable between runs, since the checkpoint stores
only an index into this list:

    enable-<feature>...     optional OS features (restart if changed)
    ensure-updates          bounded update passes (settle step)
    download-<name>...      installer payloads
    install-<name>...       packages (restart if changed)
    wsl-default-version     Linux subsystem default
    enable-remote-management

Changing the config between restarts changes the sequence; reset the
checkpoint (``provision reset``) when doing so.
"""

from __future__ import annotations

import logging
from pathlib import Path

from provisioner.core.models.config import ProvisionConfig
from provisioner.core.models.step import RebootPolicy, Step
from provisioner.core.services import host_actions
from provisioner.core.services.capabilities import (
    FeatureInspector,
    FileInspector,
    PackageInspector,
)

logger = logging.getLogger(__name__)


def build_steps(
    config: ProvisionConfig,
    download_dir: Path,
    features: FeatureInspector | None = None,
    packages: PackageInspector | None = None,
) -> list[Step]:
    """Build the step sequence for a configuration."""
    features = features or FeatureInspector()
    packages = packages or PackageInspector()
    files = FileInspector(download_dir)
    windows = config.target_os == "windows"

    steps: list[Step] = []

    if windows:
        for feature in config.features:
            steps.append(Step(
                name=f"enable-{feature.lower()}",
                action=host_actions.enable_feature_action(feature),
                reboot_policy=RebootPolicy.IF_CHANGED,
                check=features.checker(feature),
                description=f"Enable optional feature {feature}",
            ))

    steps.append(Step(
        name="ensure-updates",
        action=host_actions.apply_updates_action(),
        reboot_policy=RebootPolicy.NEVER,
        settle=True,
        description="Ensure host software is current",
    ))

    for download in config.downloads:
        steps.append(Step(
            name=f"download-{download.name}",
            action=host_actions.download_action(download, download_dir / download.target_name),
            check=files.checker(download.target_name),
            description=f"Download {download.target_name}",
        ))

    for package in config.packages:
        installer = None
        if package.installer:
            spec = config.get_download(package.installer)
            if spec is None:
                raise ValueError(
                    f"Package '{package.name}' refers to unknown download '{package.installer}'"
                )
            installer = files.resolve(spec.target_name)
        steps.append(Step(
            name=f"install-{package.name}",
            action=host_actions.install_package_action(package, installer),
            reboot_policy=RebootPolicy.IF_CHANGED,
            check=packages.checker(package.detect_name),
            description=f"Install {package.name}",
        ))

    if windows and config.wsl_default_version:
        steps.append(Step(
            name="wsl-default-version",
            action=host_actions.wsl_default_version_action(config.wsl_default_version),
            check=host_actions.wsl_default_version_check(config.wsl_default_version),
            description=f"Set WSL default version to {config.wsl_default_version}",
        ))

    if windows and config.remote_management:
        steps.append(Step(
            name="enable-remote-management",
            action=host_actions.enable_remote_management_action(),
            check=host_actions.sshd_running_check,
            description="Enable OpenSSH server",
        ))

    logger.debug("Built %d steps for '%s'", len(steps), config.name)
    return steps
