"""
Virtualization platforms — which providers this host can offer.

Used by the interactive selectors to only present platforms that are
actually available, mapped to their Vagrant provider names.
"""

from __future__ import annotations

import sys
from typing import Callable

from provisioner.core.services.capabilities import FeatureInspector
from provisioner.core.services.program_detect import is_program_installed

PLATFORM_PROVIDERS: dict[str, str] = {
    "Hyper-V": "hyperv",
    "KVM": "libvirt",
    "Parallels": "parallels",
    "VMWare Fusion": "vmware_fusion",
    "VMWare Workstation": "vmware_workstation",
    "VirtualBox": "virtualbox",
}

HYPERV_FEATURE = "Microsoft-Hyper-V-All"


def available_platforms(
    platform: str | None = None,
    installed: Callable[[str], bool] = is_program_installed,
    feature_enabled: Callable[[str], bool] | None = None,
) -> list[str]:
    """Platforms usable on this host, in menu order."""
    platform = platform or sys.platform
    if feature_enabled is None:
        feature_enabled = FeatureInspector().is_satisfied

    darwin = platform == "darwin"
    choices: list[str] = []

    if platform == "win32" and feature_enabled(HYPERV_FEATURE):
        choices.append("Hyper-V")
    if (darwin or platform.startswith("linux")) and installed("kvm"):
        choices.append("KVM")
    if darwin and installed("Parallels Desktop.app"):
        choices.append("Parallels")
    if installed("virtualbox"):
        choices.append("VirtualBox")
    if darwin and installed("VMware Fusion.app"):
        choices.append("VMWare Fusion")
    if not darwin and installed("vmware"):
        choices.append("VMWare Workstation")

    return choices
