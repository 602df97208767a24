"""
Host actions — the mutating operations behind the default workflow.

Each ``*_action`` function returns a zero-argument callable for
``Step.action``. Actions raise on failure; the step turns the exception
into a failed result. The matching ``*_check`` functions are the
read-only guards that make each step skip-safe.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Callable

from provisioner.core.models.config import DownloadSpec, PackageSpec
from provisioner.core.services.command import require_ok, run_command, run_powershell
from provisioner.core.services.download import fetch
from provisioner.core.services.program_detect import detect_package_manager

logger = logging.getLogger(__name__)

# Windows installers report "success, restart required" with 3010
EXIT_SUCCESS_REBOOT = 3010

LXSS_KEY = r"Software\Microsoft\Windows\CurrentVersion\Lxss"

UPDATE_SCRIPT = (
    "if (Get-Command Install-WindowsUpdate -ErrorAction SilentlyContinue) { "
    "Install-WindowsUpdate -MicrosoftUpdate -AcceptAll -IgnoreReboot | Out-String "
    "} else { UsoClient.exe ScanInstallWait; UsoClient.exe StartInstall }"
)

_LINUX_UPDATE_COMMANDS: dict[str, list[list[str]]] = {
    "apt": [["apt-get", "update"], ["apt-get", "-y", "upgrade"]],
    "dnf": [["dnf", "-y", "upgrade"]],
    "yum": [["yum", "-y", "update"]],
    "zypper": [["zypper", "--non-interactive", "update"]],
    "apk": [["apk", "upgrade", "--update"]],
    "pacman": [["pacman", "-Syu", "--noconfirm"]],
    "brew": [["brew", "upgrade"]],
}

Action = Callable[[], None]


def _accept_reboot_exit(result: dict, what: str) -> None:
    if result.get("returncode") == EXIT_SUCCESS_REBOOT:
        logger.info("%s succeeded; restart required to finish", what)
        return
    require_ok(result, what)


# ── Optional features ───────────────────────────────────────────


def enable_feature_action(feature: str) -> Action:
    def action() -> None:
        result = run_command(
            ["dism.exe", "/online", "/enable-feature", f"/featurename:{feature}", "/all", "/norestart"],
            timeout=1800,
        )
        _accept_reboot_exit(result, f"Enable feature {feature}")

    return action


# ── Updates ─────────────────────────────────────────────────────


def update_commands(platform: str | None = None) -> list[list[str]]:
    """Commands that bring the host's software up to date."""
    platform = platform or sys.platform
    if platform == "win32":
        return []  # PowerShell script, see apply_updates_action
    pm = detect_package_manager()
    if pm is None:
        raise RuntimeError("No supported package manager found")
    return _LINUX_UPDATE_COMMANDS[pm]


def apply_updates_action() -> Action:
    def action() -> None:
        if sys.platform == "win32":
            require_ok(run_powershell(UPDATE_SCRIPT, timeout=7200), "Apply updates")
            return
        for cmd in update_commands():
            require_ok(run_command(cmd, timeout=7200), " ".join(cmd))

    return action


# ── Downloads and installers ────────────────────────────────────


def download_action(spec: DownloadSpec, dest: Path) -> Action:
    def action() -> None:
        if not fetch(spec.url, dest, sha256=spec.sha256):
            raise RuntimeError(f"Download of {spec.url} failed")

    return action


def installer_command(path: Path, args: list[str]) -> list[str]:
    """How to launch an installer file."""
    if path.suffix.lower() == ".msi":
        return ["msiexec.exe", "/i", str(path), *args]
    return [str(path), *args]


def install_package_action(spec: PackageSpec, installer: Path | None) -> Action:
    def action() -> None:
        if installer is not None:
            if not installer.is_file():
                raise RuntimeError(f"Installer not found: {installer}")
            cmd = installer_command(installer, spec.args)
        elif spec.command:
            cmd = list(spec.command)
        else:
            raise RuntimeError(f"Package '{spec.name}' has no installer or command")
        _accept_reboot_exit(run_command(cmd, timeout=3600), f"Install {spec.name}")

    return action


# ── Linux subsystem ─────────────────────────────────────────────


def wsl_default_version_check(version: int) -> Callable[[], bool]:
    def check() -> bool:
        import winreg

        try:
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, LXSS_KEY) as key:
                current, _ = winreg.QueryValueEx(key, "DefaultVersion")
        except FileNotFoundError:
            return False
        return int(current) == version

    return check


def wsl_default_version_action(version: int) -> Action:
    def action() -> None:
        require_ok(
            run_command(["wsl.exe", "--set-default-version", str(version)], timeout=300),
            f"Set WSL default version {version}",
        )

    return action


# ── Remote management (OpenSSH server) ──────────────────────────


def sshd_running_check() -> bool:
    result = run_powershell("(Get-Service sshd -ErrorAction Stop).Status -eq 'Running'", timeout=30)
    return result["ok"] and result["stdout"].strip().lower() == "true"


def enable_remote_management_action() -> Action:
    def action() -> None:
        script = (
            "Add-WindowsCapability -Online -Name OpenSSH.Server~~~~0.0.1.0 | Out-Null; "
            "Set-Service -Name sshd -StartupType Automatic; "
            "Start-Service sshd"
        )
        require_ok(run_powershell(script, timeout=900), "Enable OpenSSH server")

    return action
