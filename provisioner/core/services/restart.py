"""
Restart issuance and resume-at-logon registration.

The runner persists the checkpoint first and only then calls
``HostRestarter.restart()``. Registration makes the host call
``provision run`` again after the next logon; on non-Windows hosts it
is left to the operator (a systemd unit or login hook).
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from pathlib import Path

from provisioner.core.services.command import run_command

logger = logging.getLogger(__name__)

RUNONCE_KEY = r"Software\Microsoft\Windows\CurrentVersion\RunOnce"
RUNONCE_VALUE = "ProvisionerResume"


def resume_args(config_path: Path | None = None) -> list[str]:
    """Argument list that re-enters the workflow.

    At logon the working directory is not the project directory, so the
    config the interrupted run used is passed explicitly.
    """
    exe = shutil.which("provision")
    args = [exe] if exe else [sys.executable, "-m", "provisioner.main"]
    if config_path is not None:
        args += ["--config", str(config_path.resolve())]
    return args + ["run"]


def resume_command(config_path: Path | None = None) -> str:
    """The command line that re-enters the workflow."""
    return subprocess.list2cmdline(resume_args(config_path))


def restart_command(delay_seconds: int, platform: str | None = None) -> list[str]:
    """OS command that reboots the host after ``delay_seconds``."""
    platform = platform or sys.platform
    if platform == "win32":
        return ["shutdown.exe", "/r", "/t", str(delay_seconds), "/c", "Provisioning will resume after restart"]
    minutes = max(0, (delay_seconds + 59) // 60)
    return ["shutdown", "-r", f"+{minutes}"]


def register_resume(command: str | None = None) -> bool:
    """Register a one-shot "run again after logon" entry.

    Returns:
        True if the entry was written.
    """
    if sys.platform != "win32":
        logger.info("Resume-at-logon registration is only automatic on Windows")
        return False

    import winreg

    command = command or resume_command()
    try:
        with winreg.CreateKey(winreg.HKEY_CURRENT_USER, RUNONCE_KEY) as key:
            winreg.SetValueEx(key, RUNONCE_VALUE, 0, winreg.REG_SZ, command)
    except OSError as e:
        logger.error("Failed to register resume command: %s", e)
        return False
    logger.info("Registered resume at next logon: %s", command)
    return True


class HostRestarter:
    """Issue the real restart.

    Args:
        delay_seconds: Grace period before the OS restarts.
        register: Register the resume command before restarting.
        config_path: Config file the resumed run must load.
    """

    def __init__(
        self,
        delay_seconds: int = 10,
        register: bool = True,
        config_path: Path | None = None,
    ):
        self.delay_seconds = delay_seconds
        self.register = register
        self.config_path = config_path

    def restart(self) -> None:
        """Request the restart. Raises RuntimeError if the OS refuses."""
        if self.register:
            register_resume(resume_command(self.config_path))

        cmd = restart_command(self.delay_seconds)
        logger.warning("Restarting host: %s", " ".join(cmd))
        result = run_command(cmd, timeout=60)
        if not result["ok"]:
            raise RuntimeError(f"Restart request failed: {result.get('error')}")

    __call__ = restart
