"""
Reboot probe — does the host need a restart before further changes?

No single location is authoritative across update mechanisms (OS
component servicing, Windows Update, file operations queued for the
next boot, management agents), so the probe ORs several independent
signals. Any one of them being true means a reboot is pending.

The answer is recomputed on every call and never cached: host state
changes underneath the process between steps.

A signal that cannot be evaluated (missing registry key access,
management agent absent, command not found) reports False.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from provisioner.core.errors import TransientEnvironmentError
from provisioner.core.services.command import run_command, run_powershell

logger = logging.getLogger(__name__)

CBS_REBOOT_KEY = r"SOFTWARE\Microsoft\Windows\CurrentVersion\Component Based Servicing\RebootPending"
WU_REBOOT_KEY = r"SOFTWARE\Microsoft\Windows\CurrentVersion\WindowsUpdate\Auto Update\RebootRequired"
SESSION_MANAGER_KEY = r"SYSTEM\CurrentControlSet\Control\Session Manager"
PENDING_RENAME_VALUE = "PendingFileRenameOperations"

CCM_QUERY = (
    "$r = Invoke-CimMethod -Namespace 'root\\ccm\\ClientSDK' "
    "-ClassName CCM_ClientUtilities -MethodName DetermineIfRebootPending "
    "-ErrorAction Stop; "
    "if ($r.RebootPending -or $r.IsHardRebootPending) { 'True' } else { 'False' }"
)

DEBIAN_REBOOT_MARKER = Path("/var/run/reboot-required")


@dataclass(frozen=True)
class RebootSignal:
    """One independent indicator of a pending reboot."""

    name: str
    check: Callable[[], bool]
    description: str = ""

    def evaluate(self) -> bool:
        """Evaluate the signal; failures count as "not pending"."""
        try:
            return bool(self.check())
        except TransientEnvironmentError as e:
            logger.debug("Reboot signal '%s' unavailable: %s", self.name, e)
        except Exception as e:
            logger.warning("Reboot signal '%s' failed: %s", self.name, e)
        return False


# ── Windows signals ─────────────────────────────────────────────


def _hklm_key_exists(path: str) -> bool:
    import winreg

    try:
        winreg.CloseKey(winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, path))
    except FileNotFoundError:
        return False
    return True


def component_servicing_pending() -> bool:
    """Component Based Servicing left a RebootPending marker."""
    return _hklm_key_exists(CBS_REBOOT_KEY)


def windows_update_pending() -> bool:
    """Windows Update left a RebootRequired marker."""
    return _hklm_key_exists(WU_REBOOT_KEY)


def pending_file_renames() -> bool:
    """File operations are queued for the next boot."""
    import winreg

    try:
        with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, SESSION_MANAGER_KEY) as key:
            value, _ = winreg.QueryValueEx(key, PENDING_RENAME_VALUE)
    except FileNotFoundError:
        return False
    if isinstance(value, (list, tuple)):
        return any(item for item in value)
    return bool(value)


def management_agent_pending() -> bool:
    """Ask the configuration-management client, when one is installed."""
    result = run_powershell(CCM_QUERY, timeout=30)
    if not result["ok"]:
        raise TransientEnvironmentError(result.get("error", "management agent unavailable"))
    return result["stdout"].strip().lower() == "true"


def windows_signals() -> list[RebootSignal]:
    return [
        RebootSignal("component_servicing", component_servicing_pending,
                     "Component servicing reboot pending"),
        RebootSignal("windows_update", windows_update_pending,
                     "Update reboot required"),
        RebootSignal("pending_file_rename", pending_file_renames,
                     "Pending file rename operations"),
        RebootSignal("management_agent", management_agent_pending,
                     "Management agent reports reboot pending"),
    ]


# ── Linux signals ───────────────────────────────────────────────


def debian_marker_pending() -> bool:
    """Debian/Ubuntu packages asked for a reboot."""
    return DEBIAN_REBOOT_MARKER.exists()


def needs_restarting_pending() -> bool:
    """RHEL/Fedora: ``needs-restarting -r`` exits 1 when a reboot is needed."""
    result = run_command(["needs-restarting", "-r"], timeout=60)
    if result.get("returncode") is None:
        raise TransientEnvironmentError(result.get("error", "needs-restarting unavailable"))
    return result["returncode"] == 1


def linux_signals() -> list[RebootSignal]:
    return [
        RebootSignal("reboot_required_marker", debian_marker_pending,
                     "Package manager reboot marker"),
        RebootSignal("needs_restarting", needs_restarting_pending,
                     "Core libraries updated since boot"),
    ]


def default_signals(platform: str | None = None) -> list[RebootSignal]:
    """Signal set for the current platform."""
    platform = platform or sys.platform
    if platform == "win32":
        return windows_signals()
    if platform.startswith("linux"):
        return linux_signals()
    return []


class RebootProbe:
    """Combine reboot signals with OR.

    Args:
        signals: Signals to evaluate. Defaults to the platform's set.
    """

    def __init__(self, signals: Sequence[RebootSignal] | None = None):
        self._signals = list(signals) if signals is not None else default_signals()

    @property
    def signals(self) -> list[RebootSignal]:
        return list(self._signals)

    def is_reboot_pending(self) -> bool:
        """True if any signal reports a pending reboot."""
        for signal in self._signals:
            if signal.evaluate():
                logger.info("Reboot pending: %s", signal.description or signal.name)
                return True
        return False

    def explain(self) -> dict[str, bool]:
        """Evaluate every signal (no short-circuit), keyed by name."""
        return {signal.name: signal.evaluate() for signal in self._signals}
