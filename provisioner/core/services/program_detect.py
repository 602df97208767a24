"""
Program detection — is a program or package already on this host?

Read-only probes, one per host family:

    path      → executable on PATH (``shutil.which``)
    package   → system package manager query (dpkg, rpm, pacman, ...)
    desktop   → ``*.desktop`` entry in the XDG application directories
    macos     → ``osascript`` application-id lookup
    windows   → ``where`` search and the Uninstall registry

``is_program_installed`` ORs the probes that apply to the current
platform. A probe that fails for any reason reports "not installed";
that is the safe answer for idempotency decisions.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)

# Package managers in detection order
PACKAGE_MANAGERS = ("apt", "dnf", "yum", "zypper", "apk", "pacman", "brew")

_PM_BINARIES = {
    "apt": "apt-get",
    "dnf": "dnf",
    "yum": "yum",
    "zypper": "zypper",
    "apk": "apk",
    "pacman": "pacman",
    "brew": "brew",
}

_UNINSTALL_KEYS = (
    r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall",
    r"SOFTWARE\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall",
)


# ── Package manager ─────────────────────────────────────────────


def detect_package_manager() -> str | None:
    """Return the first package manager found on PATH."""
    for pm in PACKAGE_MANAGERS:
        if shutil.which(_PM_BINARIES[pm]):
            return pm
    return None


def is_package_installed(pkg: str, pkg_manager: str) -> bool:
    """Check if a single system package is installed.

    Uses the appropriate checker for the given package manager:
      apt    → dpkg-query -W -f='${Status}' PKG
      dnf/yum/zypper → rpm -q PKG
      apk    → apk info -e PKG
      pacman → pacman -Q PKG
      brew   → brew ls --versions PKG
    """
    if pkg_manager == "apt":
        r = subprocess.run(
            ["dpkg-query", "-W", "-f=${Status}", pkg],
            capture_output=True, text=True, timeout=10,
        )
        return "install ok installed" in r.stdout

    checkers = {
        "dnf": ["rpm", "-q", pkg],
        "yum": ["rpm", "-q", pkg],
        "zypper": ["rpm", "-q", pkg],
        "apk": ["apk", "info", "-e", pkg],
        "pacman": ["pacman", "-Q", pkg],
        "brew": ["brew", "ls", "--versions", pkg],
    }
    cmd = checkers.get(pkg_manager)
    if cmd is None:
        return False
    timeout = 30 if pkg_manager == "brew" else 10  # brew is slow
    r = subprocess.run(cmd, capture_output=True, timeout=timeout)
    return r.returncode == 0


# ── Per-family probes ───────────────────────────────────────────


def is_on_path(program: str) -> bool:
    """Executable search on PATH."""
    return shutil.which(program) is not None


def is_system_package(program: str) -> bool:
    """Package-manager query using whichever manager the host has."""
    pm = detect_package_manager()
    if pm is None:
        return False
    return is_package_installed(program, pm)


def desktop_dirs() -> list[Path]:
    """XDG application directories that exist on this host."""
    candidates = []
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        candidates.append(Path(xdg) / "applications")
    home = os.environ.get("HOME")
    if home:
        candidates.append(Path(home) / ".local" / "share" / "applications")
    candidates += [Path("/usr/share/applications"), Path("/usr/local/share/applications")]
    return [d for d in candidates if d.is_dir()]


def is_dot_desktop_installed(program: str) -> bool:
    """Application with a ``*.desktop`` launcher entry."""
    wanted = program.removesuffix(".desktop")
    for directory in desktop_dirs():
        for entry in directory.iterdir():
            if entry.suffix == ".desktop" and entry.stem == wanted:
                return True
    return False


def is_mac_app_installed(program: str) -> bool:
    """macOS application lookup by name (``Parallels Desktop.app``, ...)."""
    app = program.removesuffix(".app")
    r = subprocess.run(
        ["osascript", "-e", f'id of application "{app}"'],
        capture_output=True, text=True, timeout=10,
    )
    return r.returncode == 0


def is_windows_where(program: str) -> bool:
    """``where`` search, with and without the ``.exe`` suffix."""
    for name in (program, f"{program}.exe"):
        r = subprocess.run(["where.exe", name], capture_output=True, timeout=10)
        if r.returncode == 0:
            return True
    return False


def is_windows_registered(program: str) -> bool:
    """Installed-programs registry lookup (Uninstall keys, by DisplayName)."""
    import winreg

    needle = program.lower()
    for hive in (winreg.HKEY_LOCAL_MACHINE, winreg.HKEY_CURRENT_USER):
        for key_path in _UNINSTALL_KEYS:
            try:
                key = winreg.OpenKey(hive, key_path)
            except OSError:
                continue
            with key:
                index = 0
                while True:
                    try:
                        sub_name = winreg.EnumKey(key, index)
                    except OSError:
                        break
                    index += 1
                    if needle in sub_name.lower():
                        return True
                    try:
                        with winreg.OpenKey(key, sub_name) as sub:
                            display, _ = winreg.QueryValueEx(sub, "DisplayName")
                    except OSError:
                        continue
                    if needle in str(display).lower():
                        return True
    return False


# ── Composition ─────────────────────────────────────────────────


Detector = Callable[[str], bool]


def detectors_for(platform: str | None = None) -> list[tuple[str, Detector]]:
    """The probes that make sense on a platform (``sys.platform`` values)."""
    platform = platform or sys.platform
    if platform == "win32":
        return [("where", is_windows_where), ("registry", is_windows_registered)]
    if platform == "darwin":
        return [
            ("path", is_on_path),
            ("package", is_system_package),
            ("macos", is_mac_app_installed),
        ]
    return [
        ("path", is_on_path),
        ("package", is_system_package),
        ("desktop", is_dot_desktop_installed),
    ]


def is_program_installed(
    name: str,
    platform: str | None = None,
    detectors: list[tuple[str, Detector]] | None = None,
) -> bool:
    """Combine several probes to decide whether a program is installed.

    Any probe raising counts as "not installed" for that probe.
    """
    for probe_name, detector in detectors if detectors is not None else detectors_for(platform):
        try:
            if detector(name):
                logger.debug("'%s' detected by %s probe", name, probe_name)
                return True
        except Exception as e:
            logger.debug("%s probe failed for '%s': %s", probe_name, name, e)
    return False
