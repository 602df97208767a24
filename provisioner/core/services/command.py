"""
Subprocess runner — the single place host commands are executed.

Probes, inspectors and host actions all go through ``run_command`` so
timeouts, logging and error capture behave the same everywhere. It
never raises: failures come back in the result dict.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from typing import Any

logger = logging.getLogger(__name__)

_OUTPUT_TAIL = 2000


def run_command(
    cmd: list[str],
    *,
    timeout: int = 120,
    cwd: str | None = None,
) -> dict[str, Any]:
    """Run a command and capture its output.

    Args:
        cmd: Command list for ``subprocess.run()``.
        timeout: Seconds before the command is abandoned.
        cwd: Working directory for the command.

    Returns:
        ``{"ok": True, "stdout": "...", "returncode": 0, "elapsed_ms": N}``
        on success, ``{"ok": False, "error": "...", ...}`` on failure.
    """
    logger.debug("Executing: %s", cmd)
    start = time.monotonic()
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
        )
    except subprocess.TimeoutExpired:
        return {"ok": False, "error": f"Command timed out ({timeout}s)", "returncode": None}
    except FileNotFoundError:
        return {"ok": False, "error": f"Command not found: {cmd[0]}", "returncode": None}
    except OSError as e:
        logger.debug("Subprocess error: %s", cmd, exc_info=True)
        return {"ok": False, "error": str(e), "returncode": None}

    elapsed_ms = int((time.monotonic() - start) * 1000)
    stdout = result.stdout[-_OUTPUT_TAIL:] if result.stdout else ""
    stderr = result.stderr[-_OUTPUT_TAIL:] if result.stderr else ""

    if result.returncode == 0:
        return {
            "ok": True,
            "stdout": stdout,
            "returncode": 0,
            "elapsed_ms": elapsed_ms,
        }

    return {
        "ok": False,
        "error": stderr.strip() or f"Command failed (exit {result.returncode})",
        "stdout": stdout,
        "stderr": stderr,
        "returncode": result.returncode,
        "elapsed_ms": elapsed_ms,
    }


def powershell_exe() -> str:
    """Prefer PowerShell 7 when present, fall back to Windows PowerShell."""
    return shutil.which("pwsh") or "powershell.exe"


def run_powershell(script: str, *, timeout: int = 120) -> dict[str, Any]:
    """Run a PowerShell snippet non-interactively."""
    return run_command(
        [powershell_exe(), "-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass", "-Command", script],
        timeout=timeout,
    )


def require_ok(result: dict[str, Any], what: str) -> str:
    """Turn a failed command result into an exception for step actions.

    Returns:
        The command's stdout when it succeeded.
    """
    if not result.get("ok"):
        raise RuntimeError(f"{what}: {result.get('error', 'unknown error')}")
    return result.get("stdout", "")
