"""
Installer download and checksum verification.

Contract used by the workflow: ``fetch(url, dest) -> bool``. The file
only appears at ``dest`` once it is complete (and verified, when a
checksum is given), so a restart mid-download never leaves a partial
payload that the file inspector would mistake for a finished one.
"""

from __future__ import annotations

import hashlib
import logging
import shutil
import urllib.request
from pathlib import Path

logger = logging.getLogger(__name__)

_USER_AGENT = "provisioner/0.1"
_CHUNK = 1024 * 1024


def verify_checksum(path: Path, expected: str) -> bool:
    """Verify a file checksum.

    Args:
        path: File to hash.
        expected: ``algo:hex`` (``sha256:abc...``) or bare sha256 hex.
    """
    algo, _, digest = expected.partition(":")
    if not digest:
        algo, digest = "sha256", expected
    h = hashlib.new(algo)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest().lower() == digest.lower()


def fetch(url: str, dest: Path, *, sha256: str | None = None, timeout: int = 60) -> bool:
    """Download ``url`` to ``dest``.

    Returns:
        True on success, False on any network, I/O, or checksum failure.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    partial = dest.with_name(dest.name + ".part")

    logger.info("Downloading %s → %s", url, dest)
    req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp, open(partial, "wb") as out:
            shutil.copyfileobj(resp, out, _CHUNK)
    except Exception as e:
        logger.error("Download failed for %s: %s", url, e)
        partial.unlink(missing_ok=True)
        return False

    if sha256 and not verify_checksum(partial, sha256):
        logger.error("Checksum mismatch for %s", url)
        partial.unlink(missing_ok=True)
        return False

    partial.replace(dest)
    logger.info("Downloaded %s (%d bytes)", dest.name, dest.stat().st_size)
    return True
