"""
Configuration loader — reads provision.yml into a ProvisionConfig.

It reads YAML, validates against the Pydantic schema, and returns a
typed config. Unlike most commands, provisioning must run with no
arguments at logon, so a missing file yields the defaults rather than
an error.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import yaml

from provisioner.core.errors import ConfigError
from provisioner.core.models.config import ProvisionConfig

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "provision.yml"

# Environment overrides
ENV_CONFIG = "PROVISION_CONFIG"
ENV_STATE_DIR = "PROVISION_STATE_DIR"

APP_DIR_NAME = "provisioner"
CHECKPOINT_FILE = "checkpoint.json"


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Locate provision.yml.

    ``PROVISION_CONFIG`` wins; otherwise search upward from the given
    directory (default: cwd).

    Returns:
        Path to the config file, or None if not found.
    """
    env_path = os.environ.get(ENV_CONFIG)
    if env_path:
        return Path(env_path)

    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config(path: Path | None = None) -> ProvisionConfig:
    """Load and validate provisioning configuration.

    Args:
        path: Explicit path to provision.yml. If None, searches for one
            and falls back to the built-in defaults.

    Returns:
        Validated ProvisionConfig.

    Raises:
        ConfigError: If an explicit file is missing or any file is invalid.
    """
    explicit = path is not None
    if path is None:
        path = find_config_file()

    if path is None:
        logger.debug("No %s found, using defaults", CONFIG_FILE)
        return ProvisionConfig()

    if not path.is_file():
        if explicit or os.environ.get(ENV_CONFIG):
            raise ConfigError(f"Config file not found: {path}")
        return ProvisionConfig()

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "provision" key or be flat
    if "provision" in data and isinstance(data["provision"], dict):
        data = data["provision"]

    try:
        config = ProvisionConfig.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid provisioning configuration: {e}") from e

    config = _anchor_paths(config, path.resolve().parent)

    logger.info(
        "Loaded config '%s' (%d features, %d downloads, %d packages)",
        config.name, len(config.features), len(config.downloads), len(config.packages),
    )
    return config


_PATH_FIELDS = ("checkpoint_path", "download_dir", "log_file")


def _anchor_paths(config: ProvisionConfig, base: Path) -> ProvisionConfig:
    """Resolve relative paths against the config file's directory.

    A run resumed at logon starts in a different working directory and
    must still find the same checkpoint.
    """
    updates = {}
    for name in _PATH_FIELDS:
        value = getattr(config, name)
        if value and not Path(value).expanduser().is_absolute():
            updates[name] = str(base / value)
    return config.model_copy(update=updates) if updates else config


def state_dir() -> Path:
    """Resolve the well-known directory that survives restarts.

    ``PROVISION_STATE_DIR`` wins. Otherwise ``%ProgramData%`` on Windows
    and ``~/.local/share`` elsewhere.
    """
    env_dir = os.environ.get(ENV_STATE_DIR)
    if env_dir:
        return Path(env_dir)

    if sys.platform == "win32":
        base = Path(os.environ.get("ProgramData", r"C:\ProgramData"))
    else:
        base = Path.home() / ".local" / "share"
    return base / APP_DIR_NAME


def checkpoint_path(config: ProvisionConfig) -> Path:
    """The checkpoint location for a config (explicit path or state dir)."""
    if config.checkpoint_path:
        return Path(config.checkpoint_path).expanduser()
    return state_dir() / CHECKPOINT_FILE


def download_dir(config: ProvisionConfig) -> Path:
    """Where installer payloads are kept between runs."""
    if config.download_dir:
        return Path(config.download_dir).expanduser()
    return state_dir() / "downloads"
