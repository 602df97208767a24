"""
ProvisionConfig — what the default workflow provisions.

Loaded from provision.yml. Every field has a default so the entry
point runs with no configuration file at all.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

OS_CHOICES = ("archlinux", "centos", "debian", "fedora", "macos", "ubuntu", "windows")

DEFAULT_FEATURES = [
    "Microsoft-Windows-Subsystem-Linux",
    "VirtualMachinePlatform",
]


class DownloadSpec(BaseModel):
    """An installer payload fetched once and kept on disk."""

    name: str
    url: str
    filename: str = ""
    sha256: str | None = None

    @property
    def target_name(self) -> str:
        return self.filename or self.url.rstrip("/").rsplit("/", 1)[-1]


class PackageSpec(BaseModel):
    """A program installed by running an installer command.

    ``program`` is what the detector looks for; ``installer`` names a
    download (by its ``name``) whose file is run with ``args``. Without
    an installer, ``command`` is run as-is.
    """

    name: str
    program: str = ""
    installer: str | None = None
    args: list[str] = Field(default_factory=list)
    command: list[str] = Field(default_factory=list)

    @property
    def detect_name(self) -> str:
        return self.program or self.name


def _default_downloads() -> list[DownloadSpec]:
    return [
        DownloadSpec(
            name="wsl-kernel",
            url="https://wslstorestorage.blob.core.windows.net/wslblob/wsl_update_x64.msi",
        ),
        DownloadSpec(
            name="docker-desktop",
            url="https://desktop.docker.com/win/main/amd64/Docker%20Desktop%20Installer.exe",
            filename="DockerDesktopInstaller.exe",
        ),
    ]


def _default_packages() -> list[PackageSpec]:
    return [
        PackageSpec(
            name="wsl-kernel",
            program="Windows Subsystem for Linux Update",
            installer="wsl-kernel",
            args=["/quiet", "/norestart"],
        ),
        PackageSpec(
            name="docker-desktop",
            program="docker",
            installer="docker-desktop",
            args=["install", "--quiet", "--accept-license"],
        ),
    ]


class ProvisionConfig(BaseModel):
    """Root configuration — loaded from provision.yml."""

    name: str = "workstation"
    target_os: str = "windows"

    # ── Progress tracking ────────────────────────────────────────
    checkpoint_path: str | None = None
    max_update_passes: int = Field(default=3, ge=1)

    # ── Restart behavior ─────────────────────────────────────────
    restart_delay_seconds: int = Field(default=10, ge=0)
    register_resume: bool = True

    # ── Logging ──────────────────────────────────────────────────
    log_file: str | None = None

    # ── What to provision ────────────────────────────────────────
    download_dir: str | None = None
    features: list[str] = Field(default_factory=lambda: list(DEFAULT_FEATURES))
    downloads: list[DownloadSpec] = Field(default_factory=_default_downloads)
    packages: list[PackageSpec] = Field(default_factory=_default_packages)
    wsl_default_version: int | None = 2
    remote_management: bool = True

    @field_validator("target_os")
    @classmethod
    def _known_os(cls, v: str) -> str:
        v = v.lower()
        if v not in OS_CHOICES:
            raise ValueError(f"target_os must be one of {', '.join(OS_CHOICES)}")
        return v

    def get_download(self, name: str) -> DownloadSpec | None:
        for d in self.downloads:
            if d.name == name:
                return d
        return None
