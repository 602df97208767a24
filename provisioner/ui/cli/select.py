"""
CLI commands for interactive target selection.

Thin prompts over ``provisioner.core.services.platforms``. Each command
prints a plain token on stdout so scripts can capture it:

    provision select os        → ubuntu
    provision select platform  → virtualbox
    provision select vagrant   → --provider=virtualbox ubuntu
"""

from __future__ import annotations

import sys

import click

OS_LABELS = ("Archlinux", "CentOS", "Debian", "Fedora", "macOS", "Ubuntu", "Windows")

_OS_COLORS = {
    "archlinux": "cyan",
    "centos": "magenta",
    "debian": "red",
    "fedora": "blue",
    "macos": "white",
    "ubuntu": "yellow",
    "windows": "bright_blue",
}

_BULLET = "● "


def decorate_system(label: str) -> str:
    """Prefix an OS label with a bullet in its brand color."""
    color = _OS_COLORS.get(label.lower())
    return click.style(_BULLET, fg=color) + label


def _choose(message: str, labels: list[str], decorate=None) -> str:
    """Numbered menu on stderr; returns the chosen label."""
    for i, label in enumerate(labels, start=1):
        shown = decorate(label) if decorate else label
        click.echo(f"  {i}) {shown}", err=True)
    index = click.prompt(
        message,
        type=click.IntRange(1, len(labels)),
        default=1,
        err=True,
    )
    return labels[index - 1]


def prompt_for_desktop(message: str = "Which desktop operating system would you like to provision?") -> str:
    """Ask for a desktop OS; returns its lowercase token."""
    choice = _choose(message, list(OS_LABELS), decorate=decorate_system)
    return choice.lower()


def prompt_for_platform() -> str:
    """Ask for one of the virtualization platforms available on this host.

    Returns:
        The Vagrant provider name for the chosen platform.
    """
    from provisioner.core.services.platforms import PLATFORM_PROVIDERS, available_platforms

    choices = available_platforms()
    if not choices:
        click.secho("❌ No supported virtualization platform found on this host", fg="red", err=True)
        sys.exit(1)

    choice = _choose("Which virtualization platform would you like to use?", choices)
    return PLATFORM_PROVIDERS[choice]


@click.group()
def select() -> None:
    """Select — target operating system and virtualization platform."""


@select.command("os")
def select_os() -> None:
    """Choose a desktop operating system."""
    click.echo(prompt_for_desktop())


@select.command("platform")
def select_platform() -> None:
    """Choose a virtualization platform available on this host."""
    click.echo(prompt_for_platform())


@select.command("vagrant")
def select_vagrant() -> None:
    """Choose OS and platform, print Vagrant arguments."""
    click.secho(
        "Use the following prompts to select the type of operating system and"
        " the virtualization platform you wish to use with Vagrant.",
        fg="cyan",
        err=True,
    )
    operating_system = prompt_for_desktop()
    provider = prompt_for_platform()
    click.echo(f"--provider={provider} {operating_system}")
