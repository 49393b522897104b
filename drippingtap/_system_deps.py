"""Local tool checks and the guided doctl installation."""

from __future__ import annotations

import logging
from collections.abc import Callable

from drippingtap._doctl import Gateway
from drippingtap._gateway import is_installed

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ("doctl", "wget")
DOCTL_VERSION = "1.72.0"
DOCTL_ARCHIVE = f"doctl-{DOCTL_VERSION}-linux-amd64.tar.gz"
DOCTL_RELEASE_URL = (
    f"https://github.com/digitalocean/doctl/releases/download/v{DOCTL_VERSION}/{DOCTL_ARCHIVE}"
)

INSTALL_COMMANDS = (
    "sudo apt-get update",
    "sudo apt-get install -y wget",
    f"wget {DOCTL_RELEASE_URL}",
    f"tar xf ./{DOCTL_ARCHIVE}",
    "sudo mv ./doctl /usr/local/bin",
)


def missing_tools(
    tools: tuple[str, ...] = REQUIRED_TOOLS,
    probe: Callable[[str], bool] = is_installed,
) -> list[str]:
    """Return the subset of *tools* that are not on ``PATH``.

    Examples
    --------
    >>> missing_tools(("doctl", "wget"), probe=lambda tool: tool == "wget")
    ['doctl']
    """

    return [tool for tool in tools if not probe(tool)]


def install_system_dependencies(gateway: Gateway) -> None:
    """Install wget via apt and the pinned doctl release into ``/usr/local/bin``."""

    for command in INSTALL_COMMANDS:
        logger.info("Installing dependencies: %s", command)
        gateway.execute(command)


__all__ = [
    "DOCTL_ARCHIVE",
    "DOCTL_RELEASE_URL",
    "DOCTL_VERSION",
    "INSTALL_COMMANDS",
    "REQUIRED_TOOLS",
    "install_system_dependencies",
    "missing_tools",
]
