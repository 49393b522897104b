"""doctl command surface used by the provisioning and teardown flows."""

from __future__ import annotations

import logging
import shlex
from typing import Protocol

from drippingtap._errors import RemoteExecutionError
from drippingtap._parser import ImageRecord, parse_create_output, parse_images
from drippingtap._session_state import GameServerStatus

logger = logging.getLogger(__name__)

ACCOUNT_COMMAND = "doctl account get --format Email --no-header"
IMAGE_LIST_COMMAND = "doctl compute image list --format ID,Name,Type --no-header"
DROPLET_LIST_COMMAND = (
    "doctl compute droplet list --format ID,Name,Memory,Disk,VCPUs,Status --no-header"
)

STATUS_SCRIPT = "~/cfx/data/status.sh"
STOP_SCRIPT = "~/cfx/data/stop.sh"


class Gateway(Protocol):
    """Anything that runs a command string and returns trimmed stdout."""

    def execute(self, command: str) -> str: ...


def build_create_command(
    *,
    image_id: str,
    fingerprint: str,
    region: str,
    size: str,
    name: str,
) -> str:
    """Return the ``droplet create`` invocation for the given parameters.

    Examples
    --------
    >>> build_create_command(image_id="S", fingerprint="F", region="R", size="Z", name="N-V")
    'doctl compute droplet create --image S --ssh-keys F --region R --size Z N-V --format ID,PublicIPv4 --no-header --wait'
    """

    return (
        f"doctl compute droplet create --image {image_id} --ssh-keys {fingerprint} "
        f"--region {region} --size {size} {name} "
        "--format ID,PublicIPv4 --no-header --wait"
    )


def parse_game_server_status(output: str) -> GameServerStatus:
    """Map the status script output onto :class:`GameServerStatus`.

    Unrecognised output is treated as ``UP`` so that teardown still stops
    the game server gracefully before the VM is powered off.

    Examples
    --------
    >>> parse_game_server_status("DOWN\\n")
    <GameServerStatus.DOWN: 'DOWN'>
    >>> parse_game_server_status("garbled")
    <GameServerStatus.UP: 'UP'>
    """

    value = output.strip().upper()
    try:
        return GameServerStatus(value)
    except ValueError:
        logger.warning("Unrecognised game server status %r; assuming UP", output)
        return GameServerStatus.UP


class DoctlClient:
    """Typed wrapper over the doctl commands this tool issues."""

    def __init__(self, gateway: Gateway) -> None:
        self.gateway = gateway

    def account_email(self) -> str:
        """Return the authenticated account email, or ``""`` when unauthenticated."""

        try:
            return self.gateway.execute(ACCOUNT_COMMAND)
        except RemoteExecutionError as exc:
            logger.info("doctl account lookup failed: %s", exc)
            return ""

    def image_listing(self) -> str:
        return self.gateway.execute(IMAGE_LIST_COMMAND)

    def list_snapshots(self) -> list[ImageRecord]:
        """Return the account's images of type ``snapshot``."""

        images = parse_images(self.image_listing())
        return [image for image in images if image.type == "snapshot"]

    def droplet_listing(self) -> str:
        return self.gateway.execute(DROPLET_LIST_COMMAND)

    def create_droplet(
        self,
        *,
        image_id: str,
        fingerprint: str,
        region: str,
        size: str,
        name: str,
    ) -> tuple[str, str]:
        """Create a droplet, wait until it is active, and return ``(id, ip)``."""

        command = build_create_command(
            image_id=image_id,
            fingerprint=fingerprint,
            region=region,
            size=size,
            name=name,
        )
        return parse_create_output(self.gateway.execute(command))

    def ssh_command(self, droplet_id: str, remote_command: str) -> str:
        return self.gateway.execute(
            f"doctl compute ssh {droplet_id} --ssh-command {shlex.quote(remote_command)}"
        )

    def game_server_status(self, droplet_id: str) -> GameServerStatus:
        return parse_game_server_status(self.ssh_command(droplet_id, STATUS_SCRIPT))

    def stop_game_server(self, droplet_id: str) -> str:
        return self.ssh_command(droplet_id, STOP_SCRIPT)

    def shutdown(self, droplet_id: str) -> str:
        return self.gateway.execute(
            f"doctl compute droplet-action shutdown {droplet_id} --wait"
        )

    def snapshot(self, droplet_id: str, name: str) -> str:
        """Snapshot the droplet and return the new image id (``""`` on failure)."""

        return self.gateway.execute(
            f"doctl compute droplet-action snapshot {droplet_id} --snapshot-name {name} "
            "--format ID --no-header --wait"
        )

    def delete(self, droplet_id: str) -> str:
        return self.gateway.execute(f"doctl compute droplet delete {droplet_id} --force")


__all__ = [
    "ACCOUNT_COMMAND",
    "DROPLET_LIST_COMMAND",
    "IMAGE_LIST_COMMAND",
    "STATUS_SCRIPT",
    "STOP_SCRIPT",
    "DoctlClient",
    "Gateway",
    "build_create_command",
    "parse_game_server_status",
]
