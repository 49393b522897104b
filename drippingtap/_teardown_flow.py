"""Stop, snapshot and destroy the droplet tracked as the current session.

Ordering is fixed: a running game server is stopped before the VM powers
off, and the droplet is only deleted after a snapshot id came back and was
archived in the session store.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from rich.markup import escape

from drippingtap._doctl import DoctlClient
from drippingtap._errors import NoActiveSessionError, SnapshotFailedError
from drippingtap._operator import Operator
from drippingtap._session_state import (
    GameServerStatus,
    PreviousSession,
    Session,
    SessionStore,
    droplet_version,
    snapshot_name,
)

logger = logging.getLogger(__name__)


class TeardownStatus(enum.Enum):
    DECLINED = "declined"
    SNAPSHOT_KEPT = "snapshot-kept"
    DESTROYED = "destroyed"


@dataclass(frozen=True, slots=True)
class TeardownOutcome:
    """How far teardown went for *session*.

    ``session.status`` holds the game server state read before shutdown, or
    ``None`` when the operator declined before it was read.
    """

    status: TeardownStatus
    session: Session
    previous_session: PreviousSession | None = None


def teardown(
    store: SessionStore,
    client: DoctlClient,
    operator: Operator,
    *,
    clock: Callable[[], datetime] = datetime.now,
) -> TeardownOutcome:
    """Shut down the active session's droplet, snapshot it, then offer deletion.

    Raises
    ------
    NoActiveSessionError
        When the store holds no session id.
    SnapshotFailedError
        When the snapshot returns no id; nothing is deleted and the session
        id stays in place.
    """

    session_id = store.get_session()
    if not session_id:
        raise NoActiveSessionError(
            "No session found - nothing to shut down",
            hint="Start a droplet with `drippingtap start` first.",
        )

    if not operator.confirm(
        "Do you want to shut down (destroy) previously created session "
        f"[cyan]{escape(session_id)}[/cyan]?"
    ):
        return TeardownOutcome(TeardownStatus.DECLINED, Session(id=session_id))

    version = droplet_version(clock())

    with operator.status("Preparing droplet for snapshot"):
        game_status = client.game_server_status(session_id)
    session = Session(id=session_id, status=game_status)
    logger.info("Game server on %s reports %s", session_id, game_status.value)
    if game_status is GameServerStatus.UP:
        with operator.status("Shutting down Cfx server"):
            client.stop_game_server(session_id)
    with operator.status("Shutting down Ubuntu server"):
        client.shutdown(session_id)
    operator.succeed("Server shut down")

    name = snapshot_name(store.defaults.droplet_name, version)
    with operator.status(
        "Creating snapshot, this may take a while - approx. 2 minutes per gigabyte"
    ):
        snapshot_id = client.snapshot(session_id, name)
    if not snapshot_id:
        operator.fail("Failed to create snapshot")
        raise SnapshotFailedError(
            f"Snapshot {name} of droplet {session_id} returned no image id",
            hint="The droplet was left powered off and was not deleted.",
        )

    previous = store.set_previous_session(snapshot_id, version)
    operator.succeed(
        f"Snapshot {escape(previous.snapshot_name)} created ({escape(snapshot_id)})"
    )

    if not operator.confirm("[red]Warning:[/red] Are you sure you want to delete this Droplet?"):
        return TeardownOutcome(TeardownStatus.SNAPSHOT_KEPT, session, previous)

    client.delete(session_id)
    store.clear_session()
    operator.warning("Droplet has been destroyed.")
    return TeardownOutcome(TeardownStatus.DESTROYED, session, previous)


__all__ = ["TeardownOutcome", "TeardownStatus", "teardown"]
