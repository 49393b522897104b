"""Tests for the teardown workflow."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest
from rich.markup import render
from conftest import FakeGateway, ScriptedOperator

from drippingtap._doctl import DoctlClient
from drippingtap._errors import NoActiveSessionError, RemoteExecutionError, SnapshotFailedError
from drippingtap._session_state import GameServerStatus, PreviousSession, Session, SessionStore
from drippingtap._teardown_flow import TeardownStatus, teardown

STATUS = "doctl compute ssh 42 --ssh-command '~/cfx/data/status.sh'"
STOP = "doctl compute ssh 42 --ssh-command '~/cfx/data/stop.sh'"
SHUTDOWN = "doctl compute droplet-action shutdown 42 --wait"
SNAPSHOT = (
    "doctl compute droplet-action snapshot 42 --snapshot-name snapshot-redm-20240305-147 "
    "--format ID --no-header --wait"
)
DELETE = "doctl compute droplet delete 42 --force"


def fixed_clock() -> datetime:
    return datetime(2024, 3, 5, 14, 7)


def responses(*, status: str = "UP", snapshot: str = "9001") -> dict[str, str | Exception]:
    return {
        STATUS: status,
        STOP: "",
        SHUTDOWN: "",
        SNAPSHOT: snapshot,
        DELETE: "",
    }


@pytest.fixture
def store(config_path: Path) -> SessionStore:
    session_store = SessionStore.load(config_path)
    session_store.set_session("42")
    return session_store


def run(store: SessionStore, gateway: FakeGateway, operator: ScriptedOperator):
    return teardown(store, DoctlClient(gateway), operator, clock=fixed_clock)


def test_running_server_is_stopped_before_shutdown(store: SessionStore) -> None:
    gateway = FakeGateway(responses(status="UP"))

    outcome = run(store, gateway, ScriptedOperator(confirms=[True, True]))

    assert gateway.calls == [STATUS, STOP, SHUTDOWN, SNAPSHOT, DELETE], (
        "Game server stop must precede VM shutdown, and delete must come last"
    )
    assert outcome.status is TeardownStatus.DESTROYED
    assert outcome.session == Session("42", status=GameServerStatus.UP), (
        "Teardown should record the game server state it observed"
    )


def test_stopped_server_skips_stop_script(store: SessionStore) -> None:
    gateway = FakeGateway(responses(status="DOWN"))

    run(store, gateway, ScriptedOperator(confirms=[True, True]))

    assert STOP not in gateway.calls, "A DOWN game server needs no stop"
    assert gateway.calls == [STATUS, SHUTDOWN, SNAPSHOT, DELETE]


def test_unknown_status_is_treated_as_running(store: SessionStore) -> None:
    gateway = FakeGateway(responses(status="starting"))

    run(store, gateway, ScriptedOperator(confirms=[True, True]))

    assert STOP in gateway.calls


def test_destroy_clears_session_and_archives_snapshot(
    store: SessionStore, config_path: Path
) -> None:
    operator = ScriptedOperator(confirms=[True, True])

    outcome = run(store, FakeGateway(responses()), operator)

    expected = PreviousSession("9001", "snapshot-redm-20240305-147")
    assert outcome.previous_session == expected
    reloaded = SessionStore.load(config_path)
    assert reloaded.get_session() is None, "Destroyed droplet must no longer be the session"
    assert reloaded.get_previous_session() == expected
    assert operator.messages("warning") == ["Droplet has been destroyed."]


def test_declining_delete_keeps_droplet_and_session(store: SessionStore) -> None:
    gateway = FakeGateway(responses())

    outcome = run(store, gateway, ScriptedOperator(confirms=[True, False]))

    assert outcome.status is TeardownStatus.SNAPSHOT_KEPT
    assert DELETE not in gateway.calls
    assert store.get_session() == "42"
    assert store.get_previous_session() is not None, "The snapshot is still archived"


def test_empty_snapshot_id_never_deletes(store: SessionStore) -> None:
    gateway = FakeGateway(responses(snapshot=""))
    operator = ScriptedOperator(confirms=[True])

    with pytest.raises(SnapshotFailedError):
        run(store, gateway, operator)

    assert DELETE not in gateway.calls, "No snapshot id means the droplet must survive"
    assert store.get_session() == "42", "Session must be kept for a retry"
    assert store.get_previous_session() is None
    assert operator.messages("fail") == ["Failed to create snapshot"]


def test_snapshot_failure_propagates_without_delete(store: SessionStore) -> None:
    failing = responses()
    failing[SNAPSHOT] = RemoteExecutionError("snapshot action errored")
    gateway = FakeGateway(failing)

    with pytest.raises(RemoteExecutionError):
        run(store, gateway, ScriptedOperator(confirms=[True]))

    assert DELETE not in gateway.calls
    assert store.get_session() == "42"


def test_declined_teardown_runs_nothing(store: SessionStore) -> None:
    gateway = FakeGateway(responses())

    outcome = run(store, gateway, ScriptedOperator(confirms=[False]))

    assert outcome.status is TeardownStatus.DECLINED
    assert gateway.calls == []
    assert store.get_session() == "42"
    assert outcome.session == Session("42"), "Status is unknown when declined before reading it"
    assert outcome.session.status is None


def test_no_session_aborts(config_path: Path) -> None:
    store = SessionStore.load(config_path)
    gateway = FakeGateway(responses())

    with pytest.raises(NoActiveSessionError):
        run(store, gateway, ScriptedOperator())

    assert gateway.calls == []


def test_progress_statuses_follow_teardown_steps(store: SessionStore) -> None:
    operator = ScriptedOperator(confirms=[True, True])

    run(store, FakeGateway(responses()), operator)

    assert operator.messages("status") == [
        "Preparing droplet for snapshot",
        "Shutting down Cfx server",
        "Shutting down Ubuntu server",
        "Creating snapshot, this may take a while - approx. 2 minutes per gigabyte",
    ]


def test_session_id_with_markup_characters_is_escaped(config_path: Path) -> None:
    store = SessionStore.load(config_path)
    store.set_session("[/42]")
    operator = ScriptedOperator(confirms=[False])

    outcome = teardown(store, DoctlClient(FakeGateway()), operator, clock=fixed_clock)

    assert outcome.status is TeardownStatus.DECLINED
    kind, message = operator.events[0]
    assert kind == "confirm"
    assert "[/42]" in render(message).plain, "Session ids must render literally"
