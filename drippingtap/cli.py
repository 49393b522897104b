"""Command-line entry point: ``start``/``run`` and ``down``/``stop``.

Usage:
  drippingtap start
  drippingtap down --verbose
  drippingtap run --config-file ~/redm-session.json --command-timeout 900

Each command returns an exit code; only the entry point leaves the process.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Annotated

from cyclopts import App, Parameter
from rich.logging import RichHandler
from rich.markup import escape

from drippingtap._doctl import DoctlClient
from drippingtap._errors import DrippingTapError
from drippingtap._gateway import CommandContext, CommandGateway
from drippingtap._input_resolution import resolve_command_timeout, resolve_config_path
from drippingtap._operator import ConsoleOperator, Operator
from drippingtap._provision_flow import ProvisionStage, provision
from drippingtap._session_state import SessionStore
from drippingtap._teardown_flow import TeardownStatus, teardown

logger = logging.getLogger(__name__)

app = App(
    name="drippingtap",
    help="Spin a game server droplet up from a snapshot and tear it down again.",
)

ConfigFileParam = Annotated[
    Path | None,
    Parameter(help="Session document path (env: DRIPPINGTAP_CONFIG)."),
]
TimeoutParam = Annotated[
    float | None,
    Parameter(help="Seconds before a doctl call is abandoned (env: DRIPPINGTAP_COMMAND_TIMEOUT)."),
]
VerboseParam = Annotated[bool, Parameter(help="Log every doctl command.")]


def configure_logging(*, verbose: bool) -> None:
    """Route log records through rich; DEBUG when *verbose*, else WARNING."""

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(level=level, show_path=verbose, rich_tracebacks=True)],
        force=True,
    )


def report_error(exc: DrippingTapError) -> None:
    print(f"error: {exc}", file=sys.stderr)
    if exc.hint:
        print(f"hint: {exc.hint}", file=sys.stderr)


def build_client(command_timeout: float | None) -> DoctlClient:
    return DoctlClient(CommandGateway(CommandContext(timeout=command_timeout)))


def run_start(store: SessionStore, client: DoctlClient, operator: Operator) -> int:
    """Provision a droplet and translate the result into an exit code."""

    try:
        outcome = provision(store, client, operator)
    except DrippingTapError as exc:
        report_error(exc)
        return 1
    if outcome.stage is ProvisionStage.DECLINED:
        operator.info("No droplet created.")
    return 0


def run_down(store: SessionStore, client: DoctlClient, operator: Operator) -> int:
    """Tear the active session down and translate the result into an exit code."""

    try:
        outcome = teardown(store, client, operator)
    except DrippingTapError as exc:
        report_error(exc)
        return 1
    if outcome.status is TeardownStatus.SNAPSHOT_KEPT:
        operator.info(
            f"Droplet {escape(outcome.session.id)} is powered off but still exists "
            "(and is still billed)."
        )
    return 0


def _load_store(config_file: Path | None) -> SessionStore:
    path = resolve_config_path(config_file)
    logger.debug("Using session document %s", path)
    return SessionStore.load(path)


@app.command(name=["start", "run"])
def start(
    *,
    config_file: ConfigFileParam = None,
    command_timeout: TimeoutParam = None,
    verbose: VerboseParam = False,
) -> int:
    """Check preconditions and spin up a droplet from a snapshot."""

    configure_logging(verbose=verbose)
    try:
        store = _load_store(config_file)
    except DrippingTapError as exc:
        report_error(exc)
        return 1
    client = build_client(resolve_command_timeout(command_timeout))
    return run_start(store, client, ConsoleOperator())


@app.command(name=["down", "stop"])
def down(
    *,
    config_file: ConfigFileParam = None,
    command_timeout: TimeoutParam = None,
    verbose: VerboseParam = False,
) -> int:
    """Stop the game server, snapshot the droplet and offer to destroy it."""

    configure_logging(verbose=verbose)
    try:
        store = _load_store(config_file)
    except DrippingTapError as exc:
        report_error(exc)
        return 1
    client = build_client(resolve_command_timeout(command_timeout))
    return run_down(store, client, ConsoleOperator())


def main() -> None:
    """Console-script entry point."""

    raise SystemExit(app())


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
