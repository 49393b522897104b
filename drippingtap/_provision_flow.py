"""Check preconditions, then spin up a droplet from a chosen snapshot.

The workflow walks a fixed sequence of stages::

    START -> DEPENDENCIES_CHECKED -> AUTHENTICATED -> SNAPSHOT_AVAILABLE
          -> SSH_HOST_KNOWN -> FINGERPRINT_KNOWN -> NO_CONFLICTING_DROPLET
          -> CREATING -> CREATED

The first six transitions consume one validation rule outcome each. Rule
handlers perform the remediation (installing tools, prompting for settings,
printing guidance); transition functions decide whether the stage holds and
raise a :class:`~drippingtap._errors.FatalPreconditionError` when it cannot.
An operator declining the creation prompt ends in ``DECLINED``.

Examples
--------
Provision with the real doctl gateway and a console operator::

    store = SessionStore.load(default_config_path())
    provision(store, DoctlClient(CommandGateway()), ConsoleOperator())
"""

from __future__ import annotations

import enum
import logging
from collections import Counter
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from rich.markup import escape

from drippingtap._doctl import DoctlClient
from drippingtap._errors import (
    MissingConfigurationError,
    MissingDependencyError,
    NoSnapshotError,
    NotAuthenticatedError,
    SshConfigError,
)
from drippingtap._gateway import is_installed
from drippingtap._operator import Operator
from drippingtap._parser import DropletRecord, parse_droplets
from drippingtap._session_state import Session, SessionStore, droplet_version
from drippingtap._ssh_hosts import host_alias, update_ssh_config
from drippingtap._system_deps import REQUIRED_TOOLS, install_system_dependencies, missing_tools
from drippingtap._validation import (
    Invalid,
    RuleOutcome,
    RuleResponse,
    Valid,
    ValidationEngine,
    ValidationRule,
)

logger = logging.getLogger(__name__)

DEFAULT_SSH_CONFIG = Path("~/.ssh/config")
REMOTE_RUN_SCRIPT = "~/cfx/data/remote-run.sh"


class ProvisionStage(enum.Enum):
    START = "start"
    DEPENDENCIES_CHECKED = "dependencies-checked"
    AUTHENTICATED = "authenticated"
    SNAPSHOT_AVAILABLE = "snapshot-available"
    SSH_HOST_KNOWN = "ssh-host-known"
    FINGERPRINT_KNOWN = "fingerprint-known"
    NO_CONFLICTING_DROPLET = "no-conflicting-droplet"
    CREATING = "creating"
    CREATED = "created"
    DECLINED = "declined"


TERMINAL_STAGES = frozenset({ProvisionStage.CREATED, ProvisionStage.DECLINED})


@dataclass(frozen=True, slots=True)
class ConflictSummary:
    """Droplets already present on the account, counted by status."""

    total: int
    by_status: Mapping[str, int] = field(default_factory=dict)

    @property
    def active(self) -> int:
        return self.by_status.get("active", 0)

    @property
    def new(self) -> int:
        return self.by_status.get("new", 0)


@dataclass(frozen=True, slots=True)
class ProvisionOutcome:
    """Where provisioning ended and what it produced."""

    stage: ProvisionStage
    session: Session | None = None
    conflicts: ConflictSummary | None = None


def summarize_droplets(droplets: Iterable[DropletRecord]) -> ConflictSummary:
    """Count *droplets* by status.

    Examples
    --------
    >>> rows = [DropletRecord("1", "a", "2048", "50", "1", "active"),
    ...         DropletRecord("2", "b", "2048", "50", "1", "new")]
    >>> summary = summarize_droplets(rows)
    >>> summary.total, summary.active, summary.new
    (2, 1, 1)
    """

    counts = Counter(droplet.status for droplet in droplets)
    return ConflictSummary(total=sum(counts.values()), by_status=dict(counts))


def connection_commands(ip: str) -> dict[str, str]:
    """Return the shell commands an operator uses to reach the droplet.

    Examples
    --------
    >>> connection_commands("203.0.113.7")["Ubuntu server"]
    'ssh root@203.0.113.7'
    """

    return {
        "CitizenFX RedM server": f"ssh -t root@{ip} '{REMOTE_RUN_SCRIPT}'",
        "Ubuntu server": f"ssh root@{ip}",
    }


class ProvisioningWorkflow:
    """One provisioning attempt bound to a store, a doctl client and an operator."""

    def __init__(
        self,
        store: SessionStore,
        client: DoctlClient,
        operator: Operator,
        *,
        clock: Callable[[], datetime] = datetime.now,
        probe: Callable[[str], bool] = is_installed,
    ) -> None:
        self.store = store
        self.client = client
        self.operator = operator
        self.clock = clock
        self.probe = probe
        self.session: Session | None = None
        self.conflicts: ConflictSummary | None = None

    # -- rules ---------------------------------------------------------------

    def rules(self) -> list[ValidationRule]:
        """Return the precondition rules in stage order."""

        return [
            ValidationRule(
                "system-dependencies",
                check=self._check_dependencies,
                on_valid=RuleResponse("System dependencies installed"),
                on_invalid=RuleResponse("System dependencies missing", self._offer_install),
            ),
            ValidationRule(
                "authenticated",
                check=lambda: self.client.account_email() != "",
                on_valid=RuleResponse("DigitalOcean authenticated"),
                on_invalid=RuleResponse("DigitalOcean not authenticated"),
            ),
            ValidationRule(
                "snapshot-available",
                check=self._check_snapshots,
                on_valid=RuleResponse("Snapshot(s) found"),
                on_invalid=RuleResponse("No snapshot(s) found", self._explain_missing_snapshot),
            ),
            ValidationRule(
                "ssh-host-file",
                check=lambda: self.store.defaults.ssh_host_file,
                on_valid=RuleResponse("SSH host file found"),
                on_invalid=RuleResponse("SSH host file not found", self._ask_ssh_host_file),
            ),
            ValidationRule(
                "ssh-fingerprint",
                check=lambda: self.store.defaults.fingerprint,
                on_valid=RuleResponse("SSH fingerprint found"),
                on_invalid=RuleResponse("SSH fingerprint not found", self._ask_fingerprint),
            ),
            ValidationRule(
                "no-conflicting-droplet",
                check=self._check_conflicts,
                on_valid=RuleResponse("No conflicting droplet(s) found"),
                on_invalid=RuleResponse("Conflicting droplet(s) found", self._warn_conflicts),
            ),
        ]

    def _check_dependencies(self) -> RuleOutcome:
        missing = missing_tools(REQUIRED_TOOLS, probe=self.probe)
        return Invalid(missing) if missing else Valid()

    def _offer_install(self, missing: list[str]) -> None:
        self.operator.info(f"  Missing tools: {', '.join(missing)}")
        if not self.operator.confirm(
            "System dependencies have not been installed yet, do you want to install?"
        ):
            raise MissingDependencyError(
                f"Required tools are not installed: {', '.join(missing)}",
                hint="Install doctl and wget, then rerun this command.",
            )
        with self.operator.status("Installing system dependencies"):
            install_system_dependencies(self.client.gateway)
        self.operator.succeed("System dependencies installed")

    def _check_snapshots(self) -> RuleOutcome:
        listing = self.client.image_listing()
        return Valid(listing) if listing != "" else Invalid(listing)

    def _explain_missing_snapshot(self, _listing: object) -> None:
        self.operator.info(
            "  [red]●[/red] At least 1 snapshot needs to be created to be able to spin up a droplet"
        )
        self.operator.warning("  | Create the initial snapshot on the DigitalOcean dashboard.")

    def _ask_ssh_host_file(self, _payload: object) -> None:
        answer = self.operator.ask("Enter SSH config path?", default=str(DEFAULT_SSH_CONFIG.expanduser()))
        if answer:
            self.store.set_ssh_host_file(answer)

    def _ask_fingerprint(self, _payload: object) -> None:
        answer = self.operator.ask("Enter SSH fingerprint?")
        if answer:
            self.store.set_fingerprint(answer)

    def _check_conflicts(self) -> RuleOutcome:
        listing = self.client.droplet_listing()
        return Valid(listing) if listing == "" else Invalid(listing)

    def _warn_conflicts(self, listing: str) -> None:
        summary = summarize_droplets(parse_droplets(listing))
        self.conflicts = summary
        logger.warning("Proceeding with %d existing droplet(s) on the account", summary.total)
        self.operator.info(
            f"  [red]●[/red] {summary.total} droplet(s) found, "
            f"of which {summary.active} currently running"
        )
        if summary.new:
            self.operator.info(f"  [red]●[/red] {summary.new} droplet(s) recently created")
        self.operator.warning("  | Droplet(s) should normally be [red]destroyed[/red] after use.")
        self.operator.warning("  | To stop further dripping, destroy these via the dashboard.")

    # -- transitions ---------------------------------------------------------

    def _transition(self, stage: ProvisionStage, outcome: RuleOutcome | None) -> ProvisionStage:
        match stage:
            case ProvisionStage.START:
                return self._dependencies_checked(outcome)
            case ProvisionStage.DEPENDENCIES_CHECKED:
                return self._authenticated(outcome)
            case ProvisionStage.AUTHENTICATED:
                return self._snapshot_available(outcome)
            case ProvisionStage.SNAPSHOT_AVAILABLE:
                return self._ssh_host_known(outcome)
            case ProvisionStage.SSH_HOST_KNOWN:
                return self._fingerprint_known(outcome)
            case ProvisionStage.FINGERPRINT_KNOWN:
                return self._conflicts_checked(outcome)
            case ProvisionStage.NO_CONFLICTING_DROPLET:
                return self._confirm_creation()
            case ProvisionStage.CREATING:
                return self._create()
        msg = f"No transition out of stage {stage.name}"
        raise RuntimeError(msg)

    def _dependencies_checked(self, outcome: RuleOutcome | None) -> ProvisionStage:
        # Installation is not re-verified; a failed install surfaces on the next doctl call.
        return ProvisionStage.DEPENDENCIES_CHECKED

    def _authenticated(self, outcome: RuleOutcome | None) -> ProvisionStage:
        if outcome is None or not outcome.valid:
            raise NotAuthenticatedError(
                "doctl is not authenticated with DigitalOcean",
                hint="Run `doctl auth init` with an API token, then rerun this command.",
            )
        return ProvisionStage.AUTHENTICATED

    def _snapshot_available(self, outcome: RuleOutcome | None) -> ProvisionStage:
        if outcome is None or not outcome.valid:
            raise NoSnapshotError(
                "No snapshot available to create a droplet from",
                hint="Create the initial snapshot on the DigitalOcean dashboard.",
            )
        return ProvisionStage.SNAPSHOT_AVAILABLE

    def _ssh_host_known(self, outcome: RuleOutcome | None) -> ProvisionStage:
        if self.store.defaults.ssh_host_file is None:
            logger.info("No SSH config path recorded; host block will not be patched")
        return ProvisionStage.SSH_HOST_KNOWN

    def _fingerprint_known(self, outcome: RuleOutcome | None) -> ProvisionStage:
        if self.store.defaults.fingerprint is None:
            raise MissingConfigurationError(
                "An SSH key fingerprint is required to create a droplet",
                hint="Find it with `doctl compute ssh-key list`.",
            )
        return ProvisionStage.FINGERPRINT_KNOWN

    def _conflicts_checked(self, outcome: RuleOutcome | None) -> ProvisionStage:
        # Conflicting droplets only warn; creation proceeds either way.
        return ProvisionStage.NO_CONFLICTING_DROPLET

    def _confirm_creation(self) -> ProvisionStage:
        existing = self.store.get_session()
        if existing:
            logger.warning("Session %s is still recorded and was never torn down", existing)
            self.operator.warning(
                f"  | Droplet [cyan]{escape(existing)}[/cyan] from an earlier session was never "
                "shut down; a new droplet replaces it and `down` will no longer reach it."
            )
        if self.operator.confirm("Do you want to spin up a new droplet instance?"):
            return ProvisionStage.CREATING
        return ProvisionStage.DECLINED

    def _create(self) -> ProvisionStage:
        snapshots = self.client.list_snapshots()
        if not snapshots:
            raise NoSnapshotError(
                "The account has images but none of type snapshot",
                hint="Create the initial snapshot on the DigitalOcean dashboard.",
            )
        image_id = self.operator.select(
            "What snapshot do you want to use?",
            [(snapshot.name, snapshot.id) for snapshot in snapshots],
        )

        defaults = self.store.defaults
        version = droplet_version(self.clock())
        name = f"{defaults.droplet_name}-{version}"
        logger.info("Creating droplet %s from image %s", name, image_id)
        with self.operator.status("Spinning up droplet instance"):
            droplet_id, ip = self.client.create_droplet(
                image_id=image_id,
                fingerprint=defaults.fingerprint or "",
                region=defaults.region,
                size=defaults.size,
                name=name,
            )
        self.store.set_session(droplet_id)
        self.session = Session(id=droplet_id, public_ip=ip)
        self.operator.succeed(f"Droplet up and running - available at '[cyan]{escape(ip)}[/cyan]'")

        if defaults.ssh_host_file:
            try:
                update_ssh_config(Path(defaults.ssh_host_file), defaults.droplet_name, ip)
            except SshConfigError as exc:
                self.operator.fail("Failed to update SSH host file")
                raise SshConfigError(
                    str(exc),
                    hint=(
                        f"Droplet {droplet_id} is running and recorded; connect with "
                        f"`ssh root@{ip}` and fix `ssh_host` in {self.store.path}."
                    ),
                ) from exc
            self.operator.info(
                f"SSH connection added to host file [green]{escape(defaults.ssh_host_file)}[/green] "
                f"as [cyan]{escape(host_alias(defaults.droplet_name))}[/cyan]"
            )

        if self.operator.confirm("Connect and start game server?"):
            self.operator.succeed("Following commands are now available")
            for label, command in connection_commands(ip).items():
                self.operator.info(f"[cyan]Connect to {label}:[/cyan] {command}")
        return ProvisionStage.CREATED

    # -- driver --------------------------------------------------------------

    def run(self) -> ProvisionOutcome:
        """Evaluate every rule, then create the droplet unless declined."""

        stage = ProvisionStage.START
        for rule, outcome in ValidationEngine(self.rules(), self.operator).run():
            stage = self._transition(stage, outcome)
            logger.debug("Rule %s moved provisioning to %s", rule.name, stage.name)
        while stage not in TERMINAL_STAGES:
            stage = self._transition(stage, None)
        return ProvisionOutcome(stage=stage, session=self.session, conflicts=self.conflicts)


def provision(
    store: SessionStore,
    client: DoctlClient,
    operator: Operator,
    *,
    clock: Callable[[], datetime] = datetime.now,
    probe: Callable[[str], bool] = is_installed,
) -> ProvisionOutcome:
    """Run :class:`ProvisioningWorkflow` once and return where it ended."""

    workflow = ProvisioningWorkflow(store, client, operator, clock=clock, probe=probe)
    return workflow.run()


__all__ = [
    "ConflictSummary",
    "ProvisionOutcome",
    "ProvisionStage",
    "ProvisioningWorkflow",
    "connection_commands",
    "provision",
    "summarize_droplets",
]
