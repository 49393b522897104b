"""Gateway for running doctl and friends as local subprocesses."""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass

from plumbum import CommandNotFound, local
from plumbum.commands.processes import ProcessExecutionError, ProcessTimedOut

from drippingtap._errors import RemoteExecutionError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CommandContext:
    """Execution options for :meth:`CommandGateway.execute`."""

    env: dict[str, str] | None = None
    timeout: float | None = None


def split_command(command: str) -> list[str]:
    """Split *command* into an argument vector without invoking a shell.

    Examples
    --------
    >>> split_command("doctl compute ssh 42 --ssh-command '~/cfx/data/status.sh'")
    ['doctl', 'compute', 'ssh', '42', '--ssh-command', '~/cfx/data/status.sh']
    """

    try:
        argv = shlex.split(command)
    except ValueError as exc:
        msg = f"Cannot parse command {command!r}: {exc}"
        raise RemoteExecutionError(msg) from exc
    if not argv:
        raise RemoteExecutionError("Cannot execute an empty command")
    return argv


class CommandGateway:
    """Run commands one at a time and hand back their trimmed stdout.

    Commands are never retried here; a failure propagates to the workflow,
    which aborts the step. ``context.timeout`` defaults to ``None`` so that
    doctl ``--wait`` calls block until the cloud side finishes.
    """

    def __init__(self, context: CommandContext | None = None) -> None:
        self.context = context or CommandContext()

    def execute(self, command: str) -> str:
        """Execute *command* and return its standard output, stripped.

        Examples
        --------
        >>> CommandGateway().execute("printf '  hello\\n'")
        'hello'
        """

        program, *args = split_command(command)
        logger.debug("Running %s", command)
        try:
            bound = local[program][args]
            _, stdout, _ = bound.run(env=self.context.env, timeout=self.context.timeout)
        except CommandNotFound as exc:
            msg = f"Command {program!r} is not installed or not on PATH"
            raise RemoteExecutionError(msg) from exc
        except ProcessTimedOut as exc:
            msg = f"Command {program!r} timed out after {self.context.timeout}s"
            raise RemoteExecutionError(msg) from exc
        except ProcessExecutionError as exc:
            detail = (exc.stderr or "").strip() or f"exit status {exc.retcode}"
            msg = f"Command {program!r} failed: {detail}"
            raise RemoteExecutionError(msg) from exc
        except OSError as exc:
            msg = f"Command {program!r} could not be started: {exc}"
            raise RemoteExecutionError(msg) from exc
        return stdout.strip()


def is_installed(tool: str) -> bool:
    """Return ``True`` when *tool* resolves on the local ``PATH``.

    Examples
    --------
    >>> is_installed("sh")
    True
    """

    try:
        local.which(tool)
    except CommandNotFound:
        return False
    return True


__all__ = ["CommandContext", "CommandGateway", "is_installed", "split_command"]
