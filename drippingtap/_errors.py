"""Exception hierarchy for the droplet session helpers.

Callers can catch :class:`DrippingTapError` to handle every failure the
workflows surface. Preconditions that end the current invocation derive from
:class:`FatalPreconditionError` so the CLI entry point can report them and
pick the exit code in one place.

Examples
--------
>>> issubclass(NoSnapshotError, FatalPreconditionError)
True
"""

from __future__ import annotations


class DrippingTapError(Exception):
    """Base error for droplet provisioning and teardown.

    Parameters
    ----------
    message
        Human-readable error message describing the failure.
    hint
        Optional remediation shown to the operator below the message.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class RemoteExecutionError(DrippingTapError):
    """Raised when a doctl command cannot be started or exits non-zero."""


class RemoteOutputError(DrippingTapError):
    """Raised when doctl output does not have the expected shape."""


class SessionStoreError(DrippingTapError):
    """Raised when the persisted session document cannot be used."""


class SshConfigError(DrippingTapError):
    """Raised when the SSH host file cannot be read or rewritten."""


class FatalPreconditionError(DrippingTapError):
    """Raised when a precondition fails and nothing here can remediate it."""


class MissingDependencyError(FatalPreconditionError):
    """Raised when required local tools are missing and were not installed."""


class MissingConfigurationError(FatalPreconditionError):
    """Raised when a required setting is still empty after prompting."""


class NotAuthenticatedError(FatalPreconditionError):
    """Raised when doctl has no authenticated account."""


class NoSnapshotError(FatalPreconditionError):
    """Raised when the account has no snapshot to create a droplet from."""


class NoActiveSessionError(FatalPreconditionError):
    """Raised when teardown is requested without a stored session."""


class SnapshotFailedError(FatalPreconditionError):
    """Raised when the teardown snapshot returns no image id."""


__all__ = [
    "DrippingTapError",
    "FatalPreconditionError",
    "MissingConfigurationError",
    "MissingDependencyError",
    "NoActiveSessionError",
    "NoSnapshotError",
    "NotAuthenticatedError",
    "RemoteExecutionError",
    "RemoteOutputError",
    "SessionStoreError",
    "SnapshotFailedError",
    "SshConfigError",
]
