"""Resolve CLI options against environment variables and defaults."""

from __future__ import annotations

import os
from collections import abc as cabc
from dataclasses import dataclass
from pathlib import Path

from drippingtap._session_state import default_config_path

CONFIG_ENV_KEY = "DRIPPINGTAP_CONFIG"
TIMEOUT_ENV_KEY = "DRIPPINGTAP_COMMAND_TIMEOUT"


@dataclass(frozen=True, slots=True)
class InputResolution:
    """How to resolve one input when the CLI parameter is absent."""

    env_key: str
    default: str | Path | None = None
    as_path: bool = False


def resolve_input(
    param_value: str | Path | None,
    resolution: InputResolution,
    env: cabc.Mapping[str, str] | None = None,
) -> str | Path | None:
    """Resolve input from parameter, environment variable, or default.

    Examples
    --------
    >>> resolve_input(None, InputResolution(env_key="X", default="d"), env={"X": "e"})
    'e'
    >>> resolve_input("p", InputResolution(env_key="X"), env={"X": "e"})
    'p'
    """

    if param_value is not None:
        return param_value

    env_value = (os.environ if env is None else env).get(resolution.env_key)
    if env_value:
        return Path(env_value).expanduser() if resolution.as_path else env_value

    return resolution.default


def resolve_config_path(
    param_value: Path | None,
    env: cabc.Mapping[str, str] | None = None,
) -> Path:
    """Return the session document path for this invocation."""

    environ = os.environ if env is None else env
    resolved = resolve_input(
        param_value,
        InputResolution(
            env_key=CONFIG_ENV_KEY,
            default=default_config_path(environ),
            as_path=True,
        ),
        env=environ,
    )
    return Path(resolved)


def resolve_command_timeout(
    param_value: float | None,
    env: cabc.Mapping[str, str] | None = None,
) -> float | None:
    """Return the per-command timeout in seconds, or ``None`` to wait forever.

    Examples
    --------
    >>> resolve_command_timeout(None, env={TIMEOUT_ENV_KEY: "90"})
    90.0
    >>> resolve_command_timeout(None, env={}) is None
    True
    """

    if param_value is not None:
        raw: str | float = param_value
    else:
        resolved = resolve_input(None, InputResolution(env_key=TIMEOUT_ENV_KEY), env=env)
        if resolved is None:
            return None
        raw = str(resolved)
    try:
        timeout = float(raw)
    except ValueError as exc:
        msg = f"{TIMEOUT_ENV_KEY} must be a number of seconds, got: {raw!r}"
        raise SystemExit(msg) from exc
    if timeout <= 0:
        msg = f"{TIMEOUT_ENV_KEY} must be positive, got: {raw!r}"
        raise SystemExit(msg)
    return timeout


__all__ = [
    "CONFIG_ENV_KEY",
    "TIMEOUT_ENV_KEY",
    "InputResolution",
    "resolve_command_timeout",
    "resolve_config_path",
    "resolve_input",
]
