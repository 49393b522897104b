"""Persistent session state and configuration defaults.

The store is a single JSON document, laid out the way ``configstore`` lays
out its files, so a document written by earlier releases of the tool keeps
working. It is loaded once per invocation and saved after every mutation.
"""

from __future__ import annotations

import enum
import json
import os
from collections.abc import Mapping
from contextlib import suppress
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from drippingtap._errors import SessionStoreError

PRODUCT_NAME = "dripping-tap"

DEFAULTS: dict[str, str] = {
    "region": "ams3",
    "size": "s-1vcpu-2gb",
    "dropletName": "redm",
}

_STRING_FIELDS = (
    "region",
    "size",
    "dropletName",
    "ssh_host",
    "fingerprint",
    "session",
    "previousSession",
    "_previousSession",
)

_STORE_HINT = "Point --config-file (or DRIPPINGTAP_CONFIG) at a writable JSON file."


class GameServerStatus(enum.Enum):
    """Application-level state of the hosted game server."""

    UP = "UP"
    DOWN = "DOWN"


@dataclass(frozen=True, slots=True)
class Session:
    """The droplet currently tracked by this machine."""

    id: str
    public_ip: str | None = None
    status: GameServerStatus | None = None


@dataclass(frozen=True, slots=True)
class PreviousSession:
    """Snapshot captured by the most recent teardown."""

    snapshot_id: str
    snapshot_name: str


@dataclass(frozen=True, slots=True)
class ConfigurationDefaults:
    """Values every provisioning command reads from the store."""

    region: str
    size: str
    droplet_name: str
    ssh_host_file: str | None
    fingerprint: str | None


def droplet_version(moment: datetime) -> str:
    """Return the timestamp suffix used for droplet and snapshot names.

    Month and day are zero-padded; hour and minute are concatenated as-is.

    Examples
    --------
    >>> droplet_version(datetime(2024, 3, 5, 14, 7))
    '20240305-147'
    """

    return f"{moment.year}{moment.month:02d}{moment.day:02d}-{moment.hour}{moment.minute}"


def snapshot_name(droplet_name: str, version: str) -> str:
    """Return the snapshot name used for *droplet_name* at *version*.

    Examples
    --------
    >>> snapshot_name("redm", "20240305-147")
    'snapshot-redm-20240305-147'
    """

    return f"snapshot-{droplet_name}-{version}"


def default_config_path(env: Mapping[str, str] | None = None) -> Path:
    """Return the configstore location for the session document.

    Examples
    --------
    >>> default_config_path({"XDG_CONFIG_HOME": "/cfg"}).as_posix()
    '/cfg/configstore/dripping-tap.json'
    """

    environ = os.environ if env is None else env
    base = environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / "configstore" / f"{PRODUCT_NAME}.json"


def _validate_payload(payload: Any, path: Path) -> dict[str, Any]:
    if not isinstance(payload, dict):
        msg = f"Session file {path} must contain a JSON object"
        raise SessionStoreError(msg)
    for field_name in _STRING_FIELDS:
        value = payload.get(field_name)
        if value is not None and not isinstance(value, str):
            msg = f"Session field {field_name!r} must be str | None"
            raise SessionStoreError(msg)
    return payload


class SessionStore:
    """Key/value session document bound to a file on disk.

    Examples
    --------
    >>> store = SessionStore(Path("session.json"), dict(DEFAULTS))
    >>> store.defaults.droplet_name
    'redm'
    >>> store.get_session() is None
    True
    """

    def __init__(self, path: Path, data: dict[str, Any]) -> None:
        self.path = path
        self._data = data

    @classmethod
    def load(cls, path: Path) -> SessionStore:
        """Load the document at *path*, seeding and persisting missing defaults."""

        data: dict[str, Any] = {}
        if path.exists():
            try:
                raw = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                msg = f"Failed to read session file {path}: {exc}"
                raise SessionStoreError(msg, hint=_STORE_HINT) from exc
            try:
                payload = json.loads(raw or "{}")
            except json.JSONDecodeError as exc:
                msg = f"Failed to parse session file {path}: {exc}"
                raise SessionStoreError(msg) from exc
            data = _validate_payload(payload, path)
        store = cls(path, data)
        missing = {key: value for key, value in DEFAULTS.items() if key not in data}
        if missing:
            data.update(missing)
            store.save()
        return store

    def save(self) -> None:
        """Write the document atomically with owner-only permissions."""

        try:
            self._write()
        except OSError as exc:
            msg = f"Failed to write session file {self.path}: {exc}"
            raise SessionStoreError(msg, hint=_STORE_HINT) from exc

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        payload = json.dumps(self._data, indent="\t")

        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
        except Exception:
            with suppress(FileNotFoundError):
                os.unlink(tmp_path)
            raise

        tmp_path.replace(self.path)
        os.chmod(self.path, 0o600)

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str | None) -> None:
        self._data[key] = value
        self.save()

    def to_mapping(self) -> dict[str, Any]:
        return dict(self._data)

    @property
    def defaults(self) -> ConfigurationDefaults:
        return ConfigurationDefaults(
            region=self._data.get("region") or DEFAULTS["region"],
            size=self._data.get("size") or DEFAULTS["size"],
            droplet_name=self._data.get("dropletName") or DEFAULTS["dropletName"],
            ssh_host_file=self._data.get("ssh_host") or None,
            fingerprint=self._data.get("fingerprint") or None,
        )

    def set_ssh_host_file(self, path: str) -> None:
        self.set("ssh_host", path)

    def set_fingerprint(self, fingerprint: str) -> None:
        self.set("fingerprint", fingerprint)

    def get_session(self) -> str | None:
        """Return the active session id, or ``None`` when there is none."""

        return self._data.get("session") or None

    def set_session(self, session_id: str) -> None:
        """Record *session_id* as the only active session."""

        if not session_id:
            raise SessionStoreError("Refusing to store an empty session id")
        self.set("session", session_id)

    def clear_session(self) -> None:
        self.set("session", None)

    def set_previous_session(self, snapshot_id: str, version: str) -> PreviousSession:
        """Archive the snapshot produced by a teardown at *version*."""

        previous = PreviousSession(
            snapshot_id=snapshot_id,
            snapshot_name=snapshot_name(self.defaults.droplet_name, version),
        )
        self._data["previousSession"] = previous.snapshot_name
        self._data["_previousSession"] = previous.snapshot_id
        self.save()
        return previous

    def get_previous_session(self) -> PreviousSession | None:
        snapshot_id = self._data.get("_previousSession")
        name = self._data.get("previousSession")
        if not snapshot_id or not name:
            return None
        return PreviousSession(snapshot_id=snapshot_id, snapshot_name=name)


__all__ = [
    "DEFAULTS",
    "PRODUCT_NAME",
    "ConfigurationDefaults",
    "GameServerStatus",
    "PreviousSession",
    "Session",
    "SessionStore",
    "default_config_path",
    "droplet_version",
    "snapshot_name",
]
