"""Keep the ``Host droplet:{name}`` block in an SSH config pointed at the droplet."""

from __future__ import annotations

import re
from pathlib import Path

from drippingtap._errors import SshConfigError

_HOST_LINE = re.compile(r"^\s*(Host|Match)\s+(?P<patterns>.*?)\s*$", re.IGNORECASE)
_HOSTNAME_LINE = re.compile(
    r"^(?P<indent>\s*)HostName(?P<sep>\s*=\s*|\s+)(?P<value>\S*)(?P<rest>.*)$", re.IGNORECASE
)


def host_alias(droplet_name: str) -> str:
    """Return the SSH alias for *droplet_name*.

    Examples
    --------
    >>> host_alias("redm")
    'droplet:redm'
    """

    return f"droplet:{droplet_name}"


def _split_ending(line: str) -> tuple[str, str]:
    body = line.rstrip("\r\n")
    return body, line[len(body) :]


def _newline_style(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"


def patch_host_block(text: str, droplet_name: str, ip: str) -> str:
    """Return *text* with the droplet's ``HostName`` set to *ip*.

    Only the ``HostName`` line inside the block whose header is exactly
    ``Host droplet:{name}`` changes. A block without ``HostName`` gets one
    after its header; a missing block is appended. Patching is idempotent.

    Examples
    --------
    >>> patch_host_block("Host droplet:redm\\r\\n    HostName 1.1.1.1\\r\\n", "redm", "2.2.2.2")
    'Host droplet:redm\\r\\n    HostName 2.2.2.2\\r\\n'
    >>> patch_host_block("", "redm", "2.2.2.2")
    'Host droplet:redm\\n    HostName 2.2.2.2\\n'
    """

    alias = host_alias(droplet_name)
    newline = _newline_style(text)
    lines = text.splitlines(keepends=True)

    header_index: int | None = None
    for index, line in enumerate(lines):
        match = _HOST_LINE.match(_split_ending(line)[0])
        if match and match.group(1).lower() == "host" and match.group("patterns") == alias:
            header_index = index
            break

    if header_index is None:
        prefix = text
        if prefix and not prefix.endswith(("\n", "\r")):
            prefix += newline
        return f"{prefix}Host {alias}{newline}    HostName {ip}{newline}"

    for index in range(header_index + 1, len(lines)):
        body, ending = _split_ending(lines[index])
        if _HOST_LINE.match(body):
            break
        match = _HOSTNAME_LINE.match(body)
        if match:
            lines[index] = (
                f"{match.group('indent')}HostName{match.group('sep')}{ip}{match.group('rest')}{ending}"
            )
            return "".join(lines)

    header_body, header_ending = _split_ending(lines[header_index])
    lines[header_index] = f"{header_body}{header_ending or newline}"
    lines.insert(header_index + 1, f"    HostName {ip}{header_ending or newline}")
    return "".join(lines)


def update_ssh_config(path: Path, droplet_name: str, ip: str) -> bool:
    """Patch the SSH config at *path* in place; return ``True`` when it changed.

    Raises
    ------
    SshConfigError
        When the file cannot be read as UTF-8 text or cannot be written.
    """

    path = path.expanduser()
    try:
        original = path.read_bytes().decode("utf-8") if path.exists() else ""
        patched = patch_host_block(original, droplet_name, ip)
        if patched == original:
            return False
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(patched.encode("utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"Cannot update SSH config {path}: {exc}"
        raise SshConfigError(msg) from exc
    return True


__all__ = ["host_alias", "patch_host_block", "update_ssh_config"]
