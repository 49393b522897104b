"""Parsing helpers for doctl's whitespace-delimited tabular output."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from drippingtap._errors import RemoteOutputError

DROPLET_COLUMNS = ("id", "name", "memory", "disk", "vcpus", "status")
IMAGE_COLUMNS = ("id", "name", "type")
CREATE_COLUMNS = ("id", "public_ip")


@dataclass(frozen=True, slots=True)
class DropletRecord:
    """One row of ``doctl compute droplet list``."""

    id: str
    name: str
    memory: str
    disk: str
    vcpus: str
    status: str


@dataclass(frozen=True, slots=True)
class ImageRecord:
    """One row of ``doctl compute image list``."""

    id: str
    name: str
    type: str


class ParsedTable:
    """Lazy view over tabular text; every iteration re-reads the raw text.

    Examples
    --------
    >>> table = parse_table("1 alpha\\n2 beta\\n", ("id", "name"))
    >>> [row["name"] for row in table]
    ['alpha', 'beta']
    >>> len(list(table))
    2
    """

    def __init__(self, raw_text: str, columns: Sequence[str]) -> None:
        self.raw_text = raw_text
        self.columns = tuple(columns)

    def __iter__(self) -> Iterator[dict[str, str]]:
        for line in self.raw_text.splitlines():
            fields = line.split()
            if not fields:
                continue
            yield {
                column: fields[index] if index < len(fields) else ""
                for index, column in enumerate(self.columns)
            }


def parse_table(raw_text: str, columns: Sequence[str]) -> ParsedTable:
    """Split *raw_text* into records keyed by *columns*.

    Blank lines are discarded, so an empty string yields no records rather
    than one empty record. Short rows fill the missing columns with ``""``;
    surplus fields are dropped.

    Examples
    --------
    >>> list(parse_table("", ("id",)))
    []
    >>> list(parse_table("42", ("id", "name")))
    [{'id': '42', 'name': ''}]
    """

    return ParsedTable(raw_text, columns)


def parse_droplets(raw_text: str) -> list[DropletRecord]:
    """Return droplet records from ``--format ID,Name,Memory,Disk,VCPUs,Status``."""

    return [DropletRecord(**row) for row in parse_table(raw_text, DROPLET_COLUMNS)]


def parse_images(raw_text: str) -> list[ImageRecord]:
    """Return image records from ``--format ID,Name,Type``."""

    return [ImageRecord(**row) for row in parse_table(raw_text, IMAGE_COLUMNS)]


def parse_create_output(raw_text: str) -> tuple[str, str]:
    """Return ``(id, public_ip)`` from ``droplet create --format ID,PublicIPv4``.

    Examples
    --------
    >>> parse_create_output("314159 203.0.113.7")
    ('314159', '203.0.113.7')
    """

    for row in parse_table(raw_text, CREATE_COLUMNS):
        if not row["id"]:
            break
        return row["id"], row["public_ip"]
    msg = f"doctl droplet create returned no droplet id: {raw_text!r}"
    raise RemoteOutputError(msg)


__all__ = [
    "CREATE_COLUMNS",
    "DROPLET_COLUMNS",
    "IMAGE_COLUMNS",
    "DropletRecord",
    "ImageRecord",
    "ParsedTable",
    "parse_create_output",
    "parse_droplets",
    "parse_images",
    "parse_table",
]
