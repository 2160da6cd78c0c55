"""Read cmdlet declarations from .NET assembly metadata.

Only metadata tables are read; no code from the assembly is executed. A type
is a cmdlet when it carries ``System.Management.Automation.CmdletAttribute``,
whose constructor arguments are the verb and the noun of the command.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

import dnfile

from helpcheck.models import CommandMetadata

CMDLET_ATTRIBUTE_NAME = "CmdletAttribute"
CMDLET_ATTRIBUTE_NAMESPACE = "System.Management.Automation"

_CUSTOM_ATTRIBUTE_PROLOG = b"\x01\x00"
_NULL_STRING_MARKER = 0xFF


class AttributeBlobError(ValueError):
    pass


def _read_packed_length(blob: bytes, offset: int) -> tuple[int, int]:
    if offset >= len(blob):
        raise AttributeBlobError("truncated length prefix")
    first = blob[offset]
    if first & 0x80 == 0:
        return first, offset + 1
    if first & 0xC0 == 0x80:
        if offset + 2 > len(blob):
            raise AttributeBlobError("truncated length prefix")
        return ((first & 0x3F) << 8) | blob[offset + 1], offset + 2
    if first & 0xE0 == 0xC0:
        if offset + 4 > len(blob):
            raise AttributeBlobError("truncated length prefix")
        value = (
            ((first & 0x1F) << 24)
            | (blob[offset + 1] << 16)
            | (blob[offset + 2] << 8)
            | blob[offset + 3]
        )
        return value, offset + 4
    raise AttributeBlobError(f"invalid length prefix 0x{first:02x}")


def read_ser_string(blob: bytes, offset: int) -> tuple[str | None, int]:
    if offset >= len(blob):
        raise AttributeBlobError("truncated string")
    if blob[offset] == _NULL_STRING_MARKER:
        return None, offset + 1
    length, start = _read_packed_length(blob, offset)
    end = start + length
    if end > len(blob):
        raise AttributeBlobError("string runs past end of blob")
    try:
        return blob[start:end].decode("utf-8"), end
    except UnicodeDecodeError as exc:
        raise AttributeBlobError(f"string is not utf-8: {exc}") from exc


def decode_cmdlet_attribute(blob: bytes) -> tuple[str, str]:
    """Return ``(verb, noun)`` from a CmdletAttribute constructor blob."""
    if not blob.startswith(_CUSTOM_ATTRIBUTE_PROLOG):
        raise AttributeBlobError("missing custom attribute prolog")
    verb, offset = read_ser_string(blob, len(_CUSTOM_ATTRIBUTE_PROLOG))
    noun, _ = read_ser_string(blob, offset)
    if not verb or not noun:
        raise AttributeBlobError("cmdlet attribute without verb and noun")
    return verb, noun


def _text(value: object) -> str:
    # dnfile hands back heap items; str() yields the decoded text.
    if value is None:
        return ""
    return str(value)


def _blob(value: object) -> bytes:
    raw = getattr(value, "value", value)
    if raw is None:
        return b""
    return bytes(raw)


def _table_rows(mdtables: Any, name: str) -> list[Any]:
    table = getattr(mdtables, name, None)
    if table is None:
        return []
    return list(table.rows)


def _coded_table_name(index: Any) -> str:
    table = getattr(index, "table", None)
    if table is None:
        return ""
    return str(getattr(table, "name", ""))


def attribute_type_name(attribute_row: Any) -> tuple[str, str]:
    """Return ``(namespace, name)`` of the attribute class for a CustomAttribute row.

    The constructor is a MemberRef for attributes defined in another assembly,
    which is always the case for CmdletAttribute. Constructors defined in the
    inspected assembly itself (MethodDef) are not resolved.
    """
    ctor_index = attribute_row.Type
    if _coded_table_name(ctor_index) != "MemberRef":
        return "", ""
    member = ctor_index.row
    if member is None:
        raise ValueError("attribute constructor does not resolve")
    parent = member.Class
    if _coded_table_name(parent) not in ("TypeRef", "TypeDef"):
        return "", ""
    type_row = parent.row
    if type_row is None:
        raise ValueError("attribute type does not resolve")
    return _text(type_row.TypeNamespace), _text(type_row.TypeName)


def _nesting_map(mdtables: Any) -> dict[int, int]:
    nesting: dict[int, int] = {}
    for row in _table_rows(mdtables, "NestedClass"):
        nesting[int(row.NestedClass.row_index)] = int(row.EnclosingClass.row_index)
    return nesting


def type_full_name(type_rows: list[Any], nesting: dict[int, int], row_index: int) -> str:
    parts: list[str] = []
    seen: set[int] = set()
    current = row_index
    while True:
        if current in seen:
            raise ValueError(f"nested type cycle at TypeDef#{row_index}")
        if current < 1 or current > len(type_rows):
            raise ValueError(f"TypeDef#{current} is out of range")
        seen.add(current)
        row = type_rows[current - 1]
        enclosing = nesting.get(current)
        if enclosing is None:
            namespace = _text(row.TypeNamespace)
            name = _text(row.TypeName)
            parts.append(f"{namespace}.{name}" if namespace else name)
            break
        parts.append(_text(row.TypeName))
        current = enclosing
    return "+".join(reversed(parts))


def cmdlet_command_name(blob: bytes) -> str:
    verb, noun = decode_cmdlet_attribute(blob)
    return f"{verb}-{noun}"


def cmdlet_type_index(attribute_row: Any) -> int | None:
    """TypeDef row index the attribute marks as a cmdlet, or None."""
    if _coded_table_name(attribute_row.Parent) != "TypeDef":
        return None
    namespace, name = attribute_type_name(attribute_row)
    if name != CMDLET_ATTRIBUTE_NAME:
        return None
    if namespace not in ("", CMDLET_ATTRIBUTE_NAMESPACE):
        return None
    return int(attribute_row.Parent.row_index)


@dataclass(frozen=True)
class AttributeCandidate:
    row_index: int
    row: Any = field(compare=False, repr=False)

    def __str__(self) -> str:
        return f"CustomAttribute#{self.row_index}"


def iter_attribute_candidates(mdtables: Any) -> Iterator[AttributeCandidate]:
    for row_index, row in enumerate(_table_rows(mdtables, "CustomAttribute"), start=1):
        yield AttributeCandidate(row_index=row_index, row=row)


class MetadataImage:
    """Cmdlet view over already-parsed metadata tables.

    Every CustomAttribute row is a candidate. ``describe`` decides whether the
    row marks a cmdlet, so a malformed row fails on its own.
    """

    def __init__(self, mdtables: Any):
        self._mdtables = mdtables
        self._type_rows = _table_rows(mdtables, "TypeDef")
        self._nesting = _nesting_map(mdtables)
        self._described: set[int] = set()

    def candidate_types(self) -> Iterator[AttributeCandidate]:
        return iter_attribute_candidates(self._mdtables)

    def describe(self, candidate: AttributeCandidate) -> CommandMetadata | None:
        type_row_index = cmdlet_type_index(candidate.row)
        if type_row_index is None or type_row_index in self._described:
            return None
        metadata = CommandMetadata(
            command_name=cmdlet_command_name(_blob(candidate.row.Value)),
            implementing_type_name=type_full_name(
                self._type_rows, self._nesting, type_row_index
            ),
        )
        self._described.add(type_row_index)
        return metadata


class AssemblyInspector:
    """Open a .NET assembly with dnfile for the duration of a ``with`` block."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._pe: dnfile.dnPE | None = None
        self._image: MetadataImage | None = None

    def __enter__(self) -> MetadataImage:
        pe = dnfile.dnPE(str(self.path))
        net = pe.net
        if net is None or net.mdtables is None:
            pe.close()
            raise ValueError(f"{self.path.name} is not a .NET assembly")
        self._pe = pe
        self._image = MetadataImage(net.mdtables)
        return self._image

    def __exit__(self, *exc_info: object) -> None:
        pe, self._pe = self._pe, None
        self._image = None
        if pe is not None:
            pe.close()
