"""SimpleNamespace stand-ins for the dnfile metadata tables the inspector reads."""

from __future__ import annotations

from types import SimpleNamespace


def ser_string(text: str) -> bytes:
    data = text.encode("utf-8")
    assert len(data) < 0x80
    return bytes([len(data)]) + data


def cmdlet_blob(verb: str, noun: str, *, named: bytes = b"\x00\x00") -> bytes:
    return b"\x01\x00" + ser_string(verb) + ser_string(noun) + named


def coded_index(table: str, row_index: int = 1, row: object = None) -> SimpleNamespace:
    return SimpleNamespace(table=SimpleNamespace(name=table), row_index=row_index, row=row)


class UnresolvableIndex:
    """Coded index whose row lookup fails the way a corrupt table does."""

    table = SimpleNamespace(name="MemberRef")
    row_index = 0x7FFF

    @property
    def row(self) -> object:
        raise IndexError("list index out of range")


def typedef(name: str, namespace: str = "") -> SimpleNamespace:
    return SimpleNamespace(TypeName=name, TypeNamespace=namespace)


def attribute(
    parent_index: int,
    blob: bytes,
    *,
    name: str = "CmdletAttribute",
    namespace: str = "System.Management.Automation",
    parent_table: str = "TypeDef",
    ctor: object = None,
) -> SimpleNamespace:
    if ctor is None:
        attribute_type = SimpleNamespace(TypeName=name, TypeNamespace=namespace)
        member = SimpleNamespace(Class=coded_index("TypeRef", row=attribute_type))
        ctor = coded_index("MemberRef", row=member)
    return SimpleNamespace(
        Parent=coded_index(parent_table, parent_index),
        Type=ctor,
        Value=SimpleNamespace(value=blob),
    )


def metadata_tables(
    types: list[SimpleNamespace],
    attributes: list[SimpleNamespace],
    nested: list[tuple[int, int]] | None = None,
) -> SimpleNamespace:
    nested_rows = [
        SimpleNamespace(
            NestedClass=SimpleNamespace(row_index=inner),
            EnclosingClass=SimpleNamespace(row_index=outer),
        )
        for inner, outer in (nested or [])
    ]
    return SimpleNamespace(
        TypeDef=SimpleNamespace(rows=types),
        CustomAttribute=SimpleNamespace(rows=attributes),
        NestedClass=SimpleNamespace(rows=nested_rows),
    )
