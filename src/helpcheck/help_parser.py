"""Extract documented command names from MAML help documents.

A binary PowerShell module ships ``<Name>.dll-Help.xml`` next to
``<Name>.dll``. Each ``command:command`` topic in that document names one
cmdlet under ``command:details/command:name``.
"""

from __future__ import annotations

from pathlib import Path
from xml.etree import ElementTree

from helpcheck.exceptions import ParseError

MAML_COMMAND_NS = "http://schemas.microsoft.com/maml/dev/command/2004/10"


def _local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _namespace(tag: object) -> str:
    if isinstance(tag, str) and tag.startswith("{"):
        return tag[1:].split("}", 1)[0]
    return ""


def _is_command_element(element: ElementTree.Element, local: str) -> bool:
    if _local_name(element.tag) != local:
        return False
    namespace = _namespace(element.tag)
    return namespace in ("", MAML_COMMAND_NS)


def _child(element: ElementTree.Element, local: str) -> ElementTree.Element | None:
    for child in element:
        if _is_command_element(child, local):
            return child
    return None


def _topic_name(topic: ElementTree.Element) -> str:
    details = _child(topic, "details")
    if details is None:
        return ""
    name = _child(details, "name")
    if name is None:
        return ""
    return "".join(name.itertext()).strip()


def help_topic_names(root: ElementTree.Element) -> list[str]:
    names: list[str] = []
    for element in root.iter():
        if not _is_command_element(element, "command"):
            continue
        name = _topic_name(element)
        if name:
            names.append(name)
    return names


def parse_help_topics(path: Path) -> frozenset[str]:
    """Return the set of command names documented in ``path``.

    Duplicate topics collapse silently. Raises ParseError when the file cannot
    be read, is not well-formed XML, or declares an encoding expat cannot
    decode.
    """
    try:
        tree = ElementTree.parse(path)
    except ElementTree.ParseError as exc:
        raise ParseError(path, str(exc)) from exc
    except OSError as exc:
        raise ParseError(path, exc.strerror or str(exc)) from exc
    # Unknown encodings raise LookupError; multi-byte ones raise ValueError.
    except (LookupError, ValueError) as exc:
        raise ParseError(path, f"unsupported encoding: {exc}") from exc
    return frozenset(help_topic_names(tree.getroot()))
