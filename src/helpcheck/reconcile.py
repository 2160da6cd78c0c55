from __future__ import annotations

from typing import AbstractSet, Iterable

from helpcheck.models import CommandMetadata, IssueRecord

HELP_MISSING_SEVERITY = 1


def help_missing_record(
    command: CommandMetadata,
    *,
    help_file: str = "",
    assembly: str = "",
) -> IssueRecord:
    return IssueRecord(
        target=command.implementing_type_name,
        severity=HELP_MISSING_SEVERITY,
        description=(
            f"Help missing for cmdlet {command.command_name} "
            f"implemented by class {command.implementing_type_name}"
        ),
        remediation=f"Add Help record for cmdlet {command.command_name} to help file.",
        help_file=help_file,
        assembly=assembly,
    )


def reconcile(
    commands: Iterable[CommandMetadata],
    documented: AbstractSet[str],
    *,
    help_file: str = "",
    assembly: str = "",
) -> list[IssueRecord]:
    """One record per command whose name is not documented, in input order.

    Names are compared case-insensitively.
    """
    known = {name.casefold() for name in documented}
    return [
        help_missing_record(command, help_file=help_file, assembly=assembly)
        for command in commands
        if command.command_name.casefold() not in known
    ]
