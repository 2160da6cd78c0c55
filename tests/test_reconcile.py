from __future__ import annotations

from helpcheck.models import CommandMetadata, IssueRecord
from helpcheck.reconcile import HELP_MISSING_SEVERITY, reconcile

GET_FOO = CommandMetadata("Get-Foo", "Contoso.GetFooCommand")
SET_FOO = CommandMetadata("Set-Foo", "Contoso.SetFooCommand")


def test_reconcile_reports_undocumented_command() -> None:
    issues = reconcile([GET_FOO, SET_FOO], frozenset({"Get-Foo"}))
    assert issues == [
        IssueRecord(
            target="Contoso.SetFooCommand",
            severity=HELP_MISSING_SEVERITY,
            description="Help missing for cmdlet Set-Foo implemented by class Contoso.SetFooCommand",
            remediation="Add Help record for cmdlet Set-Foo to help file.",
        )
    ]


def test_reconcile_compares_names_case_insensitively() -> None:
    assert reconcile([GET_FOO], frozenset({"get-foo"})) == []
    assert reconcile([GET_FOO], frozenset({"GET-FOO"})) == []


def test_reconcile_preserves_command_order_and_context_fields() -> None:
    extra = CommandMetadata("Remove-Foo", "Contoso.RemoveFooCommand")
    issues = reconcile(
        [SET_FOO, GET_FOO, extra],
        frozenset(),
        help_file="Foo.dll-Help.xml",
        assembly="Foo.dll",
    )
    assert [issue.target for issue in issues] == [
        "Contoso.SetFooCommand",
        "Contoso.GetFooCommand",
        "Contoso.RemoveFooCommand",
    ]
    assert {issue.help_file for issue in issues} == {"Foo.dll-Help.xml"}
    assert {issue.assembly for issue in issues} == {"Foo.dll"}


def test_reconcile_no_commands() -> None:
    assert reconcile([], frozenset({"Get-Foo"})) == []
