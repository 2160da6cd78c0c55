from __future__ import annotations

import csv
import json
from pathlib import Path
import re

from typer.testing import CliRunner

from helpcheck import cli
from helpcheck.models import AnalysisResult, PairOutcome, PairState
from tests.module_helpers import MANIFEST_INSPECTOR, cmdlet, write_manifest_binary, write_module

_ANSI_ESCAPE = re.compile(r"\x1B\[[0-9;]*m")


def _normalize_output(text: str) -> str:
    return " ".join(_ANSI_ESCAPE.sub("", text).split())


def _populate(root: Path) -> None:
    write_module(
        root / "Foo",
        "Foo",
        commands=[("Get-Foo", "Contoso.GetFooCommand"), ("Set-Foo", "Contoso.SetFooCommand")],
        documented=["Get-Foo"],
    )
    write_module(root / "Bar", "Bar", commands=[], documented=[], fail="not a module")


def test_analyze_writes_csv_report(tmp_path: Path) -> None:
    _populate(tmp_path / "modules")
    report_dir = tmp_path / "reports"
    result = CliRunner().invoke(
        cli.app,
        [
            "analyze",
            str(tmp_path / "modules"),
            str(tmp_path / "missing"),
            "--root",
            str(tmp_path),
            "--report-dir",
            str(report_dir),
            "--inspector",
            MANIFEST_INSPECTOR,
        ],
    )
    assert result.exit_code == 0, result.output
    assert "helpcheck: 1 issue(s) across 1 pair(s); 1 failure(s)" in result.output
    with (report_dir / "HelpIssues.csv").open(encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert [(row["Target"], row["HelpFile"], row["Assembly"]) for row in rows] == [
        ("Contoso.SetFooCommand", "Foo.dll-Help.xml", "Foo.dll")
    ]


def test_analyze_json_format_and_fail_on_issues(tmp_path: Path) -> None:
    _populate(tmp_path / "modules")
    report_dir = tmp_path / "reports"
    result = CliRunner().invoke(
        cli.app,
        [
            "analyze",
            str(tmp_path / "modules"),
            "--root",
            str(tmp_path),
            "--report-dir",
            str(report_dir),
            "--format",
            "json",
            "--jobs",
            "2",
            "--inspector",
            MANIFEST_INSPECTOR,
            "--fail-on-issues",
        ],
    )
    assert result.exit_code == 1
    rows = json.loads((report_dir / "HelpIssues.json").read_text(encoding="utf-8"))
    assert [row["Target"] for row in rows] == ["Contoso.SetFooCommand"]


def test_analyze_reads_settings_from_config(tmp_path: Path) -> None:
    _populate(tmp_path / "modules")
    config = tmp_path / "helpcheck.toml"
    config.write_text(
        f'[loader]\ninspector = "{MANIFEST_INSPECTOR}"\n\n'
        f'[report]\noutput_dir = "{(tmp_path / "cfg-reports").as_posix()}"\nformat = "json"\n',
        encoding="utf-8",
    )
    result = CliRunner().invoke(
        cli.app, ["analyze", str(tmp_path / "modules"), "--config", str(config)]
    )
    assert result.exit_code == 0, result.output
    assert (tmp_path / "cfg-reports" / "HelpIssues.json").exists()


def test_analyze_rejects_bad_settings(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        cli.app,
        ["analyze", str(tmp_path), "--root", str(tmp_path), "--timeout", "soon"],
    )
    assert result.exit_code == 2
    assert "invalid loader timeout duration" in _normalize_output(result.output)


def test_inspect_lists_commands(tmp_path: Path) -> None:
    binary = write_manifest_binary(
        tmp_path / "Foo.dll", [cmdlet("Get-Foo", "Contoso.GetFooCommand")]
    )
    result = CliRunner().invoke(
        cli.app,
        ["inspect", str(binary), "--root", str(tmp_path), "--inspector", MANIFEST_INSPECTOR],
    )
    assert result.exit_code == 0, result.output
    assert "Get-Foo\tContoso.GetFooCommand" in result.output


def test_inspect_reports_load_error(tmp_path: Path) -> None:
    binary = write_manifest_binary(tmp_path / "Foo.dll", [], fail="corrupt")
    result = CliRunner().invoke(
        cli.app,
        ["inspect", str(binary), "--root", str(tmp_path), "--inspector", MANIFEST_INSPECTOR],
    )
    assert result.exit_code == 1


def test_summary_line_counts_pairs() -> None:
    result = AnalysisResult(
        pairs=[
            PairOutcome(Path("a"), Path("b"), PairState.REPORTED),
            PairOutcome(Path("c"), Path("d"), PairState.FAILED),
            PairOutcome(Path("e"), Path("f"), PairState.SKIPPED),
        ]
    )
    assert cli.summary_line(result) == "helpcheck: 0 issue(s) across 1 pair(s); 1 failure(s)"
