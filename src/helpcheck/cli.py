from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional
import sys

import typer

from helpcheck.analyzer import HelpAnalyzer
from helpcheck.config import HelpCheckSettings, resolve_settings
from helpcheck.exceptions import ConfigError, LoadError
from helpcheck.loader import LoaderSettings, load_commands
from helpcheck.models import AnalysisResult
from helpcheck.report import open_report_sink, report_path

app = typer.Typer(add_completion=False)

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=_LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )


def _settings_or_exit(
    *,
    root: Path,
    config: Optional[Path],
    overrides: dict[str, object],
) -> HelpCheckSettings:
    try:
        return resolve_settings(root=root, config_path=config, overrides=overrides)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc


def summary_line(result: AnalysisResult) -> str:
    return (
        f"helpcheck: {len(result.issues)} issue(s) across "
        f"{result.reported_count} pair(s); {result.failure_count} failure(s)"
    )


@app.command("analyze")
def analyze(
    roots: List[Path] = typer.Argument(..., help="Directories that contain module folders."),
    report_dir: Optional[Path] = typer.Option(None, "--report-dir"),
    report_format: Optional[str] = typer.Option(None, "--format", help="csv|json"),
    root: Path = typer.Option(Path("."), "--root", help="Where helpcheck.toml is looked up."),
    config: Optional[Path] = typer.Option(None, "--config"),
    timeout: Optional[str] = typer.Option(
        None, "--timeout", help="Per-binary load timeout, e.g. 30s or 2m."
    ),
    jobs: Optional[int] = typer.Option(None, "--jobs", min=1),
    inspector: Optional[str] = typer.Option(None, "--inspector", help="module:attribute"),
    fail_on_issues: bool = typer.Option(False, "--fail-on-issues/--no-fail-on-issues"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Report cmdlets that have no topic in their module's help file."""
    configure_logging(verbose)
    settings = _settings_or_exit(
        root=root,
        config=config,
        overrides={
            "output_dir": str(report_dir) if report_dir is not None else None,
            "format": report_format,
            "timeout": timeout,
            "jobs": jobs,
            "inspector": inspector,
        },
    )
    with open_report_sink(settings.output_dir, settings.report_format) as sink:
        result = HelpAnalyzer(sink, settings=settings).analyze(roots)
    typer.echo(summary_line(result))
    typer.echo(f"Wrote help issues: {report_path(settings.output_dir, settings.report_format)}")
    if fail_on_issues and result.issues:
        raise typer.Exit(code=1)


@app.command("inspect")
def inspect(
    binary: Path = typer.Argument(..., help="Module binary to inspect."),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    timeout: Optional[str] = typer.Option(None, "--timeout"),
    inspector: Optional[str] = typer.Option(None, "--inspector"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """List the cmdlets a binary declares."""
    configure_logging(verbose)
    settings = _settings_or_exit(
        root=root,
        config=config,
        overrides={"timeout": timeout, "inspector": inspector},
    )
    try:
        commands = load_commands(
            binary,
            settings=LoaderSettings(
                timeout_seconds=settings.timeout_seconds,
                inspector=settings.inspector,
            ),
        )
    except LoadError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    for command in commands:
        typer.echo(f"{command.command_name}\t{command.implementing_type_name}")


def main() -> None:
    app()
