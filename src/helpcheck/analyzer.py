"""Scan module folders and report cmdlets that have no help topic.

Each root directory holds one folder per module. Inside a module folder,
``<Name>.dll-Help.xml`` documents the cmdlets of ``<Name>.dll``. A help file
name is analyzed once per run even when it shows up under several roots.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
import logging
from pathlib import Path
from typing import Callable, Iterator, Sequence

from helpcheck.config import HelpCheckSettings
from helpcheck.exceptions import LoadError, ParseError
from helpcheck.help_parser import parse_help_topics
from helpcheck.invariants import require_not_none
from helpcheck.loader import LoaderSettings, load_commands
from helpcheck.models import (
    AnalysisResult,
    CommandMetadata,
    Diagnostic,
    DiagnosticKind,
    IssueRecord,
    PairOutcome,
    PairState,
    ScopeSkip,
    SkipReason,
)
from helpcheck.reconcile import reconcile
from helpcheck.report import ReportSink

logger = logging.getLogger(__name__)

HELP_FILE_TAIL = "-Help.xml"

LoadFn = Callable[[Path], list[CommandMetadata]]
ParseFn = Callable[[Path], frozenset[str]]

_SKIPPED_TRAIL = (PairState.DISCOVERED, PairState.SKIPPED)
_FAILED_TRAIL = (PairState.DISCOVERED, PairState.PAIRED, PairState.FAILED)
_REPORTED_TRAIL = (
    PairState.DISCOVERED,
    PairState.PAIRED,
    PairState.LOADED,
    PairState.RECONCILED,
    PairState.REPORTED,
)


@dataclass(frozen=True)
class ModulePair:
    help_path: Path
    binary_path: Path
    skip_reason: SkipReason | None = None


@dataclass(frozen=True)
class _PairInputs:
    commands: list[CommandMetadata]
    documented: frozenset[str]


def binary_path_for(help_path: Path) -> Path:
    return help_path.with_name(help_path.name[: -len(HELP_FILE_TAIL)])


class HelpAnalyzer:
    name = "Help Analyzer"

    def __init__(
        self,
        sink: ReportSink,
        *,
        settings: HelpCheckSettings | None = None,
        load_fn: LoadFn | None = None,
        parse_fn: ParseFn = parse_help_topics,
    ):
        self.sink = sink
        self.settings = settings or HelpCheckSettings()
        if load_fn is None:
            load_fn = partial(
                load_commands,
                settings=LoaderSettings(
                    timeout_seconds=self.settings.timeout_seconds,
                    inspector=self.settings.inspector,
                ),
            )
        self.load_fn = load_fn
        self.parse_fn = parse_fn

    def _help_files(self, directory: Path) -> list[Path]:
        suffix = self.settings.help_suffix
        return sorted(
            child
            for child in directory.iterdir()
            if child.name.endswith(suffix) and child.is_file()
        )

    def _module_folders(self, root: Path, result: AnalysisResult) -> list[Path]:
        try:
            return sorted(child for child in root.iterdir() if child.is_dir())
        except OSError as exc:
            self._diagnose(result, DiagnosticKind.SCOPE_ERROR, root, str(exc))
            return []

    def discover_pairs(
        self, root_directories: Sequence[Path], result: AnalysisResult
    ) -> Iterator[ModulePair]:
        """Yield candidate pairs in discovery order.

        The processed-name set is updated as pairs are yielded, so consumers
        see each help file name at most once as a non-skipped pair.
        """
        processed: set[str] = set()
        for scope in root_directories:
            root = Path(scope).absolute()
            if not root.is_dir():
                logger.debug("scope %s does not exist; skipping", root)
                result.skipped_scopes.append(ScopeSkip(root, SkipReason.SCOPE_NOT_FOUND))
                continue
            for folder in self._module_folders(root, result):
                try:
                    help_files = self._help_files(folder)
                except OSError as exc:
                    self._diagnose(result, DiagnosticKind.SCOPE_ERROR, folder, str(exc))
                    continue
                for help_path in help_files:
                    binary_path = binary_path_for(help_path)
                    key = help_path.name.casefold()
                    if key in processed:
                        yield ModulePair(help_path, binary_path, SkipReason.ALREADY_PROCESSED)
                        continue
                    if not binary_path.is_file():
                        yield ModulePair(help_path, binary_path, SkipReason.PAIR_INCOMPLETE)
                        continue
                    processed.add(key)
                    yield ModulePair(help_path, binary_path)

    def _load_and_parse(self, pair: ModulePair) -> _PairInputs:
        commands = self.load_fn(pair.binary_path)
        documented = self.parse_fn(pair.help_path)
        return _PairInputs(commands=commands, documented=documented)

    def _diagnose(
        self,
        result: AnalysisResult,
        kind: DiagnosticKind,
        path: Path,
        detail: str,
    ) -> None:
        logger.warning("%s: %s: %s", kind.value, path, detail)
        result.diagnostics.append(Diagnostic(kind=kind, path=path, detail=detail))

    def _finish_pair(
        self,
        pair: ModulePair,
        inputs: Callable[[], _PairInputs],
        result: AnalysisResult,
    ) -> None:
        try:
            loaded = inputs()
        except LoadError as exc:
            self._record_failure(pair, DiagnosticKind.LOAD_ERROR, pair.binary_path, exc.detail, result)
            return
        except ParseError as exc:
            self._record_failure(pair, DiagnosticKind.PARSE_ERROR, pair.help_path, exc.detail, result)
            return
        issues: list[IssueRecord] = reconcile(
            loaded.commands,
            loaded.documented,
            help_file=pair.help_path.name,
            assembly=pair.binary_path.name,
        )
        for issue in issues:
            self.sink.log_record(issue)
        result.issues.extend(issues)
        result.pairs.append(
            PairOutcome(
                pair.help_path,
                pair.binary_path,
                PairState.REPORTED,
                issue_count=len(issues),
                trail=_REPORTED_TRAIL,
            )
        )

    def _record_failure(
        self,
        pair: ModulePair,
        kind: DiagnosticKind,
        path: Path,
        detail: str,
        result: AnalysisResult,
    ) -> None:
        self._diagnose(result, kind, path, detail)
        result.pairs.append(
            PairOutcome(pair.help_path, pair.binary_path, PairState.FAILED, kind, trail=_FAILED_TRAIL)
        )

    def _record_skip(self, pair: ModulePair, result: AnalysisResult) -> None:
        reason = require_not_none(
            pair.skip_reason, reason="skipped pair without reason", help_path=str(pair.help_path)
        )
        logger.debug("skipping %s: %s", pair.help_path, reason.value)
        result.pairs.append(
            PairOutcome(pair.help_path, pair.binary_path, PairState.SKIPPED, reason, trail=_SKIPPED_TRAIL)
        )

    def analyze(self, root_directories: Sequence[Path]) -> AnalysisResult:
        result = AnalysisResult()
        pairs = self.discover_pairs(root_directories, result)
        if self.settings.jobs <= 1:
            for pair in pairs:
                if pair.skip_reason is not None:
                    self._record_skip(pair, result)
                    continue
                self._finish_pair(pair, lambda pair=pair: self._load_and_parse(pair), result)
            return result

        planned = list(pairs)
        with ThreadPoolExecutor(max_workers=self.settings.jobs) as executor:
            futures: dict[int, Future[_PairInputs]] = {
                index: executor.submit(self._load_and_parse, pair)
                for index, pair in enumerate(planned)
                if pair.skip_reason is None
            }
            for index, pair in enumerate(planned):
                if pair.skip_reason is not None:
                    self._record_skip(pair, result)
                    continue
                self._finish_pair(pair, futures[index].result, result)
        return result
