from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


@dataclass(frozen=True)
class CommandMetadata:
    command_name: str
    implementing_type_name: str


@dataclass(frozen=True)
class IssueRecord:
    target: str
    severity: int
    description: str
    remediation: str
    help_file: str = ""
    assembly: str = ""

    def to_row(self) -> dict[str, object]:
        return {
            "Target": self.target,
            "Severity": self.severity,
            "Description": self.description,
            "Remediation": self.remediation,
            "HelpFile": self.help_file,
            "Assembly": self.assembly,
        }


REPORT_COLUMNS: tuple[str, ...] = (
    "Target",
    "Severity",
    "Description",
    "Remediation",
    "HelpFile",
    "Assembly",
)


class PairState(str, Enum):
    DISCOVERED = "discovered"
    PAIRED = "paired"
    LOADED = "loaded"
    RECONCILED = "reconciled"
    REPORTED = "reported"
    SKIPPED = "skipped"
    FAILED = "failed"


class SkipReason(str, Enum):
    SCOPE_NOT_FOUND = "scope_not_found"
    PAIR_INCOMPLETE = "pair_incomplete"
    ALREADY_PROCESSED = "already_processed"


class DiagnosticKind(str, Enum):
    LOAD_ERROR = "load_error"
    PARSE_ERROR = "parse_error"
    SCOPE_ERROR = "scope_error"


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    path: Path
    detail: str


@dataclass(frozen=True)
class PairOutcome:
    help_path: Path
    binary_path: Path
    state: PairState
    reason: SkipReason | DiagnosticKind | None = None
    issue_count: int = 0
    # States passed through, ending with ``state``.
    trail: tuple[PairState, ...] = ()


@dataclass(frozen=True)
class ScopeSkip:
    path: Path
    reason: SkipReason = SkipReason.SCOPE_NOT_FOUND


@dataclass
class AnalysisResult:
    issues: list[IssueRecord] = field(default_factory=list)
    pairs: list[PairOutcome] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    skipped_scopes: list[ScopeSkip] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return sum(1 for pair in self.pairs if pair.state is PairState.FAILED)

    @property
    def reported_count(self) -> int:
        return sum(1 for pair in self.pairs if pair.state is PairState.REPORTED)
