"""Report sinks that persist issue records."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import IO, Protocol

from helpcheck.invariants import never
from helpcheck.models import REPORT_COLUMNS, IssueRecord

REPORT_BASENAME = "HelpIssues"


class ReportSink(Protocol):
    def log_record(self, record: IssueRecord) -> None: ...

    def close(self) -> None: ...


class _SinkContext:
    def __enter__(self):
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        return None


class MemoryReportSink(_SinkContext):
    def __init__(self) -> None:
        self.records: list[IssueRecord] = []

    def log_record(self, record: IssueRecord) -> None:
        self.records.append(record)


class CsvReportSink(_SinkContext):
    """Write records as CSV rows; the header is written when the file opens."""

    def __init__(self, path: Path):
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handle: IO[str] | None = self.path.open("w", encoding="utf-8", newline="")
        self._writer = csv.DictWriter(self._handle, fieldnames=list(REPORT_COLUMNS))
        self._writer.writeheader()

    def log_record(self, record: IssueRecord) -> None:
        if self._handle is None:
            raise ValueError(f"report sink for {self.path} is closed")
        self._writer.writerow(record.to_row())
        self._handle.flush()

    def close(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()


class JsonReportSink(_SinkContext):
    """Collect records and write them as one JSON array on close."""

    def __init__(self, path: Path):
        self.path = path
        self._rows: list[dict[str, object]] = []
        self._closed = False

    def log_record(self, record: IssueRecord) -> None:
        if self._closed:
            raise ValueError(f"report sink for {self.path} is closed")
        self._rows.append(record.to_row())

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._rows, indent=2) + "\n", encoding="utf-8")


def report_path(output_dir: Path, report_format: str) -> Path:
    return output_dir / f"{REPORT_BASENAME}.{report_format}"


def open_report_sink(output_dir: Path, report_format: str) -> CsvReportSink | JsonReportSink:
    path = report_path(output_dir, report_format)
    if report_format == "csv":
        return CsvReportSink(path)
    if report_format == "json":
        return JsonReportSink(path)
    never("unsupported report format", report_format=report_format)
