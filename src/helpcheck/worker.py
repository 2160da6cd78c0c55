"""Worker entry point: inspect one module binary and exit.

Run as ``python -m helpcheck.worker --inspector MODULE:ATTR BINARY``. The
worker prints a single ``LoadResponseDTO`` JSON line on stdout. Everything the
binary pulls into this process goes away when the process exits.
"""

from __future__ import annotations

import argparse
from contextlib import redirect_stdout
import importlib
from pathlib import Path
import sys
from typing import Any, Callable

from helpcheck.config import DEFAULT_INSPECTOR
from helpcheck.schema import CommandMetadataDTO, LoadResponseDTO, SkippedTypeDTO

EXIT_OK = 0
EXIT_LOAD_FAILED = 2


def resolve_inspector(reference: str) -> Callable[[Path], Any]:
    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"inspector must be 'module:attribute': {reference!r}")
    module = importlib.import_module(module_name)
    factory = getattr(module, attribute)
    if not callable(factory):
        raise TypeError(f"inspector {reference!r} is not callable")
    return factory


def _describe_error(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


def inspect_binary(path: Path, inspector: str = DEFAULT_INSPECTOR) -> LoadResponseDTO:
    commands: list[CommandMetadataDTO] = []
    skipped: list[SkippedTypeDTO] = []
    try:
        factory = resolve_inspector(inspector)
        with factory(path) as image:
            for candidate in image.candidate_types():
                try:
                    metadata = image.describe(candidate)
                except Exception as exc:
                    skipped.append(
                        SkippedTypeDTO(type_name=str(candidate), error=_describe_error(exc))
                    )
                    continue
                if metadata is None:
                    continue
                commands.append(
                    CommandMetadataDTO(
                        command_name=metadata.command_name,
                        implementing_type_name=metadata.implementing_type_name,
                    )
                )
    except Exception as exc:
        return LoadResponseDTO(ok=False, error=_describe_error(exc))
    return LoadResponseDTO(ok=True, commands=commands, skipped_types=skipped)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="helpcheck.worker")
    parser.add_argument("--inspector", default=DEFAULT_INSPECTOR)
    parser.add_argument("binary", type=Path)
    args = parser.parse_args(argv)
    out = sys.stdout
    # Inspectors may print; keep stdout reserved for the response line.
    with redirect_stdout(sys.stderr):
        response = inspect_binary(args.binary, args.inspector)
    out.write(response.model_dump_json() + "\n")
    out.flush()
    return EXIT_OK if response.ok else EXIT_LOAD_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
