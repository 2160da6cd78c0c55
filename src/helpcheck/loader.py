"""Host side of the isolated module loader.

Every binary is inspected by a fresh ``helpcheck.worker`` process started in
the binary's own directory. The host never imports the binary and never
changes its own working directory; the worker is reaped on every exit path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
import subprocess
import sys
import sysconfig
from typing import Callable

from pydantic import ValidationError

from helpcheck.config import DEFAULT_INSPECTOR, DEFAULT_LOAD_TIMEOUT_SECONDS
from helpcheck.exceptions import LoadError
from helpcheck.models import CommandMetadata
from helpcheck.schema import LoadResponseDTO

logger = logging.getLogger(__name__)

WORKER_MODULE = "helpcheck.worker"
_STDERR_TAIL_CHARS = 2000


@dataclass(frozen=True)
class LoaderSettings:
    timeout_seconds: float = DEFAULT_LOAD_TIMEOUT_SECONDS
    inspector: str = DEFAULT_INSPECTOR
    python_executable: str = field(default_factory=lambda: sys.executable)


def _interpreter_dirs() -> tuple[str, ...]:
    paths = sysconfig.get_paths()
    return tuple(
        os.path.normcase(os.path.abspath(paths[key]))
        for key in ("stdlib", "platstdlib", "purelib", "platlib")
        if paths.get(key)
    )


def worker_pythonpath(search_path: list[str] | None = None) -> str:
    """Host import roots the worker needs beyond the interpreter defaults."""
    interpreter_dirs = _interpreter_dirs()
    entries: list[str] = []
    for entry in sys.path if search_path is None else search_path:
        absolute = os.path.abspath(entry or os.getcwd())
        normalized = os.path.normcase(absolute)
        if normalized.endswith(".zip"):
            continue
        if any(
            normalized == base or normalized.startswith(base + os.sep)
            for base in interpreter_dirs
        ):
            continue
        if absolute not in entries:
            entries.append(absolute)
    return os.pathsep.join(entries)


def _worker_env() -> dict[str, str]:
    env = dict(os.environ)
    extra = worker_pythonpath()
    existing = env.get("PYTHONPATH", "")
    env["PYTHONPATH"] = os.pathsep.join(part for part in (extra, existing) if part)
    return env


def worker_command(binary: Path, settings: LoaderSettings) -> list[str]:
    return [
        settings.python_executable,
        "-m",
        WORKER_MODULE,
        "--inspector",
        settings.inspector,
        str(binary),
    ]


def _teardown(proc: subprocess.Popen) -> None:
    if proc.poll() is None:
        proc.kill()
        proc.communicate()


def _stderr_tail(err: bytes) -> str:
    return err.decode("utf-8", errors="replace").strip()[-_STDERR_TAIL_CHARS:]


def _parse_response(binary: Path, out: bytes, err: bytes, returncode: int) -> LoadResponseDTO:
    lines = [line for line in out.decode("utf-8", errors="replace").splitlines() if line.strip()]
    if not lines:
        detail = _stderr_tail(err) or "no output"
        raise LoadError(binary, f"worker exited with code {returncode}: {detail}")
    try:
        return LoadResponseDTO.model_validate_json(lines[-1])
    except ValidationError as exc:
        raise LoadError(binary, f"malformed worker response: {exc}") from exc


def load_commands(
    binary_path: Path,
    *,
    settings: LoaderSettings | None = None,
    process_factory: Callable[..., subprocess.Popen] = subprocess.Popen,
) -> list[CommandMetadata]:
    """Return the cmdlets declared by ``binary_path``.

    Raises LoadError when the worker cannot open the binary, crashes, times
    out or answers with something that is not a load response.
    """
    settings = settings or LoaderSettings()
    binary = Path(binary_path).resolve()
    if not binary.is_file():
        raise LoadError(binary, "binary does not exist")
    proc = process_factory(
        worker_command(binary, settings),
        cwd=str(binary.parent),
        env=_worker_env(),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )
    try:
        out, err = proc.communicate(timeout=settings.timeout_seconds)
    except subprocess.TimeoutExpired:
        raise LoadError(
            binary, f"worker timed out after {settings.timeout_seconds:g}s"
        ) from None
    finally:
        _teardown(proc)

    response = _parse_response(binary, out or b"", err or b"", proc.returncode)
    if not response.ok:
        raise LoadError(binary, response.error or f"worker exited with code {proc.returncode}")
    for skipped in response.skipped_types:
        logger.warning("skipped type %s in %s: %s", skipped.type_name, binary.name, skipped.error)
    return [
        CommandMetadata(
            command_name=item.command_name,
            implementing_type_name=item.implementing_type_name,
        )
        for item in response.commands
    ]
