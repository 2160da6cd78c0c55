from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

from helpcheck.exceptions import ConfigError
from helpcheck.runtime import env_policy

DEFAULT_CONFIG_NAME = "helpcheck.toml"
DEFAULT_HELP_SUFFIX = ".dll-Help.xml"
DEFAULT_INSPECTOR = "helpcheck.assembly:AssemblyInspector"
DEFAULT_LOAD_TIMEOUT_SECONDS = 120.0
DEFAULT_OUTPUT_DIR = Path("artifacts/helpcheck")
REPORT_FORMATS = ("csv", "json")

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def _section(data: TomlTable, name: str) -> TomlTable:
    section = data.get(name, {})
    return section if isinstance(section, dict) else {}


def scan_defaults(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    return _section(load_config(root=root, config_path=config_path), "scan")


def loader_defaults(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    return _section(load_config(root=root, config_path=config_path), "loader")


def report_defaults(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    return _section(load_config(root=root, config_path=config_path), "report")


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged


@dataclass(frozen=True)
class HelpCheckSettings:
    help_suffix: str = DEFAULT_HELP_SUFFIX
    jobs: int = 1
    timeout_seconds: float = DEFAULT_LOAD_TIMEOUT_SECONDS
    inspector: str = DEFAULT_INSPECTOR
    output_dir: Path = DEFAULT_OUTPUT_DIR
    report_format: str = "csv"


def _timeout_seconds(value: TomlValue) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"invalid loader timeout: {value!r}")
    if isinstance(value, (int, float)):
        if value <= 0:
            raise ConfigError(f"invalid loader timeout: {value!r}")
        return float(value)
    if isinstance(value, str):
        return env_policy.parse_duration_to_seconds(value, field_name="loader timeout")
    raise ConfigError(f"invalid loader timeout: {value!r}")


def _jobs(value: TomlValue) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"invalid jobs: {value!r}")
    if isinstance(value, int):
        if value <= 0:
            raise ConfigError(f"invalid jobs: {value!r}")
        return value
    if isinstance(value, str):
        return env_policy.parse_positive_int_text(value, field="jobs")
    raise ConfigError(f"invalid jobs: {value!r}")


def resolve_settings(
    *,
    root: Path | None = None,
    config_path: Path | None = None,
    overrides: TomlTable | None = None,
) -> HelpCheckSettings:
    """Combine helpcheck.toml, environment and explicit overrides.

    Precedence, lowest first: built-in defaults, the config file, environment
    variables, then explicit values that are not None.
    """
    merged: TomlTable = {}
    merged.update(scan_defaults(root=root, config_path=config_path))
    merged.update(loader_defaults(root=root, config_path=config_path))
    merged.update(report_defaults(root=root, config_path=config_path))
    env_timeout = env_policy.env_text(env_policy.LOAD_TIMEOUT_ENV)
    env_inspector = env_policy.inspector_from_env()
    merged = merge_payload(
        {"timeout": env_timeout or None, "inspector": env_inspector},
        merged,
    )
    merged = merge_payload(dict(overrides or {}), merged)

    help_suffix = str(merged.get("help_suffix", DEFAULT_HELP_SUFFIX))
    if not help_suffix.endswith("-Help.xml"):
        raise ConfigError(f"help_suffix must end with '-Help.xml': {help_suffix!r}")
    report_format = str(merged.get("format", "csv")).strip().lower()
    if report_format not in REPORT_FORMATS:
        raise ConfigError(f"invalid report format: {report_format!r}")
    inspector = str(merged.get("inspector", DEFAULT_INSPECTOR)).strip()
    if ":" not in inspector:
        raise ConfigError(f"inspector must be 'module:attribute': {inspector!r}")
    output_dir = merged.get("output_dir", DEFAULT_OUTPUT_DIR)
    return HelpCheckSettings(
        help_suffix=help_suffix,
        jobs=_jobs(merged.get("jobs", 1)),
        timeout_seconds=_timeout_seconds(merged.get("timeout", DEFAULT_LOAD_TIMEOUT_SECONDS)),
        inspector=inspector,
        output_dir=Path(str(output_dir)),
        report_format=report_format,
    )
