"""Exception types raised across helpcheck."""

from __future__ import annotations

from pathlib import Path


class HelpCheckError(RuntimeError):
    pass


class LoadError(HelpCheckError):
    """A module binary could not be loaded or inspected in its worker."""

    def __init__(self, binary_path: Path, detail: str):
        super().__init__(f"cannot load {binary_path}: {detail}")
        self.binary_path = binary_path
        self.detail = detail


class ParseError(HelpCheckError):
    """A help document is unreadable or is not well-formed."""

    def __init__(self, help_path: Path, detail: str):
        super().__init__(f"cannot parse {help_path}: {detail}")
        self.help_path = help_path
        self.detail = detail


class ConfigError(HelpCheckError):
    pass


class NeverThrown(HelpCheckError):
    """Raised by ``never()`` when a path that must be unreachable is reached."""

    def __init__(self, message: str, *, env: dict[str, object] | None = None):
        super().__init__(message)
        self.env = dict(env or {})
