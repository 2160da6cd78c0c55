"""helpcheck package root."""

from helpcheck.exceptions import HelpCheckError, LoadError, ParseError
from helpcheck.models import CommandMetadata, IssueRecord

__all__ = [
    "__version__",
    "CommandMetadata",
    "HelpCheckError",
    "IssueRecord",
    "LoadError",
    "ParseError",
]

__version__ = "0.1.0"
