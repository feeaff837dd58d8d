"""
CLI exception hierarchy.

Structured exceptions for command errors, serialisable for ``--json`` style
reporting.
"""

from dataclasses import dataclass, asdict
from typing import Optional


@dataclass
class CliError(Exception):
    """Base exception for CLI errors."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class CommandError(CliError):
    """Exception for command execution errors."""

    command_name: str = ""
    arguments: Optional[str] = None

    def __str__(self) -> str:
        """Return human-readable error message with command context."""
        msg = f"Command '{self.command_name}' error: {self.message}"
        if self.arguments:
            msg += f" (args: {self.arguments})"
        return msg
