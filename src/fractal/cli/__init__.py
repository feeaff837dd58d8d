"""Command line interface."""

from .exceptions import CliError, CommandError
from .main import build_parser, main

__all__ = ["CliError", "CommandError", "build_parser", "main"]
