"""Exception hierarchy for the fractal pipeline.

Batch drivers (the builder, the publisher) catch these per item and record
them; single-item callers see them raised.
"""

from __future__ import annotations

from typing import Optional


class FractalError(Exception):
    """Base class for all fractal pipeline errors."""


class ConfigLoadError(FractalError):
    """Raised when a configuration or manifest file cannot be loaded."""

    def __init__(self, file_name: str, message: str):
        self.file_name = file_name
        self.message = message
        super().__init__(f"Failed to load {file_name}: {message}")


class TransformError(FractalError):
    """Raised when a component source cannot be parsed or rewritten."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        self.file_path = file_path
        self.message = message
        prefix = f"{file_path}: " if file_path else ""
        super().__init__(f"{prefix}{message}")


class CompileError(FractalError):
    """Raised by the registry-side compile step."""


class MissingDirectiveError(CompileError):
    """Raised when a published source does not start with the directive."""

    def __init__(self, fractal_id: str):
        self.fractal_id = fractal_id
        super().__init__(f"Missing fractal directive in source for '{fractal_id}'")


class BundleError(FractalError):
    """Raised when the external bundler fails for one entry."""

    def __init__(self, message: str, stderr: str = ""):
        self.stderr = stderr
        super().__init__(message if not stderr else f"{message}: {stderr.strip()}")


class PublishError(FractalError):
    """Raised when the registry rejects or cannot receive an upload."""


class StorageError(FractalError):
    """Raised when a registry record cannot be persisted."""


class InvalidFractalIdError(StorageError):
    """Raised when an id cannot be mapped to a storage file safely."""

    def __init__(self, fractal_id: str, reason: str):
        self.fractal_id = fractal_id
        super().__init__(f"Invalid fractal id '{fractal_id}': {reason}")


class InvalidManifestError(StorageError):
    """Raised when a published manifest does not validate."""


class ExecutionError(FractalError):
    """Raised when fetched artifact code cannot be evaluated or rendered."""
