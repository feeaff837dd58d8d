"""Failure records produced by batch operations."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field

from .base import SchemaBase, Severity


class FailureStage(str, Enum):
    RESOLVE = "resolve"
    TRANSFORM = "transform"
    BUNDLE = "bundle"
    MANIFEST = "manifest"
    PUBLISH = "publish"
    UNKNOWN = "unknown"


class BuildFailure(SchemaBase):
    """One candidate that did not produce an artifact."""

    file_path: str
    stage: FailureStage
    message: str
    severity: Severity = Field(default=Severity.ERROR)
    details: Optional[Dict[str, Any]] = Field(default=None)
