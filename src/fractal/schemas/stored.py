"""Registry storage record."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, Field

from .base import SchemaBase
from .manifest import FractalManifest


class StoredFractal(SchemaBase):
    """Unit of registry storage; replaced wholesale by a later publish."""

    id: str
    source: str
    compiled_code: str = Field(
        validation_alias=AliasChoices("compiledCode", "compiled", "compiled_code"),
        serialization_alias="compiledCode",
    )
    styles: Optional[str] = None
    manifest: Optional[FractalManifest] = None
    created_at: datetime = Field(
        validation_alias=AliasChoices("createdAt", "created_at"),
        serialization_alias="createdAt",
    )

    @property
    def has_manifest(self) -> bool:
        return self.manifest is not None
