"""Provenance manifest written next to every built artifact."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import AliasChoices, ConfigDict, Field

from .base import SchemaBase


class DependencySet(SchemaBase):
    production: Dict[str, str] = Field(default_factory=dict)
    development: Dict[str, str] = Field(default_factory=dict)
    peer: Dict[str, str] = Field(default_factory=dict)


class RepositoryInfo(SchemaBase):
    url: Optional[str] = None
    branch: Optional[str] = None
    commit: Optional[str] = None
    dirty: Optional[bool] = None


class ParentApplication(SchemaBase):
    name: str
    version: str
    path: str


class SourceLocation(SchemaBase):
    file_path: str = Field(alias="filePath")
    relative_path: str = Field(alias="relativePath")


class FractalManifest(SchemaBase):
    """Immutable provenance record for one build of one artifact.

    Unknown keys are kept so manifests produced by other tooling survive a
    round trip through the registry.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    version: str
    generation_date: str = Field(alias="generationDate")
    dependencies: DependencySet = Field(default_factory=DependencySet)
    internal_fractal_references: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "internalFractalReferences", "internalFractals", "internal_fractal_references"
        ),
        serialization_alias="internalFractalReferences",
    )
    repository: RepositoryInfo = Field(default_factory=RepositoryInfo)
    parent_application: ParentApplication = Field(alias="parentApplication")
    source: SourceLocation
