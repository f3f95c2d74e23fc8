"""Pydantic models for the on-disk checkpoint document.

The models are lenient by default: unknown keys are ignored, matching how
a plain typed decode treats a document. Strictness is opt-in through the
validation context (see REJECT_UNKNOWN_FIELDS), which the structural
validator sets. Because pydantic passes the context down to nested models,
one flag makes every level of the document reject unknown keys.

Example document (YAML):
    target: production
    config:
      aws:config:region: us-west-2
    latest:
      manifest:
        time: "2026-03-01T12:00:00+00:00"
        magic: 6f1c...
        version: 0.1.0
      resources:
        urn:deploystate:production::app::aws:s3/bucket:Bucket::assets:
          type: aws:s3/bucket:Bucket
          id: assets-4f2a
          inputs: {acl: private}
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, model_validator

__all__ = [
    "REJECT_UNKNOWN_FIELDS",
    "CheckpointDocument",
    "DeploymentDocument",
    "ManifestDocument",
    "PluginDocument",
    "ResourceDocument",
]

# Validation context key that turns on unknown-field rejection.
REJECT_UNKNOWN_FIELDS = "reject_unknown_fields"


class _DocumentModel(BaseModel):
    """Base for document models: frozen, lenient unless the context says otherwise."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _reject_unknown_fields(cls, data: Any, info: ValidationInfo) -> Any:
        if not info.context or not info.context.get(REJECT_UNKNOWN_FIELDS):
            return data
        if isinstance(data, dict):
            known = {field.alias or name for name, field in cls.model_fields.items()}
            unknown = sorted(str(key) for key in data if key not in known)
            if unknown:
                raise ValueError(f"unknown field(s) {unknown} in {cls.__name__}")
        return data


class PluginDocument(_DocumentModel):
    name: str
    type: str
    version: str | None = None


class ManifestDocument(_DocumentModel):
    """Deployment metadata stored under latest.manifest."""

    time: datetime
    magic: str
    version: str
    plugins: list[PluginDocument] = Field(default_factory=list)


class ResourceDocument(_DocumentModel):
    """One entry of latest.resources, keyed by URN in the enclosing mapping.

    Property maps hold values encoded by the resource serialization rules
    (type envelopes), so they stay untyped here.
    """

    type: str
    id: str | None = None
    custom: bool = True
    inputs: dict[str, Any] = Field(default_factory=dict)
    defaults: dict[str, Any] = Field(default_factory=dict)
    outputs: dict[str, Any] = Field(default_factory=dict)
    parent: str | None = None
    protect: bool = False
    dependencies: list[str] = Field(default_factory=list)


class DeploymentDocument(_DocumentModel):
    """The latest deployment: manifest plus the custom-marshaled resources."""

    manifest: ManifestDocument
    resources: dict[str, ResourceDocument] | None = None


class CheckpointDocument(_DocumentModel):
    """Top-level checkpoint document: target configuration plus latest deployment."""

    target: str
    config: dict[str, Any] | None = None
    latest: DeploymentDocument | None = None

    def to_tree(self) -> dict[str, Any]:
        """Plain dict/list/scalar tree ready for a codec.

        Only fields that were explicitly set are emitted, so optional
        sections absent from the source stay absent on disk.
        """
        return self.model_dump(mode="json", exclude_unset=True)
