"""Shared contracts for cross-boundary data types.

Dataclasses and exceptions that cross subsystem boundaries are defined
here. This package is a LEAF MODULE with no outbound dependencies to core.

Import patterns:
    # Contracts (lightweight, no heavy dependencies)
    from deploystate.contracts import Target, Snapshot, CheckpointError

    # Settings classes (from core, pulls in pydantic/dynaconf)
    from deploystate.core.config import DeployStateSettings
"""

from deploystate.contracts.deployment import (
    Manifest,
    PluginInfo,
    Resource,
    Snapshot,
    Target,
)
from deploystate.contracts.errors import (
    CheckpointError,
    CheckpointIOError,
    CheckpointNotFoundError,
    InvalidArgumentError,
    MalformedDocumentError,
    SchemaViolationError,
    UnsupportedFormatError,
)

__all__ = [
    "CheckpointError",
    "CheckpointIOError",
    "CheckpointNotFoundError",
    "InvalidArgumentError",
    "MalformedDocumentError",
    "Manifest",
    "PluginInfo",
    "Resource",
    "SchemaViolationError",
    "Snapshot",
    "Target",
    "UnsupportedFormatError",
]
