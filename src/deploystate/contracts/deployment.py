"""Deployment domain contracts.

These types answer: "What does an environment look like?"

Target is the desired configuration of a named environment. Snapshot is
the last known set of provisioned resources. Both are owned by the caller;
the checkpoint store only converts them to and from the on-disk document.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class Target:
    """A named environment and its configuration values.

    Config keys are module-member tokens (e.g. ``aws:config:region``).
    Values are arbitrary JSON-like data.
    """

    name: str
    config: dict[str, Any] = field(default_factory=dict)

    def with_config(self, **updates: Any) -> "Target":
        """Return a new Target with config values merged in."""
        return replace(self, config={**self.config, **updates})


@dataclass(frozen=True)
class PluginInfo:
    """A resource provider plugin that took part in a deployment."""

    name: str
    type: str
    version: str | None = None


@dataclass(frozen=True)
class Manifest:
    """Metadata describing the deployment that produced a snapshot.

    Attributes:
        time: When the deployment finished (timezone-aware)
        magic: Fingerprint of the deploying tool build
        version: Version of the deploying tool
        plugins: Provider plugins loaded during the deployment
    """

    time: datetime
    magic: str
    version: str
    plugins: tuple[PluginInfo, ...] = ()

    def __post_init__(self) -> None:
        if self.time.tzinfo is None:
            raise ValueError("Manifest.time must be timezone-aware")


@dataclass(frozen=True)
class Resource:
    """A single provisioned resource as recorded in a snapshot.

    ``custom`` resources are managed by a provider plugin and carry a
    provider-assigned ``id``; component resources only group children.
    """

    urn: str
    type: str
    id: str | None = None
    custom: bool = True
    inputs: dict[str, Any] = field(default_factory=dict)
    defaults: dict[str, Any] = field(default_factory=dict)
    outputs: dict[str, Any] = field(default_factory=dict)
    parent: str | None = None
    protect: bool = False
    dependencies: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.urn:
            raise ValueError("Resource.urn is required and cannot be empty")
        if not self.type:
            raise ValueError(f"Resource '{self.urn}' has an empty type")


@dataclass(frozen=True)
class Snapshot:
    """Resources known to be provisioned for an environment.

    Resources are kept in deployment order; the order is preserved on disk.
    """

    namespace: str
    manifest: Manifest
    resources: tuple[Resource, ...] = ()

    def resource(self, urn: str) -> Resource | None:
        """Look up a resource by URN."""
        for res in self.resources:
            if res.urn == urn:
                return res
        return None
