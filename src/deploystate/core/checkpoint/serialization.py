"""Conversion between Target/Snapshot and the checkpoint document.

Target configuration and manifest metadata map onto the document field by
field. Resources follow their own rules:

- They are stored as an insertion-ordered mapping keyed by URN, so the
  deployment order survives a round trip.
- Property values (inputs, defaults, outputs) use collision-safe type
  envelopes with ``__deploystate_type__`` and ``__deploystate_value__``
  keys. Datetimes are wrapped so they come back as datetimes, and user
  dicts that happen to contain the reserved key are wrapped as
  ``escaped_dict`` so they are not mistaken for envelopes.
- NaN/Infinity are rejected: a checkpoint that writes must read back.

These envelopes are why the generic structural validator never sees
``latest.resources``; the store strips that subtree before validating.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from deploystate.contracts import Manifest, PluginInfo, Resource, Snapshot, Target
from deploystate.core.checkpoint.document import (
    CheckpointDocument,
    DeploymentDocument,
    ManifestDocument,
    PluginDocument,
    ResourceDocument,
)

__all__ = [
    "decode_property_value",
    "deserialize_checkpoint",
    "deserialize_resources",
    "encode_property_value",
    "serialize_checkpoint",
    "serialize_resources",
]

# Reserved key used for type envelopes. User dicts containing this key
# are escaped before encoding.
_ENVELOPE_TYPE_KEY = "__deploystate_type__"
_ENVELOPE_VALUE_KEY = "__deploystate_value__"


def encode_property_value(value: Any) -> Any:
    """Encode a resource property value into its on-disk form.

    Args:
        value: Property value (scalars, lists, tuples, dicts, datetimes)

    Returns:
        Plain value with datetimes and reserved-key dicts wrapped in envelopes

    Raises:
        ValueError: If the value contains NaN or Infinity
        TypeError: If the value contains a type with no on-disk form
    """
    if value is None or isinstance(value, bool | int | str):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValueError(f"Cannot serialize non-finite float: {value}. Use None for missing values, not NaN/Infinity.")
        return value
    if isinstance(value, datetime):
        # Ensure timezone-aware
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return {_ENVELOPE_TYPE_KEY: "datetime", _ENVELOPE_VALUE_KEY: value.isoformat()}
    if isinstance(value, Mapping):
        encoded = {str(k): encode_property_value(v) for k, v in value.items()}
        if _ENVELOPE_TYPE_KEY in encoded:
            return {_ENVELOPE_TYPE_KEY: "escaped_dict", _ENVELOPE_VALUE_KEY: encoded}
        return encoded
    if isinstance(value, list | tuple):
        return [encode_property_value(v) for v in value]
    raise TypeError(f"Resource property of type {type(value).__name__} cannot be serialized")


def decode_property_value(value: Any) -> Any:
    """Restore a property value written by encode_property_value.

    Raises:
        ValueError: If an envelope is malformed or of an unknown type
    """
    if isinstance(value, dict):
        if _ENVELOPE_TYPE_KEY in value:
            if _ENVELOPE_VALUE_KEY not in value or len(value) != 2:
                raise ValueError(f"Malformed property envelope: {sorted(value)}")
            envelope_type = value[_ENVELOPE_TYPE_KEY]
            envelope_value = value[_ENVELOPE_VALUE_KEY]

            if envelope_type == "datetime" and isinstance(envelope_value, str):
                return datetime.fromisoformat(envelope_value)
            if envelope_type == "escaped_dict" and isinstance(envelope_value, dict):
                return {k: decode_property_value(v) for k, v in envelope_value.items()}
            raise ValueError(f"Unknown property envelope type: {envelope_type!r}")

        return {k: decode_property_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_property_value(v) for v in value]
    return value


def _encode_properties(props: Mapping[str, Any]) -> dict[str, Any]:
    return {str(k): encode_property_value(v) for k, v in props.items()}


def _decode_properties(props: Mapping[str, Any]) -> dict[str, Any]:
    return {k: decode_property_value(v) for k, v in props.items()}


def serialize_resources(resources: Iterable[Resource]) -> dict[str, ResourceDocument]:
    """Marshal resources into the URN-keyed mapping stored under latest.resources.

    Raises:
        ValueError: If two resources share a URN, or a property is non-finite
        TypeError: If a property value cannot be serialized
    """
    result: dict[str, ResourceDocument] = {}
    for res in resources:
        if res.urn in result:
            raise ValueError(f"Duplicate resource URN in snapshot: {res.urn}")
        fields: dict[str, Any] = {
            "type": res.type,
            "custom": res.custom,
            "inputs": _encode_properties(res.inputs),
        }
        # Optional fields are only written when they carry information
        if res.id is not None:
            fields["id"] = res.id
        if res.defaults:
            fields["defaults"] = _encode_properties(res.defaults)
        if res.outputs:
            fields["outputs"] = _encode_properties(res.outputs)
        if res.parent is not None:
            fields["parent"] = res.parent
        if res.protect:
            fields["protect"] = True
        if res.dependencies:
            fields["dependencies"] = list(res.dependencies)
        result[res.urn] = ResourceDocument(**fields)
    return result


def deserialize_resources(resources: Mapping[str, ResourceDocument] | None) -> tuple[Resource, ...]:
    """Unmarshal latest.resources back into Resource values, preserving order.

    Raises:
        ValueError: If a property envelope is malformed or a resource is invalid
    """
    if resources is None:
        return ()
    return tuple(
        Resource(
            urn=urn,
            type=doc.type,
            id=doc.id,
            custom=doc.custom,
            inputs=_decode_properties(doc.inputs),
            defaults=_decode_properties(doc.defaults),
            outputs=_decode_properties(doc.outputs),
            parent=doc.parent,
            protect=doc.protect,
            dependencies=tuple(doc.dependencies),
        )
        for urn, doc in resources.items()
    )


def _serialize_manifest(manifest: Manifest) -> ManifestDocument:
    fields: dict[str, Any] = {
        "time": manifest.time,
        "magic": manifest.magic,
        "version": manifest.version,
    }
    if manifest.plugins:
        fields["plugins"] = [
            PluginDocument(name=p.name, type=p.type, version=p.version)
            if p.version is not None
            else PluginDocument(name=p.name, type=p.type)
            for p in manifest.plugins
        ]
    return ManifestDocument(**fields)


def _deserialize_manifest(doc: ManifestDocument) -> Manifest:
    time = doc.time
    if time.tzinfo is None:
        time = time.replace(tzinfo=UTC)
    return Manifest(
        time=time,
        magic=doc.magic,
        version=doc.version,
        plugins=tuple(PluginInfo(name=p.name, type=p.type, version=p.version) for p in doc.plugins),
    )


def serialize_checkpoint(target: Target, snapshot: Snapshot | None) -> CheckpointDocument:
    """Build the checkpoint document for a target and its latest snapshot.

    Args:
        target: Environment identity and configuration
        snapshot: Latest deployed resources, or None if never deployed

    Returns:
        CheckpointDocument with only meaningful optional sections set

    Raises:
        ValueError: On duplicate URNs or non-finite property values
        TypeError: If a resource property cannot be serialized
    """
    fields: dict[str, Any] = {"target": target.name}
    if target.config:
        fields["config"] = dict(target.config)
    if snapshot is not None:
        latest: dict[str, Any] = {"manifest": _serialize_manifest(snapshot.manifest)}
        if snapshot.resources:
            latest["resources"] = serialize_resources(snapshot.resources)
        fields["latest"] = DeploymentDocument(**latest)
    return CheckpointDocument(**fields)


def deserialize_checkpoint(document: CheckpointDocument) -> tuple[Target, Snapshot | None]:
    """Rebuild the Target and Snapshot recorded in a checkpoint document.

    Raises:
        ValueError: If resource data is malformed
    """
    target = Target(name=document.target, config=dict(document.config or {}))
    if document.latest is None:
        return target, None
    snapshot = Snapshot(
        namespace=document.target,
        manifest=_deserialize_manifest(document.latest.manifest),
        resources=deserialize_resources(document.latest.resources),
    )
    return target, snapshot
