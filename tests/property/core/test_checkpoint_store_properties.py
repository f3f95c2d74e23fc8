# tests/property/core/test_checkpoint_store_properties.py
"""Property-based tests for CheckpointStore save/get fidelity.

Properties tested:
- Round-trip: get(save(target, snapshot)) returns equal target and snapshot,
  in both JSON and YAML
- Unknown top-level keys always fail validation, whatever the document
- Extra keys inside latest.resources never fail validation
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest
from hypothesis import given
from hypothesis import strategies as st

from deploystate.contracts import Manifest, PluginInfo, Resource, SchemaViolationError, Snapshot, Target
from deploystate.core.checkpoint import CheckpointStore, FormatResolver, StructuralValidator
from deploystate.core.workspace import Workspace

# =============================================================================
# Strategies
# =============================================================================

names = st.from_regex(r"[a-z][a-z0-9-]{0,15}", fullmatch=True)
keys = st.from_regex(r"[a-zA-Z][a-zA-Z0-9:_]{0,20}", fullmatch=True)

# Printable text plus the line-break characters YAML folds when left unescaped.
text = st.text(st.characters(categories=("L", "N", "P", "Zs"), include_characters="\x85\u2028\u2029"), max_size=20)

# YAML and JSON agree on these scalars. Large ints and odd floats are left out
# because they are representation details of the codecs, not of the store.
scalars = st.none() | st.booleans() | st.integers(min_value=-(2**31), max_value=2**31) | text

aware_datetimes = st.datetimes(
    min_value=datetime(2000, 1, 1),  # noqa: DTZ001 - Hypothesis requires naive bounds
    max_value=datetime(2100, 1, 1),  # noqa: DTZ001
    timezones=st.just(UTC),
)

config_values = st.recursive(
    scalars,
    lambda children: st.lists(children, max_size=3) | st.dictionaries(keys, children, max_size=3),
    max_leaves=8,
)

property_values = st.recursive(
    scalars | aware_datetimes,
    lambda children: st.lists(children, max_size=3) | st.dictionaries(keys, children, max_size=3),
    max_leaves=8,
)

properties = st.dictionaries(keys, property_values, max_size=4)


@st.composite
def resources(draw: st.DrawFn) -> tuple[Resource, ...]:
    urns = draw(st.lists(st.from_regex(r"urn:[a-z]{1,8}::[a-z]{1,8}", fullmatch=True), unique=True, max_size=4))
    return tuple(
        Resource(
            urn=urn,
            type=draw(st.from_regex(r"[a-z]{1,6}:[a-z]{1,6}:[A-Z][a-z]{0,6}", fullmatch=True)),
            id=draw(st.none() | text.filter(bool)),
            custom=draw(st.booleans()),
            inputs=draw(properties),
            defaults=draw(properties),
            outputs=draw(properties),
            parent=draw(st.none() | st.sampled_from(urns)),
            protect=draw(st.booleans()),
            dependencies=tuple(draw(st.lists(st.sampled_from(urns), max_size=2))),
        )
        for urn in urns
    )


@st.composite
def environments(draw: st.DrawFn) -> tuple[Target, Snapshot | None]:
    name = draw(names)
    target = Target(name=name, config=draw(st.dictionaries(keys, config_values, max_size=4)))
    if not draw(st.booleans()):
        return target, None
    manifest = Manifest(
        time=draw(aware_datetimes),
        magic=draw(text.filter(bool)),
        version=draw(st.from_regex(r"[0-9]\.[0-9]\.[0-9]", fullmatch=True)),
        plugins=tuple(
            PluginInfo(name=n, type="resource", version=v)
            for n, v in draw(st.lists(st.tuples(names, st.none() | st.just("1.0.0")), max_size=2))
        ),
    )
    return target, Snapshot(namespace=name, manifest=manifest, resources=draw(resources()))


def _store(root: Path, extension: str) -> CheckpointStore:
    workspace = Workspace(root, format_extension=extension)
    return CheckpointStore(workspace.environment_path, FormatResolver(), StructuralValidator())


# =============================================================================
# Properties
# =============================================================================


@pytest.mark.parametrize("extension", [".json", ".yaml"])
@given(env=environments())
def test_save_then_get_round_trips(tmp_path_factory: pytest.TempPathFactory, extension: str, env: Any) -> None:
    target, snapshot = env
    store = _store(tmp_path_factory.mktemp("ws"), extension)

    store.save(target, snapshot)
    loaded = store.get(target.name)

    assert loaded.target == target
    assert loaded.snapshot == snapshot


@given(env=environments(), extra_key=keys.filter(lambda k: k not in {"target", "config", "latest"}))
def test_unknown_top_level_key_always_rejected(tmp_path_factory: pytest.TempPathFactory, env: Any, extra_key: str) -> None:
    target, snapshot = env
    store = _store(tmp_path_factory.mktemp("ws"), ".json")
    path = store.save(target, snapshot)

    document = json.loads(path.read_text())
    document[extra_key] = "unexpected"
    path.write_text(json.dumps(document))

    with pytest.raises(SchemaViolationError):
        store.get(target.name)


@given(env=environments(), extra_key=keys, extra_value=config_values)
def test_extra_resource_keys_never_rejected(
    tmp_path_factory: pytest.TempPathFactory, env: Any, extra_key: str, extra_value: Any
) -> None:
    target, snapshot = env
    store = _store(tmp_path_factory.mktemp("ws"), ".json")
    path = store.save(target, snapshot)

    document = json.loads(path.read_text())
    for resource in document.get("latest", {}).get("resources", {}).values():
        resource.setdefault(f"x-{extra_key}", extra_value)
    path.write_text(json.dumps(document))

    assert store.get(target.name).snapshot == snapshot
