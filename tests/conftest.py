# tests/conftest.py
"""Shared test fixtures.

Fixtures:
- workspace: Workspace rooted in a per-test tmp_path
- store: CheckpointStore over that workspace with the default codecs
- sample_target / sample_snapshot: a small environment with two resources

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import os
from datetime import UTC, datetime
from pathlib import Path

import pytest
from hypothesis import Phase, Verbosity, settings

from deploystate.contracts import Manifest, PluginInfo, Resource, Snapshot, Target
from deploystate.core.checkpoint import CheckpointStore, FormatResolver, StructuralValidator
from deploystate.core.workspace import Workspace

# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Store fixtures
# =============================================================================


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    return Workspace(tmp_path)


@pytest.fixture
def store(workspace: Workspace) -> CheckpointStore:
    return CheckpointStore(workspace.environment_path, FormatResolver(), StructuralValidator())


@pytest.fixture
def sample_target() -> Target:
    return Target(
        name="production",
        config={"aws:config:region": "us-west-2", "app:config:replicas": 3},
    )


@pytest.fixture
def sample_snapshot() -> Snapshot:
    """Two resources: a bucket and an object parented and dependent on it."""
    bucket_urn = "urn:deploystate:production::app::aws:s3/bucket:Bucket::assets"
    return Snapshot(
        namespace="production",
        manifest=Manifest(
            time=datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC),
            magic="6f1c0a",
            version="0.1.0",
            plugins=(PluginInfo(name="aws", type="resource", version="5.4.0"),),
        ),
        resources=(
            Resource(
                urn=bucket_urn,
                type="aws:s3/bucket:Bucket",
                id="assets-4f2a",
                inputs={"acl": "private", "tags": {"team": "web"}},
                outputs={"arn": "arn:aws:s3:::assets-4f2a", "createdAt": datetime(2026, 3, 1, 11, 59, tzinfo=UTC)},
                protect=True,
            ),
            Resource(
                urn="urn:deploystate:production::app::aws:s3/bucketObject:BucketObject::index",
                type="aws:s3/bucketObject:BucketObject",
                id="index.html",
                inputs={"bucket": "assets-4f2a", "key": "index.html", "size": 1024},
                parent=bucket_urn,
                dependencies=(bucket_urn,),
            ),
        ),
    )
