"""Workspace layout: where each environment's checkpoint file lives.

Structure: <root>/<state_dir>/env/<name><extension>

The extension may be empty, in which case the checkpoint store appends
the default codec's canonical extension when it reads or writes.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from deploystate.contracts import InvalidArgumentError

__all__ = ["ENV_DIR", "Workspace", "validate_environment_name"]

ENV_DIR = "env"


def validate_environment_name(name: str) -> str:
    """Check that an environment name maps to exactly one file.

    Raises:
        InvalidArgumentError: If the name is empty or not a single path component
    """
    if not name:
        raise InvalidArgumentError("environment name is required and cannot be empty")
    if "/" in name or "\\" in name or name in (".", ".."):
        raise InvalidArgumentError(f"environment name must be a single path component, got {name!r}")
    if "\x00" in name:
        raise InvalidArgumentError(f"environment name cannot contain a NUL character, got {name!r}")
    return name


class Workspace:
    """Resolves environment names to checkpoint paths under a workspace root."""

    def __init__(
        self,
        root: Path,
        *,
        state_dir: str = ".deploystate",
        format_extension: str = ".json",
    ) -> None:
        self.root = root
        self.state_dir = state_dir
        self.format_extension = format_extension

    @property
    def environment_dir(self) -> Path:
        """Directory holding one checkpoint file per environment."""
        return self.root / self.state_dir / ENV_DIR

    def environment_path(self, name: str) -> Path:
        """Checkpoint path for an environment.

        Raises:
            InvalidArgumentError: If the name is invalid
        """
        validate_environment_name(name)
        return self.environment_dir / f"{name}{self.format_extension}"

    def list_environments(self, extensions: Iterable[str]) -> list[str]:
        """Names of environments with a checkpoint file in this workspace.

        Only files whose suffix is in ``extensions`` count; backups and
        unrelated files are skipped. A missing directory means no environments.
        """
        allowed = {ext.lower() for ext in extensions}
        if not self.environment_dir.is_dir():
            return []
        names = {
            entry.stem
            for entry in self.environment_dir.iterdir()
            if entry.is_file() and entry.suffix.lower() in allowed
        }
        return sorted(names)
