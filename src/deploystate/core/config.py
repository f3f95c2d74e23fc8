# src/deploystate/core/config.py
"""
Configuration schema and loading for deploystate.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.

Example YAML:
    workspace:
      root: .
      state_dir: .deploystate
      format: yaml
    checkpoint:
      backup_suffix: .bak
    logging:
      level: INFO
      json_output: false
"""

import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from deploystate.core.checkpoint.encoding import FormatResolver
from deploystate.core.checkpoint.store import BACKUP_SUFFIX, CheckpointStore
from deploystate.core.checkpoint.validation import StructuralValidator
from deploystate.core.workspace import Workspace

# Canonical file extension for each configurable format
_FORMAT_EXTENSIONS: dict[str, str] = {"json": ".json", "yaml": ".yaml"}


class WorkspaceSettings(BaseModel):
    """Where checkpoint files live and which format new ones use."""

    model_config = {"frozen": True}

    root: Path = Field(default=Path("."), description="Workspace root directory")
    state_dir: str = Field(default=".deploystate", description="State directory under the root")
    format: Literal["json", "yaml"] = Field(default="json", description="Markup format for checkpoint files")

    @field_validator("state_dir")
    @classmethod
    def validate_state_dir(cls, v: str) -> str:
        """State dir must be a non-empty relative path."""
        if not v or Path(v).is_absolute():
            raise ValueError(f"state_dir must be a non-empty relative path, got {v!r}")
        return v

    @property
    def extension(self) -> str:
        """Canonical file extension for the configured format."""
        return _FORMAT_EXTENSIONS[self.format]


class CheckpointSettings(BaseModel):
    """Checkpoint file handling."""

    model_config = {"frozen": True}

    backup_suffix: str = Field(default=BACKUP_SUFFIX, description="Suffix appended to back up a replaced checkpoint")

    @field_validator("backup_suffix")
    @classmethod
    def validate_backup_suffix(cls, v: str) -> str:
        """Backup suffix must look like an extension so backups never collide with checkpoints."""
        if not v.startswith(".") or len(v) < 2 or "/" in v:
            raise ValueError(f"backup_suffix must start with '.' and name an extension, got {v!r}")
        if v.lower() in FormatResolver().extensions():
            raise ValueError(f"backup_suffix cannot be a checkpoint format extension, got {v!r}")
        return v


class LoggingSettings(BaseModel):
    """Logging output configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_output: bool = False

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v


class DeployStateSettings(BaseModel):
    """Top-level deploystate configuration.

    All settings are validated and frozen after construction.
    """

    model_config = {"frozen": True}

    workspace: WorkspaceSettings = Field(
        default_factory=WorkspaceSettings,
        description="Workspace layout and file format",
    )
    checkpoint: CheckpointSettings = Field(
        default_factory=CheckpointSettings,
        description="Checkpoint file handling",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration",
    )


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """
    import os

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default = match.group(2)  # None if no default specified
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            # No env var and no default - keep original
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lower_keys(value: Any) -> Any:
    """Lower-case mapping keys at every level (Dynaconf upper-cases env-derived keys)."""
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def load_settings(config_path: Path | None = None) -> DeployStateSettings:
    """Load settings from a YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (DEPLOYSTATE_*) - highest priority
    2. Config file (deploystate.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: DEPLOYSTATE_WORKSPACE__FORMAT for nested keys.

    Args:
        config_path: Path to YAML configuration file, or None for defaults
            plus environment variables only

    Returns:
        Validated DeployStateSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config_path is given but doesn't exist
    """
    from dynaconf import Dynaconf

    # Explicit check for file existence (Dynaconf silently accepts missing files)
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="DEPLOYSTATE",
        settings_files=[str(config_path)] if config_path is not None else [],
        environments=False,  # No [default]/[production] sections
        load_dotenv=False,  # .env is loaded by the CLI entry point
        merge_enabled=True,  # Deep merge nested dicts
    )

    # Filter out internal Dynaconf settings
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k: v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = _lower_keys(raw_config)

    # Expand ${VAR} and ${VAR:-default} patterns in config values
    raw_config = _expand_env_vars(raw_config)

    return DeployStateSettings(**raw_config)


def build_workspace(settings: DeployStateSettings) -> Workspace:
    """Workspace described by the settings."""
    return Workspace(
        settings.workspace.root,
        state_dir=settings.workspace.state_dir,
        format_extension=settings.workspace.extension,
    )


def build_store(settings: DeployStateSettings, workspace: Workspace | None = None) -> CheckpointStore:
    """Wire a CheckpointStore from settings.

    Args:
        settings: Validated settings
        workspace: Workspace to resolve paths with (built from settings if None)

    Returns:
        CheckpointStore using the workspace's paths, the default codecs with
        the configured format as default, and a StructuralValidator
    """
    if workspace is None:
        workspace = build_workspace(settings)
    return CheckpointStore(
        workspace.environment_path,
        FormatResolver(default_extension=settings.workspace.extension),
        StructuralValidator(),
        backup_suffix=settings.checkpoint.backup_suffix,
    )
