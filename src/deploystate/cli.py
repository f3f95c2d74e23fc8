# src/deploystate/cli.py
"""deploystate Command Line Interface.

Entry point for the deploystate CLI tool. The ``env`` commands create,
inspect, reconfigure and retire environment checkpoints in a workspace.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from deploystate import __version__
from deploystate.contracts import CheckpointError, CheckpointNotFoundError, Snapshot, Target
from deploystate.core.checkpoint import CheckpointStore
from deploystate.core.config import DeployStateSettings, build_store, build_workspace, load_settings
from deploystate.core.workspace import Workspace

__all__ = [
    "app",
    "load_settings",  # Re-exported from config for convenience
]

# Settings file picked up from the working directory when --settings is not given
DEFAULT_SETTINGS_FILE = "deploystate.yaml"

app = typer.Typer(
    name="deploystate",
    help="deploystate: Environment checkpoint management.",
    no_args_is_help=True,
)

env_app = typer.Typer(help="Manage environment checkpoints.", no_args_is_help=True)
app.add_typer(env_app, name="env")


@dataclass(frozen=True)
class CLIContext:
    """Objects shared by every command of one invocation."""

    settings: DeployStateSettings
    workspace: Workspace
    store: CheckpointStore


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"deploystate version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)  # Don't override existing env vars


def _error(message: str) -> None:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)


def _load_cli_settings(settings: Path | None) -> DeployStateSettings:
    """Load settings from an explicit file, ./deploystate.yaml, or defaults."""
    if settings is None:
        default = Path(DEFAULT_SETTINGS_FILE)
        settings = default if default.exists() else None
    try:
        return load_settings(settings)
    except (YamlParserError, YamlScannerError) as e:
        _error(f"Failed to parse {settings}: {getattr(e, 'problem', None) or e}")
        raise typer.Exit(1) from None
    except FileNotFoundError:
        _error(f"Settings file does not exist: {settings}")
        raise typer.Exit(1) from None
    except ValidationError as e:
        _error(f"Invalid settings in {settings}:")
        for err in e.errors():
            loc = ".".join(str(part) for part in err["loc"])
            typer.echo(f"  - {loc}: {err['msg']}", err=True)
        raise typer.Exit(1) from None


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    settings: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help=f"Path to settings YAML file (default: ./{DEFAULT_SETTINGS_FILE} if present).",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,  # We handle existence check ourselves for better error message
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """deploystate: Environment checkpoint management."""
    from deploystate.core.logging import configure_logging

    # .env first, so DEPLOYSTATE_* variables in it reach the settings loader
    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )

    loaded = _load_cli_settings(settings)
    configure_logging(
        json_output=json_logs or loaded.logging.json_output,
        level="DEBUG" if verbose else loaded.logging.level,
    )

    workspace = build_workspace(loaded)
    ctx.obj = CLIContext(settings=loaded, workspace=workspace, store=build_store(loaded, workspace))


def _parse_config_pairs(pairs: list[str]) -> dict[str, str]:
    """Parse KEY=VALUE arguments.

    Raises:
        typer.Exit: If a pair has no '=' or an empty key.
    """
    result: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            _error(f"Invalid config value '{pair}'. Expected KEY=VALUE.")
            raise typer.Exit(1)
        result[key] = value
    return result


@env_app.command("init")
def env_init(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Environment name."),
    config: list[str] = typer.Option(
        [],
        "--config",
        "-c",
        help="Initial config value as KEY=VALUE (repeatable).",
    ),
) -> None:
    """Create a new environment with an empty deployment history."""
    cli: CLIContext = ctx.obj
    values = _parse_config_pairs(config)

    try:
        path = cli.store.path_for(name)
        if path.exists():
            _error(f"Environment '{name}' already exists at {path}")
            raise typer.Exit(1)
        written = cli.store.save(Target(name=name, config=values))
    except CheckpointError as e:
        _error(str(e))
        raise typer.Exit(1) from None

    typer.echo(f"Created environment '{name}' at {written}")


@env_app.command("ls")
def env_ls(ctx: typer.Context) -> None:
    """List environments in the workspace."""
    cli: CLIContext = ctx.obj
    names = cli.workspace.list_environments(cli.store.extensions())
    if not names:
        typer.echo("(no environments)")
        return
    for name in names:
        typer.echo(name)


def _describe(target: Target, snapshot: Snapshot | None) -> None:
    typer.echo(f"Environment: {target.name}")
    if target.config:
        typer.echo("Config:")
        for key in sorted(target.config):
            typer.echo(f"  {key} = {target.config[key]}")
    else:
        typer.echo("Config: (none)")

    if snapshot is None:
        typer.echo("Last deployment: (never deployed)")
        return
    manifest = snapshot.manifest
    typer.echo(f"Last deployment: {manifest.time.isoformat()} (version {manifest.version})")
    typer.echo(f"Resources ({len(snapshot.resources)}):")
    for res in snapshot.resources:
        suffix = f" [{res.id}]" if res.id is not None else ""
        typer.echo(f"  {res.urn}{suffix}")


@env_app.command("show")
def env_show(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Environment name."),
    as_json: bool = typer.Option(False, "--json", help="Print the checkpoint document as JSON."),
) -> None:
    """Load, validate and display an environment's checkpoint."""
    cli: CLIContext = ctx.obj
    try:
        loaded = cli.store.get(name)
    except CheckpointError as e:
        _error(str(e))
        raise typer.Exit(1) from None

    if as_json:
        typer.echo(json.dumps(loaded.document.to_tree(), indent=2))
    else:
        _describe(loaded.target, loaded.snapshot)


@env_app.command("config")
def env_config(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Environment name."),
    values: list[str] = typer.Argument(None, help="Config values to set as KEY=VALUE."),
    unset: list[str] = typer.Option([], "--unset", "-u", help="Config key to remove (repeatable)."),
) -> None:
    """Show or change an environment's configuration.

    The latest deployment snapshot is kept as is.
    """
    cli: CLIContext = ctx.obj
    updates = _parse_config_pairs(values or [])

    try:
        loaded = cli.store.get(name)
        if not updates and not unset:
            for key in sorted(loaded.target.config):
                typer.echo(f"{key} = {loaded.target.config[key]}")
            return

        missing = [key for key in unset if key not in loaded.target.config]
        if missing:
            _error(f"Config key(s) not set on '{name}': {', '.join(missing)}")
            raise typer.Exit(1)

        config = {k: v for k, v in loaded.target.config.items() if k not in unset}
        config.update(updates)
        cli.store.save(Target(name=loaded.target.name, config=config), loaded.snapshot)
    except CheckpointError as e:
        _error(str(e))
        raise typer.Exit(1) from None

    typer.echo(f"Updated config for environment '{name}'")


@env_app.command("rm")
def env_rm(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Environment name."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt."),
) -> None:
    """Retire an environment. Its checkpoint is kept as a backup file."""
    cli: CLIContext = ctx.obj
    try:
        path = cli.store.path_for(name)
        if not path.exists():
            raise CheckpointNotFoundError(name, path)
    except CheckpointError as e:
        _error(str(e))
        raise typer.Exit(1) from None

    if not yes and not typer.confirm(f"Remove environment '{name}'?"):
        typer.echo("Aborted.")
        raise typer.Exit(1)

    try:
        backed_up = cli.store.remove(Target(name=name))
    except CheckpointError as e:
        _error(str(e))
        raise typer.Exit(1) from None

    if backed_up:
        typer.echo(f"Removed environment '{name}' (backup: {path}{cli.settings.checkpoint.backup_suffix})")
    else:
        _error(f"Could not back up {path}; environment '{name}' was not removed")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
