"""CheckpointStore for loading, saving and retiring environment checkpoints.

Loading is a two-pass protocol. The bytes are decoded once into a typed
CheckpointDocument (lenient: unknown keys are ignored) and a second time
into a generic mapping. The generic copy has latest.resources removed,
because resources use their own marshaling rules, and is then checked by
the structural validator with unknown-field rejection on. The typed
document is always the value returned; validation only blocks.

Saving backs up any existing file by renaming it to ``<path>.bak`` before
writing. Backups are best-effort: a failed rename is logged and the save
continues. Only one backup generation is kept.

There is no locking. At most one writer per environment is assumed.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import NamedTuple

import structlog
from pydantic import ValidationError

from deploystate.contracts import (
    CheckpointIOError,
    CheckpointNotFoundError,
    InvalidArgumentError,
    MalformedDocumentError,
    SchemaViolationError,
    Snapshot,
    Target,
    UnsupportedFormatError,
)
from deploystate.core.checkpoint.document import CheckpointDocument
from deploystate.core.checkpoint.encoding import Codec, FormatResolver, MarkupError
from deploystate.core.checkpoint.serialization import deserialize_checkpoint, serialize_checkpoint
from deploystate.core.checkpoint.validation import StructuralValidator
from deploystate.core.workspace import validate_environment_name

__all__ = ["BACKUP_SUFFIX", "CheckpointStore", "LoadedCheckpoint", "backup_file"]

logger = structlog.get_logger(__name__)

BACKUP_SUFFIX = ".bak"

# Owner-only permissions for checkpoint directories and files
_DIR_MODE = 0o700
_FILE_MODE = 0o600


class LoadedCheckpoint(NamedTuple):
    """Result of CheckpointStore.get()."""

    target: Target
    snapshot: Snapshot | None
    document: CheckpointDocument


def backup_file(path: Path, suffix: str = BACKUP_SUFFIX) -> bool:
    """Move an existing file aside to ``path + suffix``.

    Any earlier backup at that location is replaced. A missing source is
    not an error. Rename failures are logged and swallowed.

    Args:
        path: File to back up
        suffix: Appended to the file name to form the backup name

    Returns:
        True if a backup was made, False otherwise
    """
    backup = path.with_name(path.name + suffix)
    try:
        os.replace(path, backup)
    except FileNotFoundError:
        return False
    except (OSError, ValueError) as e:
        # ValueError: paths the OS cannot represent (embedded NUL)
        logger.warning("checkpoint_backup_failed", path=str(path), backup=str(backup), error=str(e))
        return False
    logger.debug("checkpoint_backed_up", path=str(path), backup=str(backup))
    return True


def _check_name(name: str) -> None:
    try:
        validate_environment_name(name)
    except InvalidArgumentError as e:
        logger.error("checkpoint_invalid_argument", environment=name, error=str(e))
        raise


def _require_target(target: Target | None, *, operation: str) -> Target:
    if target is None:
        logger.error("checkpoint_invalid_argument", operation=operation, error="target is required")
        raise InvalidArgumentError("target is required")
    _check_name(target.name)
    return target


def _ensure_directory(directory: Path) -> None:
    """Create ``directory`` and any missing parents, each with owner-only mode.

    Path.mkdir(parents=True) ignores ``mode`` for intermediate directories,
    so missing ancestors are created one at a time.
    """
    missing: list[Path] = []
    current = directory
    while not current.exists():
        missing.append(current)
        if current.parent == current:
            break
        current = current.parent
    for d in reversed(missing):
        d.mkdir(mode=_DIR_MODE, exist_ok=True)


class CheckpointStore:
    """Reads, writes and retires the checkpoint file of a named environment.

    Collaborators are injected so the store holds no global state:

    - resolve_path: environment name -> checkpoint path (usually
      Workspace.environment_path)
    - formats: picks the codec from the path's extension
    - validator: strict structural check of the generic document
    """

    def __init__(
        self,
        resolve_path: Callable[[str], Path],
        formats: FormatResolver,
        validator: StructuralValidator,
        *,
        backup_suffix: str = BACKUP_SUFFIX,
    ) -> None:
        self._resolve_path = resolve_path
        self._formats = formats
        self._validator = validator
        self._backup_suffix = backup_suffix

    def extensions(self) -> tuple[str, ...]:
        """File extensions this store can read and write."""
        return self._formats.extensions()

    def path_for(self, name: str) -> Path:
        """Checkpoint path for an environment, with the canonical extension applied.

        Raises:
            InvalidArgumentError: If the name is invalid
        """
        _check_name(name)
        path = self._resolve_path(name)
        if path.suffix == "":
            _codec, ext = self._formats.detect(path)
            path = path.with_name(path.name + ext)
        return path

    def _resolve(self, name: str, *, operation: str) -> tuple[Path, Codec]:
        """Resolve path and codec, appending the canonical extension if the path has none.

        Raises:
            UnsupportedFormatError: If no codec handles the path's extension
        """
        path = self._resolve_path(name)
        codec, ext = self._formats.detect(path)
        if codec is None:
            logger.error("checkpoint_unsupported_format", environment=name, path=str(path), extension=ext)
            raise UnsupportedFormatError(ext, operation=operation)
        if path.suffix == "":
            path = path.with_name(path.name + ext)
        return path, codec

    def get(self, name: str) -> LoadedCheckpoint:
        """Load and validate an environment's checkpoint.

        Args:
            name: Environment name

        Returns:
            LoadedCheckpoint with the target, the latest snapshot (None if the
            environment was never deployed) and the typed document

        Raises:
            InvalidArgumentError: If the name is invalid
            UnsupportedFormatError: If the path's extension has no codec
            CheckpointNotFoundError: If the checkpoint file does not exist
            CheckpointIOError: On any other read failure
            MalformedDocumentError: If the bytes do not decode into a document
            SchemaViolationError: If the document fails structural validation
        """
        _check_name(name)
        path, codec = self._resolve(name, operation="deserialization")

        try:
            data = path.read_bytes()
        except FileNotFoundError as e:
            logger.error("checkpoint_not_found", environment=name, path=str(path))
            raise CheckpointNotFoundError(name, path) from e
        except OSError as e:
            logger.error("checkpoint_io_error", environment=name, path=str(path), error=str(e))
            raise CheckpointIOError(path, e) from e

        # Pass 1: typed decode. Lenient, so it cannot be trusted to catch unknown keys.
        try:
            document = CheckpointDocument.model_validate(codec.unmarshal(data))
        except (MarkupError, ValidationError) as e:
            logger.error("checkpoint_malformed", environment=name, path=str(path), error=str(e))
            raise MalformedDocumentError(path, e) from e

        # Pass 2: an independent generic decode, used only for validation.
        try:
            generic = codec.unmarshal(data)
        except MarkupError as e:
            logger.error("checkpoint_malformed", environment=name, path=str(path), error=str(e))
            raise MalformedDocumentError(path, e) from e
        if not isinstance(generic, dict):
            cause = TypeError(f"expected a mapping at the top level, got {type(generic).__name__}")
            logger.error("checkpoint_malformed", environment=name, path=str(path), error=str(cause))
            raise MalformedDocumentError(path, cause)

        # Resources need custom marshaling the generic validator knows nothing about.
        latest = generic.get("latest")
        if isinstance(latest, dict):
            latest.pop("resources", None)

        try:
            self._validator.decode(generic, CheckpointDocument)
        except ValidationError as e:
            logger.error("checkpoint_schema_violation", environment=name, path=str(path), error=str(e))
            raise SchemaViolationError(path, e) from e

        try:
            target, snapshot = deserialize_checkpoint(document)
        except (TypeError, ValueError) as e:
            logger.error("checkpoint_malformed", environment=name, path=str(path), error=str(e))
            raise MalformedDocumentError(path, e) from e

        if target is None:
            raise AssertionError(f"Checkpoint '{path}' deserialized without a target")

        logger.debug(
            "checkpoint_loaded",
            environment=name,
            path=str(path),
            resources=0 if snapshot is None else len(snapshot.resources),
        )
        return LoadedCheckpoint(target, snapshot, document)

    def save(self, target: Target | None, snapshot: Snapshot | None = None) -> Path:
        """Persist a target and its latest snapshot, backing up the previous checkpoint.

        Args:
            target: Environment to save (required)
            snapshot: Latest deployed resources, or None

        Returns:
            Path of the written checkpoint file

        Raises:
            InvalidArgumentError: If target is None, its name is invalid, or the
                snapshot belongs to a different namespace
            UnsupportedFormatError: If the path's extension has no codec
            CheckpointIOError: If encoding, directory creation or the write fails
        """
        target = _require_target(target, operation="save")
        # The file stores no namespace; it is rebuilt from the target name on load.
        if snapshot is not None and snapshot.namespace != target.name:
            message = f"snapshot namespace {snapshot.namespace!r} does not match target {target.name!r}"
            logger.error("checkpoint_invalid_argument", environment=target.name, error=message)
            raise InvalidArgumentError(message)
        path, codec = self._resolve(target.name, operation="serialization")

        try:
            data = codec.marshal(serialize_checkpoint(target, snapshot).to_tree())
        except (TypeError, ValueError) as e:
            logger.error("checkpoint_io_error", environment=target.name, path=str(path), error=str(e))
            raise CheckpointIOError(path, e) from e

        backup_file(path, self._backup_suffix)

        try:
            _ensure_directory(path.parent)
        except OSError as e:
            logger.error("checkpoint_io_error", environment=target.name, path=str(path.parent), error=str(e))
            raise CheckpointIOError(path.parent, e) from e

        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _FILE_MODE)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        except OSError as e:
            logger.error("checkpoint_io_error", environment=target.name, path=str(path), error=str(e))
            raise CheckpointIOError(path, e) from e

        logger.info("checkpoint_saved", environment=target.name, path=str(path))
        return path

    def remove(self, target: Target | None) -> bool:
        """Retire an environment's checkpoint by backing it up. Nothing is written.

        Args:
            target: Environment to retire (required)

        Returns:
            True if a checkpoint file was moved to its backup, False if there
            was nothing to back up or the rename failed

        Raises:
            InvalidArgumentError: If target is None or its name is invalid
        """
        target = _require_target(target, operation="remove")
        path = self.path_for(target.name)
        backed_up = backup_file(path, self._backup_suffix)
        logger.info("checkpoint_removed", environment=target.name, path=str(path), backed_up=backed_up)
        return backed_up
