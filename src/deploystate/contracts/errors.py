"""Checkpoint error contracts.

Every recoverable failure of the checkpoint store is a CheckpointError
subclass carrying enough context (path, extension, underlying cause) to
diagnose without retrying. The store never retries; that is the caller's
decision.

Backup failures are NOT represented here: they are logged and discarded.
An internal invariant violation (a checkpoint that deserializes to no
target) raises AssertionError instead, because it indicates a bug.
"""

from pathlib import Path


class CheckpointError(Exception):
    """Base class for checkpoint store failures."""


class InvalidArgumentError(CheckpointError, ValueError):
    """Raised when the caller violates a precondition (empty name, missing target)."""


class UnsupportedFormatError(CheckpointError):
    """Raised when a path's extension matches no known codec.

    Attributes:
        extension: The rejected extension (e.g. ".toml")
    """

    def __init__(self, extension: str, *, operation: str = "deserialization") -> None:
        self.extension = extension
        self.operation = operation
        super().__init__(f"Checkpoint {operation} failed; illegal markup extension: '{extension}'")


class CheckpointNotFoundError(CheckpointError):
    """Raised when an environment has no checkpoint file.

    Attributes:
        name: Environment name that was requested
        path: Path that was looked up
    """

    def __init__(self, name: str, path: Path) -> None:
        self.name = name
        self.path = path
        super().__init__(f"Environment '{name}' could not be found in the current workspace ({path})")


class _PathCauseError(CheckpointError):
    """Shared shape for errors tied to a file and an underlying cause."""

    _summary = "Checkpoint failure"

    def __init__(self, path: Path, cause: BaseException) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"{self._summary} '{path}': {cause}")


class CheckpointIOError(_PathCauseError):
    """Raised on read, write, encode or mkdir failures other than not-found."""

    _summary = "An IO error occurred for checkpoint"


class MalformedDocumentError(_PathCauseError):
    """Raised when checkpoint bytes do not decode into a document."""

    _summary = "Could not read deployment file"


class SchemaViolationError(_PathCauseError):
    """Raised when a decoded document fails structural validation.

    Typical causes are unknown fields and wrong types in known fields,
    which the lenient typed decode would otherwise accept silently.
    """

    _summary = "Deployment file failed schema validation"
