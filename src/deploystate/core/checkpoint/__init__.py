"""Checkpoint subsystem for environment state files.

Provides:
- CheckpointStore: Load, save and retire an environment's checkpoint
- FormatResolver: Select a codec (JSON, YAML) from a file extension
- StructuralValidator: Strict validation of generic checkpoint documents
- CheckpointDocument: Pydantic model of the on-disk document
- serialize_checkpoint/deserialize_checkpoint: Target/Snapshot <-> document
- backup_file: Best-effort rename of a file to its .bak sibling
"""

from deploystate.core.checkpoint.document import CheckpointDocument
from deploystate.core.checkpoint.encoding import FormatResolver, JsonCodec, MarkupError, YamlCodec
from deploystate.core.checkpoint.serialization import deserialize_checkpoint, serialize_checkpoint
from deploystate.core.checkpoint.store import BACKUP_SUFFIX, CheckpointStore, LoadedCheckpoint, backup_file
from deploystate.core.checkpoint.validation import StructuralValidator

__all__ = [
    "BACKUP_SUFFIX",
    "CheckpointDocument",
    "CheckpointStore",
    "FormatResolver",
    "JsonCodec",
    "LoadedCheckpoint",
    "MarkupError",
    "StructuralValidator",
    "YamlCodec",
    "backup_file",
    "deserialize_checkpoint",
    "serialize_checkpoint",
]
