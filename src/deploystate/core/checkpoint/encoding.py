"""Markup codecs for checkpoint files, selected by file extension.

A codec turns a plain tree of dicts/lists/scalars into bytes and back.
Each unmarshal call builds a fresh tree, so decoding the same bytes twice
yields two independent documents that can be mutated separately.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol

import yaml

__all__ = [
    "DEFAULT_EXTENSION",
    "Codec",
    "FormatResolver",
    "JsonCodec",
    "MarkupError",
    "YamlCodec",
]

DEFAULT_EXTENSION = ".json"


class MarkupError(ValueError):
    """Raised when a codec cannot encode a value or decode bytes."""


class Codec(Protocol):
    """Encoder/decoder for one markup format."""

    extension: str

    def marshal(self, value: Any) -> bytes: ...

    def unmarshal(self, data: bytes) -> Any: ...


class JsonCodec:
    """JSON codec.

    NaN/Infinity are rejected on encode (allow_nan=False), so a document
    that writes successfully always reads back.
    """

    extension = ".json"

    def marshal(self, value: Any) -> bytes:
        try:
            text = json.dumps(value, indent=2, allow_nan=False, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise MarkupError(f"JSON encoding failed: {e}") from e
        return (text + "\n").encode("utf-8")

    def unmarshal(self, data: bytes) -> Any:
        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MarkupError(f"JSON decoding failed: {e}") from e


class YamlCodec:
    """YAML codec using PyYAML's safe loader and dumper.

    Key order is preserved on dump (sort_keys=False) so resources keep
    their deployment order on disk. Non-ASCII characters are written as
    escapes: raw NEL and line/paragraph separators would be folded to
    spaces when read back.
    """

    extension = ".yaml"

    def marshal(self, value: Any) -> bytes:
        try:
            text = yaml.safe_dump(
                value,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=False,
            )
        except yaml.YAMLError as e:
            raise MarkupError(f"YAML encoding failed: {e}") from e
        return text.encode("utf-8")

    def unmarshal(self, data: bytes) -> Any:
        try:
            return yaml.safe_load(data.decode("utf-8"))
        except (UnicodeDecodeError, yaml.YAMLError) as e:
            raise MarkupError(f"YAML decoding failed: {e}") from e


class FormatResolver:
    """Maps a file path to the codec that reads and writes it.

    The extension comparison is case-insensitive. A path without an
    extension resolves to the default codec; callers append the returned
    canonical extension to form the real file name.
    """

    def __init__(
        self,
        codecs: dict[str, Codec] | None = None,
        *,
        default_extension: str = DEFAULT_EXTENSION,
    ) -> None:
        if codecs is None:
            json_codec = JsonCodec()
            yaml_codec = YamlCodec()
            codecs = {".json": json_codec, ".yaml": yaml_codec, ".yml": yaml_codec}
        if default_extension not in codecs:
            raise ValueError(f"default_extension '{default_extension}' has no codec. Available: {sorted(codecs)}")
        self._codecs = codecs
        self._default_extension = default_extension

    def detect(self, path: Path) -> tuple[Codec | None, str]:
        """Resolve the codec for a path.

        Returns:
            (codec, extension). For an extensionless path this is the default
            codec and its canonical extension. For an unsupported extension the
            codec is None and the extension is the rejected suffix.
        """
        ext = path.suffix.lower()
        if ext == "":
            codec = self._codecs[self._default_extension]
            return codec, codec.extension
        if ext not in self._codecs:
            return None, ext
        return self._codecs[ext], ext

    def extensions(self) -> tuple[str, ...]:
        """Supported extensions, sorted."""
        return tuple(sorted(self._codecs))
