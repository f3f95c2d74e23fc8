"""Structural validation of generic checkpoint documents.

A typed decode ignores keys it does not know. The structural validator
re-checks a generic copy of the same document against the document shape
with unknown-field rejection on, surfacing misplaced and misspelled keys
as well as wrong types. Its decoded value is only an error signal and is
never handed back to callers.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from deploystate.core.checkpoint.document import REJECT_UNKNOWN_FIELDS


class StructuralValidator:
    """Decodes generic documents into a model shape purely to detect mismatches."""

    def decode(self, document: Mapping[str, Any], shape: type[BaseModel]) -> None:
        """Validate ``document`` against ``shape``.

        Args:
            document: Generic mapping decoded from checkpoint bytes
            shape: Document model class to validate against

        Raises:
            pydantic.ValidationError: If the document has unknown fields or
                fields of the wrong type
        """
        shape.model_validate(document, context={REJECT_UNKNOWN_FIELDS: True})
