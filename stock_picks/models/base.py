"""
Shared Pydantic base for records that are written to JSON artifacts.

Python code uses snake_case field names; the JSON artifacts consumed by the
dashboard use camelCase.  ``ArtifactModel`` bridges the two with an alias
generator, so ``Pick(change_percent=1.2)`` and
``Pick.model_validate({"changePercent": 1.2})`` are equivalent.

Datetime fields serialise through ``to_iso()`` in JSON mode, so every
timestamp in an artifact reads ``YYYY-MM-DDTHH:MM:SS.mmmZ``, whether it
came from a model or was formatted directly by a report builder.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, SerializerFunctionWrapHandler, field_serializer
from pydantic.alias_generators import to_camel

from stock_picks.utils.time_utils import to_iso


class ArtifactModel(BaseModel):
    """Frozen model with camelCase JSON aliases."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_serializer("*", mode="wrap", when_used="json")
    def _serialize_timestamps(self, value: Any, handler: SerializerFunctionWrapHandler) -> Any:
        if isinstance(value, datetime):
            return to_iso(value)
        return handler(value)

    def to_artifact(self) -> dict[str, Any]:
        """Serialise to a JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
