"""Shared pydantic base model for surface and REST payloads"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


def _to_camel(string: str) -> str:
    """Convert snake_case to camelCase"""
    parts = string.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


class CamelModel(BaseModel):
    """Base model with camelCase JSON serialization"""

    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
    )

    def to_payload(self) -> dict[str, Any]:
        """Serialize for a WebSocket frame"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
