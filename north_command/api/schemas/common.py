"""
Shared Pydantic v2 building blocks for the JSON API.

All JSON bodies use camelCase field names to match the web client, and
every entity exposes its primary key as ``_id``.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def _to_camel(snake: str) -> str:
    """Convert a snake_case string to camelCase."""
    parts = snake.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


class CamelModel(BaseModel):
    """Base model that serializes field names to camelCase in JSON."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=_to_camel,
    )


def object_id_field(**kwargs: Any) -> Any:
    """Primary key field read from ``id`` (ORM) or ``_id`` (JSON), written as ``_id``."""
    return Field(
        validation_alias=AliasChoices("id", "_id"),
        serialization_alias="_id",
        **kwargs,
    )
