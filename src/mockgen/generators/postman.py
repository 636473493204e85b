"""Postman Collection v2.1 shape checks."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError

POSTMAN_SCHEMA_URL = "https://schema.getpostman.com/json/collection/v2.1.0/collection.json"


class PostmanInfo(BaseModel):
    """Collection metadata."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: StrictStr
    schema_url: StrictStr = Field(alias="schema")


class PostmanItem(BaseModel):
    """Collection item; only the example responses are inspected."""

    model_config = ConfigDict(extra="allow")

    response: list[Any] = Field(default_factory=list)


class PostmanCollection(BaseModel):
    """Minimal Postman collection shape: info, item[] and variable[]."""

    model_config = ConfigDict(extra="allow")

    info: PostmanInfo
    item: list[PostmanItem]
    variable: list[Any]


class CollectionValidation(BaseModel):
    """Result of validating collection JSON.

    Attributes:
        is_valid: Whether the data matches the collection shape
        data: Parsed JSON data (set when valid)
        error: Reason the data is invalid
    """

    is_valid: bool
    data: Any = None
    error: str | None = None


def is_postman_collection(data: Any) -> bool:
    """Check whether parsed JSON data has the Postman collection shape."""
    if not isinstance(data, dict):
        return False
    try:
        PostmanCollection.model_validate(data)
    except ValidationError:
        return False
    return True


def validate_collection_json(text: str) -> CollectionValidation:
    """Parse and validate Postman collection JSON text."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        return CollectionValidation(is_valid=False, error=f"Invalid JSON: {e}")

    if not is_postman_collection(data):
        return CollectionValidation(
            is_valid=False,
            error="JSON is valid but does not match Postman Collection v2.1.0 schema",
        )
    return CollectionValidation(is_valid=True, data=data)


def collection_stats(text: str) -> dict[str, Any]:
    """Summarize collection JSON.

    Returns:
        Dictionary with total_items, total_responses, total_variables and
        collection_name; zeros and "Unknown" if the text is not a collection
    """
    try:
        collection = PostmanCollection.model_validate_json(text)
    except ValidationError:
        return {
            "total_items": 0,
            "total_responses": 0,
            "total_variables": 0,
            "collection_name": "Unknown",
        }

    return {
        "total_items": len(collection.item),
        "total_responses": sum(len(item.response) for item in collection.item),
        "total_variables": len(collection.variable),
        "collection_name": collection.info.name,
    }
