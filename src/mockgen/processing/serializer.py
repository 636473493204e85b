"""Endpoint serialization for downstream consumers.

The text form is a JSON array with a fixed key order and no timestamps,
so serializing the same endpoints always yields the same text.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from mockgen.filters import is_block_api
from mockgen.models import CanonicalEndpoint, SerializationError

# Wire keys, in output order
_FIELDS = (
    ("method", "method"),
    ("url", "url"),
    ("responseBody", "response_body"),
    ("queryParams", "query_params"),
    ("pathParams", "path_params"),
)


def _to_wire(endpoint: CanonicalEndpoint | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(endpoint, Mapping):
        return {wire: endpoint.get(wire, endpoint.get(attr)) for wire, attr in _FIELDS}
    return {wire: getattr(endpoint, attr) for wire, attr in _FIELDS}


def serialize(endpoints: Sequence[CanonicalEndpoint | Mapping[str, Any]]) -> str:
    """Serialize endpoints to deterministic JSON text.

    Args:
        endpoints: Canonical endpoints, or mappings with the same fields

    Returns:
        JSON array indented with two spaces

    Raises:
        SerializationError: If an endpoint holds circular or non-JSON data
    """
    try:
        return json.dumps([_to_wire(endpoint) for endpoint in endpoints], indent=2, ensure_ascii=False)
    except (TypeError, ValueError, RecursionError) as e:
        raise SerializationError(
            "SERIALIZATION_ERROR",
            "Failed to serialize endpoints for downstream consumption",
            str(e),
        ) from e


def deserialize(text: str) -> list[CanonicalEndpoint]:
    """Parse serialized endpoints back into CanonicalEndpoint objects.

    The block API flag is not part of the text form and is recomputed
    from each URL.

    Raises:
        SerializationError: If the text is not a serialized endpoint list
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SerializationError("DESERIALIZATION_ERROR", "Invalid endpoint JSON", str(e)) from e

    if not isinstance(data, list):
        raise SerializationError(
            "DESERIALIZATION_ERROR",
            "Invalid endpoint JSON",
            f"Expected a JSON array, got {type(data).__name__}",
        )

    endpoints = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise SerializationError(
                "DESERIALIZATION_ERROR", "Invalid endpoint JSON", f"Item {index} is not an object"
            )
        try:
            endpoints.append(
                CanonicalEndpoint(
                    method=item["method"],
                    url=item["url"],
                    response_body=item.get("responseBody") or "",
                    query_params=item.get("queryParams") or {},
                    path_params=item.get("pathParams") or {},
                    is_block_api=is_block_api(item["url"]),
                )
            )
        except (KeyError, ValidationError) as e:
            raise SerializationError(
                "DESERIALIZATION_ERROR", "Invalid endpoint JSON", f"Item {index}: {e}"
            ) from e
    return endpoints
