"""JSON encoding of the card API objects for human-readable tracing.

Byte buffers are rendered as uppercase hex strings, enumerations by name,
sets as sorted lists. Objects exposing ``to_dict()`` are encoded through it.
"""

import json
from enum import Enum
from typing import Any


def _json_serializer(obj: Any) -> Any:
    """Serialize objects that aren't JSON-serializable.

    Args:
        obj: Object to serialize.

    Returns:
        A JSON-compatible representation of the object.
    """
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if isinstance(obj, (bytes, bytearray)):
        return bytes(obj).hex().upper()
    if isinstance(obj, Enum):
        return obj.name
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    try:
        return str(obj)
    except Exception:
        return f"<unserializable: {type(obj).__name__}>"


def to_json(obj: Any) -> str:
    """Encode an object (or a structure of objects) as a JSON string."""
    return json.dumps(obj, default=_json_serializer)
