"""
JSON serialization helpers for cache envelopes.

Envelopes are encoded with orjson. Encoding failures are reported as
``SerializationError`` so that backends can treat them uniformly.
"""

import logging
from typing import Any, Dict, Optional, Union

import orjson

from ...core.exceptions import SerializationError

logger = logging.getLogger(__name__)


def dumps(data: Any, cache_key: Optional[str] = None) -> str:
    """
    Serialize ``data`` to a JSON string.

    Raises:
        SerializationError: If the value is not JSON-encodable
    """
    try:
        return orjson.dumps(data).decode('utf-8')
    except (TypeError, orjson.JSONEncodeError) as e:
        raise SerializationError(
            f"Value is not JSON-serializable: {e}",
            cache_key=cache_key,
            operation="SET",
            original_error=e
        )


def loads(raw: Union[str, bytes], cache_key: Optional[str] = None) -> Any:
    """
    Deserialize a JSON document.

    Raises:
        SerializationError: If the document is not valid JSON
    """
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise SerializationError(
            f"Stored value is not valid JSON: {e}",
            cache_key=cache_key,
            operation="GET",
            original_error=e
        )


def loads_envelope(raw: Union[str, bytes], cache_key: Optional[str] = None) -> Dict[str, Any]:
    """
    Deserialize a cache envelope and check its shape.

    Raises:
        SerializationError: If the document is not an envelope
    """
    envelope = loads(raw, cache_key)
    if not isinstance(envelope, dict) or not {'key', 'data', 'createdAt', 'ttl'} <= envelope.keys():
        raise SerializationError(
            "Stored value is not a cache envelope",
            cache_key=cache_key,
            operation="GET"
        )
    return envelope


def estimate_size(value: Any) -> int:
    """
    Rough memory estimate of a value in bytes.

    Uses the serialized length times two (UTF-16 code units), falling back
    to ``repr`` for values JSON cannot encode.
    """
    try:
        return len(orjson.dumps(value)) * 2
    except (TypeError, orjson.JSONEncodeError):
        return len(repr(value)) * 2
