"""Cache key builders. Single place for key format (DRY).

Keys are colon-joined segments: 'operation:entity_id' for single entities
and 'operation:query:k1=v1&k2=v2' for parameterised reads. Entity IDs must
not contain CACHE_KEY_SEP so that invalidate_for_entity can match the last
segment unambiguously.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from datalayer.core.constants import CACHE_KEY_SEP, CACHE_QUERY_SEGMENT


def _validate_key_component(value: str, name: str) -> None:
    """Raise ValueError if value contains the cache key separator.

    Args:
        value: String component used in a cache key.
        name: Name of the component (for error message).

    Raises:
        ValueError: If value contains CACHE_KEY_SEP.
    """
    if CACHE_KEY_SEP in value:
        raise ValueError(
            f"Cache key component {name!r} must not contain separator {CACHE_KEY_SEP!r}"
        )


def build_key(parts: Sequence[str]) -> str:
    """Join ordered key parts with the separator (e.g. ['a', 'b'] -> 'a:b')."""
    return CACHE_KEY_SEP.join(parts)


def entity_key(operation: str, entity_id: str) -> str:
    """Cache key for a single entity read (e.g. 'get_by_id:42')."""
    _validate_key_component(entity_id, "entity_id")
    return f"{operation}{CACHE_KEY_SEP}{entity_id}"


def query_key(operation: str, params: Mapping[str, Any]) -> str:
    """Deterministic cache key for a parameterised read.

    Parameters are sorted by name before joining, so equal parameter sets
    always produce the same key regardless of insertion order.

    Example:
        query_key("get_all", {"offset": 0, "limit": 10})
        -> "get_all:query:limit=10&offset=0"
    """
    param_string = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return f"{operation}{CACHE_KEY_SEP}{CACHE_QUERY_SEGMENT}{CACHE_KEY_SEP}{param_string}"
