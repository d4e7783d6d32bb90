"""Convert between Python values and Firestore REST typed values.

Firestore REST wraps every field in a single-key object naming its type,
e.g. {"integerValue": "3"}. Tuples encode as arrays; naive datetimes are
taken to be UTC.
"""

import base64
from collections.abc import Callable
from datetime import datetime
from typing import Any

from datalayer.shared.utils.datetime import format_rfc3339, parse_datetime


def encode_value(value: Any) -> dict:
    """Encode one Python value as a Firestore typed value.

    Raises:
        TypeError: For types Firestore cannot store.
    """
    if value is None:
        return {"nullValue": None}
    # bool is an int subclass
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        return {"timestampValue": format_rfc3339(value)}
    if isinstance(value, bytes):
        return {"bytesValue": base64.b64encode(value).decode("ascii")}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(item) for item in value]}}
    if isinstance(value, dict):
        return {"mapValue": encode_document(value)}
    raise TypeError(f"Unsupported Firestore value type: {type(value).__name__}")


def _decode_array(raw: dict) -> list[Any]:
    return [decode_value(item) for item in raw.get("values") or []]


_DECODERS: dict[str, Callable[[Any], Any]] = {
    "nullValue": lambda _raw: None,
    "booleanValue": bool,
    "integerValue": int,
    "doubleValue": float,
    "stringValue": str,
    "referenceValue": str,
    "timestampValue": parse_datetime,
    "bytesValue": base64.b64decode,
    "arrayValue": _decode_array,
    "mapValue": lambda raw: decode_document(raw),
}


def decode_value(typed: dict) -> Any:
    """Decode one Firestore typed value; unknown value types decode to None."""
    for kind, raw in typed.items():
        decoder = _DECODERS.get(kind)
        if decoder is not None:
            return decoder(raw)
    return None


def encode_document(data: dict[str, Any]) -> dict:
    """Python dict -> {"fields": {...}} (Document body or mapValue)."""
    return {"fields": {key: encode_value(value) for key, value in data.items()}}


def decode_document(document: dict | None) -> dict:
    """Document body or mapValue -> dict of decoded fields."""
    if not document:
        return {}
    return {key: decode_value(value) for key, value in (document.get("fields") or {}).items()}
