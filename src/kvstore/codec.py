"""JSON value codec for K/V payloads.

Values are written as JSON text. Reads decode JSON where possible and fall
back to the raw string, so keys written by other tools as plain text still
come back as strings.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Optional

_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0"}


class ValueDecodeError(ValueError):
    """Raised when a stored value cannot be turned into the requested type."""


def encode_value(value: Any) -> str:
    return json.dumps(value)


def decode_base64(payload: Optional[str]) -> Optional[str]:
    """Decode Consul's base64 ``Value`` field. ``None`` means an empty key."""
    if payload is None:
        return None
    try:
        return base64.b64decode(payload, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueDecodeError(f"invalid base64 payload: {e}") from e


def decode_value(text: Optional[str]) -> Any:
    if text is None:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def read_as(text: Optional[str], value_type: Optional[type] = None) -> Any:
    """Decode stored text and coerce it to ``value_type``.

    A string read keeps the stored text unless it is a JSON string, so
    ``1.50`` or ``007`` written by another tool come back exactly as stored.
    JSON ``null`` reads as None for every type.
    """
    value = decode_value(text)
    if value is None:
        return None
    if value_type is str and not isinstance(value, str):
        return text
    return coerce(value, value_type)


def coerce(value: Any, value_type: Optional[type] = None) -> Any:
    """Convert a decoded value to ``value_type``.

    ``None`` and ``object`` accept anything. Scalars are converted from their
    string forms; lists must hold strings and dicts must map strings to
    strings.
    """
    if value is None or value_type is None or value_type is object:
        return value

    if value_type is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in _TRUE | _FALSE:
            return value.strip().lower() in _TRUE
        raise ValueDecodeError(f"cannot read {value!r} as bool")

    if value_type in (int, float):
        if isinstance(value, bool):
            raise ValueDecodeError(f"cannot read {value!r} as {value_type.__name__}")
        try:
            return value_type(value)
        except (TypeError, ValueError) as e:
            raise ValueDecodeError(f"cannot read {value!r} as {value_type.__name__}") from e

    if value_type is str:
        if isinstance(value, str):
            return value
        if isinstance(value, (list, dict, bool)):
            return encode_value(value)
        return str(value)

    if value_type is list:
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return value
        raise ValueDecodeError(f"cannot read {value!r} as a list of strings")

    if value_type is dict:
        if isinstance(value, dict) and all(isinstance(v, str) for v in value.values()):
            return value
        raise ValueDecodeError(f"cannot read {value!r} as a string mapping")

    if isinstance(value, value_type):
        return value
    raise ValueDecodeError(f"cannot read {value!r} as {value_type.__name__}")
