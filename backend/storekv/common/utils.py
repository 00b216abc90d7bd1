"""
Serialization helpers shared by every KV backend.
"""

import json
import math
from typing import Any

DATA_URI_PREFIX = "data:"


def serialize_value(value: Any) -> str:
    """
    Serialize a value for the `kv.value` column.

    Strings are taken as already-serialized JSON text and stored verbatim,
    everything else is JSON-encoded.
    """
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def parse_stored_value(raw: Any) -> Any:
    """
    Parse stored text back into a value.

    Legacy rows are not always valid JSON; those come back as the raw text.
    """
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def is_data_uri(value: Any) -> bool:
    """True for strings carrying an embedded data-URI payload."""
    return isinstance(value, str) and value.startswith(DATA_URI_PREFIX)


def size_kb(length: int) -> int:
    """Length in KB, halves rounded up"""
    return math.floor(length / 1024 + 0.5)
