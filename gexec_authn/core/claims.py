"""Safe-cast helpers for loosely-typed claim sets.

Claim sets come straight out of ``json`` or a verified JWT payload, so values
are one of: str, int, float, bool, list, dict or None. The helpers below
return ``None`` on a type mismatch instead of raising, which keeps the
"zero value plus diagnostic" policy of the mappers in one place.
"""
from __future__ import annotations
from typing import Any, Mapping, Optional

# Largest integer a JSON float carries without losing precision
MAX_SAFE_INTEGER = 2 ** 53


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


def lookup(raw: Mapping[str, Any], key: str) -> Any:
    """Return ``raw[key]`` or ``MISSING`` when the key is absent."""
    if not isinstance(raw, Mapping):
        return MISSING
    return raw.get(key, MISSING)


def claim_kind(value: Any) -> str:
    """Name the JSON kind of a claim value for diagnostics."""
    if value is MISSING:
        return "missing"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def as_string(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    return None


def as_identifier(value: Any) -> Optional[str]:
    """Render a numeric JSON identifier as a decimal string.

    Integers are exact and accepted at any magnitude. Floats must be integral
    and within +/- 2**53; anything larger may already have lost precision
    while decoding, so it is rejected rather than silently rounded.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not value.is_integer() or abs(value) > MAX_SAFE_INTEGER:
            return None
        return str(int(value))
    return None


def as_string_list(value: Any) -> Optional[list[str]]:
    """Return a copy of ``value`` if it is an array of strings, else ``None``."""
    if not isinstance(value, (list, tuple)):
        return None
    if not all(isinstance(item, str) for item in value):
        return None
    return list(value)
