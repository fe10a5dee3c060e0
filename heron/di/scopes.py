"""
Lifetime definitions for providers.
"""

from enum import Enum


class Lifetime(str, Enum):
    """Provider lifetimes."""

    SINGLETON = "singleton"  # One instance per container
    REQUEST = "request"      # One instance per request id
    TRANSIENT = "transient"  # New instance every resolve


def coerce_lifetime(value: "Lifetime | str") -> Lifetime:
    """Accept either a Lifetime or its string value."""
    if isinstance(value, Lifetime):
        return value
    try:
        return Lifetime(str(value).lower())
    except ValueError:
        valid = ", ".join(l.value for l in Lifetime)
        raise ValueError(f"Unknown lifetime {value!r} (expected one of: {valid})") from None
