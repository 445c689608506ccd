"""
Internal helper functions for the crashmodel package.

This module is private API. Do not import directly.
"""

from __future__ import annotations

import operator

# Keys and values of the fuzz alphabet are single bytes.
BYTE_MIN = 0
BYTE_MAX = 255


def _coerce_byte(x: object, what: str = "key") -> int:
    """
    Coerce x to an integer in the single-byte range.

    Uses operator.index() so numpy integer scalars and similar types
    that implement __index__ are accepted.

    Args:
        x: Value to coerce.
        what: Name used in error messages ("key" or "value").

    Returns:
        Integer in [0, 255].

    Raises:
        TypeError: If x is bool (to prevent True -> 1 accidents)
            or if x doesn't support __index__.
        ValueError: If x is outside [0, 255].
    """
    if isinstance(x, bool):
        raise TypeError(f"{what} must be int or bytes (bool not allowed)")
    n = operator.index(x)
    if n < BYTE_MIN or n > BYTE_MAX:
        raise ValueError(f"{what} {n} is outside the byte range [0, 255]")
    return n


def _encode(x: object, what: str = "key") -> bytes:
    """
    Encode a key or value to the bytes handed to the engine.

    bytes-like inputs pass through unchanged; integers encode as one byte.
    """
    if isinstance(x, (bytes, bytearray, memoryview)):
        return bytes(x)
    return bytes([_coerce_byte(x, what)])
