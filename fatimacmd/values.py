"""Helpers for reading loosely typed JSON values and byte quantities."""

from __future__ import annotations

import os
import re
import struct
from typing import Any, Mapping

BYTE = 1
KILOBYTE = 1 << 10
MEGABYTE = 1 << 20
GIGABYTE = 1 << 30
TERABYTE = 1 << 40

_BYTES_PATTERN = re.compile(r"^(-?\d+(?:\.\d+)?)([KMGT]i?B?|B)$", re.IGNORECASE | re.ASCII)

_UNIT_FACTORS = {"T": TERABYTE, "G": GIGABYTE, "M": MEGABYTE, "K": KILOBYTE, "B": BYTE}


class ByteQuantityError(ValueError):
    """Raised when a byte quantity string cannot be parsed."""

    def __init__(self) -> None:
        super().__init__(
            "byte quantity must be a positive integer with a unit of measurement "
            "like M, MB, MiB, G, GiB, or GB"
        )


def _is_number(val: Any) -> bool:
    return isinstance(val, (int, float)) and not isinstance(val, bool)


def get_string(m: Mapping[str, Any], key: str) -> str:
    val = m.get(key)
    return val if isinstance(val, str) else ""


def get_map(m: Mapping[str, Any], key: str) -> dict:
    val = m.get(key)
    return val if isinstance(val, dict) else {}


def get_list(m: Mapping[str, Any], key: str) -> list:
    val = m.get(key)
    return val if isinstance(val, list) else []


def get_int(m: Mapping[str, Any], key: str) -> int:
    """Return the numeric value under ``key`` truncated to int, or -1."""
    val = m.get(key)
    return int(val) if _is_number(val) else -1


def get_string_from_header(header: Mapping[str, Any] | None, key: str) -> str:
    """Return the first value of header ``key``, or an empty string."""
    if header is None:
        return ""
    val = header.get(key)
    if val is None:
        return ""
    if isinstance(val, (list, tuple)):
        return str(val[0]) if val else ""
    return str(val)


def as_string(val: Any) -> str:
    return val if isinstance(val, str) else ""


def as_int(val: Any) -> int:
    return int(val) if _is_number(val) else 0


def as_ha_string(val: int) -> str:
    return {1: "ACTIVE", 2: "STANDBY"}.get(val, "UNKNOWN")


def as_ps_string(val: int) -> str:
    return {1: "PRIMARY", 2: "SECONDARY"}.get(val, "UNKNOWN")


def is_file_exist(path: str) -> bool:
    """True unless ``path`` is known not to exist."""
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    except OSError:
        return True
    return True


def _f32(value: float) -> float:
    return struct.unpack("f", struct.pack("f", value))[0]


def byte_size(size: int) -> str:
    """Human-readable size such as ``10M`` or ``12.5K``."""
    if size < 0:
        raise ValueError("size must not be negative")
    if size == 0:
        return "0"

    for limit, unit in ((TERABYTE, "T"), (GIGABYTE, "G"), (MEGABYTE, "M"), (KILOBYTE, "K")):
        if size >= limit:
            value = _f32(_f32(float(size)) / limit)
            break
    else:
        unit = "B"
        value = _f32(float(size))

    text = f"{value:.1f}"
    if text.endswith(".0"):
        text = text[:-2]
    return f"{text}{unit}"


def to_bytes(text: str) -> int:
    """Parse a quantity like ``10M`` or ``1.5GiB``; all units are base 2."""
    match = _BYTES_PATTERN.match(text.strip())
    if not match:
        raise ByteQuantityError()

    value = float(match.group(1))
    if value <= 0:
        raise ByteQuantityError()

    unit = match.group(2).upper()[0]
    return int(value * _UNIT_FACTORS[unit])


def to_megabytes(text: str) -> int:
    return to_bytes(text) // MEGABYTE