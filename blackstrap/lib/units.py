from __future__ import annotations

import re
from typing import Union

KiB = 1024
MiB = 1024 * KiB
GiB = 1024 * MiB
TiB = 1024 * GiB

_BINARY = {"": 1, "B": 1, "K": KiB, "KIB": KiB, "M": MiB, "MIB": MiB, "G": GiB, "GIB": GiB, "T": TiB, "TIB": TiB}
_DECIMAL = {"KB": 1000, "MB": 1000**2, "GB": 1000**3, "TB": 1000**4}

_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*([A-Za-z]*)$")


def parse_size(spec: Union[str, int]) -> int:
    """Parse a size such as ``512MiB``, ``4G`` or ``10GB`` into bytes.

    Single-letter and ``*iB`` units are binary; ``KB``/``MB``/``GB``/``TB`` are decimal.
    Plain integers are bytes.
    """

    if isinstance(spec, bool):
        raise ValueError(f"Invalid size specification: {spec!r}")
    if isinstance(spec, int):
        if spec < 0:
            raise ValueError(f"Size must not be negative: {spec}")
        return spec

    m = _SIZE_RE.match(str(spec).strip())
    if not m:
        raise ValueError(f"Invalid size specification: {spec!r}")

    value, unit = m.groups()
    unit = unit.upper()
    if unit in _BINARY:
        factor = _BINARY[unit]
    elif unit in _DECIMAL:
        factor = _DECIMAL[unit]
    else:
        raise ValueError(f"Unknown unit in size specification: {spec!r}")
    return int(float(value) * factor)


def format_bytes(size_bytes: int) -> str:
    """Human readable size using binary units."""

    if size_bytes < KiB:
        return f"{size_bytes} B"
    size = float(size_bytes)
    for unit in ("KiB", "MiB", "GiB", "TiB", "PiB"):
        size /= 1024
        if size < 1024:
            return f"{size:.2f} {unit}"
    return f"{size:.2f} PiB"
