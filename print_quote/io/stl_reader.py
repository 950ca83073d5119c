"""
STL triangle readers for in-memory uploads.

Supports:
- Binary STL: 84-byte preamble followed by 50-byte records
- ASCII STL: ``vertex x y z`` lines, grouped in threes

Both readers return an array of shape (N, 3, 3), float64: N triangles of
three vertices each, in source winding order. They never fail on malformed
content; unreadable parts simply contribute no triangles.
"""

import logging
import re
from typing import List, Union

import numpy as np
from numpy.typing import NDArray
from stl import mesh

from print_quote.io.mesh_format import (
    STL_PREAMBLE_SIZE,
    STL_RECORD_SIZE,
    declared_triangle_count,
    is_binary_stl,
)

logger = logging.getLogger(__name__)

# normals (3 x float32), vectors (3 x 3 x float32), attr (uint16): 50 bytes
RECORD_DTYPE = mesh.Mesh.dtype.newbyteorder('<')

_NUMBER = r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?"
VERTEX_PATTERN = re.compile(rf"^vertex\s+({_NUMBER})\s+({_NUMBER})\s+({_NUMBER})")


def empty_triangles() -> NDArray[np.float64]:
    """Triangle array with no rows."""
    return np.zeros((0, 3, 3), dtype=np.float64)


def read_binary_stl(data: bytes) -> NDArray[np.float64]:
    """Read triangles from a binary STL buffer.

    Reading stops at the last complete record, so a file that declares more
    triangles than it holds yields only the records present.
    """
    declared = declared_triangle_count(data)
    available = max(len(data) - STL_PREAMBLE_SIZE, 0) // STL_RECORD_SIZE
    count = min(declared, available)

    if count < declared:
        logger.warning(
            "Truncated binary STL: %d triangles declared, %d complete records present",
            declared, count,
        )
    if count == 0:
        return empty_triangles()

    records = np.frombuffer(data, dtype=RECORD_DTYPE, count=count, offset=STL_PREAMBLE_SIZE)
    return records['vectors'].astype(np.float64)


def read_ascii_stl(data: Union[bytes, str]) -> NDArray[np.float64]:
    """Read triangles from ASCII STL text.

    Every three consecutive ``vertex`` lines form one triangle, in the order
    they appear; ``facet``/``endfacet`` structure is not consulted. Trailing
    vertices that do not complete a triangle are dropped.
    """
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data

    triangles: List[List[List[float]]] = []
    pending: List[List[float]] = []
    for line in text.splitlines():
        match = VERTEX_PATTERN.match(line.strip())
        if not match:
            continue
        pending.append([float(c) for c in match.groups()])
        if len(pending) == 3:
            triangles.append(pending)
            pending = []

    if pending:
        logger.debug("ASCII STL ends with %d unpaired vertex line(s)", len(pending))
    if not triangles:
        return empty_triangles()
    return np.array(triangles, dtype=np.float64)


def read_stl(data: bytes) -> NDArray[np.float64]:
    """Read an STL buffer of either encoding."""
    if is_binary_stl(data):
        return read_binary_stl(data)
    return read_ascii_stl(data)
