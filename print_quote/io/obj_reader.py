"""
Wavefront OBJ triangle reader.

Only geometry is read: ``v`` lines (vertex positions) and ``f`` lines
(faces). Texture/normal references and every other statement are ignored.
Polygons are triangulated as a fan around their first vertex.
"""

import logging
from typing import List, Optional, Sequence, Union

import numpy as np
from numpy.typing import NDArray

from print_quote.io.stl_reader import empty_triangles

logger = logging.getLogger(__name__)

Vertex = List[float]


def _parse_vertex(tokens: Sequence[str]) -> Optional[Vertex]:
    try:
        x, y, z = (float(t) for t in tokens[:3])
    except ValueError:  # bad number or fewer than three coordinates
        return None
    return [x, y, z]


def resolve_index(reference: str, n_vertices: int) -> Optional[int]:
    """Resolve one face reference (``7``, ``7/2``, ``-1//3``) to a 0-based index.

    Positive indices are 1-based, negative ones count back from the vertices
    read so far. Returns None for zero, unparsable or out-of-range references.
    """
    head = reference.split("/", 1)[0]
    try:
        n = int(head)
    except ValueError:
        return None
    index = n - 1 if n > 0 else n_vertices + n
    if n == 0 or not 0 <= index < n_vertices:
        return None
    return index


def read_obj(data: Union[bytes, str]) -> NDArray[np.float64]:
    """Read triangles from OBJ text.

    Face references are resolved against the vertices defined before the
    face. A triangle with an invalid reference is skipped; the rest of the
    face is still used. A malformed ``v`` line keeps its index slot so later
    references stay aligned, but triangles using it are skipped.
    """
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data

    vertices: List[Optional[Vertex]] = []
    triangles: List[List[Vertex]] = []
    skipped = 0

    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith("v "):
            vertices.append(_parse_vertex(line.split()[1:]))
        elif line.startswith("f "):
            indices = [resolve_index(ref, len(vertices)) for ref in line.split()[1:]]
            for i in range(1, len(indices) - 1):
                corners = (indices[0], indices[i], indices[i + 1])
                points = [vertices[c] for c in corners if c is not None]
                if len(points) == 3 and all(p is not None for p in points):
                    triangles.append(points)
                else:
                    skipped += 1

    if skipped:
        logger.warning("OBJ: skipped %d triangle(s) with invalid vertex references", skipped)
    logger.debug("OBJ: %d vertices, %d triangles", len(vertices), len(triangles))

    if not triangles:
        return empty_triangles()
    return np.array(triangles, dtype=np.float64)
