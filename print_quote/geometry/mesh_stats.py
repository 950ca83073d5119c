"""
Mesh measurements used for quoting.

Provides:
- Signed and absolute enclosed volume (divergence theorem)
- Axis-aligned bounding box for the printable-size check

All functions take a triangle array of shape (N, 3, 3) in millimetres.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from numpy.typing import NDArray

logger = logging.getLogger(__name__)


@dataclass
class BoundingBox:
    """Axis-Aligned Bounding Box (AABB) of a mesh.

    Attributes:
        min_point: Minimum corner (x_min, y_min, z_min)
        max_point: Maximum corner (x_max, y_max, z_max)
    """
    min_point: NDArray[np.float64]
    max_point: NDArray[np.float64]

    @property
    def dimensions(self) -> NDArray[np.float64]:
        """Box extents (x, y, z)."""
        return self.max_point - self.min_point

    def as_tuple(self) -> Tuple[float, float, float]:
        """Extents as plain floats."""
        dims = self.dimensions
        return (float(dims[0]), float(dims[1]), float(dims[2]))


def calculate_bounding_box(triangles: NDArray[np.float64]) -> BoundingBox:
    """Bounding box of all triangle corners; a zero box when there are none."""
    if len(triangles) == 0:
        return BoundingBox(min_point=np.zeros(3), max_point=np.zeros(3))

    points = triangles.reshape(-1, 3)
    return BoundingBox(
        min_point=np.min(points, axis=0),
        max_point=np.max(points, axis=0),
    )


def signed_tetra_volumes(triangles: NDArray[np.float64]) -> NDArray[np.float64]:
    """Signed volume of the tetrahedron (origin, p1, p2, p3) per triangle.

    V_i = p1 . (p2 x p3) / 6
    """
    if len(triangles) == 0:
        return np.zeros(0, dtype=np.float64)

    p1 = triangles[:, 0]
    p2 = triangles[:, 1]
    p3 = triangles[:, 2]
    return np.einsum('ij,ij->i', p1, np.cross(p2, p3)) / 6.0


def calculate_signed_volume(triangles: NDArray[np.float64]) -> float:
    """Signed enclosed volume in mm^3; negative when the winding is inverted."""
    return float(np.sum(signed_tetra_volumes(triangles)))


def calculate_volume(triangles: NDArray[np.float64]) -> float:
    """Enclosed volume in mm^3, independent of winding direction.

    Exact for closed, consistently wound meshes. Open meshes or mixed
    winding give an estimate that is not corrected here.
    """
    return abs(calculate_signed_volume(triangles))
