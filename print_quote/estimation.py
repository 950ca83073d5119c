"""
Mesh Volume Estimator: uploaded mesh bytes -> volume (mm^3) -> print weight (g).

The estimator always produces a result. Unsupported extensions, empty or
truncated files and parse failures all end up as zero volume, which the
minimum-grams floor turns into a small but valid weight. Callers rely on this
to quote without interruption, so nothing raised while reading a mesh leaves
:func:`estimate_mesh_volume`.

Units are assumed to be millimetres, as is conventional for STL.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from print_quote.geometry.mesh_stats import calculate_bounding_box, calculate_volume
from print_quote.io.mesh_format import MeshFormat, detect_mesh_format
from print_quote.io.obj_reader import read_obj
from print_quote.io.stl_reader import empty_triangles, read_ascii_stl, read_binary_stl
from print_quote.materials import DEFAULT_MATERIAL, lookup_by_material
from print_quote.project_config import EstimationConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MeshVolumeResult:
    """Estimated volume and weight of one mesh.

    Attributes:
        volume_mm3: Absolute enclosed volume, 0 when nothing could be read
        grams: Estimated print weight, never below the configured minimum
        mesh_format: Parse strategy that was used
        n_triangles: Triangles that contributed to the volume
        dimensions_mm: Bounding-box extents (x, y, z)
    """
    volume_mm3: float
    grams: float
    mesh_format: MeshFormat = MeshFormat.UNSUPPORTED
    n_triangles: int = 0
    dimensions_mm: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    @property
    def volume_cm3(self) -> float:
        return self.volume_mm3 / 1000.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'volume_mm3': self.volume_mm3,
            'grams': self.grams,
            'format': self.mesh_format.value,
            'n_triangles': self.n_triangles,
            'dimensions_mm': list(self.dimensions_mm),
        }


def grams_for_volume(volume_mm3: float, material: Optional[str],
                     config: EstimationConfig) -> float:
    """Convert a volume to print weight.

    grams = max(volume_cm3 * density * fill_factor, min_grams_per_file)
    """
    density = lookup_by_material(config.densities, material, config.default_material)
    grams_solid = (volume_mm3 / 1000.0) * density
    return max(grams_solid * config.fill_factor, config.min_grams_per_file)


def read_triangles(data: bytes, mesh_format: MeshFormat) -> NDArray[np.float64]:
    """Read the triangles of ``data`` with the given strategy."""
    if mesh_format is MeshFormat.BINARY_STL:
        return read_binary_stl(data)
    if mesh_format is MeshFormat.ASCII_STL:
        return read_ascii_stl(data)
    if mesh_format is MeshFormat.OBJ:
        return read_obj(data)
    return empty_triangles()


def _finite_triangles(triangles: NDArray[np.float64]) -> NDArray[np.float64]:
    finite = np.all(np.isfinite(triangles), axis=(1, 2))
    n_bad = int(len(finite) - np.count_nonzero(finite))
    if n_bad:
        logger.warning("Ignoring %d triangle(s) with non-finite coordinates", n_bad)
        return triangles[finite]
    return triangles


def estimate_mesh_volume(
    data: bytes,
    file_extension: str,
    material: Optional[str] = DEFAULT_MATERIAL,
    config: Optional[EstimationConfig] = None,
) -> MeshVolumeResult:
    """Estimate volume and weight of an uploaded mesh.

    Args:
        data: Raw file contents
        file_extension: Extension or file name; decides the parser
        material: Material key for the density lookup (PLA if unknown)
        config: Estimation constants (defaults if None)

    Returns:
        MeshVolumeResult; never raises for malformed input
    """
    config = config or EstimationConfig()
    data = data or b""
    mesh_format = MeshFormat.UNSUPPORTED
    triangles = empty_triangles()

    try:
        mesh_format = detect_mesh_format(data, file_extension)
        triangles = _finite_triangles(read_triangles(data, mesh_format))
    except Exception:
        logger.warning("Failed to read %s mesh (%d bytes), using zero volume",
                       mesh_format.value, len(data), exc_info=True)
        triangles = empty_triangles()

    if mesh_format is MeshFormat.UNSUPPORTED:
        logger.info("Unsupported mesh extension %r, using zero volume", file_extension)

    volume_mm3 = calculate_volume(triangles)
    if not math.isfinite(volume_mm3):
        logger.warning("Volume overflowed for %d triangles, using zero volume", len(triangles))
        volume_mm3 = 0.0

    grams = grams_for_volume(volume_mm3, material, config)
    dimensions = calculate_bounding_box(triangles).as_tuple()

    logger.debug(
        "Mesh estimated",
        extra={
            'mesh_format': mesh_format.value,
            'triangles': len(triangles),
            'volume_mm3': volume_mm3,
            'grams': grams,
        }
    )
    return MeshVolumeResult(
        volume_mm3=volume_mm3,
        grams=grams,
        mesh_format=mesh_format,
        n_triangles=len(triangles),
        dimensions_mm=dimensions,
    )


def estimate_file(
    path: Union[str, Path],
    material: Optional[str] = DEFAULT_MATERIAL,
    config: Optional[EstimationConfig] = None,
) -> MeshVolumeResult:
    """Read a mesh file from disk and estimate it.

    Raises:
        OSError: if the file cannot be read
    """
    path = Path(path)
    return estimate_mesh_volume(path.read_bytes(), path.suffix, material, config)
