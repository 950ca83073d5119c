"""
Pytest configuration and fixtures for the print_quote test suite.

Provides:
- Cube geometry with outward winding (10 mm, volume 1000 mm^3)
- Builders for binary STL, ASCII STL and OBJ payloads
- STL files written with numpy-stl
"""

import logging
import struct
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pytest
from stl import mesh as stl_mesh

from print_quote.logging_config import PACKAGE_LOGGER
from print_quote.project_config import QuoteConfig

CUBE_SIZE = 10.0
CUBE_VOLUME = CUBE_SIZE ** 3

# Cube corners (unit cube, scaled by size)
CUBE_VERTICES = [
    (0, 0, 0), (1, 0, 0), (1, 1, 0), (0, 1, 0),  # bottom
    (0, 0, 1), (1, 0, 1), (1, 1, 1), (0, 1, 1),  # top
]

# Counter-clockwise seen from outside: normals point out, signed volume > 0
CUBE_FACES = [
    (0, 2, 1), (0, 3, 2),  # bottom
    (4, 5, 6), (4, 6, 7),  # top
    (0, 1, 5), (0, 5, 4),  # front
    (3, 7, 6), (3, 6, 2),  # back
    (0, 4, 7), (0, 7, 3),  # left
    (1, 2, 6), (1, 6, 5),  # right
]


# ============================================================================
# Geometry helpers
# ============================================================================

def make_cube_triangles(size: float = CUBE_SIZE,
                        offset: Sequence[float] = (0.0, 0.0, 0.0)) -> np.ndarray:
    """Cube as (12, 3, 3) triangles, outward winding."""
    vertices = np.array(CUBE_VERTICES, dtype=np.float64) * size + np.asarray(offset, dtype=np.float64)
    return np.array([[vertices[i] for i in face] for face in CUBE_FACES])


def make_binary_stl(triangles: Iterable, header: bytes = b"binary test part",
                    declared_count: Optional[int] = None) -> bytes:
    """Binary STL bytes; ``declared_count`` overrides the count at offset 80."""
    tris = np.asarray(triangles, dtype=np.float32).reshape(-1, 3, 3)
    records = np.zeros(len(tris), dtype=stl_mesh.Mesh.dtype.newbyteorder('<'))
    records['vectors'] = tris
    count = len(tris) if declared_count is None else declared_count
    return header.ljust(80, b"\0")[:80] + struct.pack("<I", count) + records.tobytes()


def make_ascii_stl(triangles: Iterable, name: str = "cube") -> str:
    """ASCII STL text with facet/loop structure."""
    lines = [f"solid {name}"]
    for tri in triangles:
        lines.append("  facet normal 0 0 0")
        lines.append("    outer loop")
        for v in tri:
            lines.append(f"      vertex {v[0]:e} {v[1]:e} {v[2]:e}")
        lines.append("    endloop")
        lines.append("  endfacet")
    lines.append(f"endsolid {name}")
    return "\n".join(lines) + "\n"


def make_obj(vertices: Iterable[Sequence[float]], faces: Iterable[Sequence], comment: str = "") -> str:
    """OBJ text; face entries are written verbatim (ints or reference strings)."""
    lines: List[str] = []
    if comment:
        lines.append(f"# {comment}")
    for v in vertices:
        lines.append("v " + " ".join(str(c) for c in v))
    for f in faces:
        lines.append("f " + " ".join(str(i) for i in f))
    return "\n".join(lines) + "\n"


def cube_obj(size: float = CUBE_SIZE) -> str:
    """Cube as OBJ with 1-based triangle faces."""
    vertices = [tuple(c * size for c in v) for v in CUBE_VERTICES]
    faces = [tuple(i + 1 for i in face) for face in CUBE_FACES]
    return make_obj(vertices, faces, comment="cube")


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def cube_triangles() -> np.ndarray:
    """10 mm cube triangles."""
    return make_cube_triangles()


@pytest.fixture
def cube_binary_stl(cube_triangles) -> bytes:
    """10 mm cube as binary STL bytes."""
    return make_binary_stl(cube_triangles)


@pytest.fixture
def cube_ascii_stl(cube_triangles) -> bytes:
    """10 mm cube as ASCII STL bytes."""
    return make_ascii_stl(cube_triangles).encode("ascii")


@pytest.fixture
def cube_obj_bytes() -> bytes:
    """10 mm cube as OBJ bytes."""
    return cube_obj().encode("ascii")


@pytest.fixture
def cube_stl_path(tmp_path: Path, cube_triangles) -> Path:
    """10 mm cube written to disk by numpy-stl."""
    path = tmp_path / "cube.stl"
    m = stl_mesh.Mesh(np.zeros(len(cube_triangles), dtype=stl_mesh.Mesh.dtype))
    for i, tri in enumerate(cube_triangles):
        m.vectors[i] = tri
    m.save(str(path))
    return path


@pytest.fixture
def default_config() -> QuoteConfig:
    """Built-in configuration."""
    return QuoteConfig()


@pytest.fixture(autouse=True)
def _clear_quote_env(monkeypatch):
    """Keep deployment overrides out of the tests."""
    for var in ("FILL_FACTOR", "MIN_GRAMS_PER_FILE", "PACKAGING_GRAMS", "START_FEE", "EXTRA_FILE_FEE"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Undo setup_logging() so caplog sees print_quote records in every test."""
    yield
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.filters.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
