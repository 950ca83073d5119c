"""
Mesh file format detection.

The format is chosen from the file extension. STL needs one more step:
binary files may carry a header that starts with ``solid`` just like ASCII
files, so a ``solid`` header counts as binary only when the declared triangle
count explains the file size exactly.
"""

import logging
import struct
from enum import Enum

logger = logging.getLogger(__name__)

STL_HEADER_SIZE = 80
STL_PREAMBLE_SIZE = 84  # header + uint32 triangle count
STL_RECORD_SIZE = 50
ASCII_STL_MARKER = b"solid"


class MeshFormat(Enum):
    """Parse strategy for an uploaded mesh."""
    BINARY_STL = "binary_stl"
    ASCII_STL = "ascii_stl"
    OBJ = "obj"
    UNSUPPORTED = "unsupported"


def normalize_extension(extension: str) -> str:
    """'STL', '.Stl' and 'part.STL' all become '.stl'."""
    ext = (extension or "").strip().lower()
    if "." in ext:
        ext = ext[ext.rfind("."):]
    elif ext:
        ext = "." + ext
    return ext


def declared_triangle_count(data: bytes) -> int:
    """Triangle count stored at offset 80 of a binary STL (0 if absent)."""
    if len(data) < STL_PREAMBLE_SIZE:
        return 0
    return struct.unpack_from("<I", data, STL_HEADER_SIZE)[0]


def is_binary_stl(data: bytes) -> bool:
    """Decide between binary and ASCII STL.

    Files shorter than the binary preamble are ASCII. A header without the
    ``solid`` marker is binary. A ``solid`` header is binary only if
    ``84 + count * 50`` equals the byte length.
    """
    if len(data) < STL_PREAMBLE_SIZE:
        return False
    if not data[:STL_HEADER_SIZE].startswith(ASCII_STL_MARKER):
        return True
    expected_size = STL_PREAMBLE_SIZE + declared_triangle_count(data) * STL_RECORD_SIZE
    return expected_size == len(data)


def detect_mesh_format(data: bytes, extension: str) -> MeshFormat:
    """Pick the parse strategy for ``data`` uploaded with ``extension``."""
    ext = normalize_extension(extension)
    if ext == ".stl":
        fmt = MeshFormat.BINARY_STL if is_binary_stl(data) else MeshFormat.ASCII_STL
    elif ext == ".obj":
        fmt = MeshFormat.OBJ
    else:
        fmt = MeshFormat.UNSUPPORTED

    logger.debug("Detected mesh format %s for extension %r (%d bytes)",
                 fmt.value, extension, len(data))
    return fmt
