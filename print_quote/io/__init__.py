"""Mesh file readers and upload validation."""

from print_quote.io.mesh_format import MeshFormat, detect_mesh_format
from print_quote.io.obj_reader import read_obj
from print_quote.io.stl_reader import read_ascii_stl, read_binary_stl, read_stl

__all__ = [
    "MeshFormat",
    "detect_mesh_format",
    "read_ascii_stl",
    "read_binary_stl",
    "read_obj",
    "read_stl",
]
