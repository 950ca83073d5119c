"""Mesh measurements: volume and bounding box."""

from print_quote.geometry.mesh_stats import (
    BoundingBox,
    calculate_bounding_box,
    calculate_signed_volume,
    calculate_volume,
)

__all__ = [
    "BoundingBox",
    "calculate_bounding_box",
    "calculate_signed_volume",
    "calculate_volume",
]
