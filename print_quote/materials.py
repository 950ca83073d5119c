"""Filament materials offered for printing."""

from enum import Enum
from typing import Mapping, Optional, TypeVar

T = TypeVar('T')

DEFAULT_MATERIAL = "PLA"


class Material(Enum):
    """Filament types with density and price entries in the default config."""
    PLA = "PLA"
    PETG = "PETG"
    ABS = "ABS"
    ASA = "ASA"
    TPU = "TPU"


def normalize_material(name: Optional[str], default: str = DEFAULT_MATERIAL) -> str:
    """Uppercase a material key; empty or missing names become ``default``.

    Unknown names are kept (uppercased) so the order record shows what the
    customer picked even when the rate tables fall back to ``default``.
    """
    if isinstance(name, Material):
        return name.value
    key = str(name or "").strip().upper()
    return key or default.upper()


def lookup_by_material(table: Mapping[str, T], name: Optional[str],
                       default: str = DEFAULT_MATERIAL) -> T:
    """Look a material up in a density/rate table, falling back to ``default``."""
    key = normalize_material(name, default)
    if key in table:
        return table[key]
    return table[default.upper()]
