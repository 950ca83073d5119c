"""
print_quote: price quotes for 3D-printed parts from STL/OBJ uploads.

Mesh bytes -> volume (mm^3) -> grams per item -> itemised order price.
The command-line entry point is main.py.
"""

from print_quote.batch import OrderQuote, UploadedItem, quote_order
from print_quote.estimation import MeshVolumeResult, estimate_file, estimate_mesh_volume
from print_quote.logging_config import (
    setup_logging,
    get_logger,
    configure_default_logging,
    log_timing,
    timed,
    LogContext,
)
from print_quote.pricing import CartEntry, PricingBreakdown, price_cart, shipping_for_weight
from print_quote.project_config import ConfigError, QuoteConfig, load_config

__version__ = "0.1.0"

__all__ = [
    "CartEntry",
    "ConfigError",
    "LogContext",
    "MeshVolumeResult",
    "OrderQuote",
    "PricingBreakdown",
    "QuoteConfig",
    "UploadedItem",
    "configure_default_logging",
    "estimate_file",
    "estimate_mesh_volume",
    "get_logger",
    "load_config",
    "log_timing",
    "price_cart",
    "quote_order",
    "setup_logging",
    "shipping_for_weight",
    "timed",
]
