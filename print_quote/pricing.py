"""
Pricing Engine: per-item print weights -> itemised order price.

    total = base_fee + sum(material_cost) + file_fee + shipping

Prices must be reproducible from stored line items, so two rounding rules are
fixed:
- rounding is half-up (2.5 -> 3), not Python's round-half-to-even
- material cost is rounded per copy and then multiplied by the copy count
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from print_quote.materials import lookup_by_material, normalize_material
from print_quote.project_config import PricingConfig, ShippingBand

logger = logging.getLogger(__name__)

Number = Union[int, float]


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards +infinity."""
    return int(math.floor(value + 0.5))


def _fmt(value: Number) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"


@dataclass(frozen=True)
class CartEntry:
    """One uploaded file in an order, with its estimated weight per copy.

    ``copies >= 1`` is expected; enforcing it is up to the caller.
    """
    index: int
    name: str
    material: str
    color: str
    copies: int
    grams_each: float


@dataclass(frozen=True)
class PricedItem:
    """Pricing of one cart entry."""
    index: int
    name: str
    material: str
    color: str
    copies: int
    grams_each: int
    grams_total: int
    per_gram: Number
    material_cost: int

    def to_dict(self) -> dict:
        return {
            'index': self.index,
            'name': self.name,
            'material': self.material,
            'color': self.color,
            'copies': self.copies,
            'grams_each': self.grams_each,
            'grams_total': self.grams_total,
            'per_gram': self.per_gram,
            'material_cost': self.material_cost,
        }


@dataclass(frozen=True)
class PricingBreakdown:
    """Itemised order price.

    Attributes:
        total_grams: Sum of per-item rounded total weights (no packaging)
        packaging_grams: Packaging weight added for shipping
        material_cost: Sum of per-item material costs
        file_fee: Surcharge for every uploaded file after the first
        base_fee: Per-order start fee
        shipping: Parcel price for total_grams + packaging_grams
        total: base_fee + material_cost + file_fee + shipping
        items: Priced items in input order
    """
    total_grams: int
    packaging_grams: Number
    material_cost: Number
    file_fee: Number
    base_fee: Number
    shipping: Number
    total: Number
    items: Tuple[PricedItem, ...] = ()
    currency: str = "kr"

    @property
    def shipping_grams(self) -> Number:
        """Weight the shipping band was chosen for."""
        return self.total_grams + self.packaging_grams

    def to_dict(self) -> dict:
        """Convert to dictionary for persistence and JSON responses."""
        return {
            'total_grams': self.total_grams,
            'packaging_grams': self.packaging_grams,
            'material_cost': self.material_cost,
            'file_fee': self.file_fee,
            'base_fee': self.base_fee,
            'shipping': self.shipping,
            'total': self.total,
            'currency': self.currency,
            'items': [item.to_dict() for item in self.items],
        }

    def summary(self) -> str:
        """Receipt text for the customer."""
        cur = self.currency
        lines = ["Items:"]
        for item in self.items:
            lines.append(
                f"- #{item.index} {item.name}  {item.material}/{item.color} x {item.copies}"
                f"  (~{item.grams_each} g/ea)  {_fmt(item.material_cost)} {cur}"
            )
        lines += [
            "",
            f"Material cost: {_fmt(self.material_cost)} {cur}",
            f"File fee:      {_fmt(self.file_fee)} {cur}",
            f"Shipping:      {_fmt(self.shipping)} {cur} ({_fmt(self.shipping_grams)} g incl. packaging)",
            f"Start fee:     {_fmt(self.base_fee)} {cur}",
            f"Total:         {_fmt(self.total)} {cur}",
        ]
        return "\n".join(lines)


def shipping_for_weight(total_grams: float,
                        bands: Optional[Sequence[ShippingBand]] = None) -> Number:
    """Parcel price for a shippable weight.

    The weight is rounded up to a whole gram and matched against the bands in
    ascending limit order, whatever order they are given in; weights above
    the heaviest band pay that band's price.
    """
    if bands is None:
        bands = PricingConfig().shipping_bands
    ordered = sorted(bands, key=lambda band: band.limit_grams)
    weight = math.ceil(total_grams)
    for band in ordered:
        if weight <= band.limit_grams:
            return band.price
    return ordered[-1].price


def price_item(entry: CartEntry, config: PricingConfig) -> PricedItem:
    """Price one cart entry.

    grams_total   = round(grams_each * copies)
    material_cost = round(grams_each * per_gram) * copies
    """
    per_gram = lookup_by_material(config.material_rates, entry.material, config.default_material)
    return PricedItem(
        index=entry.index,
        name=entry.name,
        material=normalize_material(entry.material, config.default_material),
        color=entry.color,
        copies=entry.copies,
        grams_each=round_half_up(entry.grams_each),
        grams_total=round_half_up(entry.grams_each * entry.copies),
        per_gram=per_gram,
        material_cost=round_half_up(entry.grams_each * per_gram) * entry.copies,
    )


def price_cart(
    entries: Iterable[CartEntry],
    unique_file_count: int,
    config: Optional[PricingConfig] = None,
) -> PricingBreakdown:
    """Price a whole order.

    Args:
        entries: Cart entries; the breakdown keeps their order
        unique_file_count: Number of uploaded files (one per upload, not per copy)
        config: Fee schedule (defaults if None)

    Returns:
        PricingBreakdown
    """
    config = config or PricingConfig()
    items: List[PricedItem] = [price_item(entry, config) for entry in entries]

    total_grams = sum(item.grams_total for item in items)
    material_cost = sum(item.material_cost for item in items)
    file_fee = max(unique_file_count - 1, 0) * config.per_extra_file_fee
    shipping = shipping_for_weight(total_grams + config.packaging_grams, config.shipping_bands)
    total = config.base_fee + material_cost + file_fee + shipping

    logger.debug(
        "Cart priced",
        extra={
            'items': len(items),
            'total_grams': total_grams,
            'shipping': shipping,
            'total': total,
        }
    )
    return PricingBreakdown(
        total_grams=total_grams,
        packaging_grams=config.packaging_grams,
        material_cost=material_cost,
        file_fee=file_fee,
        base_fee=config.base_fee,
        shipping=shipping,
        total=total,
        items=tuple(items),
        currency=config.currency,
    )
