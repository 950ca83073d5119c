"""
Order quoting: estimate every uploaded file, then price the order once.

Provides:
- Concurrent per-file estimation on a bounded thread pool
- Deterministic item order (by upload index) regardless of completion order
- A single sequential pricing pass over the whole order

Usage:
    from print_quote.batch import UploadedItem, quote_order

    quote = quote_order([
        UploadedItem.from_path("bracket.stl", material="PETG", copies=2),
        UploadedItem.from_path("knob.obj"),
    ])
    print(quote.summary())
"""

import contextvars
import logging
import re
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from print_quote.estimation import MeshVolumeResult, estimate_mesh_volume
from print_quote.logging_config import LogContext, log_timing
from print_quote.materials import DEFAULT_MATERIAL
from print_quote.pricing import CartEntry, PricingBreakdown, price_cart
from print_quote.project_config import QuoteConfig

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "white"

_LEADING_INT = re.compile(r"\s*([-+]?\d+)")


def coerce_copies(value: Any) -> int:
    """Normalise a copy count from a form field: at least 1, junk becomes 1.

    The leading integer is used, so ``"2.5"``, ``2.0`` and ``"3 pcs"`` give
    2, 2 and 3.
    """
    match = _LEADING_INT.match(str(value))
    if not match:
        return 1
    return max(int(match.group(1)), 1)


@dataclass(frozen=True)
class UploadedItem:
    """One uploaded mesh with the customer's choices for it."""
    data: bytes = field(repr=False)
    filename: str
    material: str = DEFAULT_MATERIAL
    color: str = DEFAULT_COLOR
    copies: int = 1

    @classmethod
    def from_path(cls, path: Union[str, Path], material: str = DEFAULT_MATERIAL,
                  color: str = DEFAULT_COLOR, copies: int = 1) -> 'UploadedItem':
        """Read an upload from disk."""
        path = Path(path)
        return cls(data=path.read_bytes(), filename=path.name,
                   material=material, color=color, copies=copies)

    @property
    def extension(self) -> str:
        """Text from the last dot on, so ``.stl`` alone still counts as STL."""
        dot = self.filename.rfind(".")
        return self.filename[dot:] if dot >= 0 else ""


@dataclass
class ItemEstimate:
    """Estimation outcome for one upload."""
    index: int
    upload: UploadedItem
    result: MeshVolumeResult
    duration_seconds: float = 0.0

    def to_cart_entry(self) -> CartEntry:
        return CartEntry(
            index=self.index,
            name=self.upload.filename,
            material=self.upload.material or DEFAULT_MATERIAL,
            color=self.upload.color or DEFAULT_COLOR,
            copies=coerce_copies(self.upload.copies),
            grams_each=self.result.grams,
        )


@dataclass
class OrderQuote:
    """Priced order together with the per-file estimates behind it."""
    estimates: List[ItemEstimate]
    breakdown: PricingBreakdown
    quote_id: str = ""
    total_duration_seconds: float = 0.0

    @property
    def total(self):
        return self.breakdown.total

    def summary(self) -> str:
        """Human-readable quote."""
        lines = [
            f"Quote {self.quote_id}".rstrip(),
            "=" * 40,
        ]
        for est in self.estimates:
            r = est.result
            dims = " x ".join(f"{d:.1f}" for d in r.dimensions_mm)
            lines.append(
                f"#{est.index} {est.upload.filename}: {r.volume_mm3:.0f} mm^3, "
                f"{r.grams:.1f} g ({r.mesh_format.value}, {r.n_triangles} triangles, {dims} mm)"
            )
        lines.append("")
        lines.append(self.breakdown.summary())
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'quote_id': self.quote_id,
            'breakdown': self.breakdown.to_dict(),
            'estimates': [
                {
                    'index': est.index,
                    'name': est.upload.filename,
                    'duration': est.duration_seconds,
                    **est.result.to_dict(),
                }
                for est in self.estimates
            ],
            'total_duration_seconds': self.total_duration_seconds,
        }


def _estimate_one(index: int, upload: UploadedItem, config: QuoteConfig) -> ItemEstimate:
    start_time = time.perf_counter()
    result = estimate_mesh_volume(upload.data, upload.extension, upload.material, config.estimation)
    return ItemEstimate(
        index=index,
        upload=upload,
        result=result,
        duration_seconds=time.perf_counter() - start_time,
    )


def estimate_uploads(
    uploads: Sequence[UploadedItem],
    config: Optional[QuoteConfig] = None,
    parallel: bool = True,
    max_workers: Optional[int] = None,
    progress_callback: Optional[Callable[[int, int, ItemEstimate], None]] = None,
) -> List[ItemEstimate]:
    """Estimate every upload of an order.

    Args:
        uploads: Uploaded files in upload order
        config: Quote configuration (defaults if None)
        parallel: Estimate on a thread pool
        max_workers: Pool size (config.concurrency.max_workers if None)
        progress_callback: Called after each file: (done, total, estimate)

    Returns:
        Estimates sorted by upload index
    """
    config = config or QuoteConfig()
    total = len(uploads)
    estimates: List[ItemEstimate] = []

    def _report(done: int, est: ItemEstimate) -> None:
        if progress_callback:
            progress_callback(done, total, est)
        logger.info(
            "[%d/%d] %s: %.1f g (%.3fs)",
            done, total, est.upload.filename, est.result.grams, est.duration_seconds
        )

    if parallel and total > 1:
        workers = min(max_workers or config.concurrency.max_workers, total)
        with ThreadPoolExecutor(max_workers=workers) as executor:
            # Each task runs in a copy of the caller's context to keep its LogContext
            futures = [
                executor.submit(contextvars.copy_context().run, _estimate_one, i, upload, config)
                for i, upload in enumerate(uploads)
            ]
            for done, future in enumerate(as_completed(futures), 1):
                est = future.result()
                estimates.append(est)
                _report(done, est)
    else:
        for i, upload in enumerate(uploads):
            est = _estimate_one(i, upload, config)
            estimates.append(est)
            _report(i + 1, est)

    estimates.sort(key=lambda e: e.index)
    return estimates


def quote_order(
    uploads: Sequence[UploadedItem],
    config: Optional[QuoteConfig] = None,
    parallel: bool = True,
    max_workers: Optional[int] = None,
    progress_callback: Optional[Callable[[int, int, ItemEstimate], None]] = None,
    quote_id: Optional[str] = None,
) -> OrderQuote:
    """Estimate and price one order.

    Every upload counts as one file for the extra-file fee, whatever its
    copy count; uploading the same content twice counts twice.

    Returns:
        OrderQuote with items in upload order
    """
    start_time = time.perf_counter()
    config = config or QuoteConfig()
    quote_id = quote_id or uuid.uuid4().hex[:12]

    with LogContext(quote_id=quote_id):
        with log_timing(logger, "Estimating uploads", files=len(uploads)):
            estimates = estimate_uploads(
                uploads,
                config=config,
                parallel=parallel,
                max_workers=max_workers,
                progress_callback=progress_callback,
            )

        breakdown = price_cart(
            [est.to_cart_entry() for est in estimates],
            unique_file_count=len(uploads),
            config=config.pricing,
        )

        quote = OrderQuote(
            estimates=estimates,
            breakdown=breakdown,
            quote_id=quote_id,
            total_duration_seconds=time.perf_counter() - start_time,
        )
        logger.info(
            "Quote complete: %d file(s), %d g, total %s %s (%.2fs)",
            len(estimates), breakdown.total_grams, breakdown.total,
            breakdown.currency, quote.total_duration_seconds,
        )

    return quote
