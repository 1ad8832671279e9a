"""
Pricing calculator for program selections.

Catalog prices are whole rupees and GST-inclusive. The calculator only sums
and multiplies; GST is never added on top. Callers that need the tax portion
use `split_inclusive`, which backs the exclusive amount out of an inclusive
one.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Sequence, Tuple

from app.services.catalog import Product, ProductCatalog
from app.utils.error_handler import ProductNotFoundError, ValidationError

logger = logging.getLogger(__name__)

MIN_DURATION_MONTHS = 1
MAX_DURATION_MONTHS = 60


@dataclass(frozen=True)
class PricingBreakdown:
    product: Product
    duration: int
    program_unit_price: int
    program_price: int
    addon_price: int
    subtotal: int
    total: int
    addons: List[Product] = field(default_factory=list)

    @property
    def addon_ids(self) -> List[str]:
        return [addon.id for addon in self.addons]

    @property
    def addon_names(self) -> str:
        return ", ".join(addon.name for addon in self.addons)


def round_half_up(value) -> int:
    """Round to a whole unit, halves away from zero"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def split_inclusive(amount: int, gst_rate: float) -> Tuple[int, int]:
    """Split a GST-inclusive amount into (exclusive amount, GST portion)"""
    divisor = Decimal("1") + Decimal(str(gst_rate)) / Decimal("100")
    exclusive = round_half_up(Decimal(amount) / divisor)
    return exclusive, amount - exclusive


def normalize_duration(duration) -> int:
    try:
        months = int(duration)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid program duration: {duration!r}")
    if months != duration and str(months) != str(duration):
        raise ValidationError(f"Program duration must be a whole number of months: {duration!r}")
    if not MIN_DURATION_MONTHS <= months <= MAX_DURATION_MONTHS:
        raise ValidationError(
            f"Program duration must be between {MIN_DURATION_MONTHS} and {MAX_DURATION_MONTHS} months"
        )
    return months


def calculate_pricing(
    catalog: ProductCatalog,
    product_type: str,
    product_id: str,
    addon_ids: Sequence[str] = (),
    duration=1,
) -> PricingBreakdown:
    """Price a selection against the catalog.

    Unknown product types or products raise ProductNotFoundError. Add-on ids
    that do not resolve are skipped and logged.
    """
    lookup = catalog.lookup(product_type, product_id)
    if not lookup.found:
        raise ProductNotFoundError(f"Product not found: {lookup.reason}")
    product = lookup.product

    addon_family = catalog.addon_family(product_type)
    if addon_family is None:
        raise ProductNotFoundError(f"Product not found: no add-on family for '{product_type}'")

    months = normalize_duration(duration)

    addons = []
    for addon_id in addon_ids or ():
        addon_lookup = catalog.lookup(addon_family, addon_id)
        if addon_lookup.found:
            addons.append(addon_lookup.product)
        else:
            logger.warning(f"Skipping unknown add-on '{addon_id}' for '{product_type}/{product_id}'")

    program_price = product.price * months if product.is_monthly else product.price
    addon_price = sum(addon.price for addon in addons)
    subtotal = program_price + addon_price

    return PricingBreakdown(
        product=product,
        duration=months,
        program_unit_price=product.price,
        program_price=program_price,
        addon_price=addon_price,
        subtotal=subtotal,
        total=subtotal,
        addons=addons,
    )
