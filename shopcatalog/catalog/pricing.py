"""Effective price resolution.

Price-ranked search orders and bounds products by a single effective
price. Simple products carry one price triple; combination products are
represented by their first variant in declaration order.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Coerce a stored price to Decimal.

    Fragments often keep prices as strings ("12.50"). Missing or
    unparsable values count as zero.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO


def _aware(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def promotion_active(product: Mapping[str, Any], now: datetime | None = None) -> bool:
    """Check whether a simple product's promotion is running.

    Args:
        product: Product document.
        now: Reference time, defaults to the current UTC time.

    Returns:
        True if the promotional flag is set and the promotion ends in the future.
    """
    if not product.get("promotional"):
        return False
    ends = product.get("date_to_promo")
    if not isinstance(ends, datetime):
        return False
    now = now or datetime.now(timezone.utc)
    return _aware(ends) > _aware(now)


def base_price(product: Mapping[str, Any], now: datetime | None = None) -> Decimal:
    """Price of a simple product: promotional when active, else original."""
    prices = product.get("prices") or {}
    if promotion_active(product, now):
        promo = to_decimal(prices.get("price"))
        if promo > 0:
            return promo
    return to_decimal(prices.get("original_price"))


def first_variant_price(variants: list[Mapping[str, Any]]) -> Decimal:
    """Price of the first variant: its price if positive, else its original price."""
    if not variants:
        return ZERO
    first = variants[0] or {}
    price = to_decimal(first.get("price"))
    if price > 0:
        return price
    return to_decimal(first.get("original_price"))


def resolve_price(product: Mapping[str, Any], now: datetime | None = None) -> Decimal:
    """Resolve the effective price of a product.

    Steps, in order:
        1. Simple product with a non-zero base price: the base price.
        2. Combination product with variants: the first variant's price.
        3. Otherwise zero.

    Only the first variant is consulted, not the cheapest one.

    Args:
        product: Product document with ``is_combination``, ``prices``,
            ``promotional``, ``date_to_promo`` and ``variants``.
        now: Reference time for promotion checks.

    Returns:
        Effective price.
    """
    variants = product.get("variants") or []

    if not product.get("is_combination"):
        return base_price(product, now)

    if variants:
        return first_variant_price(variants)

    return ZERO
