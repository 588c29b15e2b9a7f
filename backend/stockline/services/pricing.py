# Overview: Cart pricing: discount, GST and per-line apportionment in integer cents.

from __future__ import annotations

from dataclasses import dataclass, asdict

from stockline.models.sales import DISCOUNT_FIXED, DISCOUNT_NONE, DISCOUNT_PERCENTAGE, DISCOUNT_TYPES
from stockline.validation import MAX_BPS, ValidationError


@dataclass(frozen=True)
class PricingSummary:
    subtotal_cents: int
    discount_type: str
    discount_value: int
    discount_amount_cents: int
    taxable_base_cents: int
    gst_enabled: bool
    gst_rate_bps: int
    gst_amount_cents: int
    total_cents: int

    def to_dict(self) -> dict:
        return asdict(self)


def percent_of(amount_cents: int, bps: int) -> int:
    """amount * bps / 10000, rounded half-up to the cent."""
    return (amount_cents * bps * 2 + MAX_BPS) // (2 * MAX_BPS)


def _non_negative_int(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    if value < 0:
        raise ValidationError(f"{name} must be >= 0")
    return value


def calculate_totals(
    subtotal_cents: int,
    *,
    discount_type: str = DISCOUNT_NONE,
    discount_value: int = 0,
    gst_enabled: bool = False,
    gst_rate_bps: int = 0,
) -> PricingSummary:
    """
    subtotal -> discount -> taxable base -> GST -> total.

    Percentage discounts and the GST rate are basis points (1000 = 10%).
    A fixed discount (cents) is capped at the subtotal.
    """
    subtotal_cents = _non_negative_int("subtotal_cents", subtotal_cents)
    discount_type = (discount_type or DISCOUNT_NONE).lower()
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(f"discount_type must be one of: {', '.join(DISCOUNT_TYPES)}")
    discount_value = _non_negative_int("discount_value", discount_value or 0)
    gst_rate_bps = _non_negative_int("gst_rate_bps", gst_rate_bps or 0)
    if gst_rate_bps > MAX_BPS:
        raise ValidationError(f"gst_rate_bps cannot exceed {MAX_BPS}")

    if discount_type == DISCOUNT_PERCENTAGE:
        if discount_value > MAX_BPS:
            raise ValidationError("Percentage discount cannot exceed 100%")
        discount_amount = percent_of(subtotal_cents, discount_value)
    elif discount_type == DISCOUNT_FIXED:
        discount_amount = min(discount_value, subtotal_cents)
    else:
        discount_value = 0
        discount_amount = 0

    taxable_base = subtotal_cents - discount_amount
    gst_amount = percent_of(taxable_base, gst_rate_bps) if gst_enabled else 0

    return PricingSummary(
        subtotal_cents=subtotal_cents,
        discount_type=discount_type,
        discount_value=discount_value,
        discount_amount_cents=discount_amount,
        taxable_base_cents=taxable_base,
        gst_enabled=bool(gst_enabled),
        gst_rate_bps=gst_rate_bps if gst_enabled else 0,
        gst_amount_cents=gst_amount,
        total_cents=taxable_base + gst_amount,
    )


def apportion(amount_cents: int, weights: list[int]) -> list[int]:
    """
    Split amount_cents across weights (line totals) pro rata.

    Shares are floored and the leftover cents go to the largest remainders
    (earlier lines win ties), so the shares always sum to amount_cents.
    """
    total_weight = sum(weights)
    if total_weight <= 0 and amount_cents == 0 and weights:
        return [0] * len(weights)
    if total_weight <= 0:
        raise ValidationError("Cannot apportion over an empty or zero-value cart")

    shares = []
    remainders = []
    for index, weight in enumerate(weights):
        share, remainder = divmod(amount_cents * weight, total_weight)
        shares.append(share)
        remainders.append((-remainder, index))

    leftover = amount_cents - sum(shares)
    for _, index in sorted(remainders)[:leftover]:
        shares[index] += 1
    return shares
