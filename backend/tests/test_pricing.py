"""Cart pricing: discount, GST and pro-rata apportionment."""

import pytest

from stockline.services.pricing import apportion, calculate_totals, percent_of
from stockline.validation import ValidationError


def test_percentage_discount_then_gst():
    pricing = calculate_totals(
        10000, discount_type="percentage", discount_value=1000, gst_enabled=True, gst_rate_bps=1800
    )

    assert pricing.discount_amount_cents == 1000
    assert pricing.taxable_base_cents == 9000
    assert pricing.gst_amount_cents == 1620
    assert pricing.total_cents == 10620


def test_fixed_discount_is_capped_at_subtotal():
    pricing = calculate_totals(
        5000, discount_type="fixed", discount_value=7500, gst_enabled=True, gst_rate_bps=1800
    )

    assert pricing.discount_amount_cents == 5000
    assert pricing.taxable_base_cents == 0
    assert pricing.gst_amount_cents == 0
    assert pricing.total_cents == 0


def test_no_discount_ignores_value_and_gst_disabled():
    pricing = calculate_totals(2500, discount_type="none", discount_value=300, gst_enabled=False, gst_rate_bps=1800)

    assert pricing.discount_value == 0
    assert pricing.discount_amount_cents == 0
    assert pricing.gst_rate_bps == 0
    assert pricing.total_cents == 2500


def test_percent_of_rounds_half_up():
    # 12.5% of 1.00 = 12.5 cents
    assert percent_of(100, 1250) == 13
    assert percent_of(101, 1800) == 18
    assert percent_of(0, 1800) == 0


@pytest.mark.parametrize("kwargs", [
    {"discount_type": "percentage", "discount_value": 10001},
    {"discount_type": "bogus", "discount_value": 0},
    {"discount_type": "fixed", "discount_value": -1},
    {"gst_enabled": True, "gst_rate_bps": 20000},
])
def test_invalid_pricing_inputs(kwargs):
    with pytest.raises(ValidationError):
        calculate_totals(1000, **kwargs)


def test_apportion_sums_exactly_and_never_negative():
    shares = apportion(2, [100, 100, 100, 100])

    assert sum(shares) == 2
    assert all(share >= 0 for share in shares)
    assert shares == [1, 1, 0, 0]


def test_apportion_is_pro_rata():
    assert apportion(733, [4000, 3333]) == [400, 333]
    assert apportion(1000, [1, 0, 1]) == [500, 0, 500]


def test_apportion_rejects_zero_value_cart():
    with pytest.raises(ValidationError):
        apportion(10, [])
    assert apportion(0, [0, 0]) == [0, 0]
