from decimal import Decimal

import pytest

from bookings import pricing


@pytest.mark.parametrize(
    "total, percent, expected",
    [
        ("1000", 30, "300.00"),
        ("999.99", 25, "250.00"),
        ("1234.50", 10, "123.00"),
        ("1235.00", 10, "124.00"),
        ("5", 10, "1.00"),
        ("4", 10, "0.00"),
    ],
)
def test_deposit_rounds_half_up_to_whole_units(total, percent, expected):
    assert pricing.calculate_deposit_amount(Decimal(total), percent) == Decimal(expected)


def test_remaining_amount_never_negative():
    assert pricing.remaining_amount(Decimal("1000"), Decimal("300")) == Decimal("700.00")
    assert pricing.remaining_amount(Decimal("100"), Decimal("150")) == Decimal("0.00")
    assert pricing.remaining_amount(Decimal("100"), None) == Decimal("100.00")


def test_minor_unit_conversion():
    assert pricing.to_minor_units(Decimal("300.00")) == 30000
    assert pricing.to_minor_units(Decimal("19.995")) == 2000
    assert pricing.from_minor_units(70000) == Decimal("700.00")


def test_to_decimal_rejects_garbage():
    assert pricing.to_decimal("12.50") == Decimal("12.50")
    assert pricing.to_decimal(0.1) == Decimal("0.1")
    assert pricing.to_decimal("") is None
    assert pricing.to_decimal("abc") is None


@pytest.mark.parametrize(
    "total",
    ["0.05", "0.10", "1.00", "19.95", "333.33", "999.99", "1000", "1234.55", "250000.05"],
)
@pytest.mark.parametrize("percent", range(pricing.MIN_DEPOSIT_PERCENT, pricing.MAX_DEPOSIT_PERCENT + 1))
def test_deposit_and_remaining_rebuild_total_in_minor_units(total, percent):
    total = Decimal(total)
    deposit = pricing.calculate_deposit_amount(total, percent)
    remaining = pricing.remaining_amount(total, deposit)

    assert pricing.to_minor_units(deposit) + pricing.to_minor_units(remaining) == pricing.to_minor_units(total)
