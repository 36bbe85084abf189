from decimal import Decimal

import pytest

from tradehub.services.pricing import (
    CartItemInput,
    LineItemInput,
    calculate_quotation_totals,
    calculate_wholesale_cart_totals,
    validate_moq,
)


def test_quotation_totals_with_tax_shipping_and_discount():
    totals = calculate_quotation_totals(
        [
            LineItemInput("Vanilla beans 1kg", Decimal("120.00"), 10, discount=Decimal("50")),
            LineItemInput("Monoi oil 250ml", Decimal("8.333"), 3),
        ],
        deposit_percentage=30,
        tax_rate=Decimal("0.1"),
        shipping_amount=Decimal("75.50"),
    )

    assert [l.line_total for l in totals.line_items] == [Decimal("1150.00"), Decimal("24.99")]
    assert totals.subtotal == Decimal("1174.99")
    assert totals.tax_amount == Decimal("117.50")
    assert totals.shipping_amount == Decimal("75.50")
    assert totals.total == Decimal("1367.99")
    assert totals.deposit_amount == Decimal("410.40")
    assert totals.balance_amount == Decimal("957.59")
    assert totals.deposit_amount + totals.balance_amount == totals.total


def test_quotation_totals_in_zero_decimal_currency():
    totals = calculate_quotation_totals(
        [LineItemInput("Pearl strand", Decimal("15000"), 3)],
        deposit_percentage=Decimal("33.3"),
        currency="JPY",
    )
    assert totals.total == Decimal("45000")
    assert totals.deposit_amount == Decimal("14985")
    assert totals.balance_amount == Decimal("30015")


def test_default_deposit_is_half():
    totals = calculate_quotation_totals([LineItemInput("Item", Decimal("10.01"), 1)])
    assert totals.deposit_percentage == Decimal("50")
    assert totals.deposit_amount == Decimal("5.01")
    assert totals.balance_amount == Decimal("5.00")


def test_empty_quotation_is_all_zero():
    totals = calculate_quotation_totals([])
    assert totals.total == Decimal("0.00")
    assert totals.deposit_amount == Decimal("0.00")


@pytest.mark.parametrize(
    "items, kwargs, message",
    [
        ([LineItemInput("x", Decimal("1"), 0)], {}, "Line 1: quantity must be greater than 0"),
        ([LineItemInput("x", Decimal("-1"), 1)], {}, "Line 1: unit price cannot be negative"),
        (
            [LineItemInput("x", Decimal("1"), 1), LineItemInput("y", Decimal("10"), 1, discount=Decimal("11"))],
            {},
            "Line 2: discount must be between 0 and the line amount",
        ),
        ([LineItemInput("x", Decimal("1"), 1)], {"deposit_percentage": 101}, "Deposit percentage must be between 0 and 100"),
        ([LineItemInput("x", Decimal("1"), 1)], {"tax_rate": -0.1}, "Tax rate cannot be negative"),
        ([LineItemInput("x", Decimal("1"), 1)], {"shipping_amount": -1}, "Shipping amount cannot be negative"),
    ],
)
def test_quotation_totals_rejects_bad_input(items, kwargs, message):
    with pytest.raises(ValueError, match=message):
        calculate_quotation_totals(items, **kwargs)


def test_wholesale_cart_totals_in_cents():
    totals = calculate_wholesale_cart_totals(
        [
            CartItemInput(product_id=1, quantity=12, unit_price_cents=2250, moq=10),
            CartItemInput(product_id=2, quantity=3, unit_price_cents=999, moq=5),
        ],
        deposit_percentage=30,
    )
    assert totals.subtotal_cents == 29997
    assert totals.deposit_cents == 8999
    assert totals.balance_due_cents == 20998
    assert totals.total_cents == 29997
    assert [l.moq_compliant for l in totals.items] == [True, False]


def test_validate_moq_reports_index_of_each_violation():
    check = validate_moq(
        [
            CartItemInput(product_id=1, quantity=5, unit_price_cents=100, moq=10),
            CartItemInput(product_id=2, quantity=1, unit_price_cents=100),
            CartItemInput(product_id=3, quantity=2, unit_price_cents=100, moq=3),
        ]
    )
    assert not check.is_valid
    assert [(v.index, v.quantity, v.moq) for v in check.violations] == [(0, 5, 10), (2, 2, 3)]
