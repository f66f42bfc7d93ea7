"""Handoff message and deep link."""

from decimal import Decimal
from urllib.parse import unquote

from storefront.services.handoff import (
    HandoffLine,
    ShippingAddress,
    build_handoff_message,
    handoff_url,
)
from storefront.services.shipping import ShippingEstimate

ADDRESS = ShippingAddress(
    full_name="Ana Perez",
    address="Calle 1 234",
    city="Rosario",
    postal_code="2000",
    phone="341555000",
)

SHIPPING = ShippingEstimate(total_weight=Decimal("0.75"), boxes=1, cost=Decimal("160"))


def build(discount="10.00"):
    return build_handoff_message(
        order_id=123456789,
        lines=[
            HandoffLine(name="Charizard Holo", quantity=1, line_total=Decimal("50.00")),
            HandoffLine(name="Booster Pack", quantity=2, line_total=Decimal("40.00")),
        ],
        subtotal=Decimal("90.00"),
        discount=Decimal(discount),
        total=Decimal("90.00") - Decimal(discount),
        shipping=SHIPPING,
        address=ADDRESS,
    )


class TestHandoffMessage:
    def test_lists_every_line_with_totals(self):
        message = build()
        assert "- Charizard Holo x1 ($50.00)" in message
        assert "- Booster Pack x2 ($40.00)" in message

    def test_order_reference_is_a_prefix_of_the_id(self):
        assert "Order #12345678\n" in build()

    def test_summary_with_discount(self):
        message = build()
        assert "Subtotal: $90.00" in message
        assert "Discount: -$10.00" in message
        assert "Total to pay (shipping not included): $80.00" in message

    def test_discount_line_omitted_when_zero(self):
        assert "Discount" not in build(discount="0.00")

    def test_shipping_note_and_address(self):
        message = build()
        assert "1 box(es) - 0.75 kg total" in message
        assert "Name: Ana Perez" in message
        assert "Postal code: 2000" in message
        assert "Phone: 341555000" in message


class TestHandoffUrl:
    def test_url_encodes_message_for_destination(self):
        message = build()
        url = handoff_url(message, "5491100000000")
        base, _, text = url.partition("?text=")
        assert base == "https://wa.me/5491100000000"
        assert " " not in text and "\n" not in text
        assert unquote(text) == message
