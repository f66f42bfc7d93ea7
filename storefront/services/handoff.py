# storefront/services/handoff.py
"""
Order summary handed to the external messaging channel instead of an in-app payment.
The UI opens the link; nothing is sent from here.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable
from urllib.parse import quote

from storefront.services.shipping import ShippingEstimate
from storefront.utils.settings import HANDOFF_BASE_URL, HANDOFF_DESTINATION


@dataclass(frozen=True)
class HandoffLine:
    name: str
    quantity: int
    line_total: Decimal


@dataclass(frozen=True)
class ShippingAddress:
    full_name: str
    address: str
    city: str
    postal_code: str
    phone: str


def order_reference(order_id) -> str:
    return str(order_id)[:8]


def build_handoff_message(
    order_id,
    lines: Iterable[HandoffLine],
    subtotal: Decimal,
    discount: Decimal,
    total: Decimal,
    shipping: ShippingEstimate,
    address: ShippingAddress,
) -> str:
    products_text = "\n".join(
        f"- {line.name} x{line.quantity} (${line.line_total:.2f})" for line in lines
    )

    summary = f"Subtotal: ${subtotal:.2f}\n"
    if discount > 0:
        summary += f"Discount: -${discount:.2f}\n"
    summary += f"Total to pay (shipping not included): ${total:.2f}\n"

    return (
        "Hello! I would like to confirm my order:\n\n"
        f"Order #{order_reference(order_id)}\n\n"
        f"Products:\n{products_text}\n\n"
        f"Summary:\n{summary}"
        f"Estimated shipping: {shipping.details}. "
        "The shipping cost is arranged in this chat.\n\n"
        "Shipping details:\n"
        f"Name: {address.full_name}\n"
        f"Address: {address.address}\n"
        f"City: {address.city}\n"
        f"Postal code: {address.postal_code}\n"
        f"Phone: {address.phone}"
    )


def handoff_destination() -> str:
    return HANDOFF_DESTINATION


def handoff_url(message: str, destination: str | None = None) -> str:
    return f"{HANDOFF_BASE_URL}/{destination or handoff_destination()}?text={quote(message, safe='')}"
