"""WhatsApp deep-link generation.

Nothing here talks to WhatsApp: "sending" a message means building a
``https://wa.me/<phone>?text=<encoded>`` URL that the admin (or customer) opens.
"""
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional
from urllib.parse import quote, urlencode

import structlog

from jewelry_store.config import settings
from jewelry_store.tracing import get_tracer
from jewelry_store.utils.currency import format_amount, to_decimal

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)

WA_BASE_URL = "https://wa.me"

STATUS_LINES = {
    "pending": "Your order has been received and is being reviewed by our team.",
    "payment_pending": "Your order has been received and is awaiting payment.",
    "confirmed": "Your order has been confirmed! We're preparing your jewelry.",
    "processing": "Payment received. Your jewelry is being prepared with care.",
    "shipped": "Your order has been shipped and is on its way.",
    "delivered": "Your order has been delivered. We hope you love your new pieces!",
    "cancelled": "Your order has been cancelled. Reply to this message if you have any questions.",
}


@dataclass(frozen=True)
class WhatsAppLink:
    """Generated deep link and the plain text it carries."""

    url: str
    message: str
    phone: str


def validate_phone_number(phone: str) -> Optional[str]:
    """
    Normalize a phone number to the digits-only form wa.me expects.

    Non-digits are stripped; a bare 10-digit national number gets the default
    country code. Returns None when fewer than 7 or more than 15 digits remain.

    Examples:
        >>> validate_phone_number("+91 98765-43210")
        '919876543210'
        >>> validate_phone_number("9876543210")
        '919876543210'
        >>> validate_phone_number("12345") is None
        True
    """
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) == 10:
        digits = f"{settings.default_country_code}{digits}"
    if not 7 <= len(digits) <= 15:
        return None
    return digits


def build_whatsapp_url(phone: str, message: str) -> str:
    """Build the wa.me URL. Raises ValueError for unusable phone numbers."""
    normalized = validate_phone_number(phone)
    if normalized is None:
        raise ValueError(f"Invalid phone number: {phone!r}")
    return f"{WA_BASE_URL}/{normalized}?text={quote(message, safe='')}"


def build_upi_link(amount: Any, reference: str, upi_id: Optional[str] = None) -> str:
    """UPI intent URL (``upi://pay?...``) for the given amount."""
    params = {
        "pa": upi_id or settings.business_upi_id,
        "pn": settings.business_payee_name,
        "am": f"{to_decimal(amount):.2f}",
        "cu": settings.currency_code,
        "tn": f"Order {reference}",
    }
    return f"upi://pay?{urlencode(params, quote_via=quote)}"


def _status_value(order: Any) -> str:
    status = order.status
    return getattr(status, "value", status)


def _item_lines(items: Iterable[Any], with_prices: bool = True) -> str:
    lines = []
    for item in items:
        snapshot = item.product_snapshot or {}
        name = snapshot.get("name") or snapshot.get("product", {}).get("name") or "Item"
        spec = snapshot.get("specification", {}).get("displayName")
        label = f"{name} ({spec})" if spec else name
        line = f"• {label} x {item.quantity}"
        if with_prices:
            line += f" - {format_amount(item.total_price)}"
        lines.append(line)
    return "\n".join(lines)


class WhatsAppService:
    """Formats order messages and wraps them in wa.me links."""

    def __init__(self, business_phone: Optional[str] = None, company_name: Optional[str] = None):
        self.business_phone = business_phone or settings.whatsapp_business_phone
        self.company_name = company_name or settings.company_name

    def generate_order_message(self, order: Any) -> WhatsAppLink:
        """New-order summary sent by the customer to the business number."""
        with tracer.start_as_current_span("whatsapp.generate_order_message") as span:
            span.set_attribute("order.number", order.order_number)
            message = self.format_order_message(order)
            return self._link(self.business_phone, message, "order_message", order)

    def generate_status_message(self, order: Any, custom_message: Optional[str] = None) -> WhatsAppLink:
        """Status update sent by the admin to the customer."""
        with tracer.start_as_current_span("whatsapp.generate_status_message") as span:
            span.set_attribute("order.number", order.order_number)
            message = custom_message or self.format_status_message(order)
            return self._link(order.customer_phone, message, "status_message", order)

    def generate_payment_message(
        self,
        order: Any,
        upi_id: Optional[str] = None,
        custom_message: Optional[str] = None,
    ) -> tuple[WhatsAppLink, str]:
        """Payment request to the customer. Returns the link and the UPI intent URL it embeds."""
        with tracer.start_as_current_span("whatsapp.generate_payment_message") as span:
            span.set_attribute("order.number", order.order_number)
            upi_link = build_upi_link(order.total_amount, order.order_code, upi_id)
            message = self.format_payment_message(order, upi_link, upi_id, custom_message)
            return self._link(order.customer_phone, message, "payment_message", order), upi_link

    def generate_delivery_message(self, order: Any, tracking_number: Optional[str] = None) -> WhatsAppLink:
        """Shipping confirmation for the customer."""
        tracking = f"\nTracking number: {tracking_number}\n" if tracking_number else ""
        message = (
            f"*Shipping Confirmation - Order #{order.order_number}*\n\n"
            f"Great news {order.customer_name}! Your order is on its way.\n"
            f"{tracking}\n"
            f"*Delivery address:*\n{order.customer_address or '-'}\n\n"
            f"_{self.company_name}_"
        )
        return self._link(order.customer_phone, message, "delivery_message", order)

    def format_order_message(self, order: Any) -> str:
        created = order.created_at.strftime("%d %b %Y, %H:%M") if order.created_at else ""
        return (
            f"*New Order - {self.company_name}*\n\n"
            f"*Order #:* {order.order_number} ({order.order_code})\n"
            f"*Date:* {created}\n\n"
            f"*Customer:*\n"
            f"Name: {order.customer_name}\n"
            f"Email: {order.customer_email or '-'}\n"
            f"Phone: {order.customer_phone}\n"
            f"Address: {order.customer_address or '-'}\n\n"
            f"*Items:*\n{_item_lines(order.items)}\n\n"
            f"*Total: {format_amount(order.total_amount)}*\n\n"
            f"Please share the payment details to confirm this order."
        )

    def format_status_message(self, order: Any) -> str:
        status = _status_value(order)
        return (
            f"*Order Update - #{order.order_number}*\n\n"
            f"Hi {order.customer_name}!\n\n"
            f"{STATUS_LINES.get(status, 'Your order status has been updated.')}\n\n"
            f"*Your order:*\n{_item_lines(order.items, with_prices=False)}\n\n"
            f"*Total: {format_amount(order.total_amount)}*\n"
            f"*Status: {status.replace('_', ' ').title()}*\n\n"
            f"_{self.company_name}_"
        )

    def format_payment_message(
        self,
        order: Any,
        upi_link: str,
        upi_id: Optional[str] = None,
        custom_message: Optional[str] = None,
    ) -> str:
        intro = custom_message or "Your order is confirmed and ready for payment."
        return (
            f"*Payment Request - Order #{order.order_number}*\n\n"
            f"Hello {order.customer_name}!\n\n"
            f"{intro}\n\n"
            f"*Amount: {format_amount(order.total_amount)}*\n"
            f"*UPI ID:* {upi_id or settings.business_upi_id}\n"
            f"Pay now: {upi_link}\n\n"
            f"Once payment is received we'll start preparing your order.\n\n"
            f"_{self.company_name}_"
        )

    def _link(self, phone: str, message: str, kind: str, order: Any) -> WhatsAppLink:
        url = build_whatsapp_url(phone, message)
        logger.info("whatsapp_link_generated", kind=kind, order_number=order.order_number)
        return WhatsAppLink(url=url, message=message, phone=validate_phone_number(phone) or phone)
