"""Webhook event dispatcher — runs the side effect for a verified delivery.

An order delivery is reduced to an OrderSummary and written to the log
as a structured block (summary, then one line per line item). App
uninstall deliveries are logged with the sanitized shop domain.

Payload fields are sanitized before logging (strip HTML, collapse
whitespace, truncate) so a crafted payload cannot forge log lines.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# Maximum payload field length written to the log
_MAX_FIELD_LENGTH = 500

_MISSING = "N/A"

_SHOP_SUFFIX = ".myshopify.com"


@dataclass
class WebhookEvent:
    """Inbound webhook delivery. Built per request, never persisted."""

    raw_body: bytes
    signature: str | None
    topic: str
    shop: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class LineItem:
    sku: str
    title: str
    quantity: str
    price: str


@dataclass
class OrderSummary:
    """Fields of an order notification written to the log."""

    order_id: str
    name: str
    total_price: str
    currency: str
    customer_email: str
    phone: str
    address1: str
    city: str
    country: str
    line_items: list[LineItem] = field(default_factory=list)


def _sanitize_field(value: Any) -> str:
    """Sanitize a payload field value for safe inclusion in log lines."""
    if value is None:
        return ""
    s = str(value)
    # Strip HTML tags
    s = re.sub(r"<[^>]+>", "", s)
    # Unescape HTML entities
    s = html.unescape(s)
    # Collapse whitespace (also removes embedded newlines)
    s = re.sub(r"\s+", " ", s).strip()
    # Truncate
    if len(s) > _MAX_FIELD_LENGTH:
        s = s[:_MAX_FIELD_LENGTH] + "..."
    return s


def _field(value: Any) -> str:
    return _sanitize_field(value) or _MISSING


def _section(payload: dict[str, Any], name: str) -> dict[str, Any]:
    value = payload.get(name)
    return value if isinstance(value, dict) else {}


def parse_order(payload: dict[str, Any]) -> OrderSummary:
    """Extract an OrderSummary from a Shopify order payload.

    Missing fields become "N/A". A missing or non-list line_items is
    treated as an order without line items.
    """
    customer = _section(payload, "customer")
    shipping = _section(payload, "shipping_address")

    items = payload.get("line_items")
    line_items = [
        LineItem(
            sku=_field(item.get("sku")),
            title=_field(item.get("title")),
            quantity=_field(item.get("quantity")),
            price=_field(item.get("price")),
        )
        for item in (items if isinstance(items, list) else [])
        if isinstance(item, dict)
    ]

    return OrderSummary(
        order_id=_field(payload.get("id")),
        name=_field(payload.get("name")),
        total_price=_field(payload.get("total_price")),
        currency=_field(payload.get("currency")),
        customer_email=_field(customer.get("email")),
        phone=_field(shipping.get("phone")),
        address1=_field(shipping.get("address1")),
        city=_field(shipping.get("city")),
        country=_field(shipping.get("country")),
        line_items=line_items,
    )


def format_order(summary: OrderSummary) -> list[str]:
    """Render the order block, one log line per entry."""
    lines = [
        f"Order ID    : {summary.order_id}",
        f"Order Name  : {summary.name}",
        f"Total Price : {summary.total_price} {summary.currency}",
        f"Customer    : {summary.customer_email}",
        f"Phone       : {summary.phone}",
        f"Address     : {summary.address1}, {summary.city}, {summary.country}",
        "Line Items:",
    ]
    for index, item in enumerate(summary.line_items, start=1):
        lines.append(
            f"  {index}. [{item.sku}] {item.title} x{item.quantity} - {item.price}"
        )
    return lines


def dispatch_order(event: WebhookEvent, summary: OrderSummary) -> None:
    """Order-received side effect: structured log of the order."""
    logger.info(
        "Shopify order received (verified): topic=%s shop=%s order=%s items=%d",
        event.topic,
        event.shop,
        summary.order_id,
        len(summary.line_items),
    )
    for line in format_order(summary):
        logger.info("%s", line)


def sanitize_shop(shop: Any) -> str | None:
    """Normalize a shop header to "<handle>.myshopify.com".

    Accepts a bare handle, a full domain, or a URL. Returns None when no
    handle can be extracted.
    """
    if not shop or not isinstance(shop, str):
        return None
    s = shop.strip().lower()
    s = re.sub(r"^https?://", "", s)
    s = re.sub(r"/$", "", s)
    handle = s.split(_SHOP_SUFFIX)[0].split("/")[-1]
    if not handle:
        return None
    return f"{handle}{_SHOP_SUFFIX}"


def dispatch_uninstall(shop: str) -> None:
    """App-uninstalled side effect."""
    logger.info("Shopify app uninstalled: shop=%s — uninstall processed", shop)
