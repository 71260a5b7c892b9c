"""Shared fixtures for the webhook receiver test suite."""

from __future__ import annotations

import base64
import hashlib
import hmac
from typing import Any

import pytest


@pytest.fixture()
def order_payload() -> dict[str, Any]:
    """Shopify orders/create payload for order 1001."""
    return {
        "id": 1001,
        "name": "#1001",
        "total_price": "49.98",
        "currency": "USD",
        "customer": {"email": "jane@example.com"},
        "shipping_address": {
            "phone": "+15550100",
            "address1": "742 Evergreen Terrace",
            "city": "Springfield",
            "country": "US",
        },
        "line_items": [
            {"sku": "TEE-BLK-M", "title": "Classic Tee", "quantity": 2, "price": "19.99"},
            {"sku": "MUG-WHT", "title": "Logo Mug", "quantity": 1, "price": "9.99"},
        ],
    }


@pytest.fixture()
def sign():
    """Factory computing a valid Shopify signature for a body."""

    def _sign(body: bytes, secret: str = "test-secret") -> str:
        digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
        return base64.b64encode(digest).decode()

    return _sign
