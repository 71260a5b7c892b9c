"""Security test fixtures.

Responsibilities:
- Creates the FastAPI `app` fixture with a fresh in-memory idempotency store
- Wraps it in a TestClient (attacker perspective, no raised server errors)
- Sets or clears SHOPIFY_WEBHOOK_SECRET per test
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from orderhooks.serve import create_app
from orderhooks.webhooks.idempotency import MemoryIdempotencyStore

WEBHOOK_SECRET = "test-secret"


@pytest.fixture
def webhook_secret(monkeypatch):
    """Configure the shared webhook secret."""
    monkeypatch.setenv("SHOPIFY_WEBHOOK_SECRET", WEBHOOK_SECRET)
    return WEBHOOK_SECRET


@pytest.fixture
def no_webhook_secret(monkeypatch):
    """Remove the shared webhook secret."""
    monkeypatch.delenv("SHOPIFY_WEBHOOK_SECRET", raising=False)


@pytest.fixture
def store():
    return MemoryIdempotencyStore()


@pytest.fixture
def app(store):
    return create_app(store=store)


@pytest.fixture
def client(app):
    """Unauthenticated TestClient (attacker perspective)."""
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture
def post_webhook(client, sign):
    """POST a Shopify webhook, signed with the test secret unless told otherwise."""

    def _post(
        body: bytes,
        path: str = "/api/shopify/webhooks/orders-create",
        topic: str = "orders/create",
        shop: str = "test.myshopify.com",
        signature: str | None = None,
    ):
        headers = {
            "X-Shopify-Hmac-SHA256": signature if signature is not None else sign(body, WEBHOOK_SECRET),
            "X-Shopify-Topic": topic,
            "X-Shopify-Shop-Domain": shop,
            "Content-Type": "application/json",
        }
        return client.post(path, content=body, headers=headers)

    return _post
