"""Webhook HTTP handlers — FastAPI route handlers for inbound Shopify webhooks.

Each order handler:
1. Reads raw body (needed for HMAC verification)
2. Verifies the signature (500 if no secret, 401 on mismatch)
3. Parses the JSON payload (400 on failure)
4. Checks idempotency (200 "Already processed" for duplicates)
5. Dispatches the order and returns 200 "Order Received"

Security contract:
- Error responses carry fixed texts only, never verification details
- Log all webhook activity for audit trail
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse

from orderhooks.webhooks.dispatcher import (
    WebhookEvent,
    dispatch_order,
    dispatch_uninstall,
    parse_order,
    sanitize_shop,
)
from orderhooks.webhooks.errors import ValidationError, WebhookError
from orderhooks.webhooks.idempotency import IdempotencyStore, make_key
from orderhooks.webhooks.verification import (
    SHOP_HEADER,
    SIGNATURE_HEADER,
    TOPIC_HEADER,
    verify_request,
)

logger = logging.getLogger(__name__)

WEBHOOK_PREFIX = "/api/shopify/webhooks"

ORDER_RECEIVED = "Order Received"
ALREADY_PROCESSED = "Already processed"


class WebhookStatus(str, Enum):
    """Terminal state of a webhook delivery."""

    REJECTED = "rejected"
    SKIPPED = "skipped"
    ACKNOWLEDGED = "acknowledged"


# Webhook receive counter for monitoring (simple in-memory)
_webhook_counts: dict[str, int] = {}


def _log_webhook(topic: str, shop: str, webhook_id: str, status: WebhookStatus) -> None:
    """Audit log for webhook activity."""
    _webhook_counts[status.value] = _webhook_counts.get(status.value, 0) + 1
    logger.info(
        "WEBHOOK_AUDIT provider=shopify topic=%s shop=%s id=%s status=%s count=%d",
        topic,
        shop,
        webhook_id,
        status.value,
        _webhook_counts[status.value],
    )


def _reject_constant(name: str) -> None:
    raise ValueError(f"non-standard JSON constant: {name}")


def _parse_payload(body: bytes) -> dict[str, Any]:
    """Parse a verified body. Anything but a UTF-8 JSON object is rejected.

    NaN and Infinity are not JSON and are rejected too.
    """
    try:
        payload = json.loads(body.decode("utf-8"), parse_constant=_reject_constant)
    except ValueError as exc:  # JSONDecodeError and UnicodeDecodeError included
        raise ValidationError(str(exc)) from exc
    if not isinstance(payload, dict):
        raise ValidationError("payload is not a JSON object")
    return payload


def _authenticate(request: Request, body: bytes, headers: dict[str, str]) -> None:
    # Secret is read per request: a missing secret fails the request, not startup
    settings = request.app.state.settings_provider()
    verify_request(body, headers, settings.shopify_webhook_secret)


async def _handle_order_webhook(request: Request, topic: str) -> PlainTextResponse:
    """Order webhook pipeline: verify, parse, dedup, dispatch."""
    start = time.time()

    # Read raw body for signature verification
    body = await request.body()

    # Build lowercase headers dict
    headers = {k.lower(): v for k, v in request.headers.items()}
    shop = headers.get(SHOP_HEADER, "").lower()
    header_topic = headers.get(TOPIC_HEADER) or topic

    try:
        _authenticate(request, body, headers)
        payload = _parse_payload(body)
    except WebhookError as exc:
        _log_webhook(header_topic, shop, "unknown", WebhookStatus.REJECTED)
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    event = WebhookEvent(
        raw_body=body,
        signature=headers.get(SIGNATURE_HEADER),
        topic=header_topic,
        shop=shop,
        payload=payload,
    )
    order_id = payload.get("id")
    store: IdempotencyStore = request.app.state.idempotency_store

    if order_id is None:
        # No ID = can't dedup, allow through
        logger.warning("Order webhook from %s has no id — processing without dedup", shop)
    elif not await run_in_threadpool(store.add_if_absent, make_key(shop, order_id, topic)):
        logger.info("Order %s from %s already processed. Skipping.", order_id, shop)
        _log_webhook(event.topic, shop, str(order_id), WebhookStatus.SKIPPED)
        return PlainTextResponse(ALREADY_PROCESSED, status_code=200)

    try:
        dispatch_order(event, parse_order(payload))
    except Exception:
        logger.exception("Failed to dispatch order webhook: %s/%s", shop, order_id)

    _log_webhook(event.topic, shop, str(order_id), WebhookStatus.ACKNOWLEDGED)

    elapsed_ms = (time.time() - start) * 1000
    logger.debug("Webhook processed in %.1fms: %s/%s", elapsed_ms, shop, event.topic)

    return PlainTextResponse(ORDER_RECEIVED, status_code=200)


async def _handle_app_uninstalled(request: Request) -> PlainTextResponse | JSONResponse:
    """App uninstall pipeline: verify, then always acknowledge with 200."""
    body = await request.body()
    headers = {k.lower(): v for k, v in request.headers.items()}
    raw_shop = headers.get(SHOP_HEADER, "")
    topic = "app/uninstalled"

    try:
        _authenticate(request, body, headers)
    except WebhookError as exc:
        _log_webhook(topic, raw_shop.lower(), "unknown", WebhookStatus.REJECTED)
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    shop = sanitize_shop(raw_shop)
    if not shop:
        logger.info("Uninstall webhook with invalid shop domain: %r", raw_shop)
        _log_webhook(topic, raw_shop, "", WebhookStatus.SKIPPED)
        return PlainTextResponse("OK", status_code=200)

    dispatch_uninstall(shop)
    _log_webhook(topic, shop, "", WebhookStatus.ACKNOWLEDGED)
    return JSONResponse({"ok": True}, status_code=200)


def register_webhook_routes(app: FastAPI) -> None:
    """Register webhook endpoint routes on the FastAPI app.

    The app must carry an idempotency store in app.state.idempotency_store
    and a settings callable in app.state.settings_provider.
    """

    @app.post(f"{WEBHOOK_PREFIX}/orders-create")
    async def orders_create_webhook(request: Request):
        """Receive Shopify orders/create webhooks (signature-verified)."""
        return await _handle_order_webhook(request, "orders/create")

    @app.post(f"{WEBHOOK_PREFIX}/orders-paid")
    async def orders_paid_webhook(request: Request):
        """Receive Shopify orders/paid webhooks (signature-verified)."""
        return await _handle_order_webhook(request, "orders/paid")

    @app.post(f"{WEBHOOK_PREFIX}/orders-updated")
    async def orders_updated_webhook(request: Request):
        """Receive Shopify orders/updated webhooks (signature-verified)."""
        return await _handle_order_webhook(request, "orders/updated")

    @app.post(f"{WEBHOOK_PREFIX}/app-uninstalled")
    async def app_uninstalled_webhook(request: Request):
        """Receive Shopify app/uninstalled webhooks (signature-verified)."""
        return await _handle_app_uninstalled(request)

    @app.get(f"{WEBHOOK_PREFIX}/status")
    async def webhook_status():
        """Webhook delivery counts by terminal status."""
        return {"counts": dict(_webhook_counts)}

    @app.get("/health")
    async def health():
        return {
            "success": True,
            "message": "Shopify webhook receiver is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    logger.info(
        "Webhook routes registered: %s/{orders-create,orders-paid,orders-updated,app-uninstalled}",
        WEBHOOK_PREFIX,
    )
