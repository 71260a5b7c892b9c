"""FastAPI application for the Shopify webhook receiver."""

from __future__ import annotations

import logging

from fastapi import FastAPI

from orderhooks.config import Settings, get_settings
from orderhooks.webhooks.handlers import register_webhook_routes
from orderhooks.webhooks.idempotency import IdempotencyStore, build_store

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None, store: IdempotencyStore | None = None
) -> FastAPI:
    """Build the app with its settings and idempotency store.

    Settings passed in are used for every request. Without them the
    handlers reload settings from the environment per request, so a
    secret set after startup is picked up. The store is owned by the app
    and injected into the webhook handlers through app.state.
    """
    app = FastAPI(title="Shopify Webhook Receiver")
    if settings is None:
        app.state.settings_provider = get_settings
    else:
        app.state.settings_provider = lambda: settings
    if store is None:
        store = build_store(settings or get_settings())
    app.state.idempotency_store = store
    register_webhook_routes(app)
    return app


def main() -> None:
    """Run the receiver under uvicorn."""
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not settings.shopify_webhook_secret:
        logger.warning("SHOPIFY_WEBHOOK_SECRET is not set — webhooks will be rejected")
    logger.info(
        "Webhook receiver on http://%s:%d/api/shopify/webhooks/orders-create",
        settings.host,
        settings.port,
    )
    # Settings are not pinned: the secret is re-read from the environment per request
    uvicorn.run(create_app(store=build_store(settings)), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
