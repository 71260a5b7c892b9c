"""Webhook signature verification — constant-time HMAC for Shopify.

Security contract:
- Verification runs over the exact raw body bytes, before any parsing
- All comparisons use hmac.compare_digest() (constant-time, no timing attacks)
- Length mismatch fails before any byte comparison and never raises
- Missing secret -> ConfigurationError (fail-closed, surfaced as 500)
- Verification failure -> AuthenticationError (401), no payload processing
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from collections.abc import Mapping

from orderhooks.webhooks.errors import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-shopify-hmac-sha256"
TOPIC_HEADER = "x-shopify-topic"
SHOP_HEADER = "x-shopify-shop-domain"


def compute_signature(body: bytes, secret: str) -> str:
    """Compute the base64-encoded HMAC-SHA256 Shopify sends for a body."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(body: bytes, signature_header: str | None, secret: str) -> bool:
    """Verify a Shopify webhook HMAC-SHA256 signature.

    Args:
        body: Raw request body bytes, exactly as received
        signature_header: Value of X-Shopify-Hmac-SHA256 header
        secret: Shared webhook secret

    Returns:
        True if signature is valid
    """
    if not secret or not signature_header:
        return False

    expected = compute_signature(body, secret).encode("ascii")
    provided = signature_header.encode("utf-8")

    # compare_digest needs equal lengths to stay meaningful
    if len(expected) != len(provided):
        return False

    return hmac.compare_digest(expected, provided)


def verify_request(body: bytes, headers: Mapping[str, str], secret: str) -> None:
    """Authenticate an inbound webhook request.

    Args:
        body: Raw request body
        headers: Request headers (lowercase keys)
        secret: Shared webhook secret from configuration

    Raises:
        ConfigurationError: secret is not configured
        AuthenticationError: signature missing or invalid
    """
    if not secret:
        logger.error("SHOPIFY_WEBHOOK_SECRET not set — rejecting webhook")
        raise ConfigurationError("SHOPIFY_WEBHOOK_SECRET not set")

    if not verify_signature(body, headers.get(SIGNATURE_HEADER), secret):
        logger.warning(
            "Invalid webhook signature from %s", headers.get(SHOP_HEADER, "unknown")
        )
        raise AuthenticationError("signature mismatch")
