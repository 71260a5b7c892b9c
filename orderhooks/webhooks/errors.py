"""Webhook pipeline errors.

Each error maps to a fixed HTTP status and a fixed response text.
The text never carries verification or parsing details.
"""

from __future__ import annotations


class WebhookError(Exception):
    """Base class for errors that terminate a webhook delivery."""

    status_code = 500
    message = "Internal error"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.message)
        self.detail = detail


class ConfigurationError(WebhookError):
    """Shared secret is not configured. No webhook can be processed safely."""

    status_code = 500
    message = "Secret missing"


class AuthenticationError(WebhookError):
    """Signature header is missing or does not match the body."""

    status_code = 401
    message = "Invalid HMAC"


class ValidationError(WebhookError):
    """Verified body is not a JSON object."""

    status_code = 400
    message = "Invalid JSON"
