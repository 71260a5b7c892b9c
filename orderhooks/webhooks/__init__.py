"""Webhook inbound system.

Receives order and app-lifecycle webhooks from Shopify.
Each webhook is signature-verified, deduplicated, and dispatched.
"""
