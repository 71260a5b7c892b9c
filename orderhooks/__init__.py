"""Shopify webhook receiver for the print-on-demand platform."""
