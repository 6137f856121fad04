"""Lumio - inbound webhook verification for CRM integrations."""

__version__ = "1.0.0"
