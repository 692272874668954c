"""Gatekeeper: cookie-based sessions with short-lived access tokens and rotating renewal tokens."""

__version__ = "0.1.0"
