"""Passwordless phone authentication for the ride coordination service."""

__version__ = "1.0.0"
