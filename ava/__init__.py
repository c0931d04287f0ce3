"""Storefront friction scoring and intervention decision engine."""

__version__ = "0.1.0"
