"""Fluxgate: specification-driven validation gate for endpoint-based API projects."""

__version__ = "0.1.0"
