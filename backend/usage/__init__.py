"""
Usage Module

In-memory request counting for the image proxy.
"""

from .counter import CounterSnapshot, RequestCounter
from .routes import router as usage_router

__all__ = [
    "CounterSnapshot",
    "RequestCounter",
    "usage_router",
]
