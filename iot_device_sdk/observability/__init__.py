"""Observability helpers.

The SDK only emits log records; it never installs handlers.
"""

from .logging import ClientLogger

__all__ = ["ClientLogger"]
