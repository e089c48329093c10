"""Shared helpers for mailpart.

Interfaces:
  ``JsonLogger`` and ``get_logger`` from :mod:`mailpart.utils.logging`.
"""

from .logging import JsonLogger, get_logger

__all__ = [
    "JsonLogger",
    "get_logger",
]
