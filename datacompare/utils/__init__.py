"""Utility functions and helpers."""

from .logger import get_logger, StructuredLogger
from .metrics import MetricsCollector

__all__ = [
    "get_logger",
    "StructuredLogger",
    "MetricsCollector",
]
