# settler/core/__init__.py
# Cross-cutting infrastructure for the settler reconciliation kernel.

from settler.core.logging_layer import (
    EventLogger,
    Event,
    LoggingError,
)

__all__ = [
    "EventLogger",
    "Event",
    "LoggingError",
]
