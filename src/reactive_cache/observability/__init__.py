"""Observability – structured logging."""
from reactive_cache.observability.logging import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
