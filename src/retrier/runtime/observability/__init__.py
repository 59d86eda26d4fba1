"""Observability helpers: logging configuration for the retrier namespace."""

from .logging import JsonFormatter, TextFormatter, configure_logging

__all__ = ["configure_logging", "JsonFormatter", "TextFormatter"]
