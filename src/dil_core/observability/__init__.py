"""Logging configuration for the CLI boundary."""

from dil_core.observability.logging import configure_logging, parse_log_level, redact_event

__all__ = ["configure_logging", "parse_log_level", "redact_event"]
