"""Shared telemetry: logging setup and tracing helpers."""

from datalayer.shared.telemetry.logging import get_logger, setup_logging
from datalayer.shared.telemetry.tracing import (
    add_span_attributes,
    add_span_event,
    start_span,
    traced,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "start_span",
    "traced",
    "add_span_attributes",
    "add_span_event",
]
