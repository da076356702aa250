"""Shared telemetry: logging setup, OpenTelemetry config, and tracing helpers."""

from fireaccess.shared.telemetry.logging import get_logger, setup_logging
from fireaccess.shared.telemetry.telemetry import TelemetryConfig
from fireaccess.shared.telemetry.tracing import add_span_attributes, traced

__all__ = [
    "setup_logging",
    "get_logger",
    "TelemetryConfig",
    "traced",
    "add_span_attributes",
]
