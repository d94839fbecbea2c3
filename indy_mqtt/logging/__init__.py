"""
Structured Logging for indy-mqtt
================================

Bounded Context: Observability

Design:
- Console output by default ("ERROR: ..." on stderr), JSON with --log-json
- Typed events (enums prevent typos)
- Contextual metadata (topic, message_id, broker, ...)
- Thread-safe

Public API
----------
    LogEvent: Typed event names (enum)
    StructuredLogger: Logger implementation
    create_logger: Factory function
    configure_logging: Apply CLI verbosity flags to package and paho loggers
"""

from .events import LogEvent
from .structured import (
    PAHO_LOGGER_NAME,
    StructuredLogger,
    configure_logging,
    create_logger,
)

__all__ = [
    'LogEvent',
    'PAHO_LOGGER_NAME',
    'StructuredLogger',
    'configure_logging',
    'create_logger',
]
