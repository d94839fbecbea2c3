"""
Structured Logger
=================

Bounded Context: Observability Infrastructure

This module provides the structured logger used by the session, the
correlation engine and the CLI.

Design:
- Typed events (LogEvent enum) plus free-form metadata on every record
- Two renderings of the same record:
    * console: "2024/05/01 10:22:03 ERROR: message" (default, human readable)
    * JSON: one object per line (--log-json, for log aggregators)
- INFO/DEBUG go to stdout, WARNING and above go to stderr
- Thread-safe (paho callbacks may log from the network thread)

Example:
    >>> logger = StructuredLogger(component="cli")
    >>> logger.info(
    ...     event=LogEvent.MQTT_CONNECTED,
    ...     message="Connection established",
    ...     metadata={'broker': 'mqtt.example.com:8883'}
    ... )

JSON output:
    {
        "timestamp": "2024-05-01T14:22:03.123456+00:00",
        "level": "INFO",
        "component": "cli",
        "event": "mqtt.connected",
        "message": "Connection established",
        "metadata": {"broker": "mqtt.example.com:8883"}
    }
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from .events import LogEvent

PAHO_LOGGER_NAME = "indy_mqtt.paho"

_DATE_FORMAT = "%Y/%m/%d %H:%M:%S"


class StructuredLogger:
    """
    Structured logger with console and JSON renderings.

    Wraps Python's logging module with typed events and metadata.

    Attributes:
        component: Component name (e.g., "cli", "session")
        logger: Underlying Python logger instance

    Thread Safety:
        Thread-safe via Python's logging module.
    """

    def __init__(
        self,
        component: str,
        level: int = logging.INFO,
        logger_name: Optional[str] = None,
        json_output: bool = False
    ):
        """
        Initialize structured logger.

        Args:
            component: Component identifier (e.g., "cli")
            level: Logging level (default: INFO)
            logger_name: Custom logger name (default: indy_mqtt.<component>)
            json_output: Render records as JSON instead of console text
        """
        self.component = component
        self.logger_name = logger_name or f"indy_mqtt.{component}"
        self.logger = logging.getLogger(self.logger_name)
        self.logger.setLevel(level)
        self.logger.propagate = False
        _install_handlers(self.logger, json_output, show_traceback=level <= logging.DEBUG)

    def _log(
        self,
        level: int,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return

        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': logging.getLevelName(level),
            'component': self.component,
            'event': event.value,
            'message': message,
        }

        if metadata:
            log_entry['metadata'] = metadata

        if exc_info:
            log_entry['exception'] = {
                'type': type(exc_info).__name__,
                'message': str(exc_info)
            }

        self.logger.log(
            level,
            message,
            exc_info=exc_info if level >= logging.ERROR else None,
            extra={'structured': log_entry}
        )

    def debug(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log DEBUG level message (shown with --debug)."""
        self._log(logging.DEBUG, event, message, metadata)

    def info(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log INFO level message (shown with --verbose).

        Args:
            event: Typed log event
            message: Human-readable message
            metadata: Additional context
        """
        self._log(logging.INFO, event, message, metadata)

    def warning(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log WARNING level message.

        Warnings are always shown; link loss and reconnect attempts use
        this level so the operator sees them without --verbose.
        """
        self._log(logging.WARNING, event, message, metadata)

    def error(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        """
        Log ERROR level message.

        Args:
            event: Typed log event
            message: Human-readable message
            metadata: Additional context
            exc_info: Exception instance (traceback rendered with --debug)

        Example:
            >>> try:
            ...     session.open(timeout=30)
            ... except ConnectError as e:
            ...     logger.error(
            ...         event=LogEvent.MQTT_CONNECTION_ERROR,
            ...         message=f"Unable to connect: {e}",
            ...         exc_info=e
            ...     )
        """
        self._log(logging.ERROR, event, message, metadata, exc_info)

    def is_enabled_for(self, level: int) -> bool:
        return self.logger.isEnabledFor(level)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable formatter: "2024/05/01 10:22:03 ERROR: message".

    An optional tag is inserted after the level name, which is how paho's
    own records are told apart ("WARNING (paho.mqtt): ...").
    """

    def __init__(self, tag: str = "", show_traceback: bool = False):
        super().__init__(datefmt=_DATE_FORMAT)
        self.tag = tag
        self.show_traceback = show_traceback

    def format(self, record: logging.LogRecord) -> str:
        label = record.levelname
        if self.tag:
            label = f"{label} ({self.tag})"
        line = f"{self.formatTime(record, self.datefmt)} {label}: {record.getMessage()}"
        if self.show_traceback and record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs one JSON object per record.

    Records produced by StructuredLogger carry their entry in
    ``record.structured``; foreign records (paho) get a minimal entry.
    """

    def __init__(self, component: str = "paho"):
        super().__init__()
        self.component = component

    def format(self, record: logging.LogRecord) -> str:
        entry = getattr(record, 'structured', None)
        if entry is None:
            entry = {
                'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
                'level': record.levelname,
                'component': self.component,
                'event': 'mqtt.client',
                'message': record.getMessage(),
            }
        return json.dumps(entry, default=str)


class StdStreamHandler(logging.StreamHandler):
    """
    StreamHandler bound to sys.stdout or sys.stderr by name.

    The stream is looked up on every emit so that redirected standard
    streams are honored.
    """

    def __init__(self, stream_name: str):
        self.stream_name = stream_name
        super().__init__()

    @property
    def stream(self):
        return getattr(sys, self.stream_name)

    @stream.setter
    def stream(self, value):
        pass


class _BelowWarning(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < logging.WARNING


def _install_handlers(
    logger: logging.Logger,
    json_output: bool,
    show_traceback: bool,
    tag: str = ""
) -> None:
    """Attach stdout/stderr handlers once, then (re)apply the formatter."""
    handlers = [h for h in logger.handlers if isinstance(h, StdStreamHandler)]
    if not handlers:
        stdout_handler = StdStreamHandler("stdout")
        stdout_handler.addFilter(_BelowWarning())
        stderr_handler = StdStreamHandler("stderr")
        stderr_handler.setLevel(logging.WARNING)
        handlers = [stdout_handler, stderr_handler]
        for handler in handlers:
            logger.addHandler(handler)

    for handler in handlers:
        if json_output:
            handler.setFormatter(JSONFormatter())
        else:
            handler.setFormatter(ConsoleFormatter(tag=tag, show_traceback=show_traceback))


def create_logger(
    component: str,
    level: int = logging.INFO,
    json_output: bool = False
) -> StructuredLogger:
    """
    Factory function to create configured StructuredLogger.

    Example:
        >>> logger = create_logger("cli", level=logging.DEBUG)
    """
    return StructuredLogger(component=component, level=level, json_output=json_output)


def configure_logging(
    verbose: bool = False,
    debug: bool = False,
    json_output: bool = False,
    component: str = "cli"
) -> StructuredLogger:
    """
    Configure package and paho logging from the CLI verbosity flags.

    Levels:
        package logger: WARNING, INFO with --verbose, DEBUG with --debug
        paho logger:    ERROR, WARNING with --verbose, DEBUG with --debug

    Returns:
        StructuredLogger for the given component
    """
    if debug:
        level = logging.DEBUG
        paho_level = logging.DEBUG
    elif verbose:
        level = logging.INFO
        paho_level = logging.WARNING
    else:
        level = logging.WARNING
        paho_level = logging.ERROR

    paho_logger = logging.getLogger(PAHO_LOGGER_NAME)
    paho_logger.setLevel(paho_level)
    paho_logger.propagate = False
    _install_handlers(paho_logger, json_output, show_traceback=debug, tag="paho.mqtt")

    return create_logger(component, level=level, json_output=json_output)
