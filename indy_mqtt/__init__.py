"""
indy-mqtt Messaging Core
========================

Bounded Context: Command/Acknowledgment Protocol for IndySwitch devices

This package sends one command to a switch through an MQTT broker and
correlates the acknowledgment the switch publishes on its ack topic.

Architecture:
- schemas/: Immutable wire types (CommandEnvelope, AckMessage, correlation ids)
- session.py: Broker connection lifecycle (MQTTSession)
- correlation.py: Publish/ack state machine (CorrelationEngine, execute)
- outcome.py: Terminal result of an invocation (Outcome)
- errors.py: Error taxonomy
- logging/: Structured logging (console or JSON)

Topics:
    indy-switch/{host}/control      switch on/off
    indy-switch/{host}/config       settings
    indy-switch/{host}/status/get   status request
    indy-switch/{host}/restart      restart / reset
    indy-switch/{host}/ack          acknowledgments from the switch

Example:
    >>> from indy_mqtt import MQTTSession, execute, configure_logging
    >>> from indy_mqtt.schemas import CommandEnvelope, ControlContent, ack_topic, command_topic
    >>>
    >>> logger = configure_logging(verbose=True)
    >>> envelope = CommandEnvelope.create(
    ...     client_id="laptop-indy-mqtt",
    ...     content=ControlContent(switch_on=True),
    ...     topic=command_topic("esp-vorona", "control"),
    ... )
    >>> session = MQTTSession(
    ...     broker_host="mqtt.example.com",
    ...     broker_port=8883,
    ...     client_id="laptop-indy-mqtt",
    ...     logger=logger,
    ...     ack_topic=ack_topic("esp-vorona"),
    ... )
    >>> outcome = execute(session, envelope, logger)
    >>> outcome.success
    True
"""

# Version
__version__ = "1.0.0"

# Schemas
from .schemas import (
    AckMessage,
    CommandEnvelope,
    ConfigContent,
    ControlContent,
    RestartContent,
    StatusRequestContent,
    new_correlation_id,
)

# Session
from .session import EventKind, MQTTSession, PublishToken, SessionEvent, SessionState

# Correlation
from .correlation import AckHandler, CorrelationEngine, EngineState, execute
from .outcome import Outcome, OutcomeKind

# Errors
from .errors import (
    AckHandlerError,
    AckProtocolFailure,
    AckTimeoutError,
    ConfigError,
    ConnectError,
    ConnectTimeoutError,
    IndyMQTTError,
    PublishError,
    SubscribeError,
    SubscribeTimeoutError,
    UsageError,
)

# Logging
from .logging import LogEvent, StructuredLogger, configure_logging, create_logger

__all__ = [
    # Version
    '__version__',
    # Schemas
    'AckMessage',
    'CommandEnvelope',
    'ConfigContent',
    'ControlContent',
    'RestartContent',
    'StatusRequestContent',
    'new_correlation_id',
    # Session
    'EventKind',
    'MQTTSession',
    'PublishToken',
    'SessionEvent',
    'SessionState',
    # Correlation
    'AckHandler',
    'CorrelationEngine',
    'EngineState',
    'execute',
    'Outcome',
    'OutcomeKind',
    # Errors
    'AckHandlerError',
    'AckProtocolFailure',
    'AckTimeoutError',
    'ConfigError',
    'ConnectError',
    'ConnectTimeoutError',
    'IndyMQTTError',
    'PublishError',
    'SubscribeError',
    'SubscribeTimeoutError',
    'UsageError',
    # Logging
    'LogEvent',
    'StructuredLogger',
    'configure_logging',
    'create_logger',
]
