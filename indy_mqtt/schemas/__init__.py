"""
Message Schemas
===============

Immutable data structures for everything that crosses the broker:
outgoing command envelopes and incoming acknowledgments.
"""

from .common import (
    COMMAND_KINDS,
    TOPIC_ROOT,
    Timestamp,
    ack_topic,
    command_topic,
    hex_suffix,
    new_correlation_id,
)
from .envelope import (
    QOS_EXACTLY_ONCE,
    CommandEnvelope,
    ConfigContent,
    Content,
    ControlContent,
    Header,
    RestartContent,
    StatusRequestContent,
)
from .ack import STATUS_CODE_OK, AckMessage

__all__ = [
    'COMMAND_KINDS',
    'TOPIC_ROOT',
    'Timestamp',
    'ack_topic',
    'command_topic',
    'hex_suffix',
    'new_correlation_id',
    'QOS_EXACTLY_ONCE',
    'CommandEnvelope',
    'ConfigContent',
    'Content',
    'ControlContent',
    'Header',
    'RestartContent',
    'StatusRequestContent',
    'STATUS_CODE_OK',
    'AckMessage',
]
