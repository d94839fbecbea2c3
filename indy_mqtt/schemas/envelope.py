"""
Command Envelope Schema
=======================

Bounded Context: Outgoing Commands

Wire format (JSON):
    {
        "header": {
            "message_id": "laptop-indy-mqtt-3F2A-09BC",
            "timestamp": "2024-05-01T10:22:03-04:00"
        },
        "content": {"switch_on": true}
    }

Topic, QoS and whether an acknowledgment is expected travel with the
envelope but are not part of the payload.
"""

import json
import random
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from .common import Timestamp, new_correlation_id

# "Exactly once": persisted and acknowledged by the broker.
QOS_EXACTLY_ONCE = 2


@dataclass(frozen=True)
class Header:
    """Envelope header: correlation id plus informational timestamp."""
    message_id: str
    timestamp: Timestamp

    def to_dict(self) -> Dict[str, str]:
        return {
            'message_id': self.message_id,
            'timestamp': self.timestamp.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Header':
        try:
            return cls(
                message_id=str(data['message_id']),
                timestamp=Timestamp(value=str(data['timestamp'])),
            )
        except KeyError as e:
            raise ValueError(f"Missing required header field: {e}")


@dataclass(frozen=True)
class ControlContent:
    """Turn the switch on or off."""
    switch_on: bool

    def to_dict(self) -> Dict[str, Any]:
        return {'switch_on': self.switch_on}


@dataclass(frozen=True)
class ConfigContent:
    """
    Change switch settings.

    Settings currently understood by the firmware: timezone (str),
    offset (positive int, minutes) and suntimes (month -> [sunrise, sunset]).
    """
    settings: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.settings:
            raise ValueError("ConfigContent requires at least one setting")

    def to_dict(self) -> Dict[str, Any]:
        return {'settings': dict(self.settings)}


@dataclass(frozen=True)
class StatusRequestContent:
    """Ask the switch for its status; carries no fields."""

    def to_dict(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True)
class RestartContent:
    """Restart the switch, optionally resetting it to factory settings."""
    reset: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {'reset': self.reset}


Content = Union[ControlContent, ConfigContent, StatusRequestContent, RestartContent]


@dataclass(frozen=True)
class CommandEnvelope:
    """
    The unit published to the broker for one invocation.

    Attributes:
        header: message id (correlation id) and timestamp
        content: one of the content variants
        topic: destination topic
        qos: delivery guarantee (QoS 2 for every command)
        ack_expected: whether the engine waits for a device acknowledgment

    Invariants:
        - qos in {0, 1, 2}
        - topic not empty
    """
    header: Header
    content: Content
    topic: str
    qos: int = QOS_EXACTLY_ONCE
    ack_expected: bool = True

    def __post_init__(self):
        if self.qos not in {0, 1, 2}:
            raise ValueError(f"MQTT QoS must be 0, 1, or 2, got {self.qos}")
        if not self.topic:
            raise ValueError("topic cannot be empty")

    @classmethod
    def create(
        cls,
        client_id: str,
        content: Content,
        topic: str,
        ack_expected: bool = True,
        qos: int = QOS_EXACTLY_ONCE,
        rng: Optional[random.Random] = None
    ) -> 'CommandEnvelope':
        """Stamp content with a fresh correlation id and the current time."""
        header = Header(
            message_id=new_correlation_id(client_id, rng),
            timestamp=Timestamp.now(),
        )
        return cls(header=header, content=content, topic=topic, qos=qos, ack_expected=ack_expected)

    @property
    def message_id(self) -> str:
        return self.header.message_id

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the wire form (header and content only)."""
        return {
            'header': self.header.to_dict(),
            'content': self.content.to_dict(),
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)
