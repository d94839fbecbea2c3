"""
Common Schema Types
==================

Bounded Context: Shared Data Structures

Types:
- Timestamp: RFC 3339 timestamp wrapper
- new_correlation_id: collision-resistant message ids
- Topic helpers for the indy-switch topic tree
"""

import random
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

TOPIC_ROOT = "indy-switch"

COMMAND_KINDS = ("control", "config", "status/get", "restart")


@dataclass(frozen=True)
class Timestamp:
    """
    Immutable RFC 3339 timestamp wrapper.

    Timestamps are local time with UTC offset and second precision, which
    is what the switch firmware parses.

    Example:
        >>> Timestamp.now().value
        '2024-05-01T10:22:03-04:00'
    """
    value: str

    @classmethod
    def now(cls) -> 'Timestamp':
        """Create timestamp from current local time."""
        return cls.from_datetime(datetime.now().astimezone())

    @classmethod
    def from_datetime(cls, dt: datetime) -> 'Timestamp':
        """Create timestamp from datetime object."""
        return cls(value=dt.replace(microsecond=0).isoformat())

    def to_datetime(self) -> datetime:
        """Parse to datetime object.

        Raises:
            ValueError: If timestamp format invalid
        """
        try:
            return datetime.fromisoformat(self.value)
        except ValueError as e:
            raise ValueError(f"Invalid RFC 3339 timestamp: {self.value}") from e

    def to_dict(self) -> str:
        """Serialize to JSON (as string)."""
        return self.value


def hex_suffix(rng: Optional[random.Random] = None) -> str:
    """
    Return 32 random bits formatted as "ABCD-EF01".

    Args:
        rng: Optional random source (tests); defaults to the OS CSPRNG
    """
    bits = rng.getrandbits(32) if rng is not None else secrets.randbits(32)
    return f"{bits >> 16:04X}-{bits & 0xFFFF:04X}"


def new_correlation_id(client_id: str, rng: Optional[random.Random] = None) -> str:
    """
    Generate the message id that ties a command to its acknowledgment.

    The client id prefix identifies the sender; the 32-bit suffix keeps two
    invocations from the same host apart.

    Example:
        >>> new_correlation_id("laptop-indy-mqtt")
        'laptop-indy-mqtt-3F2A-09BC'
    """
    return f"{client_id}-{hex_suffix(rng)}"


def command_topic(host: str, kind: str) -> str:
    """Topic a command of the given kind is published to."""
    if kind not in COMMAND_KINDS:
        raise ValueError(f"Unknown command kind '{kind}'. Must be one of {COMMAND_KINDS}")
    return f"{TOPIC_ROOT}/{host}/{kind}"


def ack_topic(host: str) -> str:
    """Topic the switch publishes acknowledgments on."""
    return f"{TOPIC_ROOT}/{host}/ack"
