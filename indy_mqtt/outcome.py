"""
Terminal outcome of one invocation.

Produced exactly once by the correlation engine (or by execute() when
the session never became ready) and consumed by the CLI reporter.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple

from .errors import (
    AckHandlerError,
    AckProtocolFailure,
    AckTimeoutError,
    IndyMQTTError,
    PublishError,
    SubscribeTimeoutError,
)
from .schemas import STATUS_CODE_OK, AckMessage


class OutcomeKind(str, Enum):
    PUBLISH_FAILED = "publish_failed"
    PUBLISHED_NO_ACK_REQUIRED = "published_no_ack_required"
    ACKNOWLEDGED = "acknowledged"
    ACK_TIMEOUT = "ack_timeout"
    SUBSCRIBE_TIMEOUT = "subscribe_timeout"
    INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class Outcome:
    """
    Immutable terminal result.

    For ACKNOWLEDGED outcomes ``status_code`` tells success (200) from
    protocol failure; ``display`` holds the lines produced by the ack
    handler and ``handler_error`` a secondary diagnostic that never
    downgrades a successful acknowledgment.
    """
    kind: OutcomeKind
    status_code: Optional[int] = None
    message: str = ""
    content: Any = None
    detail: str = ""
    display: Tuple[str, ...] = field(default_factory=tuple)
    handler_error: Optional[AckHandlerError] = None

    @classmethod
    def publish_failed(cls, detail: str) -> 'Outcome':
        return cls(kind=OutcomeKind.PUBLISH_FAILED, detail=detail)

    @classmethod
    def published_no_ack(cls) -> 'Outcome':
        return cls(kind=OutcomeKind.PUBLISHED_NO_ACK_REQUIRED)

    @classmethod
    def acknowledged(
        cls,
        ack: AckMessage,
        display: Tuple[str, ...] = (),
        handler_error: Optional[AckHandlerError] = None
    ) -> 'Outcome':
        return cls(
            kind=OutcomeKind.ACKNOWLEDGED,
            status_code=ack.status_code,
            message=ack.message,
            content=ack.content,
            display=tuple(display),
            handler_error=handler_error,
        )

    @classmethod
    def ack_failed(cls, ack: AckMessage) -> 'Outcome':
        return cls(
            kind=OutcomeKind.ACKNOWLEDGED,
            status_code=ack.status_code,
            message=ack.message,
        )

    @classmethod
    def ack_timeout(cls, timeout: float) -> 'Outcome':
        return cls(kind=OutcomeKind.ACK_TIMEOUT, detail=f"no matching ACK within {timeout:g}s")

    @classmethod
    def subscribe_timeout(cls, topic: str) -> 'Outcome':
        return cls(kind=OutcomeKind.SUBSCRIBE_TIMEOUT, detail=topic)

    @classmethod
    def interrupted(cls) -> 'Outcome':
        return cls(kind=OutcomeKind.INTERRUPTED)

    @property
    def is_acknowledged(self) -> bool:
        return self.kind is OutcomeKind.ACKNOWLEDGED

    @property
    def success(self) -> bool:
        """True for a 200 acknowledgment or a confirmed fire-and-forget publish."""
        if self.kind is OutcomeKind.PUBLISHED_NO_ACK_REQUIRED:
            return True
        return self.is_acknowledged and self.status_code == STATUS_CODE_OK

    def as_error(self) -> Optional[IndyMQTTError]:
        """The error this outcome represents, or None for successful outcomes."""
        if self.kind is OutcomeKind.PUBLISH_FAILED:
            return PublishError(self.detail)
        if self.kind is OutcomeKind.ACK_TIMEOUT:
            return AckTimeoutError(self.detail)
        if self.kind is OutcomeKind.SUBSCRIBE_TIMEOUT:
            return SubscribeTimeoutError(
                f"Timed out while waiting to subscribe to '{self.detail}'", topic=self.detail
            )
        if self.is_acknowledged and not self.success:
            return AckProtocolFailure(self.status_code, self.message)
        return None
