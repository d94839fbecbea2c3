"""
Correlation Engine
==================

Bounded Context: Command / Acknowledgment Correlation

Publishes the single command of an invocation and, when the command
expects one, waits for the acknowledgment whose id equals the command's
message id.

States:
    IDLE -> PUBLISHING -> PUBLISH_FAILED                      (terminal)
                       -> PUBLISHED                           (terminal if no ack expected)
                       -> PUBLISHED -> AWAITING_ACK -> MATCHED    (terminal)
                                                    -> TIMED_OUT  (terminal)
                                                    -> CANCELED   (terminal)

Transition sources race on one queue (MQTTSession.next_event):
    - publish confirmation (PUBLISHED event with our mid)
    - acknowledgments (ACK_RECEIVED events)
    - interrupts (INTERRUPT event, or KeyboardInterrupt raised in the wait)
    - the deadline (the wait returning nothing)
The first event that decides a transition wins; nothing is read from the
queue once a terminal state is reached, and the session stops accepting
events when it is closed.

Rules:
    - Acks with a different id are stale or foreign and silently ignored
    - Exactly status 200 is success; 201, 404, 500, 0 are failures
    - The ack handler runs once, on success only, after the match is logged;
      its failure is reported next to the acknowledgment, never instead of it,
      and the lines it rendered before failing are still shown
    - The ack wait budget starts when waiting begins, not at publish time
    - An interrupt before the publish is confirmed is a publish failure
    - No retries: every failure is terminal
"""

import time
from enum import Enum
from typing import Any, Callable, List, Optional, Protocol

from .errors import AckHandlerError, PublishError, SubscribeTimeoutError
from .logging import LogEvent, StructuredLogger
from .outcome import Outcome
from .schemas import AckMessage, CommandEnvelope
from .session import DEFAULT_GRACE_TIMEOUT, EventKind, MQTTSession, PublishToken, SessionEvent

DEFAULT_TIMEOUT = 30.0  # Seconds


class AckHandler(Protocol):
    """Turns the content of a successful acknowledgment into display lines."""

    def handle_ack(self, content: Any) -> List[str]:
        """Raise AckHandlerError if the content cannot be handled."""
        ...


class EngineState(str, Enum):
    IDLE = "idle"
    PUBLISHING = "publishing"
    PUBLISH_FAILED = "publish_failed"
    PUBLISHED = "published"
    AWAITING_ACK = "awaiting_ack"
    MATCHED = "matched"
    TIMED_OUT = "timed_out"
    CANCELED = "canceled"


TERMINAL_STATES = {
    EngineState.PUBLISH_FAILED,
    EngineState.MATCHED,
    EngineState.TIMED_OUT,
    EngineState.CANCELED,
}


class CorrelationEngine:
    """
    One-shot publish-and-correlate state machine.

    Runs on the thread that consumes the session's events (the main thread
    in the CLI). interrupt() may be called from any thread.

    Example:
        >>> engine = CorrelationEngine(session, logger)
        >>> outcome = engine.run(envelope, ack_handler=StatusAckHandler())
        >>> outcome.kind
        <OutcomeKind.ACKNOWLEDGED: 'acknowledged'>
    """

    def __init__(
        self,
        session: MQTTSession,
        logger: StructuredLogger,
        publish_timeout: float = DEFAULT_TIMEOUT,
        ack_timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.monotonic
    ):
        self.session = session
        self.logger = logger
        self.publish_timeout = publish_timeout
        self.ack_timeout = ack_timeout
        self._clock = clock
        self._state = EngineState.IDLE
        self._outcome: Optional[Outcome] = None
        # Acks that overtook the publish confirmation
        self._early_acks: List[AckMessage] = []

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def outcome(self) -> Optional[Outcome]:
        return self._outcome

    def interrupt(self) -> None:
        """Request cancellation; observed at the next wait."""
        self.session.post(SessionEvent.interrupt())

    def run(self, envelope: CommandEnvelope, ack_handler: Optional[AckHandler] = None) -> Outcome:
        """
        Publish the envelope and resolve it to exactly one Outcome.

        Raises:
            RuntimeError: If the engine has already run
        """
        if self._state is not EngineState.IDLE:
            raise RuntimeError("CorrelationEngine.run() may only be called once")

        outcome = self._publish(envelope)
        if outcome is not None:
            return outcome

        if not envelope.ack_expected:
            return self._finish(EngineState.PUBLISHED, Outcome.published_no_ack())

        return self._await_ack(envelope, ack_handler)

    # ===== Publishing =====

    def _publish(self, envelope: CommandEnvelope) -> Optional[Outcome]:
        self._state = EngineState.PUBLISHING
        self.logger.info(
            event=LogEvent.COMMAND_PUBLISHING,
            message=f"Publishing to topic '{envelope.topic}'\nMessage:\n{envelope.to_json(indent=4)}",
            metadata={'topic': envelope.topic, 'message_id': envelope.message_id, 'qos': envelope.qos}
        )

        try:
            token = self.session.publish(envelope)
        except PublishError as e:
            return self._publish_failed(str(e))

        deadline = self._clock() + self.publish_timeout
        while True:
            event = self._next_event(deadline)
            if event is None:
                return self._publish_failed(
                    f"broker did not confirm receipt within {self.publish_timeout:g}s"
                )
            if event.kind is EventKind.INTERRUPT:
                self._log_interrupt()
                return self._publish_failed("interrupted before the broker confirmed receipt")
            if event.kind is EventKind.ACK_RECEIVED:
                self._early_acks.append(event.ack)
            elif self._confirms(event, token):
                if event.failed:
                    return self._publish_failed(event.reason)
                self._state = EngineState.PUBLISHED
                self.logger.info(
                    LogEvent.MQTT_PUBLISH_SUCCESS,
                    "Message published successfully",
                    {'topic': token.topic, 'mid': token.mid}
                )
                return None

    @staticmethod
    def _confirms(event: SessionEvent, token: PublishToken) -> bool:
        return event.kind is EventKind.PUBLISHED and event.mid == token.mid

    def _publish_failed(self, detail: str) -> Outcome:
        self.logger.debug(LogEvent.MQTT_PUBLISH_FAILED, f"Publish failed: {detail}")
        return self._finish(EngineState.PUBLISH_FAILED, Outcome.publish_failed(detail))

    # ===== Awaiting the acknowledgment =====

    def _await_ack(self, envelope: CommandEnvelope, ack_handler: Optional[AckHandler]) -> Outcome:
        self._state = EngineState.AWAITING_ACK
        self.logger.info(
            LogEvent.ACK_WAITING,
            "Watching for ACK",
            {'message_id': envelope.message_id, 'timeout': self.ack_timeout}
        )
        deadline = self._clock() + self.ack_timeout

        early, self._early_acks = self._early_acks, []
        for ack in early:
            outcome = self._consider(ack, envelope, ack_handler)
            if outcome is not None:
                return outcome

        while True:
            event = self._next_event(deadline)
            if event is None:
                self.logger.debug(LogEvent.ACK_TIMEOUT, "Timed out while waiting for ACK")
                return self._finish(EngineState.TIMED_OUT, Outcome.ack_timeout(self.ack_timeout))
            if event.kind is EventKind.INTERRUPT:
                self._log_interrupt()
                return self._finish(EngineState.CANCELED, Outcome.interrupted())
            if event.kind is EventKind.ACK_RECEIVED:
                outcome = self._consider(event.ack, envelope, ack_handler)
                if outcome is not None:
                    return outcome

    def _consider(
        self,
        ack: AckMessage,
        envelope: CommandEnvelope,
        ack_handler: Optional[AckHandler]
    ) -> Optional[Outcome]:
        if ack.id != envelope.message_id:
            self.logger.debug(
                LogEvent.ACK_IGNORED,
                f"Ignoring ACK for message '{ack.id}'",
                {'expected': envelope.message_id}
            )
            return None

        if not ack.is_success:
            self.logger.debug(
                LogEvent.ACK_PROTOCOL_ERROR,
                f"ACK error code {ack.status_code}: {ack.message}",
                {'message_id': ack.id}
            )
            return self._finish(EngineState.MATCHED, Outcome.ack_failed(ack))

        self.logger.info(
            LogEvent.ACK_MATCHED,
            "Message was successfully acknowledged",
            {'message_id': ack.id}
        )
        display: List[str] = []
        handler_error = None
        if ack_handler is not None:
            try:
                display = ack_handler.handle_ack(ack.content)
            except AckHandlerError as e:
                display = e.lines
                handler_error = e
        return self._finish(
            EngineState.MATCHED, Outcome.acknowledged(ack, tuple(display), handler_error)
        )

    # ===== Helpers =====

    def _next_event(self, deadline: float) -> Optional[SessionEvent]:
        remaining = deadline - self._clock()
        if remaining <= 0:
            return None
        try:
            return self.session.next_event(remaining)
        except KeyboardInterrupt:
            return SessionEvent.interrupt()

    def _log_interrupt(self) -> None:
        self.logger.warning(LogEvent.COMMAND_INTERRUPTED, "Interrupt signal received. Exiting...")

    def _finish(self, state: EngineState, outcome: Outcome) -> Outcome:
        if self._outcome is not None:
            raise RuntimeError("Outcome already produced")
        self._state = state
        self._outcome = outcome
        return outcome


def execute(
    session: MQTTSession,
    envelope: CommandEnvelope,
    logger: StructuredLogger,
    ack_handler: Optional[AckHandler] = None,
    connect_timeout: float = DEFAULT_TIMEOUT,
    publish_timeout: float = DEFAULT_TIMEOUT,
    ack_timeout: float = DEFAULT_TIMEOUT,
    grace_timeout: float = DEFAULT_GRACE_TIMEOUT
) -> Outcome:
    """
    Run one invocation end to end: open, publish/correlate, close.

    The session is closed (bounded by grace_timeout) on every path.

    Raises:
        ConnectError: Initial connection failed (fatal, never retried)
        SubscribeError: Broker refused the ack subscription
    """
    try:
        try:
            session.open(timeout=connect_timeout)
        except SubscribeTimeoutError as e:
            logger.debug(LogEvent.MQTT_SUBSCRIBE_ERROR, str(e))
            return Outcome.subscribe_timeout(e.topic)
        except KeyboardInterrupt:
            logger.warning(LogEvent.COMMAND_INTERRUPTED, "Interrupt signal received. Exiting...")
            return Outcome.interrupted()

        engine = CorrelationEngine(
            session,
            logger,
            publish_timeout=publish_timeout,
            ack_timeout=ack_timeout,
        )
        try:
            return engine.run(envelope, ack_handler)
        except KeyboardInterrupt:
            # Raised outside the engine's waits (e.g. inside publish or the ack handler)
            logger.warning(LogEvent.COMMAND_INTERRUPTED, "Interrupt signal received. Exiting...")
            return Outcome.interrupted()
    finally:
        session.close(grace_timeout)
