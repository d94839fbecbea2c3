"""
MQTT Session
============

Bounded Context: Broker Connection Lifecycle

This module owns the one broker connection an invocation uses.

Design:
- paho-mqtt runs its network loop in a background thread (loop_start)
- paho callbacks only translate broker activity into typed SessionEvents
  and put them on a queue; the main thread is the single consumer
  (next_event), so session state is only mutated in one place
- The ack subscription is issued from on_connect, which restores it after
  every automatic reconnect
- The initial connection is never retried; later link loss is retried by
  paho underneath the session and only shows up in the logs

States:
    DISCONNECTED -> CONNECTING -> ACK_SUBSCRIBED (ack expected) -> READY
    READY -> CLOSING -> DISCONNECTED
    plus the orthogonal link_down flag while paho is reconnecting

Event flow:
    paho thread:  on_connect / on_subscribe / on_publish / on_message ...
                        |
                        v
                  queue.Queue[SessionEvent]
                        |
                        v
    main thread:  MQTTSession.next_event() -> CorrelationEngine

Example:
    >>> session = MQTTSession(
    ...     broker_host="mqtt.example.com",
    ...     broker_port=8883,
    ...     client_id="laptop-indy-mqtt",
    ...     logger=logger,
    ...     username="indy",
    ...     password="secret",
    ...     ack_topic="indy-switch/esp-vorona/ack",
    ... )
    >>> session.open(timeout=30.0)
    >>> token = session.publish(envelope)
    >>> session.close()
"""

import json
import logging
import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import paho.mqtt.client as mqtt

from .errors import (
    ConnectError,
    ConnectTimeoutError,
    IndyMQTTError,
    PublishError,
    SubscribeError,
    SubscribeTimeoutError,
)
from .logging import PAHO_LOGGER_NAME, LogEvent, StructuredLogger
from .schemas import AckMessage, CommandEnvelope

ACK_QOS = 1
DEFAULT_KEEPALIVE = 10  # Seconds; short so network outages are noticed quickly
DEFAULT_GRACE_TIMEOUT = 0.25
RECONNECT_MIN_DELAY = 1
RECONNECT_MAX_DELAY = 30


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    ACK_SUBSCRIBED = "ack_subscribed"
    READY = "ready"
    CLOSING = "closing"


class EventKind(str, Enum):
    CONNECTED = "connected"
    CONNECT_FAILED = "connect_failed"
    RECONNECTING = "reconnecting"
    DISCONNECTED = "disconnected"
    SUBSCRIBED = "subscribed"
    SUBSCRIBE_FAILED = "subscribe_failed"
    PUBLISHED = "published"
    ACK_RECEIVED = "ack_received"
    INTERRUPT = "interrupt"


@dataclass(frozen=True)
class SessionEvent:
    """
    One asynchronous occurrence, handed from the paho thread to the consumer.

    Attributes:
        kind: what happened
        mid: packet id (PUBLISHED, SUBSCRIBED)
        reason: broker reason code or error text
        failed: reason code denotes a failure (or an unexpected disconnect)
        ack: parsed acknowledgment (ACK_RECEIVED)
    """
    kind: EventKind
    mid: Optional[int] = None
    reason: str = ""
    failed: bool = False
    ack: Optional[AckMessage] = None

    @classmethod
    def interrupt(cls) -> 'SessionEvent':
        return cls(kind=EventKind.INTERRUPT)


@dataclass(frozen=True)
class PublishToken:
    """Handle for an in-flight publish; resolved by a PUBLISHED event with the same mid."""
    mid: int
    topic: str


ClientFactory = Callable[[str], Any]


def create_paho_client(client_id: str) -> mqtt.Client:
    """Create the paho client used for real broker connections."""
    return mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        protocol=mqtt.MQTTv311,
    )


def _is_failure(reason_code: Any) -> bool:
    return bool(getattr(reason_code, "is_failure", False))


class MQTTSession:
    """
    Exclusive owner of one broker connection.

    Thread Safety:
        paho callbacks run in the paho network thread and only enqueue
        events (and, for on_connect, issue the subscription). Everything
        else, including next_event(), is meant for a single consumer thread.
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        client_id: str,
        logger: StructuredLogger,
        username: Optional[str] = None,
        password: Optional[str] = None,
        ack_topic: Optional[str] = None,
        tls: bool = True,
        ca_certs: Optional[str] = None,
        keepalive: int = DEFAULT_KEEPALIVE,
        client_factory: Optional[ClientFactory] = None
    ):
        """
        Initialize session (no network activity yet).

        Args:
            broker_host: MQTT broker hostname
            broker_port: MQTT broker port
            client_id: MQTT client identifier
            logger: Structured logger instance
            username: MQTT username (optional)
            password: MQTT password (optional)
            ack_topic: Topic to subscribe to before publishing; None when
                the command does not expect an acknowledgment
            tls: Connect over TLS (default: True)
            ca_certs: CA bundle path; None uses the system trust store
            keepalive: MQTT keepalive interval in seconds
            client_factory: Builds the paho client (injectable for tests)
        """
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.client_id = client_id
        self.username = username
        self.logger = logger
        self.ack_topic = ack_topic
        self.tls = tls
        self.keepalive = keepalive

        self._events: "queue.Queue[SessionEvent]" = queue.Queue()
        self._accepting = threading.Event()
        self._disconnected = threading.Event()
        self._state = SessionState.DISCONNECTED
        self._link_down = False
        self._opened = False
        self._closed = False
        self._loop_started = False

        # MQTT client setup
        factory = client_factory or create_paho_client
        self.client = factory(client_id)
        if username is not None:
            self.client.username_pw_set(username, password)
        if tls:
            self.client.tls_set(ca_certs=ca_certs)
        self.client.reconnect_delay_set(min_delay=RECONNECT_MIN_DELAY, max_delay=RECONNECT_MAX_DELAY)
        self.client.enable_logger(logging.getLogger(PAHO_LOGGER_NAME))

        # Callbacks
        self.client.on_connect = self._on_connect
        self.client.on_connect_fail = self._on_connect_fail
        self.client.on_disconnect = self._on_disconnect
        self.client.on_subscribe = self._on_subscribe
        self.client.on_publish = self._on_publish
        self.client.on_message = self._on_message

    # ===== Properties =====

    @property
    def ack_expected(self) -> bool:
        return self.ack_topic is not None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def link_down(self) -> bool:
        return self._link_down

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY

    @property
    def broker_url(self) -> str:
        scheme = "ssl" if self.tls else "tcp"
        return f"{scheme}://{self.broker_host}:{self.broker_port}"

    # ===== MQTT Callbacks (run in paho thread) =====

    def _enqueue(self, event: SessionEvent) -> None:
        if self._accepting.is_set():
            self._events.put(event)

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if _is_failure(reason_code):
            self._enqueue(SessionEvent(EventKind.CONNECT_FAILED, reason=str(reason_code), failed=True))
            return

        self._enqueue(SessionEvent(EventKind.CONNECTED, reason=str(reason_code)))

        if self.ack_topic is not None:
            result, mid = client.subscribe(self.ack_topic, qos=ACK_QOS)
            if result != mqtt.MQTT_ERR_SUCCESS:
                self._enqueue(SessionEvent(
                    EventKind.SUBSCRIBE_FAILED, mid=mid, reason=mqtt.error_string(result), failed=True
                ))

    def _on_connect_fail(self, client, userdata) -> None:
        self._enqueue(SessionEvent(EventKind.RECONNECTING, reason="connection attempt failed", failed=True))

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        if self._state is SessionState.CLOSING:
            self._disconnected.set()
            return
        self._enqueue(SessionEvent(EventKind.DISCONNECTED, reason=str(reason_code), failed=True))

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties) -> None:
        refused = [str(rc) for rc in reason_code_list if _is_failure(rc)]
        if refused:
            self._enqueue(SessionEvent(
                EventKind.SUBSCRIBE_FAILED, mid=mid, reason=", ".join(refused), failed=True
            ))
        else:
            self._enqueue(SessionEvent(EventKind.SUBSCRIBED, mid=mid))

    def _on_publish(self, client, userdata, mid, reason_code, properties) -> None:
        self._enqueue(SessionEvent(
            EventKind.PUBLISHED, mid=mid, reason=str(reason_code), failed=_is_failure(reason_code)
        ))

    def _on_message(self, client, userdata, msg: mqtt.MQTTMessage) -> None:
        if msg.topic != self.ack_topic:
            return
        try:
            ack = AckMessage.from_payload(msg.payload)
        except ValueError as e:
            self.logger.error(
                event=LogEvent.DESERIALIZATION_ERROR,
                message=f"{e}\n{msg.payload.decode('utf-8', errors='replace')}",
                metadata={'topic': msg.topic}
            )
            return
        self._enqueue(SessionEvent(EventKind.ACK_RECEIVED, ack=ack))

    # ===== Consumer side (main thread) =====

    def post(self, event: SessionEvent) -> None:
        """Inject an event from any thread (used for interrupts)."""
        self._events.put(event)

    def next_event(self, timeout: Optional[float]) -> Optional[SessionEvent]:
        """
        Wait for the next event and apply session bookkeeping to it.

        Args:
            timeout: Seconds to wait; None waits indefinitely

        Returns:
            The event, or None if the timeout elapsed first
        """
        try:
            if timeout is None:
                event = self._events.get()
            else:
                event = self._events.get(timeout=max(timeout, 0.0))
        except queue.Empty:
            return None
        self._apply(event)
        return event

    def _apply(self, event: SessionEvent) -> None:
        kind = event.kind
        broker = {'broker': self.broker_url, 'client_id': self.client_id}

        if kind is EventKind.CONNECTED:
            if self._link_down:
                self._link_down = False
                self.logger.warning(LogEvent.MQTT_LINK_RESTORED, "Connection reestablished", broker)
            else:
                self.logger.info(LogEvent.MQTT_CONNECTED, "Connection established", broker)
            if self.ack_topic is not None:
                self.logger.info(
                    LogEvent.MQTT_SUBSCRIBED,
                    f"Subscribing to '{self.ack_topic}'",
                    {'topic': self.ack_topic, 'qos': ACK_QOS}
                )
        elif kind is EventKind.CONNECT_FAILED:
            self.logger.error(
                LogEvent.MQTT_CONNECTION_ERROR, f"Connection refused by broker: {event.reason}", broker
            )
        elif kind is EventKind.DISCONNECTED:
            self._link_down = True
            self.logger.warning(LogEvent.MQTT_LINK_LOST, f"Connection lost: {event.reason}", broker)
        elif kind is EventKind.RECONNECTING:
            self.logger.warning(LogEvent.MQTT_RECONNECTING, "Attempting to reconnect", broker)
        elif kind is EventKind.SUBSCRIBED:
            if self._state is SessionState.CONNECTING:
                self._state = SessionState.ACK_SUBSCRIBED
            self.logger.info(
                LogEvent.MQTT_SUBSCRIBED, f"Subscribed to '{self.ack_topic}'", {'topic': self.ack_topic}
            )
        elif kind is EventKind.SUBSCRIBE_FAILED:
            self.logger.error(
                LogEvent.MQTT_SUBSCRIBE_ERROR,
                f"Failed to subscribe to '{self.ack_topic}': {event.reason}",
                {'topic': self.ack_topic}
            )
        elif kind is EventKind.ACK_RECEIVED and self.logger.is_enabled_for(logging.INFO):
            self.logger.info(
                LogEvent.ACK_RECEIVED,
                f"ACK received:\n{json.dumps(event.ack.to_dict(), indent=4)}",
                {'id': event.ack.id, 'status_code': event.ack.status_code}
            )

    # ===== Lifecycle =====

    def open(self, timeout: float) -> None:
        """
        Connect, subscribe to the ack topic if needed, and become READY.

        Both steps share one deadline. On any failure the session is closed
        before the error propagates.

        Raises:
            ConnectError: Broker unreachable, refused the connection, or
                dropped it during the handshake
            ConnectTimeoutError: Handshake incomplete at the deadline
            SubscribeError: Broker refused the ack subscription
            SubscribeTimeoutError: Subscription unconfirmed at the deadline
        """
        if self._opened:
            raise RuntimeError("MQTTSession.open() may only be called once")
        self._opened = True

        deadline = time.monotonic() + timeout
        self._state = SessionState.CONNECTING
        self._accepting.set()

        self.logger.info(
            event=LogEvent.MQTT_CONNECTING,
            message=(
                f"Connecting to '{self.broker_url}' as user '{self.username}' "
                f"with client ID '{self.client_id}'"
            ),
            metadata={'broker': self.broker_url, 'client_id': self.client_id}
        )

        try:
            self.client.connect_timeout = timeout
            self.client.connect(self.broker_host, self.broker_port, keepalive=self.keepalive)
        except TimeoutError as e:
            self._abort()
            raise ConnectTimeoutError(f"Timed out connecting to '{self.broker_url}'") from e
        except (OSError, ValueError) as e:
            self._abort()
            raise ConnectError(f"Unable to reach '{self.broker_url}': {e}") from e

        self.client.loop_start()
        self._loop_started = True

        try:
            self._await_ready(deadline)
        except (IndyMQTTError, KeyboardInterrupt):
            self.close()
            raise

        self._state = SessionState.READY

    def _await_ready(self, deadline: float) -> None:
        connected = False
        while True:
            remaining = deadline - time.monotonic()
            event = self.next_event(remaining) if remaining > 0 else None

            if event is None:
                if not connected:
                    raise ConnectTimeoutError(f"Timed out connecting to '{self.broker_url}'")
                raise SubscribeTimeoutError(
                    f"Timed out while waiting to subscribe to '{self.ack_topic}'",
                    topic=self.ack_topic
                )

            kind = event.kind
            if kind is EventKind.INTERRUPT:
                raise KeyboardInterrupt
            if kind is EventKind.CONNECT_FAILED:
                raise ConnectError(f"Connection refused: {event.reason}")
            if kind is EventKind.DISCONNECTED:
                raise ConnectError(f"Connection lost during handshake: {event.reason}")
            if kind is EventKind.SUBSCRIBE_FAILED:
                raise SubscribeError(
                    f"Failed to subscribe to '{self.ack_topic}': {event.reason}", topic=self.ack_topic
                )
            if kind is EventKind.CONNECTED:
                connected = True
                if not self.ack_expected:
                    return
            elif kind is EventKind.SUBSCRIBED and connected:
                return

    def _abort(self) -> None:
        self._accepting.clear()
        self._closed = True
        self._state = SessionState.DISCONNECTED

    def publish(self, envelope: CommandEnvelope) -> PublishToken:
        """
        Publish the command with its delivery guarantee (QoS 2).

        Only allowed once READY, so an expected ack's subscription is always
        confirmed first. While the link is down paho keeps QoS>0 messages
        and sends them after the automatic reconnect.

        Raises:
            PublishError: Session not ready or the client rejected the message
        """
        if self._state is not SessionState.READY:
            raise PublishError(f"Session not ready (state={self._state.value})")

        try:
            info = self.client.publish(envelope.topic, envelope.to_json(), qos=envelope.qos, retain=False)
        except ValueError as e:
            raise PublishError(str(e)) from e

        if info.rc == mqtt.MQTT_ERR_NO_CONN and envelope.qos > 0:
            self.logger.warning(
                LogEvent.MQTT_LINK_LOST,
                "Connection is down; command will be sent when it is reestablished",
                {'topic': envelope.topic}
            )
        elif info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(mqtt.error_string(info.rc))

        return PublishToken(mid=info.mid, topic=envelope.topic)

    def close(self, grace_timeout: float = DEFAULT_GRACE_TIMEOUT) -> None:
        """
        Disconnect gracefully, waiting at most grace_timeout seconds.

        Safe to call in any state and more than once. Events arriving after
        close are dropped. An interrupt while disconnecting is
        absorbed; the session still ends DISCONNECTED.
        """
        if self._closed:
            return
        self._closed = True
        self._accepting.clear()

        if self._state is SessionState.DISCONNECTED:
            return

        was_ready = self._state is SessionState.READY
        self._state = SessionState.CLOSING
        try:
            self.client.disconnect()
            confirmed = self._disconnected.wait(grace_timeout)
        except KeyboardInterrupt:
            # A second interrupt during teardown counts as an unconfirmed disconnect
            confirmed = False

        if confirmed:
            if self._loop_started:
                self.client.loop_stop()
            self.logger.info(
                LogEvent.MQTT_DISCONNECTED, "Disconnected from broker", {'broker': self.broker_url}
            )
        elif was_ready:
            # The paho thread is a daemon; it is abandoned rather than joined.
            self.logger.warning(
                LogEvent.MQTT_DISCONNECTED,
                f"Broker did not confirm disconnect within {grace_timeout:g}s",
                {'broker': self.broker_url}
            )

        self._state = SessionState.DISCONNECTED
