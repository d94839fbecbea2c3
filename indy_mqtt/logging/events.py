"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

This module defines typed event names for structured logging.

Design:
- Enum-based (prevents typos, enables autocomplete)
- Hierarchical naming (namespace.category.action)
- Searchable when logs are emitted as JSON (--log-json)

Event Naming Convention:
    <component>.<category>.<action>

    component: mqtt, command, ack, error
    category: link, publish, subscribe
    action: lost, restored, success, failed
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - mqtt.*: MQTT broker interactions
    - command.*: Command construction and publication
    - ack.*: Acknowledgment correlation
    - error.*: Error conditions
    """

    # ========== MQTT Events ==========
    MQTT_CONNECTING = "mqtt.connecting"
    """Connection attempt to the broker started."""

    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker connection established."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """Session closed by the client."""

    MQTT_LINK_LOST = "mqtt.link.lost"
    """Connection dropped unexpectedly; paho reconnects in the background."""

    MQTT_LINK_RESTORED = "mqtt.link.restored"
    """Connection re-established after a link loss."""

    MQTT_RECONNECTING = "mqtt.reconnecting"
    """Attempting to reconnect to broker."""

    MQTT_SUBSCRIBED = "mqtt.subscribed"
    """Subscription to the ack topic confirmed by the broker."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Broker confirmed receipt of the published command."""

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"
    """Command publication failed."""

    # ========== Command Events ==========
    COMMAND_PUBLISHING = "command.publishing"
    """Command envelope handed to the broker client."""

    # ========== Ack Events ==========
    ACK_WAITING = "ack.waiting"
    """Engine started waiting for the matching acknowledgment."""

    ACK_RECEIVED = "ack.received"
    """Acknowledgment message received on the ack topic."""

    ACK_IGNORED = "ack.ignored"
    """Acknowledgment for another message id discarded."""

    ACK_MATCHED = "ack.matched"
    """Acknowledgment matching the outstanding command received."""

    ACK_TIMEOUT = "ack.timeout"
    """No matching acknowledgment within the wait budget."""

    COMMAND_INTERRUPTED = "command.interrupted"
    """Interrupt signal received before a terminal outcome."""

    # ========== Error Events ==========
    CONFIG_ERROR = "error.config"
    """Configuration could not be loaded."""

    USAGE_ERROR = "error.usage"
    """Command line could not be turned into a command."""

    DESERIALIZATION_ERROR = "error.deserialization"
    """Failed to deserialize message from JSON."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Failed to connect to MQTT broker."""

    MQTT_SUBSCRIBE_ERROR = "error.mqtt_subscribe"
    """Subscription refused or not confirmed in time."""

    ACK_PROTOCOL_ERROR = "error.ack_protocol"
    """Device reported a non-200 status code."""

    ACK_HANDLER_ERROR = "error.ack_handler"
    """Ack content could not be handled."""

