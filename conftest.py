"""
Shared test fixtures.

FakeMQTTClient stands in for paho's Client: it exposes the same methods
and invokes the same VERSION2 callbacks, synchronously and in the order a
broker would cause them. Acknowledgments are scripted per publish.
No test needs a live broker.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional

import paho.mqtt.client as mqtt
import pytest
from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.reasoncodes import ReasonCode

from indy_mqtt.logging import create_logger
from indy_mqtt.session import MQTTSession

CLIENT_ID = "laptop-indy-mqtt"
HOST = "esp-vorona"
ACK_TOPIC = f"indy-switch/{HOST}/ack"


def ack(status_code: int = 200, message: str = "", content: Any = None, id: Optional[str] = None) -> Dict[str, Any]:
    """Scripted acknowledgment; id=None answers the published message id."""
    data = {"id": id, "status_code": status_code, "message": message}
    if content is not None:
        data["content"] = content
    return data


class FakeMQTTClient:
    """In-memory paho client replacement."""

    def __init__(
        self,
        client_id: str,
        connect_rc: str = "Success",
        suback: str = "Granted QoS 1",
        puback: str = "Success",
        acks: Optional[List[Any]] = None,
        acks_before_publish: bool = False,
        connect_error: Optional[BaseException] = None,
        connect_on_loop_start: bool = True,
        confirm_subscribe: bool = True,
        subscribe_result: int = mqtt.MQTT_ERR_SUCCESS,
        publish_rc: int = mqtt.MQTT_ERR_SUCCESS,
        confirm_publish: bool = True,
        confirm_disconnect: bool = True,
        after_publish: Optional[Callable[["FakeMQTTClient"], None]] = None
    ):
        self.client_id = client_id
        self.connect_rc = connect_rc
        self.suback = suback
        self.puback = puback
        self.acks = list(acks or [])
        self.acks_before_publish = acks_before_publish
        self.connect_error = connect_error
        self.connect_on_loop_start = connect_on_loop_start
        self.confirm_subscribe = confirm_subscribe
        self.subscribe_result = subscribe_result
        self.publish_rc = publish_rc
        self.confirm_publish = confirm_publish
        self.confirm_disconnect = confirm_disconnect
        self.after_publish = after_publish

        self.connect_timeout = None
        self.credentials = None
        self.tls_ca_certs = "unset"
        self.reconnect_delay = None
        self.paho_logger = None
        self.connected_to = None
        self.subscriptions: List[tuple] = []
        self.published: List[Dict[str, Any]] = []
        self.loop_started = False
        self.loop_stopped = False
        self.disconnect_calls = 0
        self._mid = 0

        self.on_connect = None
        self.on_connect_fail = None
        self.on_disconnect = None
        self.on_subscribe = None
        self.on_publish = None
        self.on_message = None

    # ===== Configuration =====

    def username_pw_set(self, username, password=None):
        self.credentials = (username, password)

    def tls_set(self, ca_certs=None, **kwargs):
        self.tls_ca_certs = ca_certs

    def reconnect_delay_set(self, min_delay=1, max_delay=120):
        self.reconnect_delay = (min_delay, max_delay)

    def enable_logger(self, logger=None):
        self.paho_logger = logger

    # ===== Network =====

    def _next_mid(self) -> int:
        self._mid += 1
        return self._mid

    def connect(self, host, port=1883, keepalive=60):
        if self.connect_error is not None:
            raise self.connect_error
        self.connected_to = (host, port, keepalive)
        return mqtt.MQTT_ERR_SUCCESS

    def loop_start(self):
        self.loop_started = True
        if self.connect_on_loop_start:
            self.on_connect(
                self, None, mqtt.ConnectFlags(session_present=False),
                ReasonCode(PacketTypes.CONNACK, self.connect_rc), None
            )

    def loop_stop(self):
        self.loop_stopped = True

    def subscribe(self, topic, qos=0):
        mid = self._next_mid()
        self.subscriptions.append((topic, qos))
        if self.subscribe_result == mqtt.MQTT_ERR_SUCCESS and self.confirm_subscribe:
            self.on_subscribe(self, None, mid, [ReasonCode(PacketTypes.SUBACK, self.suback)], None)
        return self.subscribe_result, mid

    def publish(self, topic, payload=None, qos=0, retain=False):
        mid = self._next_mid()
        self.published.append({"topic": topic, "payload": payload, "qos": qos, "retain": retain})
        info = mqtt.MQTTMessageInfo(mid)
        info.rc = self.publish_rc
        if self.publish_rc not in (mqtt.MQTT_ERR_SUCCESS, mqtt.MQTT_ERR_NO_CONN):
            return info

        message_id = json.loads(payload)["header"]["message_id"]
        if self.acks_before_publish:
            self._deliver_acks(message_id)
        if self.confirm_publish:
            self.on_publish(self, None, mid, ReasonCode(PacketTypes.PUBACK, self.puback), None)
        if not self.acks_before_publish:
            self._deliver_acks(message_id)
        if self.after_publish is not None:
            self.after_publish(self)
        return info

    def disconnect(self):
        self.disconnect_calls += 1
        if self.confirm_disconnect:
            self.on_disconnect(
                self, None, mqtt.DisconnectFlags(is_disconnect_packet_from_server=False),
                ReasonCode(PacketTypes.DISCONNECT, "Normal disconnection"), None
            )
        return mqtt.MQTT_ERR_SUCCESS

    # ===== Broker-side events =====

    def deliver(self, topic: str, payload: Any) -> None:
        """Deliver a message as the broker would."""
        if not isinstance(payload, bytes):
            payload = json.dumps(payload).encode("utf-8")
        msg = mqtt.MQTTMessage(mid=0, topic=topic.encode("utf-8"))
        msg.payload = payload
        self.on_message(self, None, msg)

    def _deliver_acks(self, message_id: str) -> None:
        for scripted in self.acks:
            if isinstance(scripted, dict) and scripted.get("id") is None:
                scripted = dict(scripted, id=message_id)
            self.deliver(ACK_TOPIC, scripted)

    def drop_link(self) -> None:
        self.on_disconnect(
            self, None, mqtt.DisconnectFlags(is_disconnect_packet_from_server=False),
            ReasonCode(PacketTypes.DISCONNECT, "Unspecified error"), None
        )

    def restore_link(self) -> None:
        self.on_connect(
            self, None, mqtt.ConnectFlags(session_present=True),
            ReasonCode(PacketTypes.CONNACK, "Success"), None
        )


@pytest.fixture
def logger():
    return create_logger("test", level=logging.DEBUG)


@pytest.fixture
def make_session(logger):
    """
    Build an MQTTSession over a FakeMQTTClient.

    Returns (session, client); keyword options configure the fake client.
    """
    def _make(ack_topic: Optional[str] = ACK_TOPIC, **options):
        clients = []

        def factory(client_id):
            client = FakeMQTTClient(client_id, **options)
            clients.append(client)
            return client

        session = MQTTSession(
            broker_host="broker.test",
            broker_port=8883,
            client_id=CLIENT_ID,
            logger=logger,
            username="indy",
            password="secret",
            ack_topic=ack_topic,
            client_factory=factory,
        )
        return session, clients[0]

    return _make
