"""
Acknowledgment Schema
=====================

Bounded Context: Incoming Acknowledgments

Wire format (JSON), published by the switch on indy-switch/{host}/ack:
    {
        "id": "laptop-indy-mqtt-3F2A-09BC",
        "status_code": 200,
        "message": "",
        "content": {...}
    }
"""

import json
from dataclasses import dataclass
from typing import Any, Dict

STATUS_CODE_OK = 200


@dataclass(frozen=True)
class AckMessage:
    """
    Acknowledgment sent by the switch for one command.

    Attributes:
        id: message id of the acknowledged command
        status_code: 200 for success, anything else is a failure
        message: human-readable explanation (may be empty)
        content: command-specific payload (decoded JSON, may be None)
    """
    id: str
    status_code: int
    message: str = ""
    content: Any = None

    @property
    def is_success(self) -> bool:
        """Exactly 200 is success; 201, 204 and friends are not."""
        return self.status_code == STATUS_CODE_OK

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'status_code': self.status_code,
            'message': self.message,
            'content': self.content,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AckMessage':
        """
        Deserialize from dict.

        Raises:
            ValueError: If the data is not an object or a field has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError(f"ACK must be a JSON object, got {type(data).__name__}")

        # Absent fields take their zero value: no id never matches, no status is 0
        ack_id = data.get('id')
        if ack_id is None:
            ack_id = ""
        status_code = data.get('status_code')
        if status_code is None:
            status_code = 0

        if not isinstance(ack_id, str):
            raise ValueError(f"ACK id must be a string, got {ack_id!r}")
        if isinstance(status_code, bool) or not isinstance(status_code, int):
            raise ValueError(f"ACK status_code must be an integer, got {status_code!r}")

        message = data.get('message') or ""
        return cls(
            id=ack_id,
            status_code=status_code,
            message=str(message),
            content=data.get('content'),
        )

    @classmethod
    def from_payload(cls, payload: bytes) -> 'AckMessage':
        """
        Deserialize from a raw MQTT payload.

        Raises:
            ValueError: If the payload is not valid UTF-8 JSON or not an ACK
        """
        try:
            data = json.loads(payload.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValueError(f"ACK could not be parsed: {e}")
        return cls.from_dict(data)
