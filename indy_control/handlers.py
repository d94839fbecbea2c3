"""
Ack content handlers.

A handler receives the content of a successful (status 200)
acknowledgment and returns the lines to show the operator. Only the
status command has one today.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List

from indy_mqtt.errors import AckHandlerError

STATUS_FIELDS = (
    "date", "is_on", "sunrise", "sunset", "offset", "next_action", "next_action_time",
)

ALL_STATUS_FIELDS = ("device", "firmware") + STATUS_FIELDS + ("suntimes",)


def format_int_keyed_object(obj: Dict[str, Any]) -> str:
    """
    One-line rendering of an object whose keys are integers (e.g. suntimes).

    Example:
        >>> format_int_keyed_object({"2": ["6:46 AM", "6:20 PM"], "1": ["6:53 AM", "6:03 PM"]})
        '1: ["6:53 AM", "6:03 PM"], 2: ["6:46 AM", "6:20 PM"]'
    """
    keyed = {}
    for key, value in obj.items():
        try:
            keyed[int(key)] = value
        except ValueError:
            raise AckHandlerError(f"integer not found for key '{key}'")

    return ", ".join(f"{key}: {json.dumps(keyed[key])}" for key in sorted(keyed))


def format_value(value: Any) -> str:
    """Strings print bare, objects print on one line, everything else as JSON."""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return format_int_keyed_object(value)
    return json.dumps(value)


@dataclass(frozen=True)
class StatusAckHandler:
    """
    Renders the status returned with the ACK of a status command.

    Attributes:
        all: Show every field (device, firmware and suntimes included)
             instead of the everyday subset
    """
    all: bool = False

    @property
    def fields(self) -> tuple:
        return ALL_STATUS_FIELDS if self.all else STATUS_FIELDS

    def handle_ack(self, content: Any) -> List[str]:
        if not isinstance(content, dict):
            raise AckHandlerError(
                f"unable to parse ACK JSON content '{json.dumps(content)}': expected an object"
            )

        lines = []
        for name in self.fields:
            if name not in content:
                continue
            try:
                lines.append(f"{name}: {format_value(content[name])}")
            except AckHandlerError as e:
                # Keep what was rendered before the bad field
                raise AckHandlerError(str(e), lines) from e
        return lines
