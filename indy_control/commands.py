"""
Command construction.

Turns the positional command line (host, verb, arguments) into a Command:
the envelope to publish, whether the switch will acknowledge it, and how to
render the acknowledgment's content.

Commands:
    switch on|off                 -> indy-switch/{host}/control     (ack)
    config timezone TIMEZONE      -> indy-switch/{host}/config      (ack)
    config offset MINUTES         -> indy-switch/{host}/config      (ack)
    config suntimes FILE          -> indy-switch/{host}/config      (ack)
    status [all]                  -> indy-switch/{host}/status/get  (ack, printed)
    restart                       -> indy-switch/{host}/restart     (no ack)
    reset                         -> indy-switch/{host}/restart     (no ack)
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from indy_mqtt.correlation import AckHandler
from indy_mqtt.errors import UsageError
from indy_mqtt.schemas import (
    CommandEnvelope,
    ConfigContent,
    ControlContent,
    RestartContent,
    StatusRequestContent,
    ack_topic,
    command_topic,
)

from .handlers import StatusAckHandler
from .registry import CommandRegistry


@dataclass(frozen=True)
class Command:
    """
    A command ready to publish.

    Attributes:
        host: Name of the switch
        envelope: Payload, topic, QoS and ack expectation
        ack_handler: Renders the ACK content (None if nothing to show)
    """
    host: str
    envelope: CommandEnvelope
    ack_handler: Optional[AckHandler] = None

    @property
    def topic(self) -> str:
        return self.envelope.topic

    @property
    def ack_expected(self) -> bool:
        return self.envelope.ack_expected

    @property
    def ack_topic(self) -> Optional[str]:
        """Topic to subscribe to before publishing, or None."""
        return ack_topic(self.host) if self.ack_expected else None


def _reject_extra(args: List[str], verb: str) -> None:
    if args:
        raise UsageError(f"unexpected arguments for {verb} command")


def build_control_command(client_id: str, host: str, args: List[str]) -> Command:
    """Turn switch `host` on or off."""
    if not args:
        raise UsageError("switch command is missing the on/off parameter")
    state = args.pop(0)
    if state not in ("on", "off"):
        raise UsageError(f"switch command is expecting on or off instead of {state}")
    _reject_extra(args, "switch")

    envelope = CommandEnvelope.create(
        client_id,
        ControlContent(switch_on=state == "on"),
        command_topic(host, "control"),
    )
    return Command(host=host, envelope=envelope)


def build_config_command(client_id: str, host: str, args: List[str]) -> Command:
    """Change one setting of switch `host`."""
    if not args:
        raise UsageError("config command is missing setting")
    setting = args.pop(0)

    if setting == "timezone":
        if not args:
            raise UsageError("timezone missing")
        value = args.pop(0)
    elif setting == "offset":
        if not args:
            raise UsageError("offset missing")
        value = parse_offset(args.pop(0))
    elif setting == "suntimes":
        if not args:
            raise UsageError("file name missing")
        value = read_suntimes(args.pop(0))
    else:
        raise UsageError(f"unrecognized setting {setting}")
    _reject_extra(args, "config")

    envelope = CommandEnvelope.create(
        client_id,
        ConfigContent(settings={setting: value}),
        command_topic(host, "config"),
    )
    return Command(host=host, envelope=envelope)


def build_status_command(client_id: str, host: str, args: List[str]) -> Command:
    """Ask switch `host` for its status (everyday subset, or `all` fields)."""
    show_all = False
    if len(args) == 1:
        flag = args.pop(0)
        if flag != "all":
            raise UsageError(f"status command is expecting all instead of {flag}")
        show_all = True
    _reject_extra(args, "status")

    envelope = CommandEnvelope.create(
        client_id,
        StatusRequestContent(),
        command_topic(host, "status/get"),
    )
    return Command(host=host, envelope=envelope, ack_handler=StatusAckHandler(all=show_all))


def build_restart_command(client_id: str, host: str, args: List[str]) -> Command:
    """Restart switch `host`. The switch goes down, so no ACK is expected."""
    _reject_extra(args, "restart")
    envelope = CommandEnvelope.create(
        client_id,
        RestartContent(reset=False),
        command_topic(host, "restart"),
        ack_expected=False,
    )
    return Command(host=host, envelope=envelope)


def build_reset_command(client_id: str, host: str, args: List[str]) -> Command:
    """Reset switch `host` to factory settings. No ACK is expected."""
    _reject_extra(args, "reset")
    envelope = CommandEnvelope.create(
        client_id,
        RestartContent(reset=True),
        command_topic(host, "restart"),
        ack_expected=False,
    )
    return Command(host=host, envelope=envelope)


def parse_offset(text: str) -> int:
    """Offset in minutes; must be a positive integer."""
    try:
        offset = int(text)
    except ValueError:
        offset = 0
    if offset <= 0:
        raise UsageError("offset needs to be a positive integer")
    return offset


def read_suntimes(filename: str) -> Dict[str, List[str]]:
    """
    Read a suntimes JSON file, in the format the switch itself uses:

        {
          "1":  ["6:53 AM", "6:03 PM"],
          "2":  ["6:46 AM", "6:20 PM"],
          ...
          "12": ["6:42 AM", "5:46 PM"]
        }

    Keys are month numbers, values are [sunrise, sunset].

    Returns:
        The table with keys ordered by month

    Raises:
        UsageError: If the file cannot be read or is not a suntimes table
    """
    path = Path(filename)
    try:
        with open(path) as f:
            data = json.load(f)
    except OSError as e:
        raise UsageError(f"unable to open '{filename}': {e}")
    except json.JSONDecodeError as e:
        raise UsageError(f"unable to parse JSON: {e}")

    if not isinstance(data, dict):
        raise UsageError(f"unable to parse JSON: '{filename}' does not contain an object")

    suntimes = {}
    for key, times in data.items():
        try:
            month = int(key)
        except ValueError:
            raise UsageError(f"unable to parse JSON: month '{key}' is not an integer")
        if (
            not isinstance(times, list)
            or len(times) != 2
            or not all(isinstance(t, str) for t in times)
        ):
            raise UsageError(
                f"unable to parse JSON: month {month} needs [sunrise, sunset], got {times!r}"
            )
        suntimes[month] = list(times)

    return {str(month): suntimes[month] for month in sorted(suntimes)}


def create_default_registry() -> CommandRegistry:
    """Registry with every verb the switch understands."""
    registry = CommandRegistry()
    registry.register(
        'config', build_config_command,
        usage=[
            "config timezone [timezone]",
            "config offset [offset]",
            "config suntimes [filename]",
        ],
        description="Change a switch setting",
    )
    registry.register(
        'status', build_status_command,
        usage=["status [all]"],
        description="Print the switch status",
    )
    registry.register(
        'restart', build_restart_command,
        usage=["restart"],
        description="Restart the switch",
    )
    registry.register(
        'reset', build_reset_command,
        usage=["reset"],
        description="Reset the switch to factory settings",
    )
    registry.register(
        'switch', build_control_command,
        usage=["switch [on|off]"],
        description="Turn the switch on or off",
    )
    return registry


def build_command(
    client_id: str,
    args: List[str],
    registry: Optional[CommandRegistry] = None
) -> Command:
    """
    Create a Command from the positional command line.

    Args:
        client_id: MQTT client id (prefix of the message id)
        args: [host, verb, *arguments]
        registry: Verb registry (default: create_default_registry())

    Raises:
        UsageError: If the arguments do not describe a valid command
    """
    registry = registry or create_default_registry()
    args = list(args)

    if not args:
        raise UsageError("no host specified")
    host = args.pop(0)

    if not args:
        raise UsageError("no command specified")
    verb = args.pop(0)

    return registry.build(verb, client_id, host, args)
