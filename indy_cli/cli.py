"""
indy-mqtt CLI - Main entry point.

Flow: parse arguments -> configure logging -> build command ->
load broker config -> open session -> publish and correlate -> report.
"""

import argparse
import platform
import signal
import socket
import sys
from typing import List, Optional

from indy_control import build_command, create_default_registry
from indy_mqtt import __version__
from indy_mqtt.correlation import DEFAULT_TIMEOUT, execute
from indy_mqtt.errors import ConfigError, ConnectError, SubscribeError, UsageError
from indy_mqtt.logging import LogEvent, configure_logging
from indy_mqtt.session import ClientFactory, MQTTSession

from .config import BrokerConfig
from .reporter import EXIT_OK, report_outcome

PROG = "indy-mqtt"


def version_string() -> str:
    return (
        f"{PROG} {__version__} "
        f"(Python {platform.python_version()} on {sys.platform}/{platform.machine()})"
    )


def _positive_float(text: str) -> float:
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid timeout: {text!r}")
    if value <= 0:
        raise argparse.ArgumentTypeError(f"timeout must be positive, got {text}")
    return value


def _capitalize(message: str) -> str:
    return message[:1].upper() + message[1:]


def build_parser() -> argparse.ArgumentParser:
    """Argument parser; the Commands block is generated from the registry."""
    registry = create_default_registry()
    commands = "\n".join(f"  {line}" for line in registry.usage_lines())

    parser = argparse.ArgumentParser(
        prog=PROG,
        usage="%(prog)s [options] [host] [command]",
        description="Send a command to an IndySwitch through the MQTT broker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Commands:
{commands}

Examples:
  # Turn the switch on
  {PROG} esp-vorona switch on

  # Show the full status
  {PROG} -v esp-vorona status all

  # Load sunrise/sunset times from a JSON file
  {PROG} esp-vorona config suntimes suntimes.json
"""
    )

    parser.add_argument("host", nargs="?", help="Name of the switch")
    parser.add_argument("command", nargs="?", help="Command verb")
    parser.add_argument("args", nargs="*", help="Command arguments")

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print progress messages"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print debug messages (includes MQTT client internals)"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=version_string(),
        help="Print version information and exit"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Broker config file (default: $INDY_MQTT_CONFIG or config/config.yaml)"
    )
    parser.add_argument(
        "--secrets",
        default=None,
        help="Broker credentials file "
             "(default: $INDY_MQTT_SECRETS or config/config-secrets.yaml)"
    )
    parser.add_argument(
        "--timeout",
        type=_positive_float,
        default=DEFAULT_TIMEOUT,
        help=f"Seconds to wait for the broker and the ACK (default: {DEFAULT_TIMEOUT:g})"
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit log records as JSON"
    )
    return parser


def _usage_error(parser: argparse.ArgumentParser, error: UsageError) -> int:
    print(f"ERROR: {_capitalize(str(error))}", file=sys.stderr)
    print(file=sys.stderr)
    parser.print_help(sys.stderr)
    return EXIT_OK


def _interrupt(signum, frame):
    raise KeyboardInterrupt


def run(
    argv: Optional[List[str]] = None,
    client_factory: Optional[ClientFactory] = None
) -> int:
    """
    Run one invocation and return the exit status.

    Args:
        argv: Command-line arguments (default: sys.argv[1:])
        client_factory: Builds the MQTT client (default: paho)

    Returns:
        0 on every path; argparse exits with 2 on malformed options
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logger = configure_logging(
        verbose=args.verbose,
        debug=args.debug,
        json_output=args.log_json,
    )

    client_id = f"{socket.gethostname()}-{PROG}"

    positional = [a for a in (args.host, args.command) if a is not None] + list(args.args)
    try:
        command = build_command(client_id, positional)
    except UsageError as e:
        logger.debug(LogEvent.USAGE_ERROR, str(e))
        return _usage_error(parser, e)

    try:
        broker = BrokerConfig.load(args.config, args.secrets)
    except ConfigError as e:
        logger.error(LogEvent.CONFIG_ERROR, _capitalize(str(e)))
        return EXIT_OK

    session = MQTTSession(
        broker_host=broker.hostname,
        broker_port=broker.port,
        client_id=client_id,
        logger=logger,
        username=broker.username,
        password=broker.password,
        ack_topic=command.ack_topic,
        tls=broker.tls,
        ca_certs=broker.ca_certs,
        client_factory=client_factory,
    )

    try:
        outcome = execute(
            session,
            command.envelope,
            logger,
            ack_handler=command.ack_handler,
            connect_timeout=args.timeout,
            ack_timeout=args.timeout,
        )
    except ConnectError as e:
        logger.error(
            LogEvent.MQTT_CONNECTION_ERROR,
            f"Unable to connect to {broker.url}: {e}",
            exc_info=e,
        )
        return EXIT_OK
    except SubscribeError as e:
        logger.error(LogEvent.MQTT_SUBSCRIBE_ERROR, _capitalize(str(e)), exc_info=e)
        return EXIT_OK

    return report_outcome(outcome, logger)


def main():
    """Main CLI entry point."""
    signal.signal(signal.SIGTERM, _interrupt)
    sys.exit(run())


if __name__ == '__main__':
    main()
