"""
Error taxonomy for indy-mqtt.

Fatal categories (config, usage, connect, subscribe) terminate the
invocation after a diagnostic is printed. Publish failures, ack timeouts
and protocol failures are terminal outcomes of the correlation engine.
None of them triggers an automatic retry of the command.
"""


class IndyMQTTError(Exception):
    """Base class for all indy-mqtt errors."""


class ConfigError(IndyMQTTError):
    """Connection or credential configuration is missing or malformed."""


class UsageError(IndyMQTTError):
    """Command-line arguments do not describe a valid command."""


class ConnectError(IndyMQTTError):
    """The initial connection to the broker failed (never retried)."""


class ConnectTimeoutError(ConnectError):
    """The connect handshake did not complete before the deadline."""


class SubscribeError(IndyMQTTError):
    """The broker refused the ack topic subscription."""

    def __init__(self, message: str, topic: str = ""):
        super().__init__(message)
        self.topic = topic


class SubscribeTimeoutError(SubscribeError):
    """Connected, but the subscription was not confirmed before the deadline."""


class PublishError(IndyMQTTError):
    """The broker client rejected or failed to deliver the command."""


class AckTimeoutError(IndyMQTTError):
    """No matching acknowledgment arrived within the wait budget."""


class AckProtocolFailure(IndyMQTTError):
    """The device acknowledged the command with a non-200 status code."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"ACK error code {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class AckHandlerError(IndyMQTTError):
    """Ack content could not be handled; the acknowledgment itself stands."""

    def __init__(self, message: str, lines=()):
        super().__init__(message)
        # Lines rendered before the failure
        self.lines = list(lines)
