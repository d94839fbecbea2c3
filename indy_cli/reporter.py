"""
Outcome reporter.

Renders the terminal Outcome of an invocation for the operator: the ACK
message and status lines go to `out`, failures are logged as errors.
"""

import sys
from typing import Optional, TextIO

from indy_mqtt.logging import LogEvent, StructuredLogger
from indy_mqtt.outcome import Outcome, OutcomeKind

EXIT_OK = 0


def report_outcome(outcome: Outcome, logger: StructuredLogger, out: Optional[TextIO] = None) -> int:
    """
    Report an outcome and return the process exit status.

    The exit status is 0 for every outcome; failures are only visible in
    the ERROR lines written to stderr.
    """
    out = out or sys.stdout

    if outcome.kind is OutcomeKind.ACKNOWLEDGED:
        if outcome.success:
            if outcome.message:
                print(outcome.message, file=out)
            for line in outcome.display:
                print(line, file=out)
            if outcome.handler_error is not None:
                logger.error(
                    LogEvent.ACK_HANDLER_ERROR,
                    f"Failed to handle ack: {outcome.handler_error}",
                )
        else:
            logger.error(
                LogEvent.ACK_PROTOCOL_ERROR,
                str(outcome.as_error()),
                metadata={"status_code": outcome.status_code},
            )

    elif outcome.kind is OutcomeKind.ACK_TIMEOUT:
        logger.error(
            LogEvent.ACK_TIMEOUT,
            "Timed out while waiting for ACK",
            metadata={"detail": outcome.detail},
        )

    elif outcome.kind is OutcomeKind.SUBSCRIBE_TIMEOUT:
        logger.error(
            LogEvent.MQTT_SUBSCRIBE_ERROR,
            str(outcome.as_error()),
            metadata={"topic": outcome.detail},
        )

    elif outcome.kind is OutcomeKind.PUBLISH_FAILED:
        logger.error(LogEvent.MQTT_PUBLISH_FAILED, f"Failed to publish: {outcome.detail}")

    # PUBLISHED_NO_ACK_REQUIRED and INTERRUPTED were already logged by the engine

    return EXIT_OK
