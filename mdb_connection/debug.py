"""
Driver command logging.

Every connection opened by MDB_CONNECTION carries ``command_logger`` as a
pymongo event listener. While debugging is enabled, each command's start,
success and failure is logged on the ``mdb_connection.debug`` logger.
"""

import logging

from pymongo import monitoring

logger = logging.getLogger("mdb_connection.debug")


class CommandLogger(monitoring.CommandListener):
    """Logs driver commands while enabled."""

    def __init__(self) -> None:
        self.enabled = False

    def started(self, event: monitoring.CommandStartedEvent) -> None:
        if self.enabled:
            logger.debug(
                f"{event.database_name}.{event.command_name} "
                f"[request {event.request_id}] {dict(event.command)}"
            )

    def succeeded(self, event: monitoring.CommandSucceededEvent) -> None:
        if self.enabled:
            logger.debug(
                f"{event.command_name} [request {event.request_id}] "
                f"succeeded in {event.duration_micros}us"
            )

    def failed(self, event: monitoring.CommandFailedEvent) -> None:
        if self.enabled:
            logger.debug(
                f"{event.command_name} [request {event.request_id}] "
                f"failed in {event.duration_micros}us: {event.failure}"
            )


command_logger = CommandLogger()


def enable_debug() -> None:
    """Start logging driver commands."""
    command_logger.enabled = True


def disable_debug() -> None:
    """Stop logging driver commands."""
    command_logger.enabled = False


def is_debug_enabled() -> bool:
    """Whether driver commands are being logged."""
    return command_logger.enabled
