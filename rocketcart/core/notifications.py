# rocketcart/core/notifications.py
import logging

logger = logging.getLogger(__name__)


class LoggingNotificationSink:
    """
    Surfaces user-facing messages through the application log.
    """

    def report(self, message: str) -> None:
        logger.warning("cart notification: %s", message)


class CollectingNotificationSink:
    """
    Keeps every reported message in memory, in order.
    """

    def __init__(self) -> None:
        self.messages: list[str] = []

    def report(self, message: str) -> None:
        self.messages.append(message)
