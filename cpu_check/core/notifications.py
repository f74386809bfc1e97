"""Apprise notifications for failing CPU usage events."""

import socket

import apprise
import structlog

from cpu_check.core.reporter import EventSink
from cpu_check.models import CheckEvent, Status

logger = structlog.get_logger()


def build_notification_url(notification: dict) -> str:
    """Build Apprise URL for notification channel."""
    uri = notification.get("uri")
    if uri:
        return uri

    notification_type = notification.get("type")
    if notification_type == "telegram":
        token = notification.get("token")
        chat_id = notification.get("chat_id")
        if not token or not chat_id:
            raise ValueError("Telegram notifications require token and chat_id")
        return f"tgram://{token}/{chat_id}"
    raise ValueError(f"Unsupported notification type: {notification_type}")


class NotifyingEventSink(EventSink):
    """Forwards events to another sink and notifies on WARNING or CRITICAL."""

    def __init__(self, inner: EventSink, notifications: list[dict]):
        """Initialize the notifying sink.

        Args:
            inner: Sink that receives every event
            notifications: Notification channel settings from the config
        """
        self.inner = inner
        self.logger = logger.bind(component="NotifyingEventSink")
        self.hostname = socket.gethostname()
        self.apprise = apprise.Apprise()
        self._setup_notifications(notifications)

    def _setup_notifications(self, notifications: list[dict]) -> None:
        """Set up notification channels from config."""
        for notification in notifications:
            if not notification.get("enabled", True):
                continue

            notification_type = notification.get("type", "uri")
            try:
                if self.apprise.add(build_notification_url(notification)):
                    self.logger.debug(
                        "Added notification channel", type=notification_type
                    )
                else:
                    self.logger.error(
                        "Invalid notification URL", type=notification_type
                    )
            except ValueError as e:
                self.logger.error(
                    "Failed to add notification channel",
                    type=notification_type,
                    error=str(e),
                )

    @property
    def enabled(self) -> bool:
        return bool(self.apprise.servers)

    def emit(self, event: CheckEvent) -> None:
        self.inner.emit(event)

        if event.status not in (Status.WARNING, Status.CRITICAL) or not self.enabled:
            return

        try:
            if not self.apprise.notify(
                title=f"{event.name} on {self.hostname}", body=event.output
            ):
                self.logger.error("Failed to send notifications", event=event.name)
        except Exception as e:
            self.logger.error(
                "Error sending notification",
                event=event.name,
                error=str(e),
                exc_info=True,
            )
