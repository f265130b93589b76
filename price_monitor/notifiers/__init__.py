"""Notification backends."""

import logging

from price_monitor.notifiers.email import send_email_alert
from price_monitor.notifiers.telegram import send_telegram_alert, telegram_configured

logger = logging.getLogger(__name__)


def send_alert(message, recipients: list[str]) -> bool:
    """Send through every channel. True if at least one delivered."""
    sent = send_email_alert(message, recipients)
    if telegram_configured():
        sent = send_telegram_alert(message, recipients) or sent
    return sent


__all__ = ["send_alert", "send_email_alert", "send_telegram_alert"]
