"""Telegram push notification."""

import html
import logging
import os

import requests

from price_monitor.notifiers.email import render

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org/bot{token}/sendMessage"
MAX_MESSAGE_CHARS = 4000


def telegram_configured() -> bool:
    return bool(os.environ.get("TELEGRAM_BOT_TOKEN") and os.environ.get("TELEGRAM_CHAT_ID"))


def format_message(subject: str, body: str) -> str:
    """
    Build the HTML message text, at most MAX_MESSAGE_CHARS long.

    The body is cut on raw characters so an escaped entity is never split.
    """
    header = f"🔔 <b>{html.escape(subject)}</b>\n\n"
    budget = MAX_MESSAGE_CHARS - len(header)
    pieces: list[str] = []
    used = 0
    for ch in body.strip():
        piece = html.escape(ch)
        if used + len(piece) > budget:
            break
        pieces.append(piece)
        used += len(piece)
    return header + "".join(pieces)


def send_telegram_alert(message, recipients: list[str] | None = None) -> bool:
    """
    Send an alert or summary via Telegram Bot API.

    Requires TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID. Email recipients do
    not apply here; the message goes to the configured chat.
    """
    token = os.environ.get("TELEGRAM_BOT_TOKEN")
    chat_id = os.environ.get("TELEGRAM_CHAT_ID")

    if not token or not chat_id:
        logger.warning("Telegram: TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID not set")
        return False

    subject, body = render(message)
    text = format_message(subject, body)

    url = TELEGRAM_API.format(token=token)
    payload = {
        "chat_id": chat_id,
        "text": text,
        "parse_mode": "HTML",
        "disable_web_page_preview": True,
    }

    try:
        logger.debug("Telegram: sending '%s'", subject)
        resp = requests.post(url, json=payload, timeout=10)
        if resp.status_code != 200:
            logger.error("Telegram API error (status %d): %s", resp.status_code, resp.text[:500])
        resp.raise_for_status()
        logger.info("Telegram: alert sent successfully")
        return True
    except requests.exceptions.RequestException as e:
        logger.error("Telegram request failed: %s", e)
        return False
