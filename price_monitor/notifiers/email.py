"""Email notification via SMTP (Gmail by default)."""

import logging
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from price_monitor.models import AlertEvent, AlertKind, ErrorKind
from price_monitor.reports import FailureSummary, WeeklySummary

logger = logging.getLogger(__name__)

ERROR_DESCRIPTIONS = {
    ErrorKind.NOT_FOUND: "Page not found - likely sold or removed",
    ErrorKind.GONE: "Listing removed",
    ErrorKind.FORBIDDEN: "Access denied - site blocking",
    ErrorKind.PARSE_ERROR: "Page structure changed",
    ErrorKind.TIMEOUT: "Connection timeout",
    ErrorKind.CONNECTION_REFUSED: "Unable to connect",
    ErrorKind.CONNECTION_RESET: "Connection dropped",
    ErrorKind.RATE_LIMITED: "Rate limited by site",
    ErrorKind.SERVER_ERROR: "Server error",
    ErrorKind.UNKNOWN: "Unknown error",
}


def currency() -> str:
    return os.environ.get("CURRENCY_SYMBOL", "£")


def money(amount: float) -> str:
    return f"{currency()}{amount:,.2f}"


def describe_error(kind: ErrorKind | None) -> str:
    if kind is None:
        return "Unknown error"
    return ERROR_DESCRIPTIONS.get(kind, kind.value)


def _render_event(event: AlertEvent) -> tuple[str, str]:
    item = event.item
    if event.kind is AlertKind.REPEATED_FAILURE:
        subject = f"⚠️ Check failing: {item.name}"
        body = f"""
Price Monitor - Repeated Failure

Item: {item.name} [{item.category}]
Consecutive failures: {event.consecutive_failures}
Error: {describe_error(event.error_kind)}
Details: {event.error_message or '-'}

URL: {item.url}

The listing may have been sold or the site may have changed.
"""
        return subject, body

    change = event.price_change or 0.0
    direction = "DROPPED" if change < 0 else "INCREASED"
    sign = "-" if change < 0 else "+"
    subject = f"Price {direction}: {item.name}"
    body = f"""
Price Monitor - Price {direction}

Item: {item.name} [{item.category}]
Old Price: {money(event.old_price)}
New Price: {money(event.new_price)}
Change: {sign}{money(abs(change))}
"""
    if event.mileage is not None:
        body += f"Mileage: {event.mileage:,} miles\n"
    body += f"\nURL: {item.url}\n"
    return subject, body


def _render_failure_summary(summary: FailureSummary) -> tuple[str, str]:
    subject = f"Daily: {len(summary.items)} item(s) had issues today"
    lines = [
        "Price Monitor - Daily Failure Summary",
        "",
        f"Total failures: {summary.total_failures} across {len(summary.items)} item(s)",
        "",
    ]
    for entry in summary.items:
        lines += [
            entry.item.name,
            f"  Error: {describe_error(entry.error_kind)}",
            f"  Occurrences: {entry.count} in last {summary.hours} hours",
            f"  First failure: {entry.first_failed_at:%Y-%m-%d %H:%M} UTC",
            f"  {entry.item.url}",
            "",
        ]
    lines.append("Site errors usually resolve themselves - checks will keep trying.")
    return subject, "\n".join(lines)


def _render_weekly_summary(summary: WeeklySummary) -> tuple[str, str]:
    subject = f"Weekly Price Summary: {summary.total_changes} change(s)"
    lines = ["Price Monitor - Weekly Summary", ""]
    for entry in summary.items:
        if entry.change == 0:
            change = "No change"
        else:
            change = f"{'-' if entry.change < 0 else '+'}{money(abs(entry.change))}"
        lines.append(f"{entry.item.name}: {money(entry.current_price)} ({change})")
    drop = summary.biggest_drop
    if drop:
        lines += ["", f"Biggest drop: {drop.item.name} ({money(abs(drop.change))})"]
    rise = summary.biggest_increase
    if rise:
        lines.append(f"Biggest increase: {rise.item.name} ({money(rise.change)})")
    if summary.persistent_failures:
        lines += ["", "Failing for over a week:"]
        lines += [f"  {item.name} - {item.url}" for item in summary.persistent_failures]
    return subject, "\n".join(lines)


def render(message) -> tuple[str, str]:
    """Subject and plain-text body for an alert or summary."""
    if isinstance(message, FailureSummary):
        return _render_failure_summary(message)
    if isinstance(message, WeeklySummary):
        return _render_weekly_summary(message)
    return _render_event(message)


def send_email_alert(message, recipients: list[str]) -> bool:
    """
    Send an alert or summary by email.

    Uses SMTP_USER and SMTP_PASS (Gmail App Password).
    Falls back to SMTP_TO, then SMTP_USER, if recipients is empty.
    """
    user = os.environ.get("SMTP_USER")
    password = os.environ.get("SMTP_PASS")
    host = os.environ.get("SMTP_HOST", "smtp.gmail.com")
    port = int(os.environ.get("SMTP_PORT", "587"))

    if not user or not password:
        logger.warning("Email: SMTP_USER or SMTP_PASS not set")
        return False

    to_addrs = list(recipients) or [os.environ.get("SMTP_TO", user)]
    subject, body = render(message)

    msg = MIMEMultipart()
    msg["From"] = user
    msg["To"] = ", ".join(to_addrs)
    msg["Subject"] = subject
    msg.attach(MIMEText(body.strip(), "plain"))

    try:
        logger.debug("Email: sending to %s", to_addrs)
        with smtplib.SMTP(host, port) as server:
            server.starttls()
            server.login(user, password)
            server.sendmail(user, to_addrs, msg.as_string())
        logger.info("Email: sent '%s'", subject)
        return True
    except smtplib.SMTPAuthenticationError as e:
        logger.error("Email authentication failed: %s", e)
        return False
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Email SMTP error: %s", e)
        return False
