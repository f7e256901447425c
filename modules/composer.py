"""
modules/composer.py — Build the "mail delivered" notification.

The subject carries a Pacific-time timestamp (UTC if the zone database is
unavailable); the body is fixed text.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config import Config

logger = logging.getLogger(__name__)

DISPLAY_TIMEZONE = "America/Los_Angeles"
SUBJECT_PREFIX = "Mail Delivered - "
BODY = (
    "You've got mail in your mailbox!\n\n"
    "This notification was sent from your home mailbox system.\n\n"
    "Best regards,\nYour Mailbox"
)

CRLF = "\r\n"


@dataclass(frozen=True)
class OutboundMessage:
    subject: str
    body: str
    headers: tuple[tuple[str, str], ...]
    sender: str                        # envelope address, not the From: header
    recipients: tuple[str, ...]

    def as_bytes(self) -> bytes:
        lines = [f"{name}: {value}" for name, value in self.headers]
        return (CRLF.join(lines) + CRLF + CRLF + self.body + CRLF).encode("utf-8")


def resolve_timezone(name: str = DISPLAY_TIMEZONE) -> tzinfo:
    """Return the named zone, or UTC when it cannot be loaded."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.warning(f"Error loading timezone {name}: {e}, falling back to UTC")
        return timezone.utc


def format_timestamp(dt: datetime) -> str:
    """Format like 'Jan 2, 2006 at 3:04 PM PST'."""
    hour = dt.hour % 12 or 12
    return f"{dt:%b} {dt.day}, {dt.year} at {hour}:{dt:%M} {dt:%p} {dt.tzname() or 'UTC'}"


def extract_sender_address(email_from: str) -> str:
    """
    'Jane Doe <jane@example.com>' -> 'jane@example.com'.
    Strings without '<' are returned unchanged.
    """
    parts = email_from.split("<")
    if len(parts) > 1:
        return parts[1].removesuffix(">")
    return email_from


def compose(config: Config, now: Optional[datetime] = None) -> OutboundMessage:
    """Build the notification for one request. Never fails on timezone lookup."""
    tz = resolve_timezone()
    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc).astimezone(tz)
    else:
        now = now.astimezone(tz)

    stamp = format_timestamp(now)
    logger.info(f"Using time: {stamp}")

    subject = SUBJECT_PREFIX + stamp
    headers = (
        ("From", config.email_from),
        ("To", ",".join(config.email_to)),
        ("Subject", subject),
        ("MIME-Version", "1.0"),
        ("Content-Type", "text/plain; charset=UTF-8"),
    )
    return OutboundMessage(
        subject=subject,
        body=BODY,
        headers=headers,
        sender=extract_sender_address(config.email_from),
        recipients=config.email_to,
    )
