"""
modules/mailer.py — Deliver a notification over SMTP.

Session: plaintext connect, STARTTLS, AUTH PLAIN, MAIL FROM, RCPT TO for
every recipient, DATA. The first failing step ends the session and is
reported as a DeliveryResult tagged with that step. Nothing is retried.

The TLS upgrade does not verify the server certificate; the configured host
is still sent as the server name.
"""
from __future__ import annotations
import logging
import smtplib
import ssl
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from config import Config
from modules.composer import OutboundMessage

logger = logging.getLogger(__name__)

CRLF = b"\r\n"


class DeliveryStage(Enum):
    CONNECT = "connect"
    STARTTLS = "starttls"
    AUTH = "auth"
    MAIL_FROM = "mail-from"
    RCPT_TO = "rcpt-to"
    DATA_OPEN = "data-open"
    DATA_WRITE = "data-write"
    DATA_CLOSE = "data-close"

    @property
    def description(self) -> str:
        return _STAGE_DESCRIPTIONS[self]


_STAGE_DESCRIPTIONS = {
    DeliveryStage.CONNECT: "Failed to connect to mail server",
    DeliveryStage.STARTTLS: "Failed to start TLS",
    DeliveryStage.AUTH: "Failed to authenticate",
    DeliveryStage.MAIL_FROM: "Failed to set sender",
    DeliveryStage.RCPT_TO: "Failed to set recipient",
    DeliveryStage.DATA_OPEN: "Failed to get data writer",
    DeliveryStage.DATA_WRITE: "Failed to write message",
    DeliveryStage.DATA_CLOSE: "Failed to close data writer",
}


class DeliveryError(Exception):
    """One SMTP step failed. The transport error is kept as ``cause``."""

    def __init__(self, stage: DeliveryStage, cause: BaseException):
        super().__init__(f"{stage.value}: {cause}")
        self.stage = stage
        self.cause = cause


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    stage: Optional[DeliveryStage] = None
    error: Optional[BaseException] = None

    @classmethod
    def ok(cls) -> "DeliveryResult":
        return cls(success=True)

    @classmethod
    def failed(cls, stage: DeliveryStage, error: BaseException) -> "DeliveryResult":
        return cls(success=False, stage=stage, error=error)


def insecure_tls_context() -> ssl.SSLContext:
    """TLS context that accepts any server certificate."""
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def _step(stage: DeliveryStage, fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    # ValueError: bad TLS server names, and UnicodeError from ASCII-only AUTH encoding.
    except (smtplib.SMTPException, OSError, ValueError) as e:
        raise DeliveryError(stage, e) from e


def _expect(stage: DeliveryStage, reply: tuple, *codes: int) -> None:
    code, text = reply
    if code not in codes:
        raise DeliveryError(stage, smtplib.SMTPResponseException(code, text))


def _connect(smtp_class, host: str, port: int):
    # Built with the host so smtplib keeps it as the STARTTLS server name.
    # A non-220 greeting raises SMTPConnectError after smtplib closes the socket.
    return _step(DeliveryStage.CONNECT, smtp_class, host, port)


def _starttls(client) -> None:
    _step(DeliveryStage.STARTTLS, client.ehlo)
    reply = _step(DeliveryStage.STARTTLS, client.starttls, context=insecure_tls_context())
    _expect(DeliveryStage.STARTTLS, reply, 220)
    _step(DeliveryStage.STARTTLS, client.ehlo)


def _authenticate(client, username: str, password: str) -> None:
    # auth_plain reads the credentials from these attributes, as login() would set them.
    client.user, client.password = username, password
    _step(DeliveryStage.AUTH, client.auth, "PLAIN", client.auth_plain)


def _envelope(client, sender: str, recipients) -> None:
    _expect(DeliveryStage.MAIL_FROM, _step(DeliveryStage.MAIL_FROM, client.mail, sender), 250)
    for rcpt in recipients:
        code, text = _step(DeliveryStage.RCPT_TO, client.rcpt, rcpt)
        if code not in (250, 251):
            logger.debug(f"Recipient {rcpt} refused: {code} {text!r}")
            raise DeliveryError(
                DeliveryStage.RCPT_TO,
                smtplib.SMTPRecipientsRefused({rcpt: (code, text)}),
            )


def _data(client, payload: bytes) -> None:
    _expect(DeliveryStage.DATA_OPEN, _step(DeliveryStage.DATA_OPEN, client.docmd, "data"), 354)

    body = smtplib.quotedata(payload.decode("utf-8")).encode("utf-8")
    if not body.endswith(CRLF):
        body += CRLF
    _step(DeliveryStage.DATA_WRITE, client.send, body)

    _step(DeliveryStage.DATA_CLOSE, client.send, b"." + CRLF)
    _expect(DeliveryStage.DATA_CLOSE, _step(DeliveryStage.DATA_CLOSE, client.getreply), 250)


def _terminate(client) -> None:
    try:
        client.quit()
    except (smtplib.SMTPException, OSError) as e:
        logger.debug(f"QUIT failed (ignored): {e}")
    finally:
        client.close()


def deliver(config: Config, message: OutboundMessage, smtp_class=smtplib.SMTP) -> DeliveryResult:
    """
    Run one SMTP session for ``message``.

    ``smtp_class`` is called as ``smtp_class(host, port)`` and must return a
    connected client. Returns DeliveryResult.ok() or
    DeliveryResult.failed(stage, error). Transport errors never escape; a
    connected client is closed on every path.
    """
    client = None
    try:
        logger.debug(f"Connecting to {config.smtp_host}:{config.smtp_port}")
        client = _connect(smtp_class, config.smtp_host, config.smtp_port)
        _starttls(client)
        _authenticate(client, message.sender, config.email_password)
        _envelope(client, message.sender, message.recipients)
        _data(client, message.as_bytes())
    except DeliveryError as e:
        return DeliveryResult.failed(e.stage, e.cause)
    finally:
        if client is not None:
            _terminate(client)

    logger.info(f"Notification sent to {len(message.recipients)} recipient(s)")
    return DeliveryResult.ok()
