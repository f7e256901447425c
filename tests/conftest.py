"""
Shared fixtures: a fixed Config and an in-memory SMTP client double.
"""
import os
import smtplib
import sys

import pytest

# Add project root to path before any imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from config import Config


class FakeSMTP:
    """
    Records the SMTP conversation instead of opening a socket.

    Called like ``smtplib.SMTP(host, port)``. ``fail_at`` names the stage that
    should fail (same strings as DeliveryStage values); ``refused`` picks which
    recipient RCPT rejects. Like smtplib, a bad greeting closes the socket
    before raising, ``quit()`` closes it too, and ``close()`` on a closed
    client is a no-op.
    """

    def __init__(self, fail_at=None, refused=None, quit_error=None, unreachable=False):
        self.fail_at = fail_at
        self.refused = refused
        self.quit_error = quit_error
        self.unreachable = unreachable
        self.greeting = (554, b"5.3.2 Service unavailable") if fail_at == "connect" else (220, b"ready")
        self.calls = []
        self.recipients = []
        self.sent = []
        self.tls_context = None
        self.server_hostname = None
        self.auth_args = None
        self.user = None
        self.password = None
        self.sock = None
        self._host = ""
        self.close_calls = 0
        self.quit_calls = 0

    def __call__(self, host, port):
        self.calls.append(("connect", host, port))
        if self.unreachable:
            raise ConnectionRefusedError(111, "Connection refused")
        self._host = host
        self.sock = True
        code, text = self.greeting
        if code != 220:
            self.close()
            raise smtplib.SMTPConnectError(code, text)
        return self

    def ehlo(self):
        self.calls.append(("ehlo",))
        return 250, b"smtp.example.com"

    def starttls(self, context=None):
        self.calls.append(("starttls",))
        if not self._host:
            raise ValueError("server_hostname cannot be an empty string or start with a leading dot.")
        self.tls_context = context
        self.server_hostname = self._host
        if self.fail_at == "starttls":
            raise smtplib.SMTPNotSupportedError("STARTTLS extension not supported by server.")
        return 220, b"2.0.0 Ready to start TLS"

    def auth_plain(self, challenge=None):
        return "\0%s\0%s" % (self.user, self.password)

    def auth(self, mechanism, authobject):
        self.calls.append(("auth", mechanism))
        self.auth_args = (mechanism, authobject())
        if self.fail_at == "auth":
            raise smtplib.SMTPAuthenticationError(535, b"5.7.8 Authentication credentials invalid")
        return 235, b"2.7.0 Authentication successful"

    def mail(self, sender):
        self.calls.append(("mail", sender))
        if self.fail_at == "mail-from":
            return 553, b"5.7.1 Sender address rejected"
        return 250, b"2.1.0 Ok"

    def rcpt(self, recipient):
        self.calls.append(("rcpt", recipient))
        if self.fail_at == "rcpt-to" and recipient == (self.refused or recipient):
            return 550, b"5.1.1 Recipient address rejected"
        self.recipients.append(recipient)
        return 250, b"2.1.5 Ok"

    def docmd(self, cmd):
        self.calls.append(("docmd", cmd))
        if self.fail_at == "data-open":
            return 554, b"5.5.1 No valid recipients"
        return 354, b"End data with <CR><LF>.<CR><LF>"

    def send(self, data):
        terminator = data == b".\r\n"
        self.calls.append(("send", "end" if terminator else "body"))
        if self.fail_at == ("data-close" if terminator else "data-write"):
            raise smtplib.SMTPServerDisconnected("Connection unexpectedly closed")
        self.sent.append(data)

    def getreply(self):
        self.calls.append(("getreply",))
        return 250, b"2.0.0 Ok: queued"

    def quit(self):
        self.quit_calls += 1
        if self.quit_error:
            raise self.quit_error
        self.close()
        return 221, b"2.0.0 Bye"

    def close(self):
        if self.sock:
            self.close_calls += 1
        self.sock = None


@pytest.fixture
def config():
    return Config(
        port=3333,
        email_from="Jane Doe <jane@example.com>",
        email_password="s3cret",
        email_to=("alice@example.com", "bob@example.com"),
        smtp_host="smtp.example.com",
        smtp_port=587,
    )


@pytest.fixture
def make_smtp():
    """Return a factory producing a FakeSMTP; the fake itself is the smtp_class deliver() calls."""
    def _make(**kwargs):
        fake = FakeSMTP(**kwargs)
        return fake, fake
    return _make
