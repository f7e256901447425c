"""
config.py — Environment-driven settings for the mailbox notifier.

Values come from the process environment; a local .env file is loaded first
(existing variables win). Nothing here touches the network.
"""
from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

load_dotenv()

# Checked in this order; the first missing one is reported.
REQUIRED_ENV_VARS = (
    "EMAIL_FROM",
    "EMAIL_PASSWORD",
    "EMAIL_TO",
    "SMTP_HOST",
    "SMTP_PORT",
)

DEFAULT_PORT = 3333


class ConfigError(ValueError):
    """Raised when a required setting is missing or malformed."""

    def __init__(self, variable: str, message: str):
        super().__init__(message)
        self.variable = variable


@dataclass(frozen=True)
class Config:
    port: int
    email_from: str
    email_password: str = field(repr=False)
    email_to: tuple[str, ...]
    smtp_host: str
    smtp_port: int


def parse_recipients(raw: str) -> tuple[str, ...]:
    """Split a comma-separated recipient list, trimming each entry. Order and count are kept."""
    return tuple(part.strip() for part in raw.split(","))


def _parse_port(name: str, raw: str) -> int:
    try:
        port = int(raw)
    except ValueError:
        raise ConfigError(name, f"environment variable {name} must be a port number, got {raw!r}") from None
    if not 0 < port < 65536:
        raise ConfigError(name, f"environment variable {name} out of range: {port}")
    return port


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """
    Build a Config from the environment.

    Raises ConfigError naming the first required variable that is unset or
    empty, or a port/recipient value that cannot be used.
    """
    env = os.environ if environ is None else environ

    for name in REQUIRED_ENV_VARS:
        if not env.get(name):
            raise ConfigError(name, f"required environment variable {name} is not set")

    email_to = parse_recipients(env["EMAIL_TO"])
    if not any(email_to):
        raise ConfigError("EMAIL_TO", "environment variable EMAIL_TO has no recipients")

    return Config(
        port=_parse_port("PORT", env.get("PORT") or str(DEFAULT_PORT)),
        email_from=env["EMAIL_FROM"],
        email_password=env["EMAIL_PASSWORD"],
        email_to=email_to,
        smtp_host=env["SMTP_HOST"],
        smtp_port=_parse_port("SMTP_PORT", env["SMTP_PORT"]),
    )
