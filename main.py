#!/usr/bin/env python3
"""
main.py — Mailbox notifier CLI
Usage: python main.py [-v] serve | send
"""
import sys
import os
import logging
import signal

import click

# Ensure project root is always on sys.path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

# ── Logging ──────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s"
)
logger = logging.getLogger(__name__)


def _load_config_or_exit():
    from config import load_config, ConfigError
    try:
        return load_config()
    except ConfigError as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log SMTP session details")
def cli(verbose):
    """Mailbox notifier — email an alert whenever /mail-delivered is hit."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command("serve")
def serve():
    """Start the HTTP listener on $PORT (default 3333)."""
    config = _load_config_or_exit()
    from web.app import run

    # SIGTERM takes the same path as Ctrl+C.
    signal.signal(signal.SIGTERM, signal.default_int_handler)

    logger.info(f"Starting server on port {config.port}...")
    # A port that cannot be bound is reported by Werkzeug, which exits with status 1.
    try:
        run(config)
    except KeyboardInterrupt:
        pass
    logger.info("server closed")


@cli.command("send")
def send():
    """Send one notification now, without the HTTP listener."""
    config = _load_config_or_exit()
    from modules.composer import compose
    from modules.mailer import deliver

    message = compose(config)
    click.echo(f"⏳ Sending '{message.subject}' to {', '.join(message.recipients)}...")
    result = deliver(config, message)
    if not result.success:
        click.echo(f"❌ {result.stage.description}: {result.error}", err=True)
        sys.exit(1)
    click.echo("✅ Notification sent.")


if __name__ == "__main__":
    cli()
