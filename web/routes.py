"""
web/routes.py — HTTP trigger that sends the mailbox notification.
"""
import logging

from flask import jsonify

from config import Config
from modules.composer import compose
from modules.mailer import deliver

logger = logging.getLogger(__name__)

TRIGGER_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]
UNEXPECTED_ERROR = "Failed to send notification"


def _error(message: str):
    return jsonify({"success": False, "error": message}), 500


def register_routes(app, config: Config):

    @app.route("/mail-delivered", methods=TRIGGER_METHODS)
    def mail_delivered():
        logger.info("got /mail-delivered request")
        try:
            message = compose(config)
            result = deliver(config, message)
        except Exception:
            logger.exception("Unexpected error while sending notification")
            return _error(UNEXPECTED_ERROR)
        if not result.success:
            # Transport detail stays in the log; the caller only sees the stage.
            logger.error(f"Delivery failed at {result.stage.value}: {result.error}")
            return _error(result.stage.description)
        return jsonify({"success": True})
