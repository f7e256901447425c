"""
web/app.py — Flask app serving the /mail-delivered trigger.
"""
from flask import Flask

from config import Config
from web.routes import register_routes

LISTEN_HOST = "0.0.0.0"


def create_app(config: Config) -> Flask:
    app = Flask(__name__)
    register_routes(app, config)
    return app


def run(config: Config):
    """Serve until interrupted. Each request is handled on its own thread."""
    app = create_app(config)
    app.run(host=LISTEN_HOST, port=config.port, debug=False, threaded=True)
