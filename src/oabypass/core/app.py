"""Application factory and entrypoint."""
import os

from flask import Flask

from ..api.handlers import register_routes
from ..api.middleware import register_middlewares
from ..utils.logging import log_event, setup_logging
from .settings import get_settings


def create_app(settings=None) -> Flask:
    """Create and configure the Flask application."""
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_dir)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_content_length
    app.config["SETTINGS"] = settings

    register_middlewares(app, settings)
    register_routes(app, settings)
    return app


def run() -> None:
    """Run the HTTP server until terminated."""
    app = create_app()
    settings = app.config["SETTINGS"]

    log_event(
        20,
        "server_starting",
        address=f"http://{settings.host}:{settings.port}",
        version=settings.app_version,
        mode="passthrough",
        note="OpenAI API key is taken from each request's Authorization header",
    )
    debug = os.getenv("FLASK_DEBUG", "").lower() in ("1", "true", "yes", "on")
    try:
        app.run(host=settings.host, port=settings.port, debug=debug, threaded=True)
    except OSError as exc:
        log_event(50, "bind_failed", host=settings.host, port=settings.port, error=str(exc))
        raise SystemExit(1) from exc


if __name__ == "__main__":
    run()
