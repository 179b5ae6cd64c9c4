import json
from unittest.mock import MagicMock

import pytest

from oabypass.api import handlers
from oabypass.core.app import create_app
from oabypass.core.settings import Settings


class FakeRawResponse:
    """Stand-in for the SDK's raw response wrapper."""

    def __init__(self, payload=None, status_code=200, content=None, headers=None):
        if content is None:
            content = json.dumps(payload).encode("utf-8")
        self.content = content
        self.status_code = status_code
        self.headers = {"content-type": "application/json"}
        if headers:
            self.headers.update({key.lower(): value for key, value in headers.items()})


@pytest.fixture
def settings():
    return Settings(
        host="127.0.0.1",
        port=8080,
        log_level="INFO",
        log_dir=None,
        log_headers=False,
        app_version="test",
        upstream_base_url=None,
        upstream_timeout=None,
        max_body_mb=1,
        cors_origins=("*",),
    )


@pytest.fixture
def upstream(monkeypatch):
    """Replace the per-request client factory with a recording mock."""
    fake = MagicMock(name="openai_client")
    fake.__enter__.return_value = fake
    fake.__exit__.return_value = False
    fake.configs = []

    def factory(config, settings):
        fake.configs.append(config)
        return fake

    monkeypatch.setattr(handlers, "create_client_for_settings", factory)
    return fake


@pytest.fixture
def app(settings):
    app = create_app(settings)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth():
    return {"Authorization": "Bearer sk-test"}
