import logging

import pytest
import structlog

from roulette.core.config import settings
from roulette.logging import configure_logging


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


def test_level_applies_to_root_and_quiets_http_clients():
    configure_logging("debug")
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING

    configure_logging("ERROR")
    assert logging.getLogger("httpcore").level == logging.ERROR


def test_unknown_level_falls_back_to_info():
    configure_logging("chatty")
    assert logging.getLogger().level == logging.INFO


def test_renderer_follows_environment(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "production")
    configure_logging()
    assert isinstance(structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer)

    monkeypatch.setattr(settings, "ENV", "development")
    configure_logging()
    assert isinstance(structlog.get_config()["processors"][-1], structlog.dev.ConsoleRenderer)
