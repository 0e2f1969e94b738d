"""
Tests for logging configuration.
"""
import logging

import pytest
import structlog

from provisioner.config.logging import app_context, configure_logging
from provisioner.config.settings import Settings


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def test_app_context_comes_from_settings():
    settings = Settings(app_name="provisioner-ci", app_version="2.1.0", environment="production")

    event = app_context(settings)(None, "info", {"event": "provisioning_completed"})

    assert event["app"] == "provisioner-ci"
    assert event["version"] == "2.1.0"
    assert event["environment"] == "production"


def test_production_renders_json():
    configure_logging(Settings(environment="production", log_level="info"))

    processors = structlog.get_config()["processors"]

    assert isinstance(processors[-1], structlog.processors.JSONRenderer)
    assert logging.getLogger().level == logging.INFO


def test_development_renders_console():
    configure_logging(Settings())

    processors = structlog.get_config()["processors"]

    assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("mysql.connector").level == logging.WARNING
