"""
Tests for provisioning log configuration.
"""

import logging

import pytest
import structlog

from provisioning.log import configure_logging


def test_console_logging() -> None:
    configure_logging(log_level="DEBUG")

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)


@pytest.fixture
def json_logging() -> None:
    # Runs during setup, before caplog attaches its call-phase handler to root.
    configure_logging(json_format=True)


def test_provisioning_events_reach_stdlib(json_logging, caplog) -> None:
    with caplog.at_level(logging.INFO, logger="provisioning.provisioner"):
        structlog.get_logger("provisioning.provisioner").info("resource_created", resource="VPC")

    assert "resource_created" in caplog.text
