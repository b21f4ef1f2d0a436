import logging

import pytest

from coinapi.logging_config import setup_logging


@pytest.fixture
def restore_logging():
    yield
    setup_logging("INFO")


def test_levels_are_applied(restore_logging):
    setup_logging("debug", sql_log_level="info")

    assert logging.getLogger("coinapi").level == logging.DEBUG
    assert logging.getLogger("coinapi.services").level == logging.DEBUG
    assert logging.getLogger("sqlalchemy.engine").level == logging.INFO
    assert logging.getLogger("botocore").level == logging.WARNING


def test_service_logs_do_not_reach_root(restore_logging):
    setup_logging("INFO")

    services = logging.getLogger("coinapi.services")

    assert services.propagate is False
    assert logging.getLogger("coinapi.services.ledger_service").getEffectiveLevel() == logging.INFO
    assert logging.getLogger("sqlalchemy.engine").getEffectiveLevel() == logging.WARNING
