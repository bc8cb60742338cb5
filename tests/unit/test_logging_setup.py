import logging

import pytest

from po_ingest.core.logging import APP_LOGGER, setup_logging


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    named = [APP_LOGGER, "uvicorn.access", "sqlalchemy.engine"]
    saved_named = {n: logging.getLogger(n).level for n in named}
    yield
    for n, lvl in saved_named.items():
        logging.getLogger(n).setLevel(lvl)
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in saved_handlers:
        root.addHandler(h)
    root.setLevel(saved_level)


def test_setup_logging_is_idempotent(restore_root_logging):
    setup_logging("info")
    setup_logging("info")

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert root.level == logging.INFO
    assert logging.getLogger(APP_LOGGER).level == logging.INFO
    assert logging.getLogger("uvicorn.access").level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_setup_logging_debug_enables_sql_echo(restore_root_logging):
    setup_logging("DEBUG")
    assert logging.getLogger("sqlalchemy.engine").level == logging.INFO
