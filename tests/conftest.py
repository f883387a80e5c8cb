import logging

import pytest

pytest_plugins = [
    'tests.fixtures.mocks',
    'tests.fixtures.sqlite',
]


@pytest.fixture(autouse=True)
def debug_logging(caplog):
    """Capture scriptdb debug logging for every test."""
    caplog.set_level(logging.DEBUG, logger='scriptdb')
