import logging

import pytest

pytest_plugins = [
    "lambdastub.testing.pytest.fixtures",
]

LOG = logging.getLogger(__name__)


@pytest.fixture
def cleanups():
    cleanup_fns = []

    yield cleanup_fns

    for cleanup_callback in cleanup_fns[::-1]:
        try:
            cleanup_callback()
        except Exception as e:
            LOG.warning("Failed to execute cleanup", exc_info=e)
