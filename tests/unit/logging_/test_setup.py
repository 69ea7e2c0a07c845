import logging
import warnings

import pytest

from lambdastub import config
from lambdastub.logging import setup
from lambdastub.logging.format import AddFormattedAttributes, DefaultFormatter


@pytest.fixture
def restore_logging():
    """setup_logging reconfigures the root logger and the warnings filters, put them back afterwards."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    names = ["lambdastub", *setup.default_log_levels, *setup.trace_log_levels]
    levels = {name: logging.getLogger(name).level for name in [*names, "root"]}

    with warnings.catch_warnings():
        yield

    logging.captureWarnings(False)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    for name, level in levels.items():
        logging.getLogger(None if name == "root" else name).setLevel(level)


@pytest.mark.usefixtures("restore_logging")
class TestSetupLoggingFromConfig:
    def test_default_levels(self, monkeypatch):
        monkeypatch.setattr(config, "LAMBDASTUB_LOG", False)
        monkeypatch.setattr(config, "DEBUG", False)

        setup.setup_logging_from_config()

        assert logging.getLogger().level == logging.INFO
        assert logging.getLogger("lambdastub").level == logging.INFO
        assert logging.getLogger("werkzeug").level == logging.WARNING
        assert logging.getLogger("rolo").level == logging.WARNING

        handler = logging.getLogger().handlers[0]
        assert isinstance(handler.formatter, DefaultFormatter)
        assert any(isinstance(f, AddFormattedAttributes) for f in handler.filters)

    def test_debug(self, monkeypatch):
        monkeypatch.setattr(config, "LAMBDASTUB_LOG", False)
        monkeypatch.setattr(config, "DEBUG", True)

        setup.setup_logging_from_config()

        assert logging.getLogger("lambdastub").level == logging.DEBUG
        assert logging.getLogger("werkzeug").level == logging.WARNING

    def test_trace_enables_request_logs(self, monkeypatch):
        monkeypatch.setattr(config, "LAMBDASTUB_LOG", "trace")

        setup.setup_logging_from_config()

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("werkzeug").level == logging.INFO
        assert logging.getLogger("lambdastub.runtime_api.endpoints").level == logging.DEBUG

    def test_explicit_level(self, monkeypatch):
        monkeypatch.setattr(config, "LAMBDASTUB_LOG", "warn")

        assert setup.get_log_level_from_config() == logging.WARNING
