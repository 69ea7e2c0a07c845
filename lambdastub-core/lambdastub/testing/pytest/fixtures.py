"""Pytest plugin that runs a Lambda runtime API for the duration of a test.

Use in your ``conftest.py`` as follows::

    pytest_plugins = "lambdastub.testing.pytest.fixtures"

    def test_handler(lambda_runtime, lambda_client):
        start_function(runtime_api=lambda_runtime.address)
        assert lambda_client.invoke({"name": "world"}, timeout=10) == b'"hello world"'

By default each runtime API binds a free port, pass ``--lambda-runtime-port`` to use a fixed one."""

import logging
from typing import Iterator

import pytest
from _pytest.config import PytestPluginManager
from _pytest.config.argparsing import Parser

from lambdastub.client import LambdaClient
from lambdastub.config import HostAndPort
from lambdastub.constants import LOCALHOST_IP
from lambdastub.runtime_api.service import RuntimeApiService
from lambdastub.utils.net import get_free_tcp_port

LOG = logging.getLogger(__name__)


def pytest_addoption(parser: Parser, pluginmanager: PytestPluginManager):
    parser.addoption(
        "--lambda-runtime-port",
        action="store",
        type=int,
        default=None,
        help="port of the Lambda runtime API started by the lambda_runtime fixture (default: a free port)",
    )


@pytest.fixture
def lambda_runtime(request) -> Iterator[RuntimeApiService]:
    """Starts a runtime API, and stops it after the test. Invocations nobody picked up fail the test."""
    port = request.config.getoption("--lambda-runtime-port") or get_free_tcp_port()
    service = RuntimeApiService(listen=HostAndPort(LOCALHOST_IP, port))
    service.start()

    yield service

    service.stop()
    if service.undelivered:
        pytest.fail(
            "invocations were never picked up by the function: %s"
            % ", ".join(item.request_id for item in service.undelivered)
        )


@pytest.fixture
def lambda_client(lambda_runtime: RuntimeApiService) -> LambdaClient:
    return lambda_runtime.client


@pytest.fixture
def runtime_api_url(lambda_runtime: RuntimeApiService) -> str:
    return f"{lambda_runtime.url}/{lambda_runtime.api_version}/runtime"
