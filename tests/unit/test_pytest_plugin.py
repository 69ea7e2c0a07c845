import os
import threading

import pytest
import requests

from lambdastub.client import LambdaClient
from lambdastub.invocation.exceptions import FunctionError
from lambdastub.runtime_api.service import RuntimeApiService


def run_function(runtime_api_url: str, handler, invocations: int = 1):
    """A minimal function runtime: polls for invocations and posts the handler result back."""

    def _loop():
        for _ in range(invocations):
            invocation = requests.get(f"{runtime_api_url}/invocation/next", timeout=10)
            request_id = invocation.headers["Lambda-Runtime-Aws-Request-Id"]
            try:
                result = handler(invocation.json())
            except Exception as e:
                requests.post(
                    f"{runtime_api_url}/invocation/{request_id}/error",
                    json={"errorType": type(e).__name__, "errorMessage": str(e)},
                )
                continue
            requests.post(f"{runtime_api_url}/invocation/{request_id}/response", json=result)

    thread = threading.Thread(target=_loop, daemon=True)
    thread.start()
    return thread


def test_lambda_runtime_is_running(lambda_runtime: RuntimeApiService):
    assert lambda_runtime.is_running()
    assert os.environ["AWS_LAMBDA_RUNTIME_API"] == lambda_runtime.address


def test_invoke_function(lambda_client: LambdaClient, runtime_api_url: str):
    function = run_function(runtime_api_url, lambda event: f"hello {event['name']}", invocations=2)

    assert lambda_client.invoke({"name": "world"}, timeout=10) == b'"hello world"'
    assert lambda_client.invoke({"name": "lambda"}, timeout=10) == b'"hello lambda"'
    function.join(timeout=10)


def test_invoke_failing_function(lambda_client: LambdaClient, runtime_api_url: str):
    def _handler(event):
        raise KeyError("missing")

    run_function(runtime_api_url, _handler)

    with pytest.raises(FunctionError) as e:
        lambda_client.invoke({}, timeout=10)

    assert e.value.error_type == "KeyError"
    assert e.value.error_message == "'missing'"
