import threading

import pytest

from lambdastub.client import LambdaClient, encode_payload
from lambdastub.invocation.exceptions import DuplicateRequestId, StartupFailure
from lambdastub.invocation.models import ErrorInfo
from lambdastub.invocation.queue import InvocationQueue
from lambdastub.invocation.registry import PendingResultRegistry


@pytest.fixture
def client() -> LambdaClient:
    return LambdaClient(InvocationQueue(), PendingResultRegistry(), threading.Event())


@pytest.mark.parametrize(
    "payload,expected",
    [
        ("hello", b"hello"),
        (b"\x00\x01", b"\x00\x01"),
        (bytearray(b"raw"), b"raw"),
        ({"key": "value"}, b'{"key": "value"}'),
        ([1, 2], b"[1, 2]"),
        (None, b"null"),
    ],
)
def test_encode_payload(payload, expected):
    assert encode_payload(payload) == expected


class TestLambdaClient:
    def test_enqueue_registers_and_queues(self, client):
        slot = client.enqueue("id1", {"key": "value"})

        assert not slot.done()
        assert "id1" in client.registry
        items = client.queue.snapshot()
        assert len(items) == 1
        assert items[0].request_id == "id1"
        assert items[0].payload == b'{"key": "value"}'

    def test_enqueue_duplicate_request_id(self, client):
        client.enqueue("id1", "a")

        with pytest.raises(DuplicateRequestId):
            client.enqueue("id1", "b")

        assert len(client.queue) == 1

    def test_invoke_waits_for_result(self, client):
        def _complete():
            item = client.queue.get(timeout=5)
            client.registry.resolve_success(item.request_id, b"result:" + item.payload)

        threading.Thread(target=_complete).start()

        assert client.invoke("ping", timeout=5) == b"result:ping"
        assert len(client.registry) == 0

    def test_invoke_generates_request_ids(self, client):
        received = []

        def _complete():
            for _ in range(2):
                item = client.queue.get(timeout=5)
                received.append(item.request_id)
                client.registry.resolve_success(item.request_id, b"")

        threading.Thread(target=_complete).start()
        client.invoke("a", timeout=5)
        client.invoke("b", timeout=5)

        assert len(received) == 2
        assert received[0] != received[1]

    def test_invoke_timeout(self, client):
        with pytest.raises(TimeoutError):
            client.invoke("ping", request_id="id1", timeout=0.05)

        # the slot is still pending and the result can be awaited later
        client.registry.resolve_success("id1", b"late")
        assert client.await_result("id1", timeout=1) == b"late"

    def test_enqueue_after_startup_failure(self, client):
        client.registry.fail_startup(ErrorInfo("Init.Failure", "boom"))
        client.runtime_started.set()

        slot = client.enqueue("id1", "payload")

        assert slot.failed()
        assert len(client.queue) == 0
        assert client.is_started
        assert client.startup_failure == ErrorInfo("Init.Failure", "boom")
        with pytest.raises(StartupFailure):
            client.await_result("id1", timeout=1)

    def test_wait_until_started(self, client):
        assert not client.wait_until_started(timeout=0.01)

        threading.Timer(0.05, client.runtime_started.set).start()

        assert client.wait_until_started(timeout=5)
