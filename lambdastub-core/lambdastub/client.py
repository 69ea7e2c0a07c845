import json
import logging
import threading
from typing import Any, Optional

from lambdastub.invocation.models import ErrorInfo, InvocationItem
from lambdastub.invocation.queue import InvocationQueue
from lambdastub.invocation.registry import PendingResultRegistry, ResultSlot
from lambdastub.utils.strings import long_uid, to_bytes

LOG = logging.getLogger(__name__)


def encode_payload(payload: Any) -> bytes:
    """Strings are sent UTF-8 encoded, bytes as they are, anything else as JSON document."""
    if isinstance(payload, (str, bytes)):
        return to_bytes(payload)
    if isinstance(payload, bytearray):
        return bytes(payload)
    return to_bytes(json.dumps(payload))


class LambdaClient:
    """
    Used by test code to send invocations to the function-under-test and to wait for their results.
    """

    def __init__(
        self,
        queue: InvocationQueue,
        registry: PendingResultRegistry,
        runtime_started: threading.Event,
    ):
        self.queue = queue
        self.registry = registry
        self.runtime_started = runtime_started

    @property
    def is_started(self) -> bool:
        """Whether the function has polled for an invocation or reported an init error."""
        return self.runtime_started.is_set()

    @property
    def startup_failure(self) -> Optional[ErrorInfo]:
        return self.registry.startup_failure

    def wait_until_started(self, timeout: Optional[float] = None) -> bool:
        return self.runtime_started.wait(timeout)

    def enqueue(self, request_id: str, payload: Any) -> ResultSlot:
        """
        Registers a result slot for the request id and queues the invocation. If the function already reported a
        startup failure, the returned slot is failed with it and nothing is queued.

        :raises DuplicateRequestId: if an invocation with this request id is still pending
        """
        slot = self.registry.register(request_id)
        if slot.done():
            LOG.debug("Not queueing invocation %s, the function failed to start", request_id)
            return slot
        self.queue.put(InvocationItem(request_id=request_id, payload=encode_payload(payload)))
        return slot

    def await_result(self, request_id: str, timeout: Optional[float] = None) -> bytes:
        """
        :raises FunctionError: if the function reported an error for the invocation
        :raises TimeoutError: if no result arrived within the timeout
        """
        return self.registry.await_result(request_id, timeout)

    def invoke(
        self, payload: Any, request_id: Optional[str] = None, timeout: Optional[float] = None
    ) -> bytes:
        request_id = request_id or long_uid()
        self.enqueue(request_id, payload)
        return self.await_result(request_id, timeout)
