"""
HTTP handlers of the Lambda Runtime Interface: the long-poll endpoint handing out invocations, and the completion
endpoints the function posts its results or errors to.
"""
import json
import logging
import threading
import time
from typing import Callable, Optional

from werkzeug import Request
from werkzeug.exceptions import MethodNotAllowed

from lambdastub import config
from lambdastub.constants import (
    HEADER_DEADLINE_MS,
    HEADER_INVOKED_FUNCTION_ARN,
    HEADER_REQUEST_ID,
)
from lambdastub.http import Response, Router
from lambdastub.invocation.exceptions import (
    MalformedErrorPayload,
    SlotAlreadyResolved,
    UnknownRequestId,
)
from lambdastub.invocation.models import ErrorInfo, InvocationItem
from lambdastub.invocation.queue import InvocationQueue
from lambdastub.invocation.registry import PendingResultRegistry
from lambdastub.utils.strings import to_str, truncate

LOG = logging.getLogger(__name__)


class ActivePollers:
    """Counts the poll requests that are currently being handled, so shutdown can wait for them."""

    def __init__(self):
        self._count = 0
        self._mutex = threading.Lock()

    def increment(self) -> int:
        with self._mutex:
            self._count += 1
            return self._count

    def decrement(self) -> int:
        with self._mutex:
            if self._count <= 0:
                raise RuntimeError("active poller count would drop below zero")
            self._count -= 1
            return self._count

    @property
    def count(self) -> int:
        with self._mutex:
            return self._count

    def wait_for_zero(self, interval: float, timeout: Optional[float] = None) -> bool:
        """
        Blocks until no poll request is active anymore.

        :param interval: the time in seconds between two checks
        :param timeout: the time in seconds to wait, None waits indefinitely
        :return: True if the count reached zero, False if the timeout elapsed first
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while self.count > 0:
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(interval)
        return True


def parse_error_info(request: Request) -> ErrorInfo:
    """
    Parses the ``{"errorType": ..., "errorMessage": ...}`` document sent by the function.

    :raises MalformedErrorPayload: if the body is not a JSON object
    """
    body = request.get_data()
    try:
        doc = json.loads(to_str(body))
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedErrorPayload(f"invalid error payload {truncate(repr(body))}: {e}") from e
    if not isinstance(doc, dict):
        raise MalformedErrorPayload(f"error payload is not a JSON object: {truncate(repr(body))}")
    return ErrorInfo.from_dict(doc)


class RuntimeApiEndpoints:
    """
    Handlers of the runtime API routes. They share the invocation queue and the result registry with the test
    driver, and ask ``is_running`` whether new invocations may still be handed out.
    """

    queue: InvocationQueue
    registry: PendingResultRegistry
    active_pollers: ActivePollers
    runtime_started: threading.Event

    def __init__(
        self,
        queue: InvocationQueue,
        registry: PendingResultRegistry,
        is_running: Callable[[], bool],
        poll_interval: float = None,
        function_arn: str = None,
        function_timeout: int = None,
        runtime_started: threading.Event = None,
    ):
        self.queue = queue
        self.registry = registry
        self.is_running = is_running
        self.poll_interval = poll_interval or config.RUNTIME_API_POLL_INTERVAL
        self.function_arn = function_arn or config.LAMBDA_FUNCTION_ARN
        self.function_timeout = function_timeout or config.LAMBDA_FUNCTION_TIMEOUT
        self.active_pollers = ActivePollers()
        self.runtime_started = runtime_started or threading.Event()

    def register_routes(self, router: Router, api_version: str = None) -> None:
        prefix = f"/{api_version or config.RUNTIME_API_VERSION}/runtime"
        LOG.debug("Registering runtime API routes under %s", prefix)

        router.add(
            f"{prefix}/invocation/next",
            endpoint=self.next_invocation,
            methods=["GET"],
        )
        router.add(
            f"{prefix}/invocation/<request_id>/response",
            endpoint=self.invocation_response,
            methods=["POST"],
        )
        router.add(
            f"{prefix}/invocation/<request_id>/error",
            endpoint=self.invocation_error,
            methods=["POST"],
        )
        router.add(
            f"{prefix}/init/error",
            endpoint=self.init_error,
            methods=["POST"],
        )

    def next_invocation(self, request: Request) -> Response:
        """
        Long-poll for the next invocation. Blocks until an invocation is available, or answers 503 once the runtime
        API stops running.
        """
        if request.method != "GET":
            # werkzeug routes HEAD to GET rules, which would consume an invocation without sending it
            raise MethodNotAllowed(valid_methods=["GET"])

        self.active_pollers.increment()
        response = None
        try:
            # a polling function has finished its init phase
            self.runtime_started.set()
            response = self._await_invocation()
            return response
        finally:
            if response is None:
                self.active_pollers.decrement()
            else:
                # the server writes the body after we return, the poll only ends once the response is closed
                response.call_on_close(self.active_pollers.decrement)

    def _await_invocation(self) -> Response:
        while True:
            if not self.is_running():
                return self._unavailable()

            item = self.queue.get(timeout=self.poll_interval)
            if item is None:
                continue

            if not self.is_running():
                # the drain started while we were waiting, leave the item for the leak report
                self.queue.requeue(item)
                return self._unavailable()

            LOG.debug("Handing out invocation %s", item.request_id)
            return self._invocation_response(item)

    def _invocation_response(self, item: InvocationItem) -> Response:
        deadline = int((time.time() + self.function_timeout) * 1000)
        response = Response(item.payload, status=200, mimetype="application/json")
        response.headers[HEADER_REQUEST_ID] = item.request_id
        response.headers[HEADER_DEADLINE_MS] = str(deadline)
        response.headers[HEADER_INVOKED_FUNCTION_ARN] = self.function_arn
        return response

    def _unavailable(self) -> Response:
        LOG.debug("Runtime API is not running, releasing poller")
        return Response(status=503).close_connection()

    def invocation_response(self, request: Request, request_id: str) -> Response:
        data = request.get_data()
        try:
            self.registry.resolve_success(request_id, data)
        except (UnknownRequestId, SlotAlreadyResolved) as e:
            LOG.warning("Ignoring response of invocation %s: %s", request_id, e)
        return Response(status=200)

    def invocation_error(self, request: Request, request_id: str) -> Response:
        info = parse_error_info(request)
        LOG.debug("Invocation %s failed with %s", request_id, info)
        try:
            self.registry.resolve_failure(request_id, info)
        except (UnknownRequestId, SlotAlreadyResolved) as e:
            LOG.warning("Ignoring error of invocation %s: %s", request_id, e)
        return Response(status=200)

    def init_error(self, request: Request) -> Response:
        info = parse_error_info(request)
        failed = self.registry.fail_startup(info)
        LOG.info(
            "Function failed to initialize (%s: %s), failed %d pending invocation(s)",
            info.error_type,
            info.error_message,
            failed,
        )
        pending = set(self.registry.pending_ids())
        dropped = self.queue.remove_where(lambda item: item.request_id not in pending)
        if dropped:
            LOG.info(
                "Dropped %d queued invocation(s) of the failed function: %s",
                len(dropped),
                ", ".join(item.request_id for item in dropped),
            )
        self.runtime_started.set()
        return Response(status=200)
