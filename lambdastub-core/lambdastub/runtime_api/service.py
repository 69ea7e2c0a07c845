import logging
import os
import threading
from typing import Dict, List, Optional

from lambdastub import config
from lambdastub.client import LambdaClient
from lambdastub.config import HostAndPort
from lambdastub.constants import ERROR_TYPE_RUNTIME_STOPPED
from lambdastub.http import Router
from lambdastub.http.router import handler_dispatcher
from lambdastub.invocation.models import ErrorInfo, InvocationItem, LifecycleState
from lambdastub.invocation.queue import InvocationQueue
from lambdastub.invocation.registry import PendingResultRegistry
from lambdastub.runtime_api.endpoints import RuntimeApiEndpoints
from lambdastub.runtime_api.server import RuntimeApiServer

LOG = logging.getLogger(__name__)

SERVER_STARTUP_TIMEOUT = 10


class RuntimeApiService:
    """
    Owns the runtime API listener and its state. ``start`` binds the listener and publishes its address, ``stop``
    first releases every blocked poll request and only then tears down the listener.

    A service starts out as ``STOPPED``, moves to ``RUNNING`` on start, and goes through ``DRAINING`` back to
    ``STOPPED`` on stop::

        service = RuntimeApiService()
        service.start()  # {"AWS_LAMBDA_RUNTIME_API": "127.0.0.1:5387"}
        result = service.client.invoke({"key": "value"}, timeout=10)
        service.stop()
    """

    queue: InvocationQueue
    registry: PendingResultRegistry
    endpoints: RuntimeApiEndpoints
    client: LambdaClient
    undelivered: List[InvocationItem]
    """Invocations that were still queued when the service was last stopped."""

    def __init__(
        self,
        listen: HostAndPort = None,
        api_version: str = None,
        poll_interval: float = None,
        drain_interval: float = None,
        config_key: str = None,
        publish_env: bool = None,
        function_arn: str = None,
        function_timeout: int = None,
    ):
        self.listen = listen or config.RUNTIME_API_LISTEN
        self.api_version = api_version or config.RUNTIME_API_VERSION
        self.drain_interval = drain_interval or config.RUNTIME_API_DRAIN_INTERVAL
        self.config_key = config_key or config.RUNTIME_API_CONFIG_KEY
        self.publish_env = config.RUNTIME_API_PUBLISH_ENV if publish_env is None else publish_env

        self.queue = InvocationQueue()
        self.registry = PendingResultRegistry()
        self.endpoints = RuntimeApiEndpoints(
            self.queue,
            self.registry,
            is_running=self.is_running,
            poll_interval=poll_interval,
            function_arn=function_arn,
            function_timeout=function_timeout,
        )
        self.client = LambdaClient(self.queue, self.registry, self.endpoints.runtime_started)
        self.undelivered = []

        self._state = LifecycleState.STOPPED
        self._lifecycle_lock = threading.RLock()
        self._server: Optional[RuntimeApiServer] = None
        self._published: Dict[str, str] = {}

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def active_pollers(self) -> int:
        return self.endpoints.active_pollers.count

    @property
    def address(self) -> Optional[str]:
        if not self._server:
            return None
        return f"{self.listen.host}:{self._server.port}"

    @property
    def url(self) -> Optional[str]:
        if not self._server:
            return None
        return self._server.url

    def is_running(self) -> bool:
        """Whether poll requests may still be handed invocations."""
        server = self._server
        return self._state is LifecycleState.RUNNING and server is not None and server.is_running()

    def start(self) -> Dict[str, str]:
        """
        Binds the listener, switches to ``RUNNING`` and publishes the bound address.

        :return: a mapping of the configured key (``AWS_LAMBDA_RUNTIME_API`` by default) to ``host:port``
        :raises RuntimeError: if the service is not stopped
        """
        with self._lifecycle_lock:
            if self._state is not LifecycleState.STOPPED:
                raise RuntimeError(f"cannot start runtime API, it is {self._state.value}")

            router = Router(dispatcher=handler_dispatcher())
            self.endpoints.register_routes(router, self.api_version)

            server = RuntimeApiServer(router, port=self.listen.port, host=self.listen.host)
            server.start()
            if not server.wait_is_up(SERVER_STARTUP_TIMEOUT):
                server.shutdown()
                raise TimeoutError(f"gave up waiting for runtime API server on {server.url}")

            self._server = server
            self._state = LifecycleState.RUNNING
            self.undelivered = []

            self._published = {self.config_key: self.address}
            if self.publish_env:
                os.environ.update(self._published)

            LOG.info("Lambda runtime API listening on %s", server.url)
            return dict(self._published)

    def stop(self) -> None:
        """
        Stops the service. Waits until every poll request in progress has been answered before shutting down the
        listener. Invocations that were never picked up are kept in ``undelivered``, and callers still waiting for a
        result are released with a ``Runtime.Stopped`` error. Calling stop on a stopped service has no effect.
        """
        with self._lifecycle_lock:
            if self._state is LifecycleState.STOPPED:
                return

            self._state = LifecycleState.DRAINING
            LOG.debug("Draining %d active poller(s)", self.endpoints.active_pollers.count)
            self.endpoints.active_pollers.wait_for_zero(self.drain_interval)

            self._server.shutdown()
            self._server = None

            self.undelivered = self.queue.clear()
            if self.undelivered:
                LOG.warning(
                    "%d invocation(s) were never picked up by the function: %s",
                    len(self.undelivered),
                    ", ".join(item.request_id for item in self.undelivered),
                )

            failed = self.registry.fail_pending(
                ErrorInfo(
                    error_type=ERROR_TYPE_RUNTIME_STOPPED,
                    error_message="The runtime API was stopped before the invocation completed",
                )
            )
            if failed:
                LOG.warning("Released %d caller(s) still waiting for an invocation result", failed)

            if self.publish_env:
                for key, value in self._published.items():
                    if os.environ.get(key) == value:
                        del os.environ[key]
            self._published = {}

            self._state = LifecycleState.STOPPED
            LOG.info("Lambda runtime API stopped")

    def __enter__(self) -> "RuntimeApiService":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
