import abc
import logging
import threading
from typing import Optional

from lambdastub.utils.net import is_port_open
from lambdastub.utils.sync import poll_condition
from lambdastub.utils.threads import FuncThread

LOG = logging.getLogger(__name__)


class Server(abc.ABC):
    """
    Lifecycle of a server that runs in a background thread: ``start`` runs ``do_run`` in a new thread, ``shutdown``
    calls ``do_shutdown`` which has to make ``do_run`` return.
    """

    def __init__(self, port: int, host: str = "localhost") -> None:
        super().__init__()
        self._thread: Optional[FuncThread] = None

        self._lifecycle_lock = threading.RLock()
        self._stopped = threading.Event()
        self._started = threading.Event()

        self._host = host
        self._port = port

    @property
    def host(self):
        return self._host

    @property
    def port(self):
        return self._port

    @property
    def url(self):
        return "http://%s:%s" % (self.host, self.port)

    def wait_is_up(self, timeout: float = None) -> bool:
        """
        Waits until the server is started and its health check passes.

        :param timeout: the time in seconds to wait, None waits indefinitely
        :returns: True if the server is up, False if the timeout was reached while waiting
        """
        self._started.wait(timeout=timeout)
        return poll_condition(self.is_up, timeout=timeout, interval=0.05)

    def is_running(self) -> bool:
        """
        Whether the server thread was started and not shut down yet. The server may be running but not up yet
        (is_running == True, is_up == False).
        """
        if not self._started.is_set() or self._stopped.is_set():
            return False
        return self._thread.running

    def is_up(self) -> bool:
        """False if the server has not been started or if its health check failed."""
        if not self._started.is_set():
            return False

        try:
            return True if self.health() else False
        except OSError as e:
            LOG.debug("health check of %s failed: %s", self.url, e)
            return False

    def start(self) -> bool:
        """
        Starts the server thread. ``is_running`` already holds once ``do_run`` is entered. Repeated calls have no
        effect.

        :return: True if the server was started in this call, False if it was already started previously
        """
        with self._lifecycle_lock:
            if self._started.is_set():
                return False

            self._thread = FuncThread(self._run, name=f"server-{self.__class__.__name__}")
            self._started.set()
            self._thread.start()
            return True

    def shutdown(self) -> None:
        """
        Shuts down the server through ``do_shutdown``. Repeated calls have no effect.

        :raises RuntimeError: shutdown was called before start
        """
        with self._lifecycle_lock:
            if not self._started.is_set():
                raise RuntimeError("cannot shutdown server before it is started")
            if self._stopped.is_set():
                return

            self._thread.stop()
            self._stopped.set()
            self.do_shutdown()

    def health(self):
        """Checks whether the server port accepts connections."""
        return is_port_open(self.url)

    def _run(self):
        try:
            self.do_run()
        finally:
            self._stopped.set()

    @abc.abstractmethod
    def do_run(self):
        """Runs the server (blocking method)."""
        raise NotImplementedError

    def do_shutdown(self):
        pass
