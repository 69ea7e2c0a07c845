import itertools
import logging
import threading
from typing import Callable, Optional

LOG = logging.getLogger(__name__)

_counter = itertools.count(1)


class FuncThread(threading.Thread):
    """
    Daemon thread running a function. The thread does not interrupt the function on ``stop``, it only flips
    ``running``, which the function (or its owner) can check.
    """

    def __init__(self, func: Callable[[], None], name: Optional[str] = None):
        name = f"{name or func.__name__}-functhread{next(_counter)}"
        super().__init__(name=name, daemon=True)
        self.func = func
        self._stop_event = threading.Event()

    def run(self):
        try:
            self.func()
        except Exception as e:
            LOG.exception("Thread %s failed: %s", self.name, e)

    @property
    def running(self) -> bool:
        return not self._stop_event.is_set()

    def stop(self) -> None:
        self._stop_event.set()
