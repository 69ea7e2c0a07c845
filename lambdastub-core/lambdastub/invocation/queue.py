import collections
import threading
import time
from typing import Callable, Deque, List, Optional

from lambdastub.invocation.models import InvocationItem


class InvocationQueue:
    """
    FIFO queue of invocations waiting for a poller. Many threads may call ``get`` concurrently, each item is
    handed out to exactly one of them.
    """

    _items: Deque[InvocationItem]

    def __init__(self):
        self._items = collections.deque()
        self._condition = threading.Condition()

    def put(self, item: InvocationItem) -> None:
        with self._condition:
            self._items.append(item)
            self._condition.notify()

    def requeue(self, item: InvocationItem) -> None:
        """
        Puts an item that was dequeued but could not be delivered back at the head of the queue, so it is the next
        one to be handed out.
        """
        with self._condition:
            self._items.appendleft(item)
            self._condition.notify()

    def get(self, timeout: Optional[float] = None) -> Optional[InvocationItem]:
        """
        Removes and returns the oldest item, waiting up to ``timeout`` seconds for one to arrive.

        :param timeout: the time in seconds to wait, None waits indefinitely
        :return: the oldest item, or None if the timeout elapsed
        """
        with self._condition:
            if timeout is None:
                while not self._items:
                    self._condition.wait()
            else:
                deadline = time.monotonic() + timeout
                while not self._items:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return None
                    self._condition.wait(remaining)

            return self._items.popleft()

    def snapshot(self) -> List[InvocationItem]:
        with self._condition:
            return list(self._items)

    def remove_where(self, predicate: Callable[[InvocationItem], bool]) -> List[InvocationItem]:
        """Removes the items matching the predicate and returns them, oldest first. The others keep their order."""
        with self._condition:
            kept, removed = collections.deque(), []
            for item in self._items:
                (removed if predicate(item) else kept).append(item)
            self._items = kept
            return removed

    def clear(self) -> List[InvocationItem]:
        """Removes all queued items and returns them, oldest first."""
        with self._condition:
            items = list(self._items)
            self._items.clear()
            return items

    def __len__(self):
        with self._condition:
            return len(self._items)
