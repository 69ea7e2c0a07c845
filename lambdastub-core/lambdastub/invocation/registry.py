"""
Registry of pending invocation results. Each request id maps to a one-shot ``ResultSlot`` which is resolved by the
runtime API handlers (from a server worker thread) and awaited by the test driver (from its own thread).
"""
import concurrent.futures
import logging
import threading
from typing import Dict, List, Optional

from lambdastub.invocation.exceptions import (
    DuplicateRequestId,
    FunctionError,
    SlotAlreadyResolved,
    StartupFailure,
    UnknownRequestId,
)
from lambdastub.invocation.models import ErrorInfo

LOG = logging.getLogger(__name__)


class ResultSlot:
    """
    A result cell that can be resolved exactly once, either with the response bytes of the function, or with a
    ``FunctionError``. A second attempt to resolve it raises ``SlotAlreadyResolved`` and leaves the first result
    untouched.
    """

    request_id: str

    def __init__(self, request_id: str):
        self.request_id = request_id
        self._future: concurrent.futures.Future = concurrent.futures.Future()

    def set_success(self, data: bytes) -> None:
        try:
            self._future.set_result(data)
        except concurrent.futures.InvalidStateError as e:
            raise SlotAlreadyResolved(self.request_id) from e

    def set_failure(self, error: FunctionError) -> None:
        try:
            self._future.set_exception(error)
        except concurrent.futures.InvalidStateError as e:
            raise SlotAlreadyResolved(self.request_id) from e

    def done(self) -> bool:
        return self._future.done()

    def failed(self) -> bool:
        return self._future.done() and self._future.exception() is not None

    def result(self, timeout: Optional[float] = None) -> bytes:
        """
        Waits for the slot to be resolved.

        :param timeout: the time in seconds to wait, None waits indefinitely
        :return: the response bytes
        :raises FunctionError: if the slot was resolved with a failure
        :raises TimeoutError: if the slot was not resolved within the timeout
        """
        try:
            return self._future.result(timeout)
        except concurrent.futures.TimeoutError as e:
            raise TimeoutError(
                f"gave up waiting for the result of request {self.request_id} after {timeout} seconds"
            ) from e

    def __repr__(self):
        state = "failed" if self.failed() else "resolved" if self.done() else "pending"
        return f"ResultSlot(request_id={self.request_id}, {state})"


class PendingResultRegistry:
    """
    Thread-safe mapping of request ids to result slots. It also holds the startup failure of the function, if one
    was reported, which fails every pending and every later registered slot.
    """

    _slots: Dict[str, ResultSlot]
    _startup_failure: Optional[ErrorInfo]

    def __init__(self):
        self._slots = {}
        self._startup_failure = None
        self._mutex = threading.RLock()

    @property
    def startup_failure(self) -> Optional[ErrorInfo]:
        return self._startup_failure

    def register(self, request_id: str) -> ResultSlot:
        """
        Creates a fresh slot for the given request id. A resolved slot whose result was never consumed is
        replaced. If a startup failure was recorded, the new slot is already failed with it.

        :raises DuplicateRequestId: if the request id already has an unresolved slot
        """
        with self._mutex:
            existing = self._slots.get(request_id)
            if existing is not None and not existing.done():
                raise DuplicateRequestId(request_id)

            slot = ResultSlot(request_id)
            if self._startup_failure is not None:
                slot.set_failure(StartupFailure.from_error_info(self._startup_failure))
            self._slots[request_id] = slot
            return slot

    def get(self, request_id: str) -> ResultSlot:
        with self._mutex:
            try:
                return self._slots[request_id]
            except KeyError:
                raise UnknownRequestId(request_id)

    def resolve_success(self, request_id: str, data: bytes) -> None:
        """
        :raises UnknownRequestId: if there is no slot for the request id
        :raises SlotAlreadyResolved: if the slot was already resolved
        """
        self.get(request_id).set_success(data)

    def resolve_failure(self, request_id: str, info: ErrorInfo) -> None:
        """
        :raises UnknownRequestId: if there is no slot for the request id
        :raises SlotAlreadyResolved: if the slot was already resolved
        """
        self.get(request_id).set_failure(FunctionError.from_error_info(info))

    def await_result(self, request_id: str, timeout: Optional[float] = None) -> bytes:
        """
        Blocks until the slot of the given request id is resolved, and removes it from the registry once its result
        was consumed.

        :return: the response bytes of the function
        :raises FunctionError: if the function reported an error (or a startup failure)
        :raises TimeoutError: if the result is not available within the timeout, the slot is kept
        :raises UnknownRequestId: if the request id was never registered (or its result was already consumed)
        """
        slot = self.get(request_id)
        try:
            return slot.result(timeout)
        finally:
            if slot.done():
                self._discard(slot)

    def broadcast_failure(self, info: ErrorInfo) -> int:
        """
        Fails every currently unresolved slot with the given startup failure. Slots that are already resolved keep
        their result.

        :return: the number of slots that were failed
        """
        return self._fail_unresolved(lambda: StartupFailure.from_error_info(info))

    def fail_startup(self, info: ErrorInfo) -> int:
        """
        Records the startup failure of the function and broadcasts it. Invocations registered afterwards fail
        immediately with the same error. A second startup failure replaces the stored one.

        :return: the number of pending slots that were failed
        """
        with self._mutex:
            if self._startup_failure is not None:
                LOG.debug("replacing startup failure %s with %s", self._startup_failure, info)
            self._startup_failure = info
            return self.broadcast_failure(info)

    def fail_pending(self, info: ErrorInfo) -> int:
        """
        Fails every currently unresolved slot with a regular ``FunctionError``, without recording a startup failure.

        :return: the number of slots that were failed
        """
        return self._fail_unresolved(lambda: FunctionError.from_error_info(info))

    def pending_ids(self) -> List[str]:
        with self._mutex:
            return [request_id for request_id, slot in self._slots.items() if not slot.done()]

    def _fail_unresolved(self, error_factory) -> int:
        failed = 0
        with self._mutex:
            for slot in list(self._slots.values()):
                if slot.done():
                    continue
                try:
                    slot.set_failure(error_factory())
                    failed += 1
                except SlotAlreadyResolved:
                    # resolved concurrently by a completion handler, which wins
                    continue
        return failed

    def _discard(self, slot: ResultSlot) -> None:
        with self._mutex:
            # only remove the slot if it was not replaced in the meantime
            if self._slots.get(slot.request_id) is slot:
                del self._slots[slot.request_id]

    def __contains__(self, request_id: str) -> bool:
        with self._mutex:
            return request_id in self._slots

    def __len__(self):
        with self._mutex:
            return len(self._slots)
