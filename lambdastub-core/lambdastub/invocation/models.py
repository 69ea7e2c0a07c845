import dataclasses
from enum import Enum
from typing import Any, Dict, Mapping, Optional


@dataclasses.dataclass(frozen=True)
class InvocationItem:
    """A single simulated invocation, waiting to be picked up by the function-under-test."""

    request_id: str
    payload: bytes


@dataclasses.dataclass(frozen=True)
class ErrorInfo:
    """A failure reported by the function, as sent in the ``errorType``/``errorMessage`` JSON document."""

    error_type: Optional[str]
    error_message: Optional[str]

    @classmethod
    def from_dict(cls, doc: Mapping[str, Any]) -> "ErrorInfo":
        # runtimes add more fields (stackTrace, requestId, ...) which are not part of the value
        return cls(error_type=doc.get("errorType"), error_message=doc.get("errorMessage"))

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"errorType": self.error_type, "errorMessage": self.error_message}


class LifecycleState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    DRAINING = "draining"
