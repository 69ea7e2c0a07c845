from typing import Optional

from lambdastub.invocation.models import ErrorInfo


class FunctionError(Exception):
    """
    Raised to the caller awaiting an invocation result when the function reported an error. The error type and
    message are passed through verbatim from the payload the function sent.
    """

    error_type: Optional[str]
    error_message: Optional[str]

    def __init__(self, error_type: Optional[str], error_message: Optional[str]):
        super().__init__(f"{error_type}: {error_message}")
        self.error_type = error_type
        self.error_message = error_message

    @property
    def error_info(self) -> ErrorInfo:
        return ErrorInfo(error_type=self.error_type, error_message=self.error_message)

    @classmethod
    def from_error_info(cls, info: ErrorInfo) -> "FunctionError":
        return cls(info.error_type, info.error_message)


class StartupFailure(FunctionError):
    """The function reported an init error, so every outstanding and future invocation fails."""


class DuplicateRequestId(ValueError):
    def __init__(self, request_id: str):
        super().__init__(f"request id {request_id} already has a pending result")
        self.request_id = request_id


class UnknownRequestId(KeyError):
    def __init__(self, request_id: str):
        super().__init__(request_id)
        self.request_id = request_id

    def __str__(self):
        return f"no pending result for request id {self.request_id}"


class SlotAlreadyResolved(Exception):
    def __init__(self, request_id: str):
        super().__init__(f"result for request id {request_id} was already resolved")
        self.request_id = request_id


class MalformedErrorPayload(ValueError):
    """The error document sent by the function could not be parsed."""
