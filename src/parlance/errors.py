"""Error kinds and exceptions shared across parlance.

Every exception carries an ErrorKind so callers can surface a stable,
serializable reason without inspecting exception types.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Reason a turn, action or code run did not complete."""

    NETWORK_FAILURE = "network_failure"
    TIMEOUT = "timeout"
    BUSY = "busy"
    MALFORMED_RESPONSE = "malformed_response"
    EXECUTION_FAILURE = "execution_failure"
    CANCELLED = "cancelled"
    NOT_EXECUTABLE = "not_executable"
    UNKNOWN_MESSAGE = "unknown_message"


class ParlanceError(Exception):
    """Base class for all parlance errors."""

    kind: ErrorKind = ErrorKind.NETWORK_FAILURE

    def __init__(self, message: str = "", kind: ErrorKind | None = None):
        super().__init__(message or self.__class__.__doc__ or "")
        if kind is not None:
            self.kind = kind


class BusyError(ParlanceError):
    """A turn is already in flight."""

    kind = ErrorKind.BUSY


class NotProcessingError(ParlanceError):
    """No turn is in flight."""

    kind = ErrorKind.CANCELLED


class ProviderError(ParlanceError):
    """The model provider call failed."""

    kind = ErrorKind.NETWORK_FAILURE


class UnknownMessageError(ParlanceError):
    """No message with the given id exists in the conversation."""

    kind = ErrorKind.UNKNOWN_MESSAGE


class ExecutionRejected(ParlanceError):
    """A code block cannot be run right now."""

    kind = ErrorKind.EXECUTION_FAILURE


class NotExecutableError(ExecutionRejected):
    """The code block is not marked executable."""

    kind = ErrorKind.NOT_EXECUTABLE


class BlockBusyError(ExecutionRejected):
    """The code block is already running."""

    kind = ErrorKind.BUSY
