from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    TRANSPORT_FAILURE = "TransportFailure"
    NOT_FOUND = "NotFound"
    ACCOUNT_NOT_MULTISIG = "AccountNotMultisig"
    BROADCAST_REJECTED = "BroadcastRejected"
    INVALID_CONFIGURATION = "InvalidConfiguration"
    ACTION_FAILED = "ActionFailed"


class Entity(str, Enum):
    ACCOUNT = "account"
    BLOCK = "block"


class AdapterError(Exception):
    """
    AdapterError is the single error type raised by the adapter.

    Callers branch on ``kind`` rather than on the exception class:

        match err.kind:
            case ErrorKind.NOT_FOUND: ...

    Attributes:
        kind (ErrorKind): What went wrong.
        message (str): Human readable description.
        cause (Optional[BaseException]): The underlying error, if any. For
            TRANSPORT_FAILURE this is the error of the primary endpoint.
        entity (Optional[Entity]): The missing entity for NOT_FOUND errors.
        status (Optional[int]): HTTP status of the primary attempt, if it
            produced a response.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        cause: Optional[BaseException] = None,
        entity: Optional[Entity] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause
        self.entity = entity
        self.status = status

    @property
    def is_not_found_response(self) -> bool:
        """True when the remote service answered 404 to the primary attempt."""
        return self.kind is ErrorKind.TRANSPORT_FAILURE and self.status == 404

    def __repr__(self) -> str:
        return f"AdapterError({self.kind.value}, {self.message!r})"


def transport_failure(cause: BaseException) -> AdapterError:
    return AdapterError(
        ErrorKind.TRANSPORT_FAILURE,
        f"Request failed on every endpoint: {cause}",
        cause=cause,
        status=getattr(cause, "status", None),
    )


def not_found(entity: Entity, message: str, cause: Optional[BaseException] = None) -> AdapterError:
    return AdapterError(ErrorKind.NOT_FOUND, message, cause=cause, entity=entity)


def action_failed(message: str, cause: Optional[BaseException] = None) -> AdapterError:
    return AdapterError(ErrorKind.ACTION_FAILED, message, cause=cause)
