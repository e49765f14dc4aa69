from __future__ import annotations


class NotegridError(Exception):
    status = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class AuthError(NotegridError):
    status = 401
    default_message = "Invalid or missing authorization"


class ValidationError(NotegridError):
    status = 400
    default_message = "Invalid request body"


class NotFoundError(NotegridError):
    status = 404
    default_message = "Not found"


class ConflictError(NotegridError):
    status = 409
    default_message = "UUID already registered"


class PayloadTooLargeError(NotegridError):
    status = 413
    default_message = "Payload too large"


class TransportError(NotegridError):
    """Remote store could not be reached or answered with something unreadable."""

    status = 503
    default_message = "Remote unreachable"


class RemoteError(NotegridError):
    """Remote store answered with an unexpected failure envelope."""

    def __init__(self, message: str | None = None, *, status: int = 500) -> None:
        super().__init__(message)
        self.status = status


class ImportFormatError(NotegridError):
    status = 400
    default_message = "Invalid JSON format. Please check the file contents."


ERRORS_BY_STATUS: dict[int, type[NotegridError]] = {
    400: ValidationError,
    401: AuthError,
    404: NotFoundError,
    409: ConflictError,
    413: PayloadTooLargeError,
}


def error_for_status(status: int, message: str | None) -> NotegridError:
    cls = ERRORS_BY_STATUS.get(status)
    if cls is None:
        return RemoteError(message or f"unexpected status {status}", status=status)
    return cls(message)
