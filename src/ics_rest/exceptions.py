"""Exception hierarchy for the ICS REST SDK."""

from __future__ import annotations

from typing import NoReturn, Optional


class IcsRestError(Exception):
    """Base exception for all ICS REST SDK errors.

    Attributes:
        code: Machine-readable error code (e.g. "NOT_INITIALIZED").
        status: HTTP status code, or 0 when no response was involved.
        message: Human-readable error description.
    """

    def __init__(self, code: str, message: str, status: int = 0) -> None:
        super().__init__(message)
        self.code = code
        self.status = status
        self.message = message


class AuthError(IcsRestError):
    """Authentication errors (401, missing service id or key)."""


class ConfigurationError(IcsRestError):
    """Invalid client configuration (missing URL, bad certificate flag)."""


class ValidationError(IcsRestError):
    """A resource method was called with an invalid argument."""

    def __init__(self, message: str) -> None:
        super().__init__("INVALID_ARGUMENT", message, 400)


class NotFoundError(IcsRestError):
    """The requested room, participant, stream or recording does not exist (404)."""


class ServiceUnavailableError(IcsRestError):
    """Transport failure or 503 from the service."""


class InvalidStateError(IcsRestError):
    """A request object method was called out of sequence."""

    def __init__(self, message: str) -> None:
        super().__init__("INVALID_STATE_ERR", message)


class UnsupportedProtocolError(IcsRestError):
    """The request URL uses a scheme other than http or https."""

    def __init__(self, scheme: str) -> None:
        super().__init__("UNSUPPORTED_PROTOCOL", f"Protocol not supported: {scheme!r}")
        self.scheme = scheme


class WorkerError(IcsRestError):
    """Transport failure reported by a synchronous worker process.

    ``trace`` holds the worker-side traceback text.
    """

    def __init__(self, message: str, trace: str = "", error_type: str = "") -> None:
        super().__init__("WORKER_ERROR", message)
        self.trace = trace
        self.error_type = error_type


class WorkerExitedError(WorkerError):
    """The worker process exited without publishing a result."""


def raise_api_error(http_status: int, text: Optional[str]) -> NoReturn:
    """Raise the typed exception matching a failed service response.

    This function always raises.
    """
    message = text or f"HTTP {http_status}"

    if http_status == 401:
        raise AuthError("UNAUTHORIZED", message, http_status)
    if http_status == 404:
        raise NotFoundError("NOT_FOUND", message, http_status)
    if http_status == 503:
        raise ServiceUnavailableError("SERVICE_UNAVAILABLE", message, http_status)

    raise IcsRestError("HTTP_ERROR", message, http_status)
