"""ICS REST SDK: Python client for the media-conferencing control service."""

__version__ = "0.1.0"

from .async_client import AsyncIcsRest
from .auth import AuthSigner, calculate_signature
from .client import IcsRest
from .exceptions import (
    AuthError,
    ConfigurationError,
    IcsRestError,
    InvalidStateError,
    NotFoundError,
    ServiceUnavailableError,
    UnsupportedProtocolError,
    ValidationError,
    WorkerError,
    WorkerExitedError,
)
from .request import HttpRequest
from .sync_bridge import SyncBridge
from .types import AuthContext, BridgeResult, ReadyState, RequestOptions, ResolvedRequest

__all__ = [
    "IcsRest",
    "AsyncIcsRest",
    "HttpRequest",
    "SyncBridge",
    "AuthSigner",
    "calculate_signature",
    "IcsRestError",
    "AuthError",
    "ConfigurationError",
    "ValidationError",
    "NotFoundError",
    "ServiceUnavailableError",
    "InvalidStateError",
    "UnsupportedProtocolError",
    "WorkerError",
    "WorkerExitedError",
    "ReadyState",
    "RequestOptions",
    "ResolvedRequest",
    "BridgeResult",
    "AuthContext",
]
