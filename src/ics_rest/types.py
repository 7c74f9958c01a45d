"""Data types for the ICS REST SDK."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import IntEnum
from typing import Any, Dict, Optional


class ReadyState(IntEnum):
    """Lifecycle of an :class:`~ics_rest.request.HttpRequest`."""

    UNSENT = 0
    OPENED = 1
    HEADERS_RECEIVED = 2
    LOADING = 3
    DONE = 4


@dataclass
class RequestOptions:
    """Settings captured by ``HttpRequest.open``."""

    method: str
    url: str
    async_: bool = True
    user: Optional[str] = None
    password: Optional[str] = None


@dataclass
class ResolvedRequest:
    """A request with host, port and path resolved, ready for the wire.

    ``verify`` is the reject-unauthorized flag, passed through unchanged
    to whichever transport performs the exchange.
    """

    host: str
    port: int
    path: str
    method: str
    headers: Dict[str, str] = field(default_factory=dict)
    ssl: bool = False
    verify: bool = True
    body: Optional[str] = None

    @property
    def url(self) -> str:
        scheme = "https" if self.ssl else "http"
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{scheme}://{host}:{self.port}{self.path}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ResolvedRequest:
        return cls(**data)


@dataclass
class BridgeResult:
    """Outcome of one synchronous worker run.

    Exactly one of ``status`` and ``error`` is set.
    """

    status: Optional[int] = None
    text: str = ""
    error: Optional[Dict[str, str]] = None  # {"type", "message", "trace"}


@dataclass
class AuthContext:
    """Per-call signing material. Discarded once the header is built."""

    service: str
    key: str = field(repr=False)
    timestamp: str = ""
    cnonce: str = ""
    signature: str = ""
