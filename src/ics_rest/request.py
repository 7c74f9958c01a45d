"""Browser-style request object on top of httpx.

:class:`HttpRequest` mirrors the ``XMLHttpRequest`` lifecycle
(``open`` / ``set_request_header`` / ``send`` / ``abort``) so code written
against that model can run unchanged. Asynchronous requests run as an
``asyncio`` task and report progress through ready-state notifications.
Synchronous requests block the caller while a worker process performs the
exchange (see :mod:`ics_rest.sync_bridge`).

Transport failures never raise out of ``send``: the request reaches DONE
with status 503 and the error text in ``status_text``/``response_text``.
Calling methods out of sequence raises :class:`InvalidStateError`.

Note: ``set_request_header`` overwrites an existing header of the same name
instead of appending to it.
"""

from __future__ import annotations

import asyncio
import logging
import traceback
from typing import Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import urlsplit

import httpx

from . import __version__
from .auth import encode_base64
from .exceptions import InvalidStateError, UnsupportedProtocolError, WorkerError, WorkerExitedError
from .sync_bridge import SyncBridge, stream_request
from .types import BridgeResult, ReadyState, RequestOptions, ResolvedRequest

READY_STATE_CHANGE = "readystatechange"
FAILURE_STATUS = 503
DEFAULT_HEADERS = {
    "User-Agent": f"ics-rest-python/{__version__}",
    "Accept": "*/*",
}
DEFAULT_CONTENT_TYPE = "text/plain;charset=UTF-8"
BODYLESS_METHODS = frozenset({"GET", "HEAD"})

_log = logging.getLogger("ics_rest")

Listener = Callable[["HttpRequest"], None]


def resolve_url(url: str) -> Tuple[bool, str, int, str]:
    """Split *url* into ``(ssl, host, port, path)``.

    A URL without a scheme targets ``localhost``.

    Raises:
        UnsupportedProtocolError: For any scheme other than http/https.
    """
    parts = urlsplit(url)
    scheme = parts.scheme
    if scheme == "https":
        ssl = True
    elif scheme in ("http", ""):
        ssl = False
    else:
        raise UnsupportedProtocolError(scheme)

    host = parts.hostname or "localhost"
    port = parts.port or (443 if ssl else 80)
    path = (parts.path or "/") + (f"?{parts.query}" if parts.query else "")
    return ssl, host, port, path


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class HttpRequest:
    """A single reusable request object.

    Example::

        req = HttpRequest()
        req.open("GET", "http://localhost:3000/v1/rooms")
        await req.send()
        print(req.status, req.response_text)

    With ``async_=False`` passed to :meth:`open`, :meth:`send` blocks until
    the response is complete and returns None.
    """

    UNSENT = ReadyState.UNSENT
    OPENED = ReadyState.OPENED
    HEADERS_RECEIVED = ReadyState.HEADERS_RECEIVED
    LOADING = ReadyState.LOADING
    DONE = ReadyState.DONE

    def __init__(
        self,
        reject_unauthorized: Optional[bool] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        bridge: Optional[SyncBridge] = None,
    ) -> None:
        self._verify = True if reject_unauthorized is None else reject_unauthorized
        self._transport = transport
        self._bridge = bridge

        self._settings: Optional[RequestOptions] = None
        self._headers: Dict[str, str] = dict(DEFAULT_HEADERS)
        self._response_headers: Dict[str, str] = {}
        self._listeners: Dict[str, List[Listener]] = {}
        self._task: Optional[asyncio.Task] = None
        # Bumped by abort(); exchanges started under an older value are stale.
        self._generation = 0
        self._send_flag = False
        self._error_flag = False

        self.ready_state = ReadyState.UNSENT
        self.onreadystatechange: Optional[Listener] = None
        self.response_text = ""
        self.status: Optional[int] = None
        self.status_text: Optional[str] = None

    @property
    def request_headers(self) -> Dict[str, str]:
        return dict(self._headers)

    @property
    def error_flag(self) -> bool:
        return self._error_flag

    @property
    def settings(self) -> Optional[RequestOptions]:
        return self._settings

    # ---- Request setup ----

    def open(
        self,
        method: str,
        url: str,
        async_: bool = True,
        user: Optional[str] = None,
        password: Optional[str] = None,
    ) -> None:
        """Start a new exchange, aborting any exchange still in flight."""
        if not isinstance(method, str) or not method.strip():
            raise ValueError("method must be a non-empty string")

        self._settings = RequestOptions(
            method=method.strip().upper(),
            url=str(url),
            async_=async_ if isinstance(async_, bool) else True,
            user=user or None,
            password=password or None,
        )
        self.abort()
        self._set_state(ReadyState.OPENED)

    def set_request_header(self, name: str, value: str) -> None:
        if self.ready_state != ReadyState.OPENED:
            raise InvalidStateError("set_request_header can only be called when state is OPENED")
        if self._send_flag:
            raise InvalidStateError("send flag is true")
        self._headers[name] = str(value)

    # ---- Response access ----

    def get_response_header(self, name: str) -> Optional[str]:
        if self.ready_state < ReadyState.HEADERS_RECEIVED or self._error_flag:
            return None
        return self._response_headers.get(name.lower())

    def get_all_response_headers(self) -> str:
        if self.ready_state < ReadyState.HEADERS_RECEIVED or self._error_flag:
            return ""
        return "\r\n".join(f"{name}: {value}" for name, value in self._response_headers.items())

    # ---- Events ----

    def add_event_listener(self, event: str, callback: Listener) -> None:
        self._listeners.setdefault(event, []).append(callback)

    def remove_event_listener(self, event: str, callback: Listener) -> None:
        callbacks = self._listeners.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def _set_state(self, state: ReadyState) -> None:
        self.ready_state = state
        _log.debug("request %s -> %s", self._settings.url if self._settings else "-", state.name)
        self._notify()

    def _notify(self) -> None:
        if self.onreadystatechange is not None:
            self.onreadystatechange(self)
        for callback in list(self._listeners.get(READY_STATE_CHANGE, ())):
            callback(self)

    # ---- Sending ----

    def send(self, body: Optional[str] = None) -> Optional[asyncio.Task]:
        """Send the request.

        In async mode this returns the ``asyncio.Task`` driving the exchange;
        await it to wait for DONE. In sync mode it blocks and returns None.

        Raises:
            InvalidStateError: If not OPENED, already sent, or (async mode)
                called without a running event loop.
            UnsupportedProtocolError: If the URL scheme is not http/https.
        """
        if self.ready_state != ReadyState.OPENED or self._settings is None:
            raise InvalidStateError("connection must be opened before send() is called")
        if self._send_flag:
            raise InvalidStateError("send has already been called")

        if self._settings.async_:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                raise InvalidStateError("asynchronous send() requires a running event loop") from None
            resolved = self._resolve(body)
            self._error_flag = False
            return self._send_async(loop, resolved)

        resolved = self._resolve(body)
        self._error_flag = False
        self._send_sync(resolved)
        return None

    def _resolve(self, body: Optional[str]) -> ResolvedRequest:
        settings = self._settings
        ssl, host, port, path = resolve_url(settings.url)

        default_port = 443 if ssl else 80
        self._headers["Host"] = host if port == default_port else f"{host}:{port}"

        if settings.user:
            credentials = f"{settings.user}:{settings.password or ''}".encode("utf-8")
            self._headers["Authorization"] = "Basic " + encode_base64(credentials)

        if settings.method in BODYLESS_METHODS:
            body = None
        elif body:
            self._headers["Content-Length"] = str(len(body.encode("utf-8")))
            if "Content-Type" not in self._headers:
                self._headers["Content-Type"] = DEFAULT_CONTENT_TYPE

        return ResolvedRequest(
            host=host,
            port=port,
            path=path,
            method=settings.method,
            headers=dict(self._headers),
            ssl=ssl,
            verify=self._verify,
            body=body or None,
        )

    def _is_current(self, generation: int) -> bool:
        return self._send_flag and generation == self._generation

    def _send_async(self, loop: asyncio.AbstractEventLoop, resolved: ResolvedRequest) -> asyncio.Task:
        self._send_flag = True
        generation = self._generation
        # Observers are told once, before any I/O, that the request is under way.
        self._notify()
        self._task = loop.create_task(self._exchange(resolved, generation))
        return self._task

    async def _exchange(self, resolved: ResolvedRequest, generation: int) -> None:
        if not self._is_current(generation):
            return
        try:
            async with httpx.AsyncClient(transport=self._transport, verify=resolved.verify, timeout=None) as client:
                async with stream_request(client, resolved) as resp:
                    self._response_headers = {name.lower(): value for name, value in resp.headers.items()}
                    self.status = resp.status_code
                    self.status_text = resp.reason_phrase
                    self._set_state(ReadyState.HEADERS_RECEIVED)

                    async for chunk in resp.aiter_text():
                        if not self._is_current(generation):
                            return
                        if chunk:
                            self.response_text += chunk
                        self._set_state(ReadyState.LOADING)

            if self._is_current(generation):
                # Cleared first: a DONE listener may start the next exchange.
                self._send_flag = False
                self._set_state(ReadyState.DONE)
        except asyncio.CancelledError:
            if generation == self._generation:
                raise
            _log.debug("request to %s aborted", resolved.url)
        except (httpx.HTTPError, httpx.InvalidURL, UnicodeError) as exc:
            if self._is_current(generation):
                self.handle_error(exc)

    def _send_sync(self, resolved: ResolvedRequest) -> None:
        bridge = self._bridge or SyncBridge()
        self._send_flag = True
        try:
            result = bridge.execute(resolved)
        finally:
            self._send_flag = False
        self._apply_bridge_result(result)

    def _apply_bridge_result(self, result: BridgeResult) -> None:
        if result.error is not None:
            error_cls = WorkerExitedError if result.error.get("type") == WorkerExitedError.__name__ else WorkerError
            self.handle_error(
                error_cls(
                    result.error.get("message") or "worker request failed",
                    trace=result.error.get("trace", ""),
                    error_type=result.error.get("type", ""),
                )
            )
            return

        self.status = result.status
        self.status_text = httpx.codes.get_reason_phrase(result.status) if result.status else ""
        self.response_text = result.text
        self._set_state(ReadyState.DONE)

    # ---- Failure and cancellation ----

    def handle_error(self, error: Union[BaseException, str]) -> None:
        """Record a transport failure and force the request to DONE."""
        if isinstance(error, str):
            error = WorkerError(error, trace=error)

        self.status = FAILURE_STATUS
        self.status_text = str(error) or type(error).__name__
        self.response_text = getattr(error, "trace", "") or "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
        self._error_flag = True
        self._send_flag = False
        _log.warning(
            "request to %s failed: %s",
            self._settings.url if self._settings else "-",
            self.status_text,
        )
        self._set_state(ReadyState.DONE)

    def abort(self) -> None:
        """Cancel any exchange in flight and reset to UNSENT.

        Listeners see a DONE notification first when an exchange was under way.
        """
        self._generation += 1
        task, self._task = self._task, None
        # Aborted from within its own exchange: the generation bump stops it.
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

        self._headers = dict(DEFAULT_HEADERS)
        self.response_text = ""
        self._error_flag = True

        state = self.ready_state
        if (
            state != ReadyState.UNSENT
            and (state != ReadyState.OPENED or self._send_flag)
            and state != ReadyState.DONE
        ):
            self._send_flag = False
            self._set_state(ReadyState.DONE)

        self._send_flag = False
        self.ready_state = ReadyState.UNSENT
