"""Shared base logic for sync and async ICS REST clients."""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional

from .auth import AUTH_HEADER, AuthSigner
from .exceptions import AuthError, ConfigurationError, raise_api_error
from .request import HttpRequest
from .resources import (
    ParticipantsAPI,
    RecordingsAPI,
    RoomsAPI,
    StreamingInsAPI,
    StreamingOutsAPI,
    StreamsAPI,
    TokensAPI,
)

API_VERSION = "v1"
SUCCESS_STATUSES = frozenset({100, 200, 201, 202, 203, 204, 205})


def _env_fallback(explicit: Optional[str], env_var: str) -> Optional[str]:
    """Resolve: explicit value > environment variable > None."""
    if explicit:
        return explicit
    return os.environ.get(env_var) or None


def versioned_url(url: str) -> str:
    """Append the API version: ``http://h:3000`` -> ``http://h:3000/v1/``."""
    return url + API_VERSION + "/" if url.endswith("/") else f"{url}/{API_VERSION}/"


class _BaseIcsRest:
    """Shared configuration and the authenticated ``send`` primitive."""

    def __init__(
        self,
        service_id: Optional[str] = None,
        service_key: Optional[str] = None,
        url: Optional[str] = None,
        reject_unauthorized: bool = True,
    ) -> None:
        resolved_service = _env_fallback(service_id, "ICS_SERVICE_ID")
        resolved_key = _env_fallback(service_key, "ICS_SERVICE_KEY")
        resolved_url = _env_fallback(url, "ICS_REST_URL")

        if not resolved_service or not resolved_key:
            raise AuthError(
                "MISSING_CREDENTIALS",
                "ICS REST requires service_id and service_key. "
                "Pass them in the constructor or set ICS_SERVICE_ID and ICS_SERVICE_KEY environment variables.",
            )
        if not resolved_url:
            raise ConfigurationError(
                "MISSING_URL",
                "ICS REST requires the service URL. Pass url or set ICS_REST_URL.",
            )
        if not isinstance(reject_unauthorized, bool):
            raise ConfigurationError("INVALID_CERT_SETTING", "reject_unauthorized must be True or False")

        self._signer = AuthSigner(resolved_service, resolved_key)
        self._base_url = versioned_url(resolved_url)
        self._reject_unauthorized = reject_unauthorized
        self._request_kwargs: Dict[str, Any] = {}

        self.rooms = RoomsAPI(self.send)
        self.participants = ParticipantsAPI(self.send)
        self.streams = StreamsAPI(self.send)
        self.streaming_ins = StreamingInsAPI(self.send)
        self.streaming_outs = StreamingOutsAPI(self.send)
        self.recordings = RecordingsAPI(self.send)
        self.tokens = TokensAPI(self.send)

    @property
    def service_id(self) -> str:
        return self._signer.service

    @property
    def base_url(self) -> str:
        return self._base_url

    def send(self, method: str, resource: str, body: Any = None, parse: bool = True) -> Any:
        raise NotImplementedError

    def _new_request(self) -> HttpRequest:
        return HttpRequest(self._reject_unauthorized, **self._request_kwargs)

    def _prepare(self, method: str, resource: str, body: Any, async_: bool) -> tuple[HttpRequest, Optional[str]]:
        """Open a signed request for *resource*; returns it with the encoded body."""
        req = self._new_request()
        req.open(method, self._base_url + resource, async_)
        req.set_request_header(AUTH_HEADER, self._signer.sign())
        if body is None:
            return req, None
        req.set_request_header("Content-Type", "application/json")
        return req, json.dumps(body)


def finish_response(req: HttpRequest, parse: bool) -> Any:
    """Raise for a failed exchange, else return the (optionally parsed) body."""
    if req.status not in SUCCESS_STATUSES:
        raise_api_error(req.status or 0, req.status_text if req.error_flag else req.response_text)
    if not parse or not req.response_text:
        return req.response_text
    return json.loads(req.response_text)

