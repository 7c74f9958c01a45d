"""Room, participant, stream, recording and token operations.

Each group wraps the client's ``send`` primitive. The same classes serve
both clients: with :class:`~ics_rest.AsyncIcsRest` every method returns an
awaitable, with :class:`~ics_rest.IcsRest` it returns the result directly.
Argument checks run before any request is made, in both cases.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

from .exceptions import ValidationError

Sender = Callable[..., Any]


def _seg(value: str) -> str:
    return quote(value, safe="")


def _require_id(value: Any, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid {what} ID")
    return value


def _require_items(items: Any) -> List[Dict[str, Any]]:
    """Patch items follow RFC 6902: ``[{"op": ..., "path": ..., "value": ...}]``."""
    if not isinstance(items, list):
        raise ValidationError("Invalid update list")
    return items


def viewports_to_views(viewports: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Convert the SDK ``viewports`` list into the service's ``views`` mapping."""
    return {viewport["name"]: {"mediaMixing": viewport.get("mediaMixing")} for viewport in viewports}


def build_room_options(options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    room_options = dict(options or {})
    viewports = room_options.pop("viewports", None)
    if viewports:
        room_options["views"] = viewports_to_views(viewports)
    return room_options


class _ResourceAPI:
    def __init__(self, send: Sender) -> None:
        self._send = send


class RoomsAPI(_ResourceAPI):
    """Room management. Access via ``client.rooms``."""

    def create(self, name: str, options: Optional[Dict[str, Any]] = None) -> Any:
        """Create a room.

        ``options`` may include ``mode``, ``publishLimit``, ``userLimit``,
        ``enableMixing`` and ``viewports``; each viewport is
        ``{"name": ..., "mediaMixing": {"video": {...}, "audio": None}}``.
        Omitted entries take server defaults.
        """
        return self._send("POST", "rooms", {"name": name, "options": build_room_options(options)})

    def list(self, page: int = 1, per_page: int = 50) -> Any:
        return self._send("GET", f"rooms?page={page or 1}&per_page={per_page or 50}")

    def get(self, room: str) -> Any:
        if not isinstance(room, str):
            raise ValidationError("Invalid room ID.")
        if not room.strip():
            raise ValidationError("Empty room ID")
        return self._send("GET", f"rooms/{_seg(room)}")

    def update(self, room: str, options: Optional[Dict[str, Any]] = None) -> Any:
        """Replace a room's configuration entirely. See :meth:`create` for ``options``."""
        return self._send("PUT", f"rooms/{_seg(_require_id(room, 'room'))}", build_room_options(options))

    def update_partially(self, room: str, items: List[Dict[str, Any]]) -> Any:
        return self._send("PATCH", f"rooms/{_seg(_require_id(room, 'room'))}", list(items or []))

    def delete(self, room: str) -> Any:
        return self._send("DELETE", f"rooms/{_seg(_require_id(room, 'room'))}", parse=False)


class ParticipantsAPI(_ResourceAPI):
    """Participants currently in a room. Access via ``client.participants``."""

    def list(self, room: str) -> Any:
        return self._send("GET", f"rooms/{_seg(_require_id(room, 'room'))}/participants/")

    def get(self, room: str, participant: str) -> Any:
        participant = _require_id(participant, "participant")
        return self._send("GET", f"rooms/{_seg(_require_id(room, 'room'))}/participants/{_seg(participant)}")

    def update(self, room: str, participant: str, items: List[Dict[str, Any]]) -> Any:
        """Update a participant's permissions with RFC 6902 patch items."""
        participant = _require_id(participant, "participant")
        items = _require_items(items)
        return self._send("PATCH", f"rooms/{_seg(_require_id(room, 'room'))}/participants/{_seg(participant)}", items)

    def drop(self, room: str, participant: str) -> Any:
        participant = _require_id(participant, "participant")
        return self._send("DELETE", f"rooms/{_seg(_require_id(room, 'room'))}/participants/{_seg(participant)}", parse=False)


class StreamsAPI(_ResourceAPI):
    """Streams in a room. Access via ``client.streams``."""

    def list(self, room: str) -> Any:
        return self._send("GET", f"rooms/{_seg(_require_id(room, 'room'))}/streams/")

    def get(self, room: str, stream: str) -> Any:
        stream = _require_id(stream, "stream")
        return self._send("GET", f"rooms/{_seg(_require_id(room, 'room'))}/streams/{_seg(stream)}")

    def update(self, room: str, stream: str, items: List[Dict[str, Any]]) -> Any:
        stream = _require_id(stream, "stream")
        items = _require_items(items)
        return self._send("PATCH", f"rooms/{_seg(_require_id(room, 'room'))}/streams/{_seg(stream)}", items)

    def delete(self, room: str, stream: str) -> Any:
        stream = _require_id(stream, "stream")
        return self._send("DELETE", f"rooms/{_seg(_require_id(room, 'room'))}/streams/{_seg(stream)}", parse=False)


class StreamingInsAPI(_ResourceAPI):
    """External streams pulled into a room. Access via ``client.streaming_ins``."""

    def start(self, room: str, url: str, transport: Dict[str, Any], media: Dict[str, Any]) -> Any:
        """Pull an external stream (e.g. RTSP) into the room.

        Args:
            transport: ``{"protocol": "udp" | "tcp", "bufferSize": int}``.
            media: ``{"audio": ..., "video": ...}``, e.g. ``{"audio": "auto", "video": True}``.
        """
        body = {
            "connection": {
                "url": url,
                "transportProtocol": transport.get("protocol"),
                "bufferSize": transport.get("bufferSize"),
            },
            "media": media,
        }
        return self._send("POST", f"rooms/{_seg(_require_id(room, 'room'))}/streaming-ins/", body)

    def stop(self, room: str, stream: str) -> Any:
        stream = _require_id(stream, "stream")
        return self._send("DELETE", f"rooms/{_seg(_require_id(room, 'room'))}/streaming-ins/{_seg(stream)}", parse=False)


class StreamingOutsAPI(_ResourceAPI):
    """Room media pushed to external targets. Access via ``client.streaming_outs``."""

    def list(self, room: str) -> Any:
        return self._send("GET", f"rooms/{_seg(_require_id(room, 'room'))}/streaming-outs/")

    def start(self, room: str, url: str, media: Dict[str, Any]) -> Any:
        return self._send(
            "POST",
            f"rooms/{_seg(_require_id(room, 'room'))}/streaming-outs/",
            {"url": url, "media": media},
        )

    def update(self, room: str, streaming_out: str, items: List[Dict[str, Any]]) -> Any:
        streaming_out = _require_id(streaming_out, "streamingOut")
        items = _require_items(items)
        return self._send("PATCH", f"rooms/{_seg(_require_id(room, 'room'))}/streaming-outs/{_seg(streaming_out)}", items)

    def stop(self, room: str, streaming_out: str) -> Any:
        streaming_out = _require_id(streaming_out, "streamingOut")
        return self._send("DELETE", f"rooms/{_seg(_require_id(room, 'room'))}/streaming-outs/{_seg(streaming_out)}", parse=False)


class RecordingsAPI(_ResourceAPI):
    """Server-side recordings. Access via ``client.recordings``."""

    def list(self, room: str) -> Any:
        return self._send("GET", f"rooms/{_seg(_require_id(room, 'room'))}/recordings/")

    def start(self, room: str, container: str, media: Dict[str, Any]) -> Any:
        """Start recording; ``container`` is e.g. ``"mkv"`` or ``"auto"``."""
        return self._send(
            "POST",
            f"rooms/{_seg(_require_id(room, 'room'))}/recordings/",
            {"container": container, "media": media},
        )

    def update(self, room: str, recording: str, items: List[Dict[str, Any]]) -> Any:
        recording = _require_id(recording, "recording")
        items = _require_items(items)
        return self._send("PATCH", f"rooms/{_seg(_require_id(room, 'room'))}/recordings/{_seg(recording)}", items)

    def stop(self, room: str, recording: str) -> Any:
        recording = _require_id(recording, "recording")
        return self._send("DELETE", f"rooms/{_seg(_require_id(room, 'room'))}/recordings/{_seg(recording)}", parse=False)


class TokensAPI(_ResourceAPI):
    """Join tokens. Access via ``client.tokens``."""

    def create(
        self,
        room: str,
        user: str,
        role: str,
        preference: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Create a token for *user* to join *room* as *role*.

        Only ``isp`` and ``region`` are honoured in ``preference``.
        Returns the token as text.
        """
        if not all(isinstance(arg, str) for arg in (room, user, role)):
            raise ValidationError("Invalid argument.")
        return self._send(
            "POST",
            f"rooms/{_seg(room)}/tokens/",
            {"preference": preference, "user": user, "role": role},
            parse=False,
        )
