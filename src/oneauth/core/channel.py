"""Broadcast message channel and the origin guard that protects it.

The channel stands in for the window ``message`` event: every listener sees
every message, whatever its origin. Nothing downstream may trust a message
until an ``OriginGuard`` has accepted it.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional
from urllib.parse import urlsplit

from ..models.messages import DialogMessage, parse_dialog_message

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class MessageEvent:
    """A cross-document message as delivered to the host"""
    origin: str
    data: Any


Listener = Callable[[MessageEvent], None]


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` for a URL, or the input if it has none"""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return url
    if not parts.scheme or not parts.hostname:
        return url
    scheme = parts.scheme.lower()
    origin = f"{scheme}://{parts.hostname.lower()}"
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        origin += f":{port}"
    return origin


class MessageChannel:
    """Broadcast bus for inbound dialog messages"""

    def __init__(self):
        self._listeners: List[Listener] = []

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a listener and return a callable that removes it"""
        self._listeners.append(listener)

        def remove() -> None:
            self.remove_listener(listener)

        return remove

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def dispatch(self, event: MessageEvent) -> None:
        """Deliver a message to every listener registered at dispatch time"""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # One broken listener must not starve the others
                logger.exception(f"Message listener failed for message from {event.origin}")

    def post(self, origin: str, data: Any) -> None:
        self.dispatch(MessageEvent(origin=origin, data=data))


class OriginGuard:
    """Accepts only well-formed messages from the expected dialog origin"""

    def __init__(self, expected_origin: str, session_id: Optional[str] = None):
        self.expected_origin = expected_origin
        self.session_id = session_id

    def accept(self, event: MessageEvent) -> Optional[DialogMessage]:
        if event.origin != self.expected_origin:
            logger.debug(f"Ignoring message from untrusted origin {event.origin!r} (expected {self.expected_origin!r})")
            return None
        message = parse_dialog_message(event.data)
        if message is None:
            return None
        if self.session_id and message.session_id and message.session_id != self.session_id:
            logger.debug(f"Ignoring {message.type} addressed to session {message.session_id}")
            return None
        return message
