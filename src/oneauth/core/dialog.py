"""Dialog host: creates and tears down the surfaces that run the hosted UI.

A ``DialogDriver`` belongs to the embedding environment (a browser bridge,
a desktop webview, a test fake). It creates ``DialogSurface`` objects for
modal and popup dialogs. ``DialogHost.open`` wires a surface to the message
channel and returns a ``DialogHandle`` whose ``cleanup`` is the single,
idempotent teardown path for every exit trigger.
"""
import logging
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from ..constants import POPUP_HEIGHT, POPUP_WIDTH
from ..models.messages import DisconnectMessage, ResizeMessage
from .channel import MessageChannel, MessageEvent, OriginGuard
from .storage import UserStore

logger = logging.getLogger(__name__)


class DialogVariant(str, Enum):
    MODAL = "modal"
    POPUP = "popup"


def set_query_params(url: str, **params: Optional[str]) -> str:
    """Set or replace query parameters, dropping those given as None"""
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    for key, value in params.items():
        if value is None:
            query.pop(key, None)
        else:
            query[key] = value
    return urlunsplit(parts._replace(query=urlencode(query)))


class DialogSurface(ABC):
    """A window or overlay showing a hosted dialog page.

    Environments emit ``keydown`` (with the key name), ``backdrop_click`` and
    ``close`` (native close, e.g. the user shut the popup window).
    """

    def __init__(self, url: str):
        self.url = url
        self._handlers: Dict[str, List[Callable[..., None]]] = {}

    def on(self, event: str, handler: Callable[..., None]) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: Callable[..., None]) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, *args: Any) -> None:
        for handler in list(self._handlers.get(event, [])):
            handler(*args)

    @abstractmethod
    def post_message(self, data: Dict[str, Any], target_origin: str) -> None:
        """Deliver a message to the hosted page"""

    @abstractmethod
    def resize(self, width: Optional[float], height: float) -> None:
        """Apply the size requested by the hosted page"""

    @abstractmethod
    def close(self) -> None:
        """Remove the surface. May be called more than once."""


class DialogDriver(ABC):
    """Creates dialog surfaces in the embedding environment"""

    @abstractmethod
    def create_modal(self, url: str) -> DialogSurface:
        ...

    @abstractmethod
    def open_popup(self, url: str, width: int, height: int) -> Optional[DialogSurface]:
        """Open a popup window, or return None when it was blocked"""

    def navigate(self, url: str) -> None:
        """Send the whole page to ``url`` (redirect signing)"""
        raise NotImplementedError(f"{type(self).__name__} does not support redirects")


class DialogHandle:
    """An open dialog plus the listeners registered for it"""

    def __init__(self, host: "DialogHost", surface: DialogSurface, variant: DialogVariant):
        self.handle_id = uuid.uuid4().hex
        self.host = host
        self.surface = surface
        self.variant = variant
        self._closed = False
        self._teardown: List[Callable[[], None]] = []
        self._close_callbacks: List[Callable[[], None]] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def add_teardown(self, callback: Callable[[], None]) -> None:
        self._teardown.append(callback)

    def on_close(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` once when the dialog goes away; returns an unsubscribe"""
        self._close_callbacks.append(callback)

        def remove() -> None:
            if callback in self._close_callbacks:
                self._close_callbacks.remove(callback)

        return remove

    def post(self, data: Dict[str, Any]) -> None:
        if self._closed:
            logger.debug(f"Not posting {data.get('type')} to closed dialog {self.handle_id}")
            return
        self.surface.post_message(data, self.host.dialog_origin)

    def cleanup(self) -> None:
        """Tear down the dialog. Safe to call any number of times."""
        if self._closed:
            return
        self._closed = True
        for remove in self._teardown:
            remove()
        self._teardown.clear()
        self.surface.close()
        logger.info(f"Closed {self.variant.value} dialog {self.handle_id}")
        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            callback()


class DialogHost:
    """Opens dialogs and owns their cleanup"""

    def __init__(
        self,
        driver: DialogDriver,
        channel: MessageChannel,
        dialog_origin: str,
        user_store: Optional[UserStore] = None,
        popup_width: int = POPUP_WIDTH,
        popup_height: int = POPUP_HEIGHT,
    ):
        self.driver = driver
        self.channel = channel
        self.dialog_origin = dialog_origin
        self.user_store = user_store
        self.popup_width = popup_width
        self.popup_height = popup_height

    def open(
        self,
        url: str,
        variant: DialogVariant = DialogVariant.MODAL,
        session_id: Optional[str] = None,
    ) -> Optional[DialogHandle]:
        """Open a dialog at ``url``. Returns None if a popup was blocked."""
        if variant is DialogVariant.POPUP:
            surface = self.driver.open_popup(url, self.popup_width, self.popup_height)
            if surface is None:
                logger.warning(f"Popup blocked for {url}")
                return None
        else:
            surface = self.driver.create_modal(url)

        handle = DialogHandle(self, surface, variant)
        guard = OriginGuard(self.dialog_origin, session_id)

        def on_message(event: MessageEvent) -> None:
            message = guard.accept(event)
            if isinstance(message, ResizeMessage):
                surface.resize(message.width, message.height)
            elif isinstance(message, DisconnectMessage):
                if self.user_store is not None:
                    self.user_store.clear()

        def on_keydown(key: str) -> None:
            if key == "Escape":
                handle.cleanup()

        def on_backdrop_click(*_args: Any) -> None:
            handle.cleanup()

        def on_native_close(*_args: Any) -> None:
            handle.cleanup()

        handle.add_teardown(self.channel.add_listener(on_message))
        surface.on("keydown", on_keydown)
        surface.on("backdrop_click", on_backdrop_click)
        surface.on("close", on_native_close)
        handle.add_teardown(lambda: surface.off("keydown", on_keydown))
        handle.add_teardown(lambda: surface.off("backdrop_click", on_backdrop_click))
        handle.add_teardown(lambda: surface.off("close", on_native_close))

        logger.info(f"Opened {variant.value} dialog {handle.handle_id} at {url}")
        return handle
