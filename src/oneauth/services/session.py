"""Dialog session: ready handshake, result waiter and quote refresh.

One ``DialogSession`` drives one ceremony in one dialog::

    WAITING_READY --ready--> READY_SENT --result--> DONE
          |                      |
          +--close--> CANCELLED <+--close

Every wait registers its listeners on entry and removes them in the same
step that settles it. All exits go through the handle's idempotent
``cleanup``.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Collection, Dict, Optional, Set

from ..core.channel import MessageEvent, OriginGuard
from ..core.dialog import DialogHandle, DialogHost, DialogVariant, set_query_params
from ..models.messages import (
    CloseMessage,
    ReadyMessage,
    RefreshQuoteMessage,
    ResultMessage,
    RetryPopupMessage,
    init_message,
    refresh_complete_message,
    refresh_error_message,
    transaction_status_message,
)

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    WAITING_READY = "waiting_ready"
    READY_SENT = "ready_sent"
    DONE = "done"
    CANCELLED = "cancelled"


class OutcomeKind(str, Enum):
    RESULT = "result"
    CLOSED = "closed"
    RETRY_POPUP = "retry_popup"


@dataclass
class SessionOutcome:
    """How the result wait ended"""
    kind: OutcomeKind
    message: Optional[ResultMessage] = None
    retry_url: Optional[str] = None


@dataclass
class QuoteRefresh:
    """Re-runs the prepare call when the dialog asks for a fresh quote.

    ``fetch`` returns the fields to push back, or None when the refresh failed.
    """
    fetch: Callable[[], Awaitable[Optional[Dict[str, Any]]]]
    error_message: str = "Failed to refresh quote"


class DialogSession:
    """A single signing or authentication ceremony"""

    def __init__(self, host: DialogHost, variant: DialogVariant = DialogVariant.MODAL):
        self.session_id = uuid.uuid4().hex
        self.host = host
        self.variant = variant
        self.guard = OriginGuard(host.dialog_origin, self.session_id)
        self.handle: Optional[DialogHandle] = None
        self.state = SessionState.WAITING_READY
        self._settled = False
        self._refresh_tasks: Set[asyncio.Task] = set()

    @property
    def settled(self) -> bool:
        return self._settled

    @property
    def closed(self) -> bool:
        return self.handle is None or self.handle.closed

    def open(self, url: str) -> bool:
        """Open the dialog. False means the popup was blocked."""
        url = set_query_params(url, sessionId=self.session_id)
        self.handle = self.host.open(url, self.variant, session_id=self.session_id)
        if self.handle is None:
            self.state = SessionState.CANCELLED
            return False
        if self.variant is DialogVariant.POPUP:
            # Popups read their parameters from the URL; there is no init push
            self.state = SessionState.READY_SENT
        logger.info(f"Session {self.session_id} opened ({self.variant.value})")
        return True

    def post(self, data: Dict[str, Any]) -> None:
        if self.handle is not None:
            self.handle.post(data)

    def close(self) -> None:
        if self.handle is not None:
            self.handle.cleanup()

    def send_transaction_status(self, status: str, transaction_hash: Optional[str] = None) -> None:
        self.post(transaction_status_message(status, transaction_hash))

    async def handshake(self, payload: Dict[str, Any]) -> bool:
        """Wait for PASSKEY_READY, then push PASSKEY_INIT.

        Resolves True once init was sent, False if the dialog closed first.
        """
        if self.state is not SessionState.WAITING_READY:
            return self.state is SessionState.READY_SENT
        if self.handle is None:
            raise RuntimeError(f"Session {self.session_id} must be opened before handshake")
        if self.handle.closed:
            self.state = SessionState.CANCELLED
            return False

        handle = self.handle
        ready: asyncio.Future = asyncio.get_running_loop().create_future()
        remove_listener: Callable[[], None] = lambda: None
        remove_close: Callable[[], None] = lambda: None

        def teardown() -> None:
            remove_listener()
            remove_close()

        def on_message(event: MessageEvent) -> None:
            message = self.guard.accept(event)
            if isinstance(message, ReadyMessage):
                teardown()
                self.state = SessionState.READY_SENT
                handle.post(init_message(payload, self.session_id))
                logger.debug(f"Session {self.session_id} ready, init sent")
                if not ready.done():
                    ready.set_result(True)
            elif isinstance(message, CloseMessage):
                teardown()
                self.state = SessionState.CANCELLED
                handle.cleanup()
                if not ready.done():
                    ready.set_result(False)

        def on_close() -> None:
            teardown()
            self.state = SessionState.CANCELLED
            if not ready.done():
                ready.set_result(False)

        remove_listener = self.host.channel.add_listener(on_message)
        remove_close = handle.on_close(on_close)
        try:
            return await ready
        finally:
            teardown()

    async def wait_for_result(
        self,
        result_types: Collection[str],
        *,
        refresh: Optional[QuoteRefresh] = None,
        allow_popup_retry: bool = False,
        accept: Optional[Callable[[ResultMessage], bool]] = None,
    ) -> SessionOutcome:
        """Wait for exactly one terminal outcome after the handshake.

        Result messages of other types, or rejected by ``accept``, are ignored.
        A close (message or native) yields CLOSED and cleans up the dialog.
        ``PASSKEY_RETRY_POPUP`` yields RETRY_POPUP when ``allow_popup_retry``.
        """
        if self._settled:
            raise RuntimeError(f"Session {self.session_id} already settled")
        if self.state is not SessionState.READY_SENT or self.closed:
            self._settled = True
            return SessionOutcome(OutcomeKind.CLOSED)

        handle = self.handle
        loop = asyncio.get_running_loop()
        outcome: asyncio.Future = loop.create_future()
        remove_listener: Callable[[], None] = lambda: None
        remove_close: Callable[[], None] = lambda: None

        def finish(result: SessionOutcome) -> None:
            if self._settled:
                return
            self._settled = True
            remove_listener()
            remove_close()
            self._cancel_refreshes()
            if not outcome.done():
                outcome.set_result(result)

        def on_message(event: MessageEvent) -> None:
            message = self.guard.accept(event)
            if message is None or self._settled:
                return
            if isinstance(message, ResultMessage):
                if message.type not in result_types or (accept is not None and not accept(message)):
                    return
                self.state = SessionState.DONE
                finish(SessionOutcome(OutcomeKind.RESULT, message=message))
            elif isinstance(message, CloseMessage):
                self.state = SessionState.CANCELLED
                finish(SessionOutcome(OutcomeKind.CLOSED))
                handle.cleanup()
            elif isinstance(message, RetryPopupMessage) and allow_popup_retry:
                self.state = SessionState.CANCELLED
                finish(SessionOutcome(OutcomeKind.RETRY_POPUP, retry_url=message.url))
                handle.cleanup()
            elif isinstance(message, RefreshQuoteMessage) and refresh is not None:
                task = loop.create_task(self._run_refresh(refresh))
                self._refresh_tasks.add(task)
                task.add_done_callback(self._refresh_tasks.discard)

        def on_close() -> None:
            self.state = SessionState.CANCELLED
            finish(SessionOutcome(OutcomeKind.CLOSED))

        remove_listener = self.host.channel.add_listener(on_message)
        remove_close = handle.on_close(on_close)
        try:
            return await outcome
        finally:
            remove_listener()
            remove_close()
            self._cancel_refreshes()

    async def _run_refresh(self, refresh: QuoteRefresh) -> None:
        logger.info(f"Session {self.session_id}: dialog requested a quote refresh")
        fields = await refresh.fetch()
        if self._settled or self.closed:
            # The session ended while the refresh was in flight
            logger.debug(f"Session {self.session_id}: discarding late quote refresh")
            return
        if fields is None:
            self.post(refresh_error_message(refresh.error_message))
        else:
            self.post(refresh_complete_message(fields))

    def _cancel_refreshes(self) -> None:
        for task in list(self._refresh_tasks):
            if not task.done():
                task.cancel()
        self._refresh_tasks.clear()

    async def wait_for_close(self) -> None:
        """Block until the user dismisses the dialog, then clean it up"""
        if self.closed:
            return
        handle = self.handle
        closed: asyncio.Future = asyncio.get_running_loop().create_future()
        remove_listener: Callable[[], None] = lambda: None
        remove_close: Callable[[], None] = lambda: None

        def settle() -> None:
            remove_listener()
            remove_close()
            if not closed.done():
                closed.set_result(None)

        def on_message(event: MessageEvent) -> None:
            if isinstance(self.guard.accept(event), CloseMessage):
                settle()
                handle.cleanup()

        remove_listener = self.host.channel.add_listener(on_message)
        remove_close = handle.on_close(settle)
        try:
            await closed
        finally:
            remove_listener()
            remove_close()
