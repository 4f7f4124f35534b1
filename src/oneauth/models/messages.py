"""Cross-document messages exchanged with the hosted dialog UI.

Inbound messages are parsed into a closed tagged union keyed on ``type``.
Anything that does not match one of the known shapes is dropped by
``parse_dialog_message`` instead of raising.
"""
import logging
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .errors import ErrorDetail

logger = logging.getLogger(__name__)

# Inbound (hosted UI -> host)
PASSKEY_READY = "PASSKEY_READY"
PASSKEY_CLOSE = "PASSKEY_CLOSE"
PASSKEY_RESIZE = "PASSKEY_RESIZE"
PASSKEY_DISCONNECT = "PASSKEY_DISCONNECT"
PASSKEY_LOGIN_RESULT = "PASSKEY_LOGIN_RESULT"
PASSKEY_REGISTER_RESULT = "PASSKEY_REGISTER_RESULT"
PASSKEY_AUTHENTICATE_RESULT = "PASSKEY_AUTHENTICATE_RESULT"
PASSKEY_CONNECT_RESULT = "PASSKEY_CONNECT_RESULT"
PASSKEY_SIGNING_RESULT = "PASSKEY_SIGNING_RESULT"
PASSKEY_RETRY_POPUP = "PASSKEY_RETRY_POPUP"
PASSKEY_REFRESH_QUOTE = "PASSKEY_REFRESH_QUOTE"

# Outbound (host -> hosted UI)
PASSKEY_INIT = "PASSKEY_INIT"
TRANSACTION_STATUS = "TRANSACTION_STATUS"
PASSKEY_REFRESH_COMPLETE = "PASSKEY_REFRESH_COMPLETE"
PASSKEY_REFRESH_ERROR = "PASSKEY_REFRESH_ERROR"


class InboundMessage(BaseModel):
    """Fields shared by every inbound message"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    session_id: Optional[str] = Field(
        None,
        alias="sessionId",
        description="Correlation token echoed by the hosted UI, when it supports one",
    )


class ReadyMessage(InboundMessage):
    type: Literal["PASSKEY_READY"]


class CloseMessage(InboundMessage):
    type: Literal["PASSKEY_CLOSE"]


class ResizeMessage(InboundMessage):
    type: Literal["PASSKEY_RESIZE"]
    height: float
    width: Optional[float] = None


class DisconnectMessage(InboundMessage):
    type: Literal["PASSKEY_DISCONNECT"]


class ResultMessage(InboundMessage):
    """Terminal result of an auth, connect or signing ceremony"""
    type: Literal[
        "PASSKEY_LOGIN_RESULT",
        "PASSKEY_REGISTER_RESULT",
        "PASSKEY_AUTHENTICATE_RESULT",
        "PASSKEY_CONNECT_RESULT",
        "PASSKEY_SIGNING_RESULT",
    ]
    success: bool = False
    data: Optional[Dict[str, Any]] = None
    error: Optional[ErrorDetail] = None

    @property
    def payload(self) -> Dict[str, Any]:
        return self.data or {}


class RetryPopupMessage(InboundMessage):
    type: Literal["PASSKEY_RETRY_POPUP"]
    data: Optional[Dict[str, Any]] = None

    @property
    def url(self) -> Optional[str]:
        url = (self.data or {}).get("url")
        return url if isinstance(url, str) and url else None


class RefreshQuoteMessage(InboundMessage):
    type: Literal["PASSKEY_REFRESH_QUOTE"]


DialogMessage = Annotated[
    Union[
        ReadyMessage,
        CloseMessage,
        ResizeMessage,
        DisconnectMessage,
        ResultMessage,
        RetryPopupMessage,
        RefreshQuoteMessage,
    ],
    Field(discriminator="type"),
]

_dialog_message_adapter: TypeAdapter = TypeAdapter(DialogMessage)


def parse_dialog_message(data: Any) -> Optional[DialogMessage]:
    """Parse raw message data, returning None for unknown or malformed shapes"""
    if not isinstance(data, dict):
        return None
    try:
        return _dialog_message_adapter.validate_python(data)
    except ValidationError as exc:
        logger.debug(f"Dropping malformed dialog message of type {data.get('type')!r}: {exc.error_count()} errors")
        return None


def _compact(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None}


def init_message(payload: Dict[str, Any], session_id: Optional[str] = None) -> Dict[str, Any]:
    """PASSKEY_INIT carrying the initial session payload"""
    message = {"type": PASSKEY_INIT, **_compact(payload)}
    if session_id:
        message["sessionId"] = session_id
    return message


def transaction_status_message(status: str, transaction_hash: Optional[str] = None) -> Dict[str, Any]:
    return _compact({
        "type": TRANSACTION_STATUS,
        "status": status,
        "transactionHash": transaction_hash,
    })


def refresh_complete_message(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": PASSKEY_REFRESH_COMPLETE, **_compact(fields)}


def refresh_error_message(error: str) -> Dict[str, Any]:
    return {"type": PASSKEY_REFRESH_ERROR, "error": error}
