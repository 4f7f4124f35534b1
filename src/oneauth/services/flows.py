"""Dialog flows built on ``DialogSession``: auth, connect, authenticate and signing"""
import logging
from typing import Any, Callable, Collection, Dict, Optional, TypeVar
from urllib.parse import urlencode

from pydantic import ValidationError

from ..core.channel import origin_of
from ..core.config import ProviderConfig
from ..core.dialog import DialogHost, DialogVariant, set_query_params
from ..models.auth import AuthenticateResult, AuthResult, ConnectResult, ThemeConfig
from ..models.errors import ErrorCode, ErrorDetail
from ..models.messages import (
    PASSKEY_AUTHENTICATE_RESULT,
    PASSKEY_CONNECT_RESULT,
    PASSKEY_LOGIN_RESULT,
    PASSKEY_REGISTER_RESULT,
    PASSKEY_SIGNING_RESULT,
    ResultMessage,
)
from ..models.signing import PasskeyCredentials, SigningResult, WebAuthnSignature
from .session import DialogSession, OutcomeKind

logger = logging.getLogger(__name__)

T = TypeVar("T")

AUTH_CANCELLED = "Authentication was cancelled"
CONNECT_CANCELLED = "Connection was cancelled"
DIALOG_CLOSED = "User closed the dialog"
POPUP_BLOCKED = "Popup was blocked by the browser. Please allow popups for this site."
MALFORMED_SIGNING_RESULT = "Malformed signing result"


def signing_result_from_message(message: ResultMessage) -> SigningResult:
    """Interpret PASSKEY_SIGNING_RESULT.

    ``data.intentId`` means the dialog executed the intent itself;
    ``data.signature`` means the host has to execute it.
    """
    payload = message.payload
    if message.success and payload.get("intentId"):
        return SigningResult(success=True, intent_id=payload["intentId"], request_id=payload.get("requestId"))
    if message.success and payload.get("signature"):
        passkey = payload.get("passkey")
        try:
            return SigningResult(
                success=True,
                request_id=payload.get("requestId"),
                signature=WebAuthnSignature.model_validate(payload["signature"]),
                passkey=PasskeyCredentials.model_validate(passkey) if passkey else None,
                signed_hash=payload.get("signedHash"),
            )
        except ValidationError as exc:
            logger.warning(f"Discarding malformed signing result: {exc}")
            return SigningResult.failed(ErrorCode.SIGNING_FAILED, MALFORMED_SIGNING_RESULT, payload.get("requestId"))
    return SigningResult(
        success=False,
        request_id=payload.get("requestId"),
        error=message.error or ErrorDetail.of(ErrorCode.SIGNING_FAILED, "Signing failed"),
    )


class DialogFlows:
    """Builds dialog URLs and runs the ceremony state machines"""

    def __init__(self, config: ProviderConfig, host: DialogHost):
        self.config = config
        self.host = host

    def dialog_url(
        self,
        path: str,
        params: Optional[Dict[str, Optional[str]]] = None,
        theme: Optional[ThemeConfig] = None,
        mode: str = "iframe",
    ) -> str:
        query: Dict[str, str] = {"mode": mode}
        for key, value in (params or {}).items():
            if value is not None:
                query[key] = value
        merged = self.config.theme.merged(theme)
        if merged.mode:
            query["theme"] = merged.mode
        if merged.accent:
            query["accent"] = merged.accent
        return f"{self.config.dialog_url}/dialog/{path}?{urlencode(query)}"

    def _popup_retry_url(self, path: str, retry_url: Optional[str]) -> str:
        # Only follow a retry URL that points back at the dialog origin
        if retry_url and origin_of(retry_url) == self.host.dialog_origin:
            return retry_url.replace("mode=iframe", "mode=popup")
        return self.dialog_url(path, {"clientId": self.config.client_id}, mode="popup")

    async def _run_with_popup_fallback(
        self,
        path: str,
        url: str,
        init_payload: Dict[str, Any],
        result_types: Collection[str],
        on_result: Callable[[ResultMessage], T],
        on_cancel: Callable[[], T],
        on_blocked: Callable[[], T],
    ) -> T:
        """Run a modal ceremony, switching once to a popup when the dialog asks to.

        The popup variant never accepts another retry, so this loop runs at
        most twice.
        """
        variant = DialogVariant.MODAL
        while True:
            session = DialogSession(self.host, variant)
            if not session.open(url):
                return on_blocked() if variant is DialogVariant.POPUP else on_cancel()
            if variant is DialogVariant.MODAL and not await session.handshake(init_payload):
                return on_cancel()

            outcome = await session.wait_for_result(
                result_types,
                allow_popup_retry=variant is DialogVariant.MODAL,
            )
            if outcome.kind is OutcomeKind.RETRY_POPUP:
                logger.info(f"Dialog {path} asked to retry in a popup")
                url = self._popup_retry_url(path, outcome.retry_url)
                variant = DialogVariant.POPUP
                continue

            session.close()
            if outcome.kind is OutcomeKind.CLOSED:
                return on_cancel()
            return on_result(outcome.message)

    async def auth(
        self,
        username: Optional[str] = None,
        theme: Optional[ThemeConfig] = None,
        oauth_enabled: Optional[bool] = None,
    ) -> AuthResult:
        params = {
            "clientId": self.config.client_id,
            "username": username,
            "oauth": "0" if oauth_enabled is False else None,
        }
        url = self.dialog_url("auth", params, theme)

        def on_result(message: ResultMessage) -> AuthResult:
            payload = message.payload
            if not message.success:
                return AuthResult(success=False, error=message.error)
            return AuthResult(
                success=True,
                username=payload.get("username"),
                user=payload.get("user"),
                registered=message.type == PASSKEY_REGISTER_RESULT,
            )

        def on_cancel() -> AuthResult:
            return AuthResult(success=False, error=ErrorDetail.of(ErrorCode.USER_CANCELLED, AUTH_CANCELLED))

        def on_blocked() -> AuthResult:
            return AuthResult(success=False, error=ErrorDetail.of(ErrorCode.POPUP_BLOCKED, POPUP_BLOCKED))

        return await self._run_with_popup_fallback(
            "auth",
            url,
            {"mode": "iframe"},
            (PASSKEY_LOGIN_RESULT, PASSKEY_REGISTER_RESULT),
            on_result,
            on_cancel,
            on_blocked,
        )

    async def connect(self, theme: Optional[ThemeConfig] = None) -> ConnectResult:
        url = self.dialog_url("connect", {"clientId": self.config.client_id}, theme)

        def on_result(message: ResultMessage) -> ConnectResult:
            payload = message.payload
            if message.success:
                return ConnectResult(
                    success=True,
                    username=payload.get("username"),
                    auto_connected=payload.get("autoConnected"),
                )
            action = payload.get("action")
            return ConnectResult(
                success=False,
                action=action if action in ("switch", "cancel") else None,
                error=message.error,
            )

        def on_cancel() -> ConnectResult:
            return ConnectResult(
                success=False,
                action="cancel",
                error=ErrorDetail.of(ErrorCode.USER_CANCELLED, CONNECT_CANCELLED),
            )

        def on_blocked() -> ConnectResult:
            return ConnectResult(success=False, error=ErrorDetail.of(ErrorCode.POPUP_BLOCKED, POPUP_BLOCKED))

        return await self._run_with_popup_fallback(
            "connect",
            url,
            {"mode": "iframe"},
            (PASSKEY_CONNECT_RESULT,),
            on_result,
            on_cancel,
            on_blocked,
        )

    async def authenticate(
        self,
        challenge: Optional[str] = None,
        theme: Optional[ThemeConfig] = None,
    ) -> AuthenticateResult:
        url = self.dialog_url("authenticate", {"clientId": self.config.client_id, "challenge": challenge}, theme)

        def on_result(message: ResultMessage) -> AuthenticateResult:
            payload = message.payload
            if not message.success:
                return AuthenticateResult(success=False, error=message.error)
            signature = payload.get("signature")
            try:
                parsed = WebAuthnSignature.model_validate(signature) if signature else None
            except ValidationError as exc:
                logger.warning(f"Discarding malformed authenticate result: {exc}")
                return AuthenticateResult(
                    success=False,
                    error=ErrorDetail.of(ErrorCode.SIGNING_FAILED, MALFORMED_SIGNING_RESULT),
                )
            return AuthenticateResult(
                success=True,
                username=payload.get("username"),
                user=payload.get("user"),
                account_address=payload.get("accountAddress"),
                signature=parsed,
                signed_hash=payload.get("signedHash"),
            )

        def on_cancel() -> AuthenticateResult:
            return AuthenticateResult(success=False, error=ErrorDetail.of(ErrorCode.USER_CANCELLED, AUTH_CANCELLED))

        def on_blocked() -> AuthenticateResult:
            return AuthenticateResult(success=False, error=ErrorDetail.of(ErrorCode.POPUP_BLOCKED, POPUP_BLOCKED))

        return await self._run_with_popup_fallback(
            "authenticate",
            url,
            {"mode": "iframe", "challenge": challenge},
            (PASSKEY_AUTHENTICATE_RESULT,),
            on_result,
            on_cancel,
            on_blocked,
        )

    async def sign(self, init_payload: Dict[str, Any], theme: Optional[ThemeConfig] = None) -> SigningResult:
        """Run a modal signing ceremony and close the dialog afterwards"""
        session = DialogSession(self.host)
        session.open(self.dialog_url("sign", theme=theme))
        if not await session.handshake({"mode": "iframe", **init_payload}):
            return SigningResult.failed(ErrorCode.USER_REJECTED, DIALOG_CLOSED)

        outcome = await session.wait_for_result((PASSKEY_SIGNING_RESULT,))
        session.close()
        if outcome.kind is not OutcomeKind.RESULT:
            return SigningResult.failed(ErrorCode.USER_REJECTED, DIALOG_CLOSED)
        return signing_result_from_message(outcome.message)

    async def sign_in_popup(self, request_id: str) -> SigningResult:
        """Open the hosted signing page for an existing request in a popup"""
        url = set_query_params(f"{self.config.dialog_url}/dialog/sign/{request_id}", mode="popup")
        session = DialogSession(self.host, DialogVariant.POPUP)
        if not session.open(url):
            return SigningResult.failed(ErrorCode.POPUP_BLOCKED, POPUP_BLOCKED)

        outcome = await session.wait_for_result(
            (PASSKEY_SIGNING_RESULT,),
            accept=lambda message: message.payload.get("requestId") == request_id,
        )
        session.close()
        if outcome.kind is not OutcomeKind.RESULT:
            return SigningResult.failed(ErrorCode.USER_REJECTED, "Popup was closed without completing", request_id)

        message = outcome.message
        signature = message.payload.get("signature")
        if message.success and signature:
            try:
                return SigningResult(
                    success=True,
                    request_id=request_id,
                    signature=WebAuthnSignature.model_validate(signature),
                )
            except ValidationError as exc:
                logger.warning(f"Discarding malformed signing result: {exc}")
                return SigningResult.failed(ErrorCode.SIGNING_FAILED, MALFORMED_SIGNING_RESULT, request_id)
        return SigningResult(
            success=False,
            request_id=request_id,
            error=message.error or ErrorDetail.of(ErrorCode.SIGNING_FAILED, "Signing failed"),
        )
