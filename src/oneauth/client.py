"""OneAuthClient: the public entry point of the SDK"""
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, quote, urlsplit

import httpx
from pydantic import ValidationError

from .core.channel import MessageChannel
from .core.config import ProviderConfig
from .core.dialog import DialogDriver, DialogHost, set_query_params
from .core.encoding import hash_typed_data
from .core.http import ApiClient
from .core.storage import KeyValueStore, MemoryStore, UserStore
from .models.auth import AuthenticateResult, AuthResult, ConnectResult, ThemeConfig
from .models.errors import ApiError, ErrorCode, ErrorDetail, OneAuthError
from .models.intents import (
    IntentHistoryOptions,
    IntentHistoryResult,
    SendBatchIntentOptions,
    SendBatchIntentResult,
    SendIntentOptions,
    SendIntentResult,
    SendSwapOptions,
    SendSwapResult,
)
from .models.signing import (
    CreateSigningRequestResponse,
    PasskeyCredential,
    SigningRequestOptions,
    SigningRequestStatus,
    SigningResult,
    SignMessageOptions,
    SignMessageResult,
    SignTypedDataOptions,
    SignTypedDataResult,
)
from .services.flows import DialogFlows
from .services.intents import IntentPipeline
from .services.polling import StatusPoller

logger = logging.getLogger(__name__)


class OneAuthClient:
    """Passkey authentication, signing and intents through the hosted dialog.

    ``driver`` connects the client to whatever shows the hosted pages; messages
    posted by those pages must be dispatched into ``channel``.
    """

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        *,
        driver: DialogDriver,
        channel: Optional[MessageChannel] = None,
        storage: Optional[KeyValueStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or ProviderConfig()
        self.driver = driver
        self.channel = channel or MessageChannel()
        self.user_store = UserStore(storage or MemoryStore(), self.config.storage_key)
        self.api = ApiClient(
            self.config.provider_url,
            client_id=self.config.client_id,
            timeout=self.config.request_timeout,
            http_client=http_client,
        )
        self.host = DialogHost(
            driver,
            self.channel,
            self.config.dialog_origin,
            user_store=self.user_store,
            popup_width=self.config.popup_width,
            popup_height=self.config.popup_height,
        )
        self.flows = DialogFlows(self.config, self.host)
        self.poller = StatusPoller(
            self.api,
            interval=self.config.status_poll_interval,
            max_attempts=self.config.status_poll_max_attempts,
            hash_timeout=self.config.hash_timeout,
            hash_interval=self.config.hash_interval,
        )
        self.intents = IntentPipeline(self.config, self.api, self.host, self.flows, self.poller, self.user_store)

    async def __aenter__(self) -> "OneAuthClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.api.aclose()

    @property
    def provider_url(self) -> str:
        return self.config.provider_url

    @property
    def dialog_url(self) -> str:
        return self.config.dialog_url

    @property
    def client_id(self) -> Optional[str]:
        return self.config.client_id

    def set_theme(self, theme: ThemeConfig) -> None:
        self.config.theme = self.config.theme.merged(theme)

    # Dialog ceremonies

    async def auth_with_modal(
        self,
        username: Optional[str] = None,
        theme: Optional[ThemeConfig] = None,
        oauth_enabled: Optional[bool] = None,
    ) -> AuthResult:
        return await self.flows.auth(username=username, theme=theme, oauth_enabled=oauth_enabled)

    async def connect_with_modal(self, theme: Optional[ThemeConfig] = None) -> ConnectResult:
        return await self.flows.connect(theme=theme)

    async def authenticate(
        self,
        challenge: Optional[str] = None,
        theme: Optional[ThemeConfig] = None,
    ) -> AuthenticateResult:
        return await self.flows.authenticate(challenge=challenge, theme=theme)

    async def sign_with_modal(self, options: SigningRequestOptions, theme: Optional[ThemeConfig] = None) -> SigningResult:
        return await self.flows.sign(
            {
                "challenge": options.challenge,
                "username": options.username,
                "description": options.description,
                "metadata": options.metadata,
                "transaction": options.transaction,
            },
            theme,
        )

    async def sign_message(self, options: SignMessageOptions, theme: Optional[ThemeConfig] = None) -> SignMessageResult:
        """Sign a plain-text message; the challenge defaults to the message"""
        result = await self.flows.sign(
            {
                "message": options.message,
                "challenge": options.challenge or options.message,
                "username": options.username,
                "description": options.description,
                "metadata": options.metadata,
            },
            theme,
        )
        if not result.success:
            return SignMessageResult(success=False, error=result.error)
        return SignMessageResult(
            success=True,
            signature=result.signature,
            signed_message=options.message,
            signed_hash=result.signed_hash,
            passkey=result.passkey,
        )

    async def sign_typed_data(
        self,
        options: SignTypedDataOptions,
        theme: Optional[ThemeConfig] = None,
    ) -> SignTypedDataResult:
        """Sign EIP-712 typed data; the digest is computed here and sent as the challenge"""
        try:
            signed_hash = hash_typed_data(options.domain, options.types, options.primary_type, options.message)
        except (ValueError, TypeError, KeyError) as exc:
            return SignTypedDataResult(
                success=False,
                error=ErrorDetail.of(ErrorCode.INVALID_REQUEST, f"Invalid typed data: {exc}"),
            )

        result = await self.flows.sign(
            {
                "signingMode": "typedData",
                "typedData": {
                    "domain": options.domain,
                    "types": options.types,
                    "primaryType": options.primary_type,
                    "message": options.message,
                },
                "challenge": signed_hash,
                "username": options.username,
                "description": options.description,
            },
            theme,
        )
        if not result.success:
            return SignTypedDataResult(success=False, error=result.error)
        return SignTypedDataResult(
            success=True,
            signature=result.signature,
            signed_hash=signed_hash,
            passkey=result.passkey,
        )

    # Intents

    async def send_intent(self, options: SendIntentOptions) -> SendIntentResult:
        return await self.intents.send_intent(options)

    async def send_batch_intent(self, options: SendBatchIntentOptions) -> SendBatchIntentResult:
        return await self.intents.send_batch_intent(options)

    async def send_swap(self, options: SendSwapOptions) -> SendSwapResult:
        return await self.intents.send_swap(options)

    async def get_intent_status(self, intent_id: str) -> SendIntentResult:
        return await self.intents.get_intent_status(intent_id)

    async def get_intent_history(self, options: Optional[IntentHistoryOptions] = None) -> IntentHistoryResult:
        query = options.to_query() if options else {}
        data = await self.api.get("/api/intent/history", params=query, default_error="Failed to get intent history")
        return IntentHistoryResult.model_validate(data)

    # Account lookups

    async def get_passkeys(self, username: str) -> List[PasskeyCredential]:
        data = await self.api.get(
            f"/api/users/{quote(username, safe='')}/passkeys",
            default_error="Failed to fetch passkeys",
        )
        passkeys = data.get("passkeys") if isinstance(data, dict) else None
        return [PasskeyCredential.model_validate(item) for item in passkeys or []]

    async def get_account_address(self, username: str) -> str:
        data = await self.api.get(
            f"/api/users/{quote(username, safe='')}/account",
            default_error="Failed to resolve account address",
        )
        address = data.get("address") if isinstance(data, dict) else None
        if not address:
            raise ApiError(404, "Failed to resolve account address")
        return address

    async def get_portfolio(self, username: str) -> Dict[str, Any]:
        return await self.api.get(
            f"/api/users/{quote(username, safe='')}/portfolio",
            default_error="Failed to get assets",
        )

    # Signing requests (popup and redirect flows)

    async def create_signing_request(
        self,
        options: SigningRequestOptions,
        mode: str,
        redirect_url: Optional[str] = None,
    ) -> CreateSigningRequestResponse:
        body: Dict[str, Any] = {
            "username": options.username,
            "challenge": options.challenge,
            "description": options.description,
            "metadata": options.metadata,
            "transaction": options.transaction,
            "mode": mode,
            "redirectUrl": redirect_url,
        }
        if self.config.client_id:
            body["clientId"] = self.config.client_id
        body = {key: value for key, value in body.items() if value is not None}
        data = await self.api.post("/api/sign/request", body, default_error="Failed to create signing request")
        return CreateSigningRequestResponse.model_validate(data)

    async def sign_with_popup(self, options: SigningRequestOptions) -> SigningResult:
        """Sign in a popup window; raises if the signing request cannot be created"""
        request = await self.create_signing_request(options, "popup")
        return await self.flows.sign_in_popup(request.request_id)

    async def sign_with_redirect(self, options: SigningRequestOptions, redirect_url: Optional[str] = None) -> str:
        """Create a redirect signing request and navigate the page to it. Returns the URL."""
        redirect_url = redirect_url or self.config.redirect_url
        if not redirect_url:
            raise ValueError(
                "redirectUrl is required for redirect flow. "
                "Pass it to sign_with_redirect() or set it in the provider config."
            )
        request = await self.create_signing_request(options, "redirect", redirect_url)
        url = set_query_params(
            f"{self.config.dialog_url}/dialog/sign/{request.request_id}",
            mode="redirect",
            redirectUrl=redirect_url,
        )
        logger.info(f"Redirecting to signing request {request.request_id}")
        self.driver.navigate(url)
        return url

    async def handle_redirect_callback(self, url: str) -> SigningResult:
        """Resolve the outcome of a redirect signing flow from the callback URL"""
        query = {key: values[0] for key, values in parse_qs(urlsplit(url).query).items() if values}
        request_id = query.get("request_id")
        status = query.get("status")

        if query.get("error"):
            return SigningResult(
                success=False,
                request_id=request_id,
                error=ErrorDetail(code=query["error"], message=query.get("error_message") or "Unknown error"),
            )
        if not request_id:
            return SigningResult.failed(ErrorCode.INVALID_REQUEST, "No request_id found in callback URL")
        if status != "completed":
            return SigningResult.failed(ErrorCode.UNKNOWN, f"Unexpected status: {status}", request_id)

        try:
            data = await self.api.get(f"/api/sign/request/{request_id}", default_error="Failed to fetch signing result")
            result = SigningRequestStatus.model_validate(data)
        except (OneAuthError, ValidationError) as exc:
            logger.warning(f"Failed to fetch signing request {request_id}: {exc}")
            return SigningResult.failed(ErrorCode.NETWORK_ERROR, "Failed to fetch signing result", request_id)

        if result.status == "COMPLETED" and result.signature is not None:
            return SigningResult(success=True, request_id=request_id, signature=result.signature)
        return SigningResult(
            success=False,
            request_id=request_id,
            error=ErrorDetail(
                code=result.error.code if result.error else ErrorCode.UNKNOWN.value,
                message=result.error.message if result.error and result.error.message else f"Request status: {result.status}",
            ),
        )
