"""Intent pipeline: prepare, sign in the dialog, execute, poll"""
import logging
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar, Union
from urllib.parse import quote

from pydantic import BaseModel, ValidationError

from ..constants import USER_NOT_FOUND_MARKER
from ..core.config import ProviderConfig
from ..core.dialog import DialogHost
from ..core.http import ApiClient
from ..core.storage import UserStore
from ..models.errors import ApiError, ErrorCode, ErrorDetail, NetworkError
from ..models.intents import (
    BatchIntentItemResult,
    BatchResultItem,
    ExecuteIntentResponse,
    IntentCall,
    IntentStatus,
    IntentStatusResponse,
    IntentTokenRequest,
    OrchestratorStatus,
    PrepareBatchIntentResponse,
    PrepareIntentResponse,
    SendBatchIntentOptions,
    SendBatchIntentResult,
    SendIntentOptions,
    SendIntentResult,
    SendSwapOptions,
    SendSwapResult,
    SwapQuote,
    meets_close_on,
    to_local_status,
)
from ..models.messages import PASSKEY_SIGNING_RESULT
from ..models.signing import SigningResult
from . import registry
from .flows import DIALOG_CLOSED, DialogFlows, signing_result_from_message
from .polling import StatusPoller
from .session import DialogSession, OutcomeKind, QuoteRefresh

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)

PREPARE_ERROR = "Failed to prepare intent"
EXECUTE_ERROR = "Failed to execute intent"


class PrepareFailure(Exception):
    """Prepare did not produce a quote; carries the error to report"""

    def __init__(self, error: ErrorDetail):
        super().__init__(error.message)
        self.error = error


def _token_label(token: str, chain_id: int) -> str:
    if not token.startswith("0x"):
        return token.upper()
    symbol = registry.get_token_symbol(token, chain_id)
    if symbol:
        return symbol
    return f"{token[:6]}...{token[-4:]}"


class IntentPipeline:
    """Runs intents through the passkey service and the signing dialog.

    Never raises for protocol outcomes: every path ends in a result with an
    ``ErrorDetail`` on failure.
    """

    def __init__(
        self,
        config: ProviderConfig,
        api: ApiClient,
        host: DialogHost,
        flows: DialogFlows,
        poller: StatusPoller,
        user_store: UserStore,
    ):
        self.config = config
        self.api = api
        self.host = host
        self.flows = flows
        self.poller = poller
        self.user_store = user_store

    async def _prepare(self, path: str, body: Dict[str, Any], model: Type[P]) -> P:
        try:
            data = await self.api.post(path, body, default_error=PREPARE_ERROR)
            return model.model_validate(data)
        except ApiError as exc:
            if USER_NOT_FOUND_MARKER in exc.message:
                self.user_store.clear()
                raise PrepareFailure(ErrorDetail.of(ErrorCode.USER_NOT_FOUND, exc.message)) from exc
            raise PrepareFailure(ErrorDetail.of(ErrorCode.PREPARE_FAILED, exc.message)) from exc
        except NetworkError as exc:
            raise PrepareFailure(ErrorDetail.of(ErrorCode.NETWORK_ERROR, exc.message)) from exc
        except ValidationError as exc:
            logger.warning(f"Malformed response from {path}: {exc}")
            raise PrepareFailure(ErrorDetail.of(ErrorCode.PREPARE_FAILED, PREPARE_ERROR)) from exc

    def _refresher(
        self,
        path: str,
        body: Dict[str, Any],
        model: Type[P],
        adopt: Callable[[P], None],
        error_message: str,
    ) -> QuoteRefresh:
        async def fetch() -> Optional[Dict[str, Any]]:
            try:
                refreshed = await self._prepare(path, body, model)
            except PrepareFailure as exc:
                logger.warning(f"Quote refresh failed: {exc.error.message}")
                return None
            adopt(refreshed)
            return refreshed.refresh_fields()

        return QuoteRefresh(fetch=fetch, error_message=error_message)

    def _build_prepare_body(self, options: SendIntentOptions) -> Union[Dict[str, Any], SendIntentResult]:
        signed = options.signed_intent
        if signed is not None:
            if not signed.resolved_merchant_id:
                return SendIntentResult.failed(
                    ErrorCode.INVALID_OPTIONS, "Signed intent requires developerId (clientId)"
                )
            if not (signed.username or signed.account_address):
                return SendIntentResult.failed(
                    ErrorCode.INVALID_OPTIONS,
                    "Either username, accountAddress, or signedIntent with user identifier is required",
                )
            if not signed.target_chain or not signed.calls:
                return SendIntentResult.failed(
                    ErrorCode.INVALID_OPTIONS,
                    "targetChain and calls are required (either directly or via signedIntent)",
                )
            body = signed.to_wire()
            body["merchantId"] = signed.resolved_merchant_id
            return body

        if not options.username:
            return SendIntentResult.failed(
                ErrorCode.INVALID_OPTIONS,
                "Either username, accountAddress, or signedIntent with user identifier is required",
            )
        if not options.target_chain or not options.calls:
            return SendIntentResult.failed(
                ErrorCode.INVALID_OPTIONS,
                "targetChain and calls are required (either directly or via signedIntent)",
            )

        stored = self.user_store.get()
        body = {
            "username": options.username,
            "targetChain": options.target_chain,
            "calls": [call.to_wire() for call in options.calls],
        }
        if stored is not None and stored.username == options.username:
            body["accountAddress"] = stored.address
        if options.token_requests:
            body["tokenRequests"] = [request.to_wire() for request in options.token_requests]
        if options.source_assets:
            body["sourceAssets"] = options.source_assets
        if options.source_chain_id is not None:
            body["sourceChainId"] = options.source_chain_id
        if self.config.client_id:
            body["clientId"] = self.config.client_id
        return body

    async def send_intent(self, options: SendIntentOptions) -> SendIntentResult:
        body = self._build_prepare_body(options)
        if isinstance(body, SendIntentResult):
            return body

        try:
            prepared = await self._prepare("/api/intent/prepare", body, PrepareIntentResponse)
        except PrepareFailure as exc:
            return SendIntentResult(success=False, status=IntentStatus.FAILED, error=exc.error)

        # A signed intent supersedes the raw fields
        signed = options.signed_intent
        username = (signed.username if signed else None) or options.username
        target_chain = signed.target_chain if signed else options.target_chain
        calls = signed.calls if signed else options.calls or []
        if signed:
            token_requests = signed.token_requests
        else:
            token_requests = [request.to_wire() for request in options.token_requests or []]

        session = DialogSession(self.host)
        session.open(self.flows.dialog_url("sign"))
        init_payload = {
            "mode": "iframe",
            "calls": [call.to_wire() for call in calls],
            "chainId": target_chain,
            "transaction": prepared.transaction,
            "challenge": prepared.challenge,
            "username": username,
            "accountAddress": prepared.account_address,
            "originMessages": prepared.origin_messages,
            "tokenRequests": token_requests or None,
            "expiresAt": prepared.expires_at,
            "userId": prepared.user_id,
            "intentOp": prepared.intent_op,
        }
        if not await session.handshake(init_payload):
            return SendIntentResult.failed(ErrorCode.USER_CANCELLED, DIALOG_CLOSED)

        def adopt(refreshed: PrepareIntentResponse) -> None:
            nonlocal prepared
            prepared = refreshed

        refresh = self._refresher("/api/intent/prepare", body, PrepareIntentResponse, adopt, "Failed to refresh quote")
        outcome = await session.wait_for_result((PASSKEY_SIGNING_RESULT,), refresh=refresh)
        if outcome.kind is not OutcomeKind.RESULT:
            return SendIntentResult.failed(ErrorCode.USER_REJECTED, DIALOG_CLOSED)

        signing = signing_result_from_message(outcome.message)
        if not signing.success:
            session.close()
            return SendIntentResult(success=False, status=IntentStatus.FAILED, error=signing.error)

        if signing.intent_id:
            # The dialog already executed the intent
            executed = ExecuteIntentResponse(intent_id=signing.intent_id)
        else:
            executed = await self._execute(session, prepared, target_chain, calls, signing)
            if isinstance(executed, SendIntentResult):
                return executed

        return await self._settle(session, executed, options)

    async def _execute(
        self,
        session: DialogSession,
        prepared: PrepareIntentResponse,
        target_chain: Optional[int],
        calls: List[IntentCall],
        signing: SigningResult,
    ) -> Union[ExecuteIntentResponse, SendIntentResult]:
        body = {
            "intentOp": prepared.intent_op,
            "userId": prepared.user_id,
            "targetChain": prepared.target_chain or target_chain,
            "calls": prepared.calls if prepared.calls is not None else [call.to_wire() for call in calls],
            "expiresAt": prepared.expires_at,
            "signature": signing.signature.to_wire(),
            "passkey": signing.passkey.to_wire() if signing.passkey else None,
        }
        error: Optional[ErrorDetail] = None
        try:
            data = await self.api.post("/api/intent/execute", body, default_error=EXECUTE_ERROR)
            executed = ExecuteIntentResponse.model_validate(data)
            if not executed.success:
                error = executed.error or ErrorDetail.of(ErrorCode.EXECUTE_FAILED, EXECUTE_ERROR)
        except ApiError as exc:
            error = ErrorDetail.of(ErrorCode.EXECUTE_FAILED, exc.message)
        except NetworkError as exc:
            error = ErrorDetail.of(ErrorCode.NETWORK_ERROR, exc.message)
        except ValidationError:
            error = ErrorDetail.of(ErrorCode.EXECUTE_FAILED, EXECUTE_ERROR)

        if error is None:
            logger.info(f"Intent {executed.intent_id} executed with status {executed.status}")
            return executed

        logger.warning(f"Execute failed: {error.message}")
        session.send_transaction_status("failed")
        await session.wait_for_close()
        return SendIntentResult(success=False, status=IntentStatus.FAILED, error=error)

    async def _settle(
        self,
        session: DialogSession,
        executed: ExecuteIntentResponse,
        options: SendIntentOptions,
    ) -> SendIntentResult:
        intent_id = executed.intent_id
        raw_status = executed.status.lower()
        tx_hash = executed.transaction_hash
        operation_id = executed.operation_id
        remote = OrchestratorStatus.parse(raw_status)

        if not (remote is not None and (remote.is_terminal_failure or meets_close_on(remote, options.close_on))):
            session.send_transaction_status("pending")
            latest = await self.poller.poll_until_settled(
                intent_id,
                options.close_on,
                on_change=session.send_transaction_status,
                last_status="pending",
            )
            if latest is not None:
                raw_status = latest.status.lower()
                tx_hash = latest.transaction_hash or tx_hash
                operation_id = latest.operation_id or operation_id
                remote = OrchestratorStatus.parse(raw_status)

        succeeded = meets_close_on(remote, options.close_on)
        session.send_transaction_status("confirmed" if succeeded else raw_status, tx_hash)
        await session.wait_for_close()

        status = to_local_status(remote)
        error = None
        if status is IntentStatus.FAILED:
            error = ErrorDetail.of(ErrorCode.EXECUTE_FAILED, "Intent failed")
        elif status is IntentStatus.EXPIRED:
            error = ErrorDetail.of(ErrorCode.EXPIRED, "Intent expired")

        if options.wait_for_hash and not tx_hash and not (remote is not None and remote.is_terminal_failure):
            tx_hash = await self.poller.wait_for_hash(intent_id, options.hash_timeout, options.hash_interval)
            if tx_hash:
                status = IntentStatus.COMPLETED
            else:
                succeeded = False
                status = IntentStatus.FAILED
                error = ErrorDetail.of(ErrorCode.HASH_TIMEOUT, "Timed out waiting for transaction hash")

        return SendIntentResult(
            success=succeeded,
            intent_id=intent_id,
            status=status,
            remote_status=raw_status,
            transaction_hash=None if status is IntentStatus.FAILED else tx_hash,
            operation_id=operation_id,
            error=error,
        )

    async def send_batch_intent(self, options: SendBatchIntentOptions) -> SendBatchIntentResult:
        if not options.username:
            return SendBatchIntentResult.failed(ErrorCode.INVALID_OPTIONS, "username is required")
        if not options.intents:
            return SendBatchIntentResult.failed(ErrorCode.INVALID_OPTIONS, "At least one intent is required")

        body: Dict[str, Any] = {
            "username": options.username,
            "intents": [intent.to_wire() for intent in options.intents],
        }
        if self.config.client_id:
            body["clientId"] = self.config.client_id

        try:
            prepared = await self._prepare("/api/intent/batch-prepare", body, PrepareBatchIntentResponse)
        except PrepareFailure as exc:
            return SendBatchIntentResult(success=False, error=exc.error)

        session = DialogSession(self.host)
        session.open(self.flows.dialog_url("sign"))
        init_payload = {
            "mode": "iframe",
            "batchMode": True,
            "batchIntents": prepared.intents,
            "challenge": prepared.challenge,
            "username": options.username,
            "accountAddress": prepared.account_address,
            "userId": prepared.user_id,
            "expiresAt": prepared.expires_at,
        }
        if not await session.handshake(init_payload):
            return SendBatchIntentResult.failed(ErrorCode.USER_CANCELLED, DIALOG_CLOSED)

        def adopt(refreshed: PrepareBatchIntentResponse) -> None:
            nonlocal prepared
            prepared = refreshed

        refresh = self._refresher(
            "/api/intent/batch-prepare", body, PrepareBatchIntentResponse, adopt, "Failed to refresh batch quotes"
        )
        outcome = await session.wait_for_result((PASSKEY_SIGNING_RESULT,), refresh=refresh)
        if outcome.kind is not OutcomeKind.RESULT:
            return SendBatchIntentResult.failed(ErrorCode.USER_REJECTED, DIALOG_CLOSED)

        message = outcome.message
        raw_items = message.payload.get("batchResults")
        if not message.success or not isinstance(raw_items, list):
            session.close()
            error = message.error or ErrorDetail.of(ErrorCode.SIGNING_FAILED, "Signing failed")
            return SendBatchIntentResult(success=False, error=error)

        try:
            items = [BatchIntentItemResult.from_raw(BatchResultItem.model_validate(item)) for item in raw_items]
        except ValidationError:
            session.close()
            return SendBatchIntentResult.failed(ErrorCode.SIGNING_FAILED, "Malformed batch results")

        await session.wait_for_close()
        result = SendBatchIntentResult.from_items(items)
        logger.info(f"Batch finished: {result.success_count} succeeded, {result.failure_count} failed")
        return result

    async def send_swap(self, options: SendSwapOptions) -> SendSwapResult:
        chain_id = options.target_chain
        if not registry.is_supported_chain(chain_id):
            return SendSwapResult.failed(ErrorCode.INVALID_CHAIN, f"Unsupported chain: {chain_id}")

        from_address = registry.resolve_token_address(options.from_token, chain_id)
        if from_address is None:
            return SendSwapResult.failed(
                ErrorCode.INVALID_TOKEN, f"Unsupported fromToken: {options.from_token} on chain {chain_id}"
            )
        to_address = registry.resolve_token_address(options.to_token, chain_id)
        if to_address is None:
            return SendSwapResult.failed(
                ErrorCode.INVALID_TOKEN, f"Unsupported toToken: {options.to_token} on chain {chain_id}"
            )

        to_symbol = _token_label(options.to_token, chain_id)
        try:
            amount = registry.parse_units(options.amount, registry.get_token_decimals(options.to_token, chain_id))
        except ValueError as exc:
            return SendSwapResult.failed(ErrorCode.INVALID_OPTIONS, str(exc))

        result = await self.send_intent(SendIntentOptions(
            username=options.username,
            target_chain=chain_id,
            calls=[IntentCall(
                to=to_address,
                value="0",
                label=f"Buy {to_symbol}",
                sublabel=f"{options.amount} {to_symbol}",
            )],
            token_requests=[IntentTokenRequest(token=to_address, amount=amount)],
            source_assets=options.source_assets or [_token_label(options.from_token, chain_id)],
            source_chain_id=options.source_chain_id,
            close_on=options.close_on,
            wait_for_hash=options.wait_for_hash,
            hash_timeout=options.hash_timeout,
            hash_interval=options.hash_interval,
        ))

        swap = SendSwapResult.model_validate(result.model_dump())
        if result.success:
            swap.quote = SwapQuote(from_token=from_address, to_token=to_address, amount_in=options.amount)
        return swap

    async def get_intent_status(self, intent_id: str) -> SendIntentResult:
        try:
            data = await self.api.get(
                f"/api/intent/status/{quote(intent_id, safe='')}",
                default_error="Failed to get intent status",
            )
            response = IntentStatusResponse.model_validate(data)
        except ApiError as exc:
            return SendIntentResult.failed(ErrorCode.STATUS_FAILED, exc.message, intent_id)
        except (NetworkError, ValidationError) as exc:
            return SendIntentResult.failed(ErrorCode.NETWORK_ERROR, str(exc), intent_id)

        remote = OrchestratorStatus.parse(response.status)
        status = to_local_status(remote)
        return SendIntentResult(
            success=status is IntentStatus.COMPLETED,
            intent_id=intent_id,
            status=status,
            remote_status=response.status.lower(),
            transaction_hash=None if status is IntentStatus.FAILED else response.transaction_hash,
            operation_id=response.operation_id,
        )
