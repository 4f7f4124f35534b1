"""Intent-related models: calls, options, server responses and results"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .base import WireModel
from .errors import ErrorCode, ErrorDetail


class IntentStatus(str, Enum):
    """Local status of an intent as reported to callers"""
    PENDING = "pending"
    QUOTED = "quoted"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"
    UNKNOWN = "unknown"


class OrchestratorStatus(str, Enum):
    """Remote status reported by the orchestrator while an intent settles"""
    PENDING = "PENDING"
    CLAIMED = "CLAIMED"
    PRECONFIRMED = "PRECONFIRMED"
    FILLED = "FILLED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["OrchestratorStatus"]:
        """Case-insensitive parse; unknown values map to None"""
        if not value:
            return None
        try:
            return cls(value.upper())
        except ValueError:
            return None

    @property
    def is_terminal_failure(self) -> bool:
        return self in (OrchestratorStatus.FAILED, OrchestratorStatus.EXPIRED)


class CloseOn(str, Enum):
    """Remote status at which an intent counts as done and its dialog may close"""
    CLAIMED = "claimed"
    PRECONFIRMED = "preconfirmed"
    FILLED = "filled"
    COMPLETED = "completed"


_SETTLEMENT_RANK = {
    OrchestratorStatus.CLAIMED: 1,
    OrchestratorStatus.PRECONFIRMED: 2,
    OrchestratorStatus.FILLED: 3,
    OrchestratorStatus.COMPLETED: 4,
}


def meets_close_on(status: Optional[OrchestratorStatus], close_on: CloseOn) -> bool:
    """True when ``status`` is at or past the close-on threshold"""
    rank = _SETTLEMENT_RANK.get(status) if status is not None else None
    if rank is None:
        return False
    return rank >= _SETTLEMENT_RANK[OrchestratorStatus(close_on.value.upper())]


def to_local_status(status: Optional[OrchestratorStatus]) -> IntentStatus:
    if status is None:
        return IntentStatus.UNKNOWN
    if status in (OrchestratorStatus.FILLED, OrchestratorStatus.COMPLETED):
        return IntentStatus.COMPLETED
    if status is OrchestratorStatus.FAILED:
        return IntentStatus.FAILED
    if status is OrchestratorStatus.EXPIRED:
        return IntentStatus.EXPIRED
    return IntentStatus.SUBMITTED


class IntentCall(WireModel):
    """A single call executed on the target chain"""
    to: str = Field(..., description="Target contract or recipient address")
    data: Optional[str] = Field(None, description="Hex calldata, '0x' when empty")
    value: Optional[str] = Field(None, description="Wei amount as a decimal string")
    label: Optional[str] = Field(None, description="Short label shown in the dialog")
    sublabel: Optional[str] = Field(None, description="Secondary line shown in the dialog")


class IntentTokenRequest(BaseModel):
    """Output token the orchestrator must deliver"""
    token: str
    amount: int = Field(..., description="Amount in base units")

    def to_wire(self) -> Dict[str, str]:
        return {"token": self.token, "amount": str(self.amount)}


class SignedIntent(WireModel):
    """Intent signed by the developer's Ed25519 key. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    merchant_id: Optional[str] = None
    developer_id: Optional[str] = None
    target_chain: int
    calls: List[IntentCall]
    username: Optional[str] = None
    account_address: Optional[str] = None
    nonce: str
    expires_at: int = Field(..., description="Expiry as unix epoch milliseconds")
    signature: str = Field(..., description="Base64 Ed25519 signature over the canonical message")
    client_id: Optional[str] = None
    token_requests: Optional[List[Dict[str, str]]] = None

    @property
    def resolved_merchant_id(self) -> Optional[str]:
        return self.merchant_id or self.developer_id


class SendIntentOptions(BaseModel):
    """Options for a single intent; either raw fields or a signed intent"""
    username: Optional[str] = None
    target_chain: Optional[int] = None
    calls: Optional[List[IntentCall]] = None
    token_requests: Optional[List[IntentTokenRequest]] = None
    source_assets: Optional[List[str]] = Field(None, description="Restrict input tokens, e.g. ['USDC']")
    source_chain_id: Optional[int] = None
    close_on: CloseOn = CloseOn.PRECONFIRMED
    signed_intent: Optional[SignedIntent] = None
    wait_for_hash: bool = False
    hash_timeout: Optional[float] = Field(None, description="Seconds to wait for a transaction hash")
    hash_interval: Optional[float] = Field(None, description="Seconds between hash polls")


class PrepareIntentResponse(WireModel):
    """Quote and challenge returned by the prepare endpoint"""
    model_config = ConfigDict(extra="allow")

    quote: Optional[Dict[str, Any]] = None
    transaction: Optional[Any] = None
    challenge: Optional[str] = None
    expires_at: Optional[Any] = None
    account_address: Optional[str] = None
    intent_op: Optional[Any] = None
    user_id: Optional[str] = None
    target_chain: Optional[int] = None
    calls: Optional[Any] = None
    origin_messages: Optional[List[Dict[str, Any]]] = None

    def refresh_fields(self) -> Dict[str, Any]:
        """Fields pushed back into the dialog after a quote refresh"""
        return {
            "intentOp": self.intent_op,
            "expiresAt": self.expires_at,
            "challenge": self.challenge,
            "originMessages": self.origin_messages,
            "transaction": self.transaction,
        }


class ExecuteIntentResponse(WireModel):
    success: bool = True
    intent_id: str
    operation_id: Optional[str] = None
    status: str = "pending"
    transaction_hash: Optional[str] = None
    error: Optional[ErrorDetail] = None


class IntentStatusResponse(WireModel):
    model_config = ConfigDict(extra="allow")

    status: str
    transaction_hash: Optional[str] = None
    operation_id: Optional[str] = None
    block_hash: Optional[str] = None
    block_number: Optional[Any] = None


class SendIntentResult(WireModel):
    success: bool
    intent_id: str = ""
    status: IntentStatus
    remote_status: Optional[str] = Field(None, description="Last orchestrator status observed, lower-cased")
    transaction_hash: Optional[str] = None
    operation_id: Optional[str] = None
    error: Optional[ErrorDetail] = None

    @classmethod
    def failed(cls, code: ErrorCode, message: str, intent_id: str = "") -> "SendIntentResult":
        return cls(
            success=False,
            intent_id=intent_id,
            status=IntentStatus.FAILED,
            error=ErrorDetail.of(code, message),
        )


class BatchIntent(BaseModel):
    """One intent of a batch"""
    target_chain: int
    calls: List[IntentCall]
    token_requests: Optional[List[IntentTokenRequest]] = None
    source_assets: Optional[List[str]] = None
    source_chain_id: Optional[int] = None

    def to_wire(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "targetChain": self.target_chain,
            "calls": [call.to_wire() for call in self.calls],
        }
        if self.token_requests is not None:
            body["tokenRequests"] = [request.to_wire() for request in self.token_requests]
        if self.source_assets is not None:
            body["sourceAssets"] = self.source_assets
        if self.source_chain_id is not None:
            body["sourceChainId"] = self.source_chain_id
        return body


class SendBatchIntentOptions(BaseModel):
    username: Optional[str] = None
    intents: List[BatchIntent] = Field(default_factory=list)


class PrepareBatchIntentResponse(WireModel):
    model_config = ConfigDict(extra="allow")

    intents: List[Any] = Field(default_factory=list)
    challenge: Optional[str] = None
    expires_at: Optional[Any] = None
    account_address: Optional[str] = None
    user_id: Optional[str] = None

    def refresh_fields(self) -> Dict[str, Any]:
        return {
            "batchIntents": self.intents,
            "challenge": self.challenge,
            "expiresAt": self.expires_at,
        }


class BatchResultItem(WireModel):
    """Raw per-intent entry of ``data.batchResults`` sent by the dialog"""
    index: int
    operation_id: Optional[str] = None
    intent_id: Optional[str] = None
    status: str = ""
    error: Optional[str] = None
    success: Optional[bool] = None


class BatchIntentItemResult(WireModel):
    index: int
    success: bool
    intent_id: str = ""
    status: IntentStatus
    error: Optional[ErrorDetail] = None

    @classmethod
    def from_raw(cls, item: BatchResultItem) -> "BatchIntentItemResult":
        failed = item.status.upper() == OrchestratorStatus.FAILED.value
        return cls(
            index=item.index,
            success=item.success if item.success is not None else not failed,
            intent_id=item.intent_id or item.operation_id or "",
            status=IntentStatus.FAILED if failed else IntentStatus.PENDING,
            error=ErrorDetail.of(ErrorCode.EXECUTE_FAILED, item.error) if item.error else None,
        )


class SendBatchIntentResult(WireModel):
    success: bool
    results: List[BatchIntentItemResult] = Field(default_factory=list)
    success_count: int = 0
    failure_count: int = 0
    error: Optional[ErrorDetail] = None

    @classmethod
    def from_items(cls, results: List[BatchIntentItemResult]) -> "SendBatchIntentResult":
        success_count = sum(1 for item in results if item.success)
        failure_count = len(results) - success_count
        return cls(
            success=failure_count == 0 and bool(results),
            results=results,
            success_count=success_count,
            failure_count=failure_count,
        )

    @classmethod
    def failed(cls, code: ErrorCode, message: str) -> "SendBatchIntentResult":
        return cls(success=False, error=ErrorDetail.of(code, message))


class SendSwapOptions(BaseModel):
    """Swap described by its output: receive ``amount`` of ``to_token``"""
    username: str
    target_chain: int
    from_token: str = Field(..., description="Symbol or address paid with")
    to_token: str = Field(..., description="Symbol or address received")
    amount: str = Field(..., description="Human-readable output amount, e.g. '100'")
    slippage_bps: Optional[int] = None
    source_assets: Optional[List[str]] = None
    source_chain_id: Optional[int] = None
    close_on: CloseOn = CloseOn.PRECONFIRMED
    wait_for_hash: bool = False
    hash_timeout: Optional[float] = None
    hash_interval: Optional[float] = None


class SwapQuote(WireModel):
    from_token: str
    to_token: str
    amount_in: str
    amount_out: str = ""
    rate: str = ""
    price_impact: Optional[str] = None


class SendSwapResult(SendIntentResult):
    quote: Optional[SwapQuote] = None


class IntentHistoryOptions(BaseModel):
    limit: Optional[int] = None
    offset: Optional[int] = None
    status: Optional[str] = None
    from_: Optional[str] = Field(None, alias="from", description="ISO timestamp lower bound")
    to: Optional[str] = Field(None, description="ISO timestamp upper bound")

    model_config = ConfigDict(populate_by_name=True)

    def to_query(self) -> Dict[str, str]:
        query = {}
        if self.limit:
            query["limit"] = str(self.limit)
        if self.offset:
            query["offset"] = str(self.offset)
        if self.status:
            query["status"] = self.status
        if self.from_:
            query["from"] = self.from_
        if self.to:
            query["to"] = self.to
        return query


class IntentHistoryItem(WireModel):
    model_config = ConfigDict(extra="allow")

    intent_id: str
    status: str
    transaction_hash: Optional[str] = None
    target_chain: int
    calls: List[IntentCall] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class IntentHistoryResult(WireModel):
    intents: List[IntentHistoryItem] = Field(default_factory=list)
    total: int = 0
    has_more: bool = False
