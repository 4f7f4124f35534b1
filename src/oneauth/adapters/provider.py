"""EIP-1193 style provider backed by OneAuthClient"""
import json
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from ..client import OneAuthClient
from ..core.encoding import encode_webauthn_signature
from ..core.storage import StoredUser
from ..models.errors import ProviderError
from ..models.intents import CloseOn, IntentCall, IntentHistoryOptions, SendIntentOptions, SignedIntent
from ..models.signing import SignMessageOptions, SignTypedDataOptions
from ..services.registry import get_supported_chain_ids
from ..services.signer import SignIntentParams

logger = logging.getLogger(__name__)

IntentSigner = Callable[[SignIntentParams], Awaitable[SignedIntent]]
Listener = Callable[..., Any]

_HEX_PATTERN = re.compile(r"^0x[0-9a-fA-F]*$")

# Intent status -> EIP-5792 calls status
CALLS_STATUS = {
    "pending": "PENDING",
    "preconfirmed": "PENDING",
    "completed": "CONFIRMED",
    "failed": "CONFIRMED",
    "expired": "CONFIRMED",
}


def to_hex(value: int) -> str:
    return hex(value)


def parse_chain_id(value: Any) -> Optional[int]:
    """Accept an int, a 0x-prefixed hex string or a decimal string"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.startswith("0x") else int(value)
        except ValueError:
            return None
    return None


def normalize_value(value: Any) -> Optional[str]:
    """Wei value as a decimal string; hex strings are converted, bad hex becomes '0'"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value))
    if isinstance(value, str):
        if value.startswith("0x"):
            try:
                return str(int(value, 16))
            except ValueError:
                return "0"
        return value
    return None


def normalize_calls(calls: List[Dict[str, Any]]) -> List[IntentCall]:
    return [
        IntentCall(
            to=call.get("to"),
            data=call.get("data") or "0x",
            value=normalize_value(call.get("value")) or "0",
            label=call.get("label"),
            sublabel=call.get("sublabel"),
        )
        for call in calls
    ]


def decode_message(value: str) -> str:
    """Decode a 0x-hex payload as UTF-8 text; anything else is returned as is"""
    if not _HEX_PATTERN.match(value):
        return value
    try:
        return bytes.fromhex(value[2:]).decode("utf-8")
    except ValueError:
        return value


def _personal_sign_message(params: List[Any]) -> str:
    first = params[0] if len(params) > 0 else None
    second = params[1] if len(params) > 1 else None
    if isinstance(first, str) and first.startswith("0x") and second:
        if isinstance(second, str) and not second.startswith("0x"):
            return second
        return decode_message(first)
    if isinstance(first, str):
        return decode_message(first)
    if isinstance(second, str):
        return decode_message(second)
    return ""


class OneAuthProvider:
    """Wallet provider: ``await provider.request(method, params)``.

    Emits ``accountsChanged``, ``connect``, ``chainChanged`` and
    ``disconnect``. The stored user is re-read on every request.
    """

    def __init__(
        self,
        client: OneAuthClient,
        chain_id: int,
        sign_intent: Optional[IntentSigner] = None,
        wait_for_hash: bool = True,
        hash_timeout: Optional[float] = None,
        hash_interval: Optional[float] = None,
    ):
        self.client = client
        self.chain_id = chain_id
        self.sign_intent = sign_intent
        self.wait_for_hash = wait_for_hash
        self.hash_timeout = hash_timeout
        self.hash_interval = hash_interval
        self._listeners: Dict[str, Set[Listener]] = {}

    # Events

    def on(self, event: str, listener: Listener) -> None:
        self._listeners.setdefault(event, set()).add(listener)

    def remove_listener(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event)
        if not listeners:
            return
        listeners.discard(listener)
        if not listeners:
            del self._listeners[event]

    def emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(*args)
            except Exception:
                logger.exception(f"Provider listener for {event} failed")

    # Session

    def stored_user(self) -> Optional[StoredUser]:
        return self.client.user_store.get()

    async def connect(self) -> List[str]:
        stored = self.stored_user()
        if stored is not None:
            return [stored.address]

        connect_result = await self.client.connect_with_modal()
        if connect_result.success and connect_result.username:
            username = connect_result.username
        elif connect_result.action == "switch":
            auth_result = await self.client.auth_with_modal()
            if not auth_result.success or not auth_result.username:
                raise ProviderError(auth_result.error.message if auth_result.error else "Authentication failed")
            username = auth_result.username
        else:
            message = connect_result.error.message if connect_result.error else ""
            raise ProviderError(message or "Connection cancelled")

        address = await self.client.get_account_address(username)
        self.client.user_store.set(StoredUser(username=username, address=address))
        logger.info(f"Connected {username} ({address})")
        self.emit("accountsChanged", [address])
        self.emit("connect", {"chainId": to_hex(self.chain_id)})
        return [address]

    async def disconnect(self) -> None:
        self.client.user_store.clear()
        self.emit("accountsChanged", [])
        self.emit("disconnect")

    async def ensure_user(self) -> StoredUser:
        stored = self.stored_user()
        if stored is not None:
            return stored
        await self.connect()
        stored = self.stored_user()
        if stored is None:
            raise ProviderError("Failed to resolve user session")
        return stored

    # Signing

    async def _sign_message(self, message: str) -> str:
        user = await self.ensure_user()
        result = await self.client.sign_message(SignMessageOptions(username=user.username, message=message))
        if not result.success or result.signature is None:
            raise ProviderError(result.error.message if result.error and result.error.message else "Signing failed")
        return encode_webauthn_signature(result.signature)

    async def _sign_typed_data(self, typed_data: Any) -> str:
        user = await self.ensure_user()
        data = json.loads(typed_data) if isinstance(typed_data, str) else typed_data
        if not isinstance(data, dict):
            raise ProviderError("Invalid typed data payload")
        result = await self.client.sign_typed_data(SignTypedDataOptions(
            username=user.username,
            domain=data.get("domain") or {},
            types=data.get("types") or {},
            primary_type=data.get("primaryType", ""),
            message=data.get("message") or {},
        ))
        if not result.success or result.signature is None:
            raise ProviderError(result.error.message if result.error and result.error.message else "Signing failed")
        return encode_webauthn_signature(result.signature)

    # Intents

    async def _intent_options(self, user: StoredUser, target_chain: int, calls: List[IntentCall]) -> SendIntentOptions:
        close_on = CloseOn.COMPLETED if self.wait_for_hash else CloseOn.PRECONFIRMED
        common = {
            "close_on": close_on,
            "wait_for_hash": self.wait_for_hash,
            "hash_timeout": self.hash_timeout,
            "hash_interval": self.hash_interval,
        }
        if self.sign_intent is None:
            return SendIntentOptions(username=user.username, target_chain=target_chain, calls=calls, **common)
        signed = await self.sign_intent(SignIntentParams(
            username=user.username,
            account_address=user.address,
            target_chain=target_chain,
            calls=calls,
        ))
        return SendIntentOptions(signed_intent=signed, **common)

    async def _send_intent(self, target_chain: int, calls: List[IntentCall]) -> str:
        user = await self.ensure_user()
        options = await self._intent_options(user, target_chain, calls)
        result = await self.client.send_intent(options)
        if not result.success:
            raise ProviderError(result.error.message if result.error and result.error.message else "Transaction failed")
        return result.transaction_hash or result.intent_id

    # EIP-5792 helpers

    def _capabilities(self, requested: Optional[List[str]]) -> Dict[str, Any]:
        capabilities: Dict[str, Any] = {}
        for chain_id in get_supported_chain_ids():
            hex_chain_id = to_hex(chain_id)
            if requested is not None and hex_chain_id not in requested:
                continue
            capabilities[hex_chain_id] = {
                "atomic": {"status": "supported"},
                "paymasterService": {"supported": True},
                "auxiliaryFunds": {"supported": True},
            }
        return capabilities

    async def _calls_status(self, calls_id: Any) -> Dict[str, Any]:
        if not calls_id:
            raise ProviderError("callsId is required")
        status = await self.client.poller.fetch_status(str(calls_id))
        raw = status.status.lower()
        receipts = []
        if status.transaction_hash:
            receipts.append({
                "logs": [],
                "status": "0x1" if raw == "completed" else "0x0",
                "blockHash": status.block_hash,
                "blockNumber": status.block_number,
                "transactionHash": status.transaction_hash,
            })
        return {"status": CALLS_STATUS.get(raw, "PENDING"), "receipts": receipts}

    async def _calls_history(self, options: Dict[str, Any]) -> Dict[str, Any]:
        history = await self.client.get_intent_history(IntentHistoryOptions.model_validate(options))
        return {
            "calls": [
                {
                    "callsId": intent.intent_id,
                    "status": CALLS_STATUS.get(intent.status.lower(), "PENDING"),
                    "receipts": [{"transactionHash": intent.transaction_hash}] if intent.transaction_hash else [],
                    "chainId": to_hex(intent.target_chain),
                }
                for intent in history.intents
            ],
            "total": history.total,
            "hasMore": history.has_more,
        }

    async def request(self, method: str, params: Optional[Any] = None) -> Any:
        param_list = params if isinstance(params, list) else []
        logger.debug(f"Provider request {method}")

        if method == "eth_chainId":
            return to_hex(self.chain_id)
        if method == "eth_accounts":
            stored = self.stored_user()
            return [stored.address] if stored else []
        if method in ("eth_requestAccounts", "wallet_connect"):
            return await self.connect()
        if method == "wallet_disconnect":
            await self.disconnect()
            return True
        if method == "wallet_switchEthereumChain":
            param = param_list[0] if param_list else None
            chain_id = parse_chain_id(param.get("chainId") if isinstance(param, dict) else param)
            if not chain_id:
                raise ProviderError("Invalid chainId")
            self.chain_id = chain_id
            self.emit("chainChanged", to_hex(chain_id))
            return None
        if method == "personal_sign":
            message = _personal_sign_message(param_list)
            if not message:
                raise ProviderError("Invalid personal_sign payload")
            return await self._sign_message(message)
        if method == "eth_sign":
            message = param_list[1] if len(param_list) > 1 and isinstance(param_list[1], str) else ""
            if not message:
                raise ProviderError("Invalid eth_sign payload")
            return await self._sign_message(decode_message(message))
        if method in ("eth_signTypedData", "eth_signTypedData_v4"):
            typed_data = param_list[1] if len(param_list) > 1 and param_list[1] is not None else (
                param_list[0] if param_list else None
            )
            return await self._sign_typed_data(typed_data)
        if method == "eth_sendTransaction":
            tx = param_list[0] if param_list and isinstance(param_list[0], dict) else {}
            target_chain = parse_chain_id(tx.get("chainId")) or self.chain_id
            return await self._send_intent(target_chain, normalize_calls([tx]))
        if method == "wallet_sendCalls":
            payload = param_list[0] if param_list and isinstance(param_list[0], dict) else {}
            calls = normalize_calls(payload.get("calls") or [])
            if not calls:
                raise ProviderError("No calls provided")
            target_chain = parse_chain_id(payload.get("chainId")) or self.chain_id
            return await self._send_intent(target_chain, calls)
        if method == "wallet_getCapabilities":
            requested = param_list[1] if len(param_list) > 1 else None
            return self._capabilities(requested)
        if method == "wallet_getAssets":
            user = await self.ensure_user()
            return await self.client.get_portfolio(user.username)
        if method == "wallet_getCallsStatus":
            return await self._calls_status(param_list[0] if param_list else None)
        if method == "wallet_getCallsHistory":
            options = param_list[0] if param_list and isinstance(param_list[0], dict) else {}
            return await self._calls_history(options)
        raise ProviderError(f"Unsupported method: {method}")
