"""Connector exposing OneAuthProvider to wallet-connection libraries"""
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

from ..client import OneAuthClient
from ..models.errors import ProviderError
from .provider import IntentSigner, OneAuthProvider, to_hex

logger = logging.getLogger(__name__)


class ConnectorEmitter(Protocol):
    """Receives ``connect``, ``change`` and ``disconnect`` notifications"""

    def emit(self, event: str, data: Optional[Dict[str, Any]] = None) -> None:
        ...


class OneAuthConnector:
    id = "1auth"
    name = "1auth Passkey"
    type = "wallet"

    def __init__(
        self,
        client: OneAuthClient,
        emitter: ConnectorEmitter,
        chains: Sequence[int],
        chain_id: Optional[int] = None,
        sign_intent: Optional[IntentSigner] = None,
        wait_for_hash: bool = True,
        hash_timeout: Optional[float] = None,
        hash_interval: Optional[float] = None,
    ):
        self.client = client
        self.emitter = emitter
        self.chains = list(chains)
        self.initial_chain_id = chain_id or (self.chains[0] if self.chains else None)
        self._provider_options = {
            "sign_intent": sign_intent,
            "wait_for_hash": wait_for_hash,
            "hash_timeout": hash_timeout,
            "hash_interval": hash_interval,
        }
        self._provider: Optional[OneAuthProvider] = None
        self._subscribed: Dict[str, Any] = {}

    async def get_provider(self, chain_id: Optional[int] = None) -> OneAuthProvider:
        if self._provider is None:
            if not self.initial_chain_id:
                raise ProviderError("No chain configured for 1auth connector")
            self._provider = OneAuthProvider(self.client, self.initial_chain_id, **self._provider_options)
        if chain_id:
            await self._provider.request("wallet_switchEthereumChain", [{"chainId": to_hex(chain_id)}])
        return self._provider

    def _subscribe(self, provider: OneAuthProvider, event: str, listener: Any) -> None:
        if event not in self._subscribed:
            self._subscribed[event] = listener
            provider.on(event, listener)

    def _unsubscribe(self, provider: OneAuthProvider, event: str) -> None:
        listener = self._subscribed.pop(event, None)
        if listener is not None:
            provider.remove_listener(event, listener)

    async def setup(self) -> None:
        provider = await self.get_provider()
        self._subscribe(provider, "connect", self.on_connect)

    async def connect(
        self,
        chain_id: Optional[int] = None,
        is_reconnecting: bool = False,
        with_capabilities: bool = False,
    ) -> Dict[str, Any]:
        if not self.initial_chain_id:
            raise ProviderError("No chain configured for 1auth connector")

        provider = await self.get_provider(chain_id)
        accounts: List[str] = []
        if is_reconnecting:
            try:
                accounts = await self.get_accounts()
            except ProviderError:
                accounts = []
        if not accounts:
            accounts = await provider.request("wallet_connect")

        current_chain_id = await self.get_chain_id()
        if chain_id and current_chain_id != chain_id:
            await provider.request("wallet_switchEthereumChain", [{"chainId": to_hex(chain_id)}])
            current_chain_id = await self.get_chain_id()

        # The provider's connect event is only needed until the first connect
        self._unsubscribe(provider, "connect")
        self._subscribe(provider, "accountsChanged", self.on_accounts_changed)
        self._subscribe(provider, "chainChanged", self.on_chain_changed)
        self._subscribe(provider, "disconnect", self.on_disconnect)

        if with_capabilities:
            return {
                "accounts": [{"address": account, "capabilities": {}} for account in accounts],
                "chainId": current_chain_id,
            }
        return {"accounts": accounts, "chainId": current_chain_id}

    async def disconnect(self) -> None:
        provider = await self.get_provider()
        await provider.disconnect()
        self._unsubscribe(provider, "chainChanged")
        self._unsubscribe(provider, "disconnect")

    async def get_accounts(self) -> List[str]:
        provider = await self.get_provider()
        return await provider.request("eth_accounts")

    async def get_chain_id(self) -> int:
        provider = await self.get_provider()
        return int(await provider.request("eth_chainId"), 16)

    async def is_authorized(self) -> bool:
        try:
            return len(await self.get_accounts()) > 0
        except ProviderError:
            return False

    async def switch_chain(self, chain_id: int) -> int:
        if chain_id not in self.chains:
            raise ProviderError("Chain not configured")
        provider = await self.get_provider()
        await provider.request("wallet_switchEthereumChain", [{"chainId": to_hex(chain_id)}])
        return chain_id

    def on_connect(self, connect_info: Dict[str, Any]) -> None:
        stored = self.client.user_store.get()
        if stored is None:
            return
        self.emitter.emit("connect", {"accounts": [stored.address], "chainId": int(connect_info["chainId"], 16)})

    def on_accounts_changed(self, accounts: List[str]) -> None:
        self.emitter.emit("change", {"accounts": accounts})

    def on_chain_changed(self, chain_id: str) -> None:
        self.emitter.emit("change", {"chainId": int(chain_id, 16)})

    def on_disconnect(self, *_args: Any) -> None:
        self.emitter.emit("disconnect")
