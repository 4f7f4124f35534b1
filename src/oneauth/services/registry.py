"""Static registry of supported chains and tokens"""
import os
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional

from eth_utils import is_address
from pydantic import BaseModel, Field

NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"

# Decimals used when a symbol is not in the registry for the chain
_FALLBACK_DECIMALS = {"ETH": 18, "WETH": 18, "USDC": 6, "USDT": 6, "USDT0": 6}


class TokenInfo(BaseModel):
    symbol: str
    address: str
    decimals: int


class ChainInfo(BaseModel):
    chain_id: int
    name: str
    explorer_url: str
    testnet: bool = False
    tokens: List[TokenInfo] = Field(default_factory=list)


def _eth() -> TokenInfo:
    return TokenInfo(symbol="ETH", address=NATIVE_TOKEN_ADDRESS, decimals=18)


def _weth(address: str) -> TokenInfo:
    return TokenInfo(symbol="WETH", address=address, decimals=18)


def _usd(symbol: str, address: str) -> TokenInfo:
    return TokenInfo(symbol=symbol, address=address, decimals=6)


CHAINS: Dict[int, ChainInfo] = {
    chain.chain_id: chain
    for chain in [
        ChainInfo(
            chain_id=1,
            name="Ethereum",
            explorer_url="https://etherscan.io",
            tokens=[
                _eth(),
                _usd("USDC", "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"),
                _weth("0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"),
                _usd("USDT", "0xdAC17F958D2ee523a2206206994597C13D831ec7"),
            ],
        ),
        ChainInfo(
            chain_id=10,
            name="OP Mainnet",
            explorer_url="https://optimistic.etherscan.io",
            tokens=[
                _eth(),
                _usd("USDC", "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85"),
                _weth("0x4200000000000000000000000000000000000006"),
            ],
        ),
        ChainInfo(
            chain_id=137,
            name="Polygon",
            explorer_url="https://polygonscan.com",
            tokens=[
                _usd("USDC", "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359"),
                _weth("0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619"),
            ],
        ),
        ChainInfo(
            chain_id=8453,
            name="Base",
            explorer_url="https://basescan.org",
            tokens=[
                _eth(),
                _usd("USDC", "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"),
                _weth("0x4200000000000000000000000000000000000006"),
            ],
        ),
        ChainInfo(
            chain_id=42161,
            name="Arbitrum One",
            explorer_url="https://arbiscan.io",
            tokens=[
                _eth(),
                _usd("USDC", "0xaf88d065e77c8cC2239327C5EDb3A432268e5831"),
                _weth("0x82aF49447D8a07e3bd95BD0d56f35241523fBab1"),
                _usd("USDT", "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9"),
            ],
        ),
        ChainInfo(
            chain_id=84532,
            name="Base Sepolia",
            explorer_url="https://sepolia.basescan.org",
            testnet=True,
            tokens=[
                _eth(),
                _usd("USDC", "0x036CbD53842c5426634e7929541eC2318f3dCF7e"),
            ],
        ),
    ]
}


def _testnets_enabled() -> bool:
    return os.getenv("ONEAUTH_USE_TESTNETS", "").lower() in ("1", "true", "yes")


def get_supported_chain_ids(
    include_testnets: Optional[bool] = None,
    chain_ids: Optional[Iterable[int]] = None,
) -> List[int]:
    """Supported chain ids; testnets only when asked for or ONEAUTH_USE_TESTNETS is set"""
    if include_testnets is None:
        include_testnets = _testnets_enabled()
    ids = [chain_id for chain_id, chain in CHAINS.items() if include_testnets or not chain.testnet]
    if chain_ids is not None:
        wanted = set(chain_ids)
        ids = [chain_id for chain_id in ids if chain_id in wanted]
    return ids


def get_chain_by_id(chain_id: int) -> ChainInfo:
    chain = CHAINS.get(chain_id)
    if chain is None:
        raise ValueError(f"Unsupported chain: {chain_id}")
    return chain


def is_supported_chain(chain_id: int) -> bool:
    return chain_id in CHAINS


def is_testnet(chain_id: int) -> bool:
    chain = CHAINS.get(chain_id)
    return bool(chain and chain.testnet)


def get_chain_name(chain_id: int) -> str:
    chain = CHAINS.get(chain_id)
    return chain.name if chain else f"Chain {chain_id}"


def get_chain_explorer_url(chain_id: int) -> Optional[str]:
    chain = CHAINS.get(chain_id)
    return chain.explorer_url if chain else None


def get_supported_tokens(chain_id: int) -> List[TokenInfo]:
    chain = CHAINS.get(chain_id)
    return list(chain.tokens) if chain else []


def get_supported_token_symbols(chain_id: int) -> List[str]:
    return [token.symbol for token in get_supported_tokens(chain_id)]


def _find_token(chain_id: int, token: str) -> Optional[TokenInfo]:
    for info in get_supported_tokens(chain_id):
        if info.symbol.upper() == token.upper() or info.address.lower() == token.lower():
            return info
    return None


def resolve_token_address(token: str, chain_id: int) -> Optional[str]:
    """Map a symbol to its address on ``chain_id``; addresses pass through"""
    if is_address(token):
        return token
    info = _find_token(chain_id, token)
    return info.address if info else None


def get_token_symbol(address: str, chain_id: int) -> Optional[str]:
    info = _find_token(chain_id, address)
    return info.symbol if info else None


def get_token_decimals(token: str, chain_id: int) -> int:
    info = _find_token(chain_id, token)
    if info is not None:
        return info.decimals
    return _FALLBACK_DECIMALS.get(token.upper(), 18)


def is_token_address_supported(address: str, chain_id: int) -> bool:
    return any(info.address.lower() == address.lower() for info in get_supported_tokens(chain_id))


def parse_units(amount: str, decimals: int) -> int:
    """Convert a human-readable amount to base units, e.g. ("1.5", 6) -> 1500000"""
    try:
        value = Decimal(amount)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount}") from exc
    if value < 0:
        raise ValueError(f"Invalid amount: {amount}")
    return int(value.scaleb(decimals).to_integral_value())
