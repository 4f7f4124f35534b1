"""Hashing and ABI encoding helpers for passkey signatures"""
from typing import Any, Dict, List, Optional, Union

from eth_abi import encode
from eth_account.messages import encode_typed_data
from eth_utils import keccak, to_checksum_address

from ..models.intents import IntentCall
from ..models.signing import WebAuthnSignature

ETHEREUM_MESSAGE_PREFIX = "\x19Ethereum Signed Message:\n"

# P-256 curve order, used to normalize s into the lower half
P256_N = 0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551
P256_N_DIV_2 = P256_N // 2

WEBAUTHN_AUTH_TYPE = "(bytes,string,uint256,uint256,uint256,uint256)"

_DOMAIN_FIELDS = [
    ("name", "string"),
    ("version", "string"),
    ("chainId", "uint256"),
    ("verifyingContract", "address"),
    ("salt", "bytes32"),
]


def _hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith(("0x", "0X")) else value)


def _to_int(value: Union[int, str]) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16) if value.startswith(("0x", "0X")) else int(value)


def hash_message(message: str) -> str:
    """EIP-191 personal message hash: keccak256(prefix + len + message)"""
    # Length in UTF-16 code units, matching what browser signers prefix
    length = len(message.encode("utf-16-le")) // 2
    prefixed = f"{ETHEREUM_MESSAGE_PREFIX}{length}{message}"
    return "0x" + keccak(text=prefixed).hex()


def verify_message_hash(message: str, signed_hash: Optional[str]) -> bool:
    """Check that ``signed_hash`` is the EIP-191 hash of ``message``.

    This only binds the hash to the message; the P-256 signature itself is
    verified on-chain by the account contract.
    """
    if not signed_hash:
        return False
    return hash_message(message).lower() == signed_hash.lower()


def encode_webauthn_signature(signature: WebAuthnSignature) -> str:
    """ABI-encode a WebAuthn assertion for ERC-1271 verification"""
    s = _to_int(signature.s)
    if s > P256_N_DIV_2:
        s = P256_N - s
    encoded = encode(
        [WEBAUTHN_AUTH_TYPE],
        [(
            _hex_to_bytes(signature.authenticator_data),
            signature.client_data_json,
            signature.challenge_index,
            signature.type_index,
            _to_int(signature.r),
            s,
        )],
    )
    return "0x" + encoded.hex()


def hash_calls(calls: List[IntentCall]) -> str:
    """keccak256 of the ABI-encoded (to, data, value)[] call list"""
    encoded = encode(
        ["(address,bytes,uint256)[]"],
        [[
            (
                to_checksum_address(call.to),
                _hex_to_bytes(call.data or "0x"),
                _to_int(call.value or "0"),
            )
            for call in calls
        ]],
    )
    return "0x" + keccak(encoded).hex()


def hash_typed_data(
    domain: Dict[str, Any],
    types: Dict[str, List[Dict[str, str]]],
    primary_type: str,
    message: Dict[str, Any],
) -> str:
    """EIP-712 digest. The EIP712Domain type is derived from the domain keys when absent."""
    all_types = dict(types)
    if "EIP712Domain" not in all_types:
        all_types["EIP712Domain"] = [
            {"name": name, "type": type_} for name, type_ in _DOMAIN_FIELDS if name in domain
        ]
    signable = encode_typed_data(full_message={
        "types": all_types,
        "primaryType": primary_type,
        "domain": domain,
        "message": message,
    })
    digest = keccak(b"\x19" + signable.version + signable.header + signable.body)
    return "0x" + digest.hex()
