"""Server-side intent signing with the developer's Ed25519 key"""
import base64
import json
import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from pydantic import BaseModel, Field

from ..core.config import DeveloperConfig
from ..models.intents import IntentCall, SignedIntent

logger = logging.getLogger(__name__)


class SignIntentParams(BaseModel):
    """What the developer's backend is willing to sign"""
    username: Optional[str] = None
    account_address: Optional[str] = None
    target_chain: int
    calls: List[IntentCall]
    token_requests: Optional[List[Dict[str, str]]] = Field(None, description="[{token, amount}] with amount as a string")


def create_canonical_message(
    merchant_id: str,
    target_chain: int,
    calls: List[IntentCall],
    nonce: str,
    expires_at: int,
    username: Optional[str] = None,
    account_address: Optional[str] = None,
) -> str:
    """Serialize the signed fields deterministically.

    Addresses and calldata are lower-cased so the message does not depend on
    checksum casing. Absent user identifiers are omitted, matching
    ``JSON.stringify`` on the service side.
    """
    data: Dict[str, Any] = {
        "merchantId": merchant_id,
        "targetChain": target_chain,
        "calls": [
            {
                "to": call.to.lower(),
                "data": (call.data or "0x").lower(),
                "value": call.value or "0",
                "label": call.label or "",
                "sublabel": call.sublabel or "",
            }
            for call in calls
        ],
    }
    if username is not None:
        data["username"] = username
    if account_address is not None:
        data["accountAddress"] = account_address.lower()
    data["nonce"] = nonce
    data["expiresAt"] = expires_at
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def _load_private_key(private_key_b64: str) -> Ed25519PrivateKey:
    key = serialization.load_der_private_key(base64.b64decode(private_key_b64), password=None)
    if not isinstance(key, Ed25519PrivateKey):
        raise ValueError("Private key is not an Ed25519 key")
    return key


def _load_public_key(public_key_b64: str) -> Ed25519PublicKey:
    key = serialization.load_der_public_key(base64.b64decode(public_key_b64))
    if not isinstance(key, Ed25519PublicKey):
        raise ValueError("Public key is not an Ed25519 key")
    return key


def sign_intent(params: SignIntentParams, config: DeveloperConfig) -> SignedIntent:
    developer_id = config.resolved_developer_id
    if not developer_id or not config.private_key:
        raise ValueError("Missing developerId (clientId) or privateKey in config")
    if not params.username and not params.account_address:
        raise ValueError("Either username or accountAddress is required")
    if not params.target_chain or not params.calls:
        raise ValueError("targetChain and calls are required")

    nonce = str(uuid.uuid4())
    expires_at = int(time.time() * 1000) + config.expiry_seconds * 1000
    message = create_canonical_message(
        merchant_id=developer_id,
        target_chain=params.target_chain,
        calls=params.calls,
        nonce=nonce,
        expires_at=expires_at,
        username=params.username,
        account_address=params.account_address,
    )
    signature = _load_private_key(config.private_key).sign(message.encode("utf-8"))
    logger.debug(f"Signed intent {nonce} for chain {params.target_chain}")

    return SignedIntent(
        merchant_id=developer_id,
        developer_id=developer_id,
        target_chain=params.target_chain,
        calls=params.calls,
        username=params.username,
        account_address=params.account_address,
        nonce=nonce,
        expires_at=expires_at,
        signature=base64.b64encode(signature).decode("ascii"),
        token_requests=params.token_requests,
    )


def verify_signed_intent(intent: SignedIntent, public_key_b64: str, now_ms: Optional[int] = None) -> bool:
    """Check the signature and expiry of a signed intent against an SPKI DER public key"""
    merchant_id = intent.resolved_merchant_id
    if not merchant_id:
        return False
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    if intent.expires_at <= now_ms:
        return False

    message = create_canonical_message(
        merchant_id=merchant_id,
        target_chain=intent.target_chain,
        calls=intent.calls,
        nonce=intent.nonce,
        expires_at=intent.expires_at,
        username=intent.username,
        account_address=intent.account_address,
    )
    try:
        _load_public_key(public_key_b64).verify(base64.b64decode(intent.signature), message.encode("utf-8"))
    except (InvalidSignature, ValueError):
        return False
    return True


def generate_developer_keypair() -> Tuple[str, str]:
    """Return (private_key, public_key) as base64 PKCS#8 / SPKI DER"""
    private_key = Ed25519PrivateKey.generate()
    private_der = private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_der = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return base64.b64encode(private_der).decode("ascii"), base64.b64encode(public_der).decode("ascii")
