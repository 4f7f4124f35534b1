"""Signing request and result models"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from .base import WireModel
from .errors import ErrorCode, ErrorDetail


class WebAuthnSignature(WireModel):
    """Raw WebAuthn assertion returned by the passkey"""
    authenticator_data: str
    client_data_json: str = Field(..., alias="clientDataJSON")
    challenge_index: int
    type_index: int
    r: str
    s: str
    top_origin: Optional[str] = None


class PasskeyCredentials(WireModel):
    """Public part of the passkey that produced a signature"""
    credential_id: str
    public_key_x: str
    public_key_y: str


class PasskeyCredential(WireModel):
    """A passkey registered for a user"""
    id: str
    device_name: Optional[str] = None
    public_key_x: str
    public_key_y: str


class SigningRequestOptions(WireModel):
    challenge: str
    username: str
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    transaction: Optional[Dict[str, Any]] = None


class SigningResult(WireModel):
    """Outcome of a signing dialog.

    A successful result carries either a signature (the host executes) or an
    intent id (the dialog already executed the intent server-side).
    """
    success: bool
    request_id: Optional[str] = None
    signature: Optional[WebAuthnSignature] = None
    passkey: Optional[PasskeyCredentials] = None
    signed_hash: Optional[str] = None
    intent_id: Optional[str] = None
    error: Optional[ErrorDetail] = None

    @classmethod
    def failed(cls, code: ErrorCode, message: str, request_id: Optional[str] = None) -> "SigningResult":
        return cls(success=False, request_id=request_id, error=ErrorDetail.of(code, message))


class SignMessageOptions(WireModel):
    username: str
    message: str
    challenge: Optional[str] = Field(None, description="Defaults to the message itself")
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class SignMessageResult(WireModel):
    success: bool
    signature: Optional[WebAuthnSignature] = None
    signed_message: Optional[str] = None
    signed_hash: Optional[str] = None
    passkey: Optional[PasskeyCredentials] = None
    error: Optional[ErrorDetail] = None


class SignTypedDataOptions(WireModel):
    """EIP-712 typed data to sign"""
    username: str
    domain: Dict[str, Any]
    types: Dict[str, List[Dict[str, str]]]
    primary_type: str
    message: Dict[str, Any]
    description: Optional[str] = None


class SignTypedDataResult(WireModel):
    success: bool
    signature: Optional[WebAuthnSignature] = None
    signed_hash: Optional[str] = None
    passkey: Optional[PasskeyCredentials] = None
    error: Optional[ErrorDetail] = None


class CreateSigningRequestResponse(WireModel):
    request_id: str
    nonce: Optional[str] = None
    signing_url: Optional[str] = None
    expires_at: Optional[str] = None


class SigningRequestStatus(WireModel):
    id: str
    status: Literal["PENDING", "COMPLETED", "REJECTED", "EXPIRED", "FAILED"]
    signature: Optional[WebAuthnSignature] = None
    error: Optional[ErrorDetail] = None
