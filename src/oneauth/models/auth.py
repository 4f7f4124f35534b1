"""Authentication and connection result models"""
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from .base import WireModel
from .errors import ErrorDetail
from .signing import WebAuthnSignature


class ThemeConfig(BaseModel):
    """Theme forwarded to the hosted dialog as URL parameters"""
    mode: Optional[Literal["light", "dark", "system"]] = Field(None, description="Color scheme")
    accent: Optional[str] = Field(None, description="Accent color, e.g. '#6366f1'")

    def merged(self, override: Optional["ThemeConfig"]) -> "ThemeConfig":
        if override is None:
            return self
        return self.model_copy(update=override.model_dump(exclude_none=True))


class AuthResult(WireModel):
    """Result of the sign in / sign up dialog"""
    success: bool
    username: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    registered: bool = Field(False, description="True when the ceremony created a new account")
    error: Optional[ErrorDetail] = None


class ConnectResult(WireModel):
    """Result of the lightweight connect dialog"""
    success: bool
    username: Optional[str] = None
    auto_connected: Optional[bool] = None
    action: Optional[Literal["switch", "cancel"]] = Field(
        None,
        description="'switch' asks the caller to open the full auth dialog instead",
    )
    error: Optional[ErrorDetail] = None


class AuthenticateResult(WireModel):
    """Result of authentication with an optional signed challenge"""
    success: bool
    username: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    account_address: Optional[str] = None
    signature: Optional[WebAuthnSignature] = None
    signed_hash: Optional[str] = None
    error: Optional[ErrorDetail] = None
