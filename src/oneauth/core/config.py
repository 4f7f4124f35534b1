"""Configuration for the SDK client and the intent signer"""
import os
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from ..constants import (
    DEFAULT_PROVIDER_URL,
    DEFAULT_STORAGE_KEY,
    HASH_INTERVAL,
    HASH_TIMEOUT,
    POPUP_HEIGHT,
    POPUP_WIDTH,
    REQUEST_TIMEOUT,
    SIGNED_INTENT_EXPIRY_SECONDS,
    STATUS_POLL_INTERVAL,
    STATUS_POLL_MAX_ATTEMPTS,
)
from ..models.auth import ThemeConfig
from .channel import origin_of


class ProviderConfig(BaseModel):
    """Client configuration.

    ``dialog_url`` is where the hosted dialog pages live and defaults to
    ``provider_url``. Every inbound message is checked against its origin.
    """
    provider_url: str = Field(DEFAULT_PROVIDER_URL, description="Passkey service base URL")
    client_id: Optional[str] = Field(None, description="Application id sent as x-client-id")
    dialog_url: Optional[str] = Field(None, description="Hosted dialog base URL")
    redirect_url: Optional[str] = Field(None, description="Default return URL for redirect signing")
    theme: ThemeConfig = Field(default_factory=ThemeConfig)
    storage_key: str = Field(DEFAULT_STORAGE_KEY, description="Key holding the stored user")
    request_timeout: float = REQUEST_TIMEOUT
    status_poll_interval: float = Field(STATUS_POLL_INTERVAL, description="Seconds between status polls")
    status_poll_max_attempts: int = Field(STATUS_POLL_MAX_ATTEMPTS, description="Status polls before giving up")
    hash_timeout: float = Field(HASH_TIMEOUT, description="Default seconds to wait for a transaction hash")
    hash_interval: float = Field(HASH_INTERVAL, description="Default seconds between hash polls")
    popup_width: int = POPUP_WIDTH
    popup_height: int = POPUP_HEIGHT

    @model_validator(mode="after")
    def _normalize_urls(self) -> "ProviderConfig":
        self.provider_url = (self.provider_url or DEFAULT_PROVIDER_URL).rstrip("/")
        self.dialog_url = (self.dialog_url or self.provider_url).rstrip("/")
        return self

    @property
    def dialog_origin(self) -> str:
        return origin_of(self.dialog_url)

    @classmethod
    def from_env(cls, **overrides: Any) -> "ProviderConfig":
        """Build a config from ONEAUTH_* environment variables (and .env)"""
        load_dotenv()
        values: dict[str, Any] = {
            "provider_url": os.getenv("ONEAUTH_PROVIDER_URL", DEFAULT_PROVIDER_URL),
            "client_id": os.getenv("ONEAUTH_CLIENT_ID"),
            "dialog_url": os.getenv("ONEAUTH_DIALOG_URL"),
            "redirect_url": os.getenv("ONEAUTH_REDIRECT_URL"),
            "storage_key": os.getenv("ONEAUTH_STORAGE_KEY", DEFAULT_STORAGE_KEY),
            "request_timeout": float(os.getenv("ONEAUTH_REQUEST_TIMEOUT", str(REQUEST_TIMEOUT))),
            "status_poll_interval": float(os.getenv("ONEAUTH_STATUS_POLL_INTERVAL", str(STATUS_POLL_INTERVAL))),
            "status_poll_max_attempts": int(os.getenv("ONEAUTH_STATUS_POLL_MAX_ATTEMPTS", str(STATUS_POLL_MAX_ATTEMPTS))),
            "hash_timeout": float(os.getenv("ONEAUTH_HASH_TIMEOUT", str(HASH_TIMEOUT))),
            "hash_interval": float(os.getenv("ONEAUTH_HASH_INTERVAL", str(HASH_INTERVAL))),
            "theme": ThemeConfig(
                mode=os.getenv("ONEAUTH_THEME") or None,
                accent=os.getenv("ONEAUTH_ACCENT") or None,
            ),
        }
        values.update(overrides)
        return cls(**values)


class DeveloperConfig(BaseModel):
    """Credentials used to sign intents on the developer's server"""
    developer_id: Optional[str] = Field(None, description="Developer/app id (the dashboard clientId)")
    merchant_id: Optional[str] = Field(None, description="Deprecated alias for developer_id")
    private_key: Optional[str] = Field(None, description="Base64 PKCS#8 DER Ed25519 private key")
    expiry_seconds: int = Field(SIGNED_INTENT_EXPIRY_SECONDS, description="Signed intent lifetime")

    @property
    def resolved_developer_id(self) -> Optional[str]:
        return self.developer_id or self.merchant_id

    @property
    def is_complete(self) -> bool:
        return bool(self.resolved_developer_id and self.private_key)

    @classmethod
    def from_env(cls) -> "DeveloperConfig":
        load_dotenv()
        return cls(
            developer_id=os.getenv("ONEAUTH_DEVELOPER_ID"),
            private_key=os.getenv("ONEAUTH_DEVELOPER_PRIVATE_KEY"),
            expiry_seconds=int(os.getenv("ONEAUTH_INTENT_EXPIRY_SECONDS", str(SIGNED_INTENT_EXPIRY_SECONDS))),
        )
