"""1auth passkey SDK"""
from .adapters.connector import OneAuthConnector
from .adapters.provider import OneAuthProvider
from .client import OneAuthClient
from .core.channel import MessageChannel, MessageEvent
from .core.config import DeveloperConfig, ProviderConfig
from .core.dialog import DialogDriver, DialogSurface
from .core.storage import JsonFileStore, KeyValueStore, MemoryStore
from .services.signer import SignIntentParams, generate_developer_keypair, sign_intent, verify_signed_intent

__all__ = [
    # Client
    "OneAuthClient",
    "ProviderConfig",
    "MessageChannel",
    "MessageEvent",
    "DialogDriver",
    "DialogSurface",
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    # Adapters
    "OneAuthProvider",
    "OneAuthConnector",
    # Server-side signing
    "DeveloperConfig",
    "SignIntentParams",
    "sign_intent",
    "verify_signed_intent",
    "generate_developer_keypair",
]
