"""1auth SDK Pydantic models"""

from .errors import ErrorCode, ErrorDetail, ErrorResponse, OneAuthError, ApiError, NetworkError, ProviderError
from .auth import ThemeConfig, AuthResult, ConnectResult, AuthenticateResult
from .signing import (
    WebAuthnSignature,
    PasskeyCredentials,
    PasskeyCredential,
    SigningRequestOptions,
    SigningResult,
    SignMessageOptions,
    SignMessageResult,
    SignTypedDataOptions,
    SignTypedDataResult,
    CreateSigningRequestResponse,
    SigningRequestStatus,
)
from .intents import (
    IntentStatus,
    OrchestratorStatus,
    CloseOn,
    IntentCall,
    IntentTokenRequest,
    SignedIntent,
    SendIntentOptions,
    SendIntentResult,
    BatchIntent,
    SendBatchIntentOptions,
    BatchIntentItemResult,
    SendBatchIntentResult,
    SendSwapOptions,
    SendSwapResult,
    SwapQuote,
    IntentHistoryOptions,
    IntentHistoryItem,
    IntentHistoryResult,
    meets_close_on,
    to_local_status,
)
from .messages import DialogMessage, parse_dialog_message

__all__ = [
    # Errors
    "ErrorCode", "ErrorDetail", "ErrorResponse", "OneAuthError", "ApiError", "NetworkError", "ProviderError",
    # Auth
    "ThemeConfig", "AuthResult", "ConnectResult", "AuthenticateResult",
    # Signing
    "WebAuthnSignature", "PasskeyCredentials", "PasskeyCredential", "SigningRequestOptions", "SigningResult",
    "SignMessageOptions", "SignMessageResult", "SignTypedDataOptions", "SignTypedDataResult",
    "CreateSigningRequestResponse", "SigningRequestStatus",
    # Intents
    "IntentStatus", "OrchestratorStatus", "CloseOn", "IntentCall", "IntentTokenRequest", "SignedIntent",
    "SendIntentOptions", "SendIntentResult", "BatchIntent", "SendBatchIntentOptions", "BatchIntentItemResult",
    "SendBatchIntentResult", "SendSwapOptions", "SendSwapResult", "SwapQuote",
    "IntentHistoryOptions", "IntentHistoryItem", "IntentHistoryResult", "meets_close_on", "to_local_status",
    # Messages
    "DialogMessage", "parse_dialog_message",
]
