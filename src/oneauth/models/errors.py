"""Error models and exceptions for the 1auth SDK"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Stable error codes carried by failed results"""
    USER_REJECTED = "USER_REJECTED"
    USER_CANCELLED = "USER_CANCELLED"
    POPUP_BLOCKED = "POPUP_BLOCKED"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_OPTIONS = "INVALID_OPTIONS"
    INVALID_CHAIN = "INVALID_CHAIN"
    INVALID_TOKEN = "INVALID_TOKEN"
    PREPARE_FAILED = "PREPARE_FAILED"
    EXECUTE_FAILED = "EXECUTE_FAILED"
    STATUS_FAILED = "STATUS_FAILED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    HASH_TIMEOUT = "HASH_TIMEOUT"
    SIGNING_FAILED = "SIGNING_FAILED"
    EXPIRED = "EXPIRED"
    UNKNOWN = "UNKNOWN"


class ErrorDetail(BaseModel):
    """Structured error attached to a failed result"""
    code: str = Field(ErrorCode.UNKNOWN.value, description="Error code, usually one of ErrorCode")
    message: str = Field("", description="Human-readable error message")

    @classmethod
    def of(cls, code: ErrorCode, message: str) -> "ErrorDetail":
        return cls(code=code.value, message=message)


class ErrorResponse(BaseModel):
    """JSON error body returned by the intent signer endpoint"""
    error: str = Field(..., description="Human-readable error message")


class OneAuthError(Exception):
    """Base class for errors raised by the SDK"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ApiError(OneAuthError):
    """The passkey service answered with a non-2xx status"""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code

    def __str__(self) -> str:
        return f"{self.status_code}: {self.message}"


class NetworkError(OneAuthError):
    """The request never produced a usable response"""


class ProviderError(OneAuthError):
    """Raised by the EIP-1193 provider for rejected or unsupported requests"""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code
