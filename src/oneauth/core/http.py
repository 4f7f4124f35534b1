"""HTTP access to the passkey service"""
import logging
from typing import Any, Dict, Optional

import httpx

from ..models.errors import ApiError, NetworkError

logger = logging.getLogger(__name__)


def error_message(response: httpx.Response, default: str) -> str:
    """Pull ``error`` (or ``message``) out of an error body"""
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        return body.get("error") or body.get("message") or default
    return default


class ApiClient:
    """Thin JSON client over ``httpx.AsyncClient``.

    Raises ``ApiError`` for non-2xx responses and ``NetworkError`` when no
    usable response arrives. Adds ``x-client-id`` when a client id is set.
    """

    def __init__(
        self,
        base_url: str,
        client_id: Optional[str] = None,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        return {"x-client-id": self.client_id} if self.client_id else {}

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        default_error: str = "Request failed",
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.request(
                method,
                url,
                json=body,
                params=params or None,
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            logger.warning(f"{method} {path} failed: {exc!r}")
            raise NetworkError(str(exc) or "Network error") from exc

        if response.is_error:
            message = error_message(response, default_error)
            logger.warning(f"{method} {path} returned {response.status_code}: {message}")
            raise ApiError(response.status_code, message)

        try:
            return response.json()
        except ValueError as exc:
            raise NetworkError(f"Invalid JSON in response to {method} {path}") from exc

    async def get(self, path: str, *, params: Optional[Dict[str, str]] = None, default_error: str = "Request failed") -> Any:
        return await self.request("GET", path, params=params, default_error=default_error)

    async def post(self, path: str, body: Dict[str, Any], *, default_error: str = "Request failed") -> Any:
        return await self.request("POST", path, body=body, default_error=default_error)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
