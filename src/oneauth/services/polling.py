"""Bounded polling against the intent status endpoint"""
import asyncio
import logging
from typing import Callable, Optional
from urllib.parse import quote

from pydantic import ValidationError

from ..core.http import ApiClient
from ..models.errors import NetworkError, OneAuthError
from ..models.intents import CloseOn, IntentStatusResponse, OrchestratorStatus, meets_close_on

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str, Optional[str]], None]


class StatusPoller:
    """Polls ``GET /api/intent/status/{id}``.

    Transport and HTTP errors never end a poll early; only a terminal status,
    the attempt bound or the timeout do.
    """

    def __init__(
        self,
        api: ApiClient,
        interval: float,
        max_attempts: int,
        hash_timeout: float,
        hash_interval: float,
    ):
        self.api = api
        self.interval = interval
        self.max_attempts = max_attempts
        self.hash_timeout = hash_timeout
        self.hash_interval = hash_interval

    async def fetch_status(self, intent_id: str) -> IntentStatusResponse:
        data = await self.api.get(
            f"/api/intent/status/{quote(intent_id, safe='')}",
            default_error="Failed to get intent status",
        )
        try:
            return IntentStatusResponse.model_validate(data)
        except ValidationError as exc:
            raise NetworkError(f"Malformed status response for intent {intent_id}") from exc

    async def poll_until_settled(
        self,
        intent_id: str,
        close_on: CloseOn,
        on_change: Optional[StatusCallback] = None,
        last_status: str = "pending",
    ) -> Optional[IntentStatusResponse]:
        """Poll until FAILED/EXPIRED or the close-on threshold, up to ``max_attempts``.

        ``on_change`` receives each newly observed (lower-cased) status in order.
        Returns the last successful response, or None if none arrived.
        """
        latest: Optional[IntentStatusResponse] = None
        for attempt in range(self.max_attempts):
            try:
                latest = await self.fetch_status(intent_id)
            except OneAuthError as exc:
                logger.warning(f"Failed to poll status of intent {intent_id} (attempt {attempt + 1}): {exc}")
            else:
                status = latest.status.lower()
                if status != last_status:
                    last_status = status
                    if on_change is not None:
                        on_change(status, latest.transaction_hash)
                remote = OrchestratorStatus.parse(status)
                if remote is not None and (remote.is_terminal_failure or meets_close_on(remote, close_on)):
                    return latest
            if attempt + 1 < self.max_attempts:
                await asyncio.sleep(self.interval)
        logger.info(f"Stopped polling intent {intent_id} after {self.max_attempts} attempts")
        return latest

    async def wait_for_hash(
        self,
        intent_id: str,
        timeout: Optional[float] = None,
        interval: Optional[float] = None,
    ) -> Optional[str]:
        """Return the transaction hash once known; None on failure, expiry or timeout"""
        timeout = self.hash_timeout if timeout is None else timeout
        interval = self.hash_interval if interval is None else interval
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while loop.time() < deadline:
            try:
                status = await self.fetch_status(intent_id)
            except OneAuthError as exc:
                logger.debug(f"Hash poll for intent {intent_id} failed, retrying: {exc}")
            else:
                if status.transaction_hash:
                    return status.transaction_hash
                remote = OrchestratorStatus.parse(status.status)
                if remote is not None and remote.is_terminal_failure:
                    return None
            await asyncio.sleep(interval)

        logger.warning(f"Timed out after {timeout}s waiting for hash of intent {intent_id}")
        return None
