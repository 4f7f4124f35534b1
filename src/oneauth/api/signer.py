"""Intent signing endpoint for the developer's backend"""
import logging
import re
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from ..core.config import DeveloperConfig
from ..services.signer import SignIntentParams, sign_intent

logger = logging.getLogger(__name__)

router = APIRouter()

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


def get_developer_config(request: Request) -> DeveloperConfig:
    """Developer credentials attached to the app by ``create_signer_app``"""
    return request.app.state.developer_config


def validate_sign_request(body: Any) -> SignIntentParams:
    if not isinstance(body, dict):
        raise HTTPException(400, "targetChain is required and must be a number")

    target_chain = body.get("targetChain")
    if not target_chain or isinstance(target_chain, bool) or not isinstance(target_chain, int):
        raise HTTPException(400, "targetChain is required and must be a number")

    calls = body.get("calls")
    if not calls or not isinstance(calls, list):
        raise HTTPException(400, "calls is required and must be a non-empty array")

    if not body.get("username") and not body.get("accountAddress"):
        raise HTTPException(400, "Either username or accountAddress is required")

    for call in calls:
        to = call.get("to") if isinstance(call, dict) else None
        if not isinstance(to, str) or not ADDRESS_PATTERN.match(to):
            raise HTTPException(400, "Each call must have a valid 'to' address")

    try:
        return SignIntentParams(
            username=body.get("username"),
            account_address=body.get("accountAddress"),
            target_chain=target_chain,
            calls=calls,
            token_requests=body.get("tokenRequests"),
        )
    except ValidationError as exc:
        logger.warning(f"Rejected sign request: {exc}")
        raise HTTPException(400, "Invalid intent parameters")


@router.post("/api/sign-intent")
async def sign_intent_endpoint(request: Request, config: DeveloperConfig = Depends(get_developer_config)) -> Dict[str, Any]:
    """Sign an intent with the developer key so the passkey service trusts its calls"""
    if not config.is_complete:
        logger.error("Missing ONEAUTH_DEVELOPER_ID or ONEAUTH_DEVELOPER_PRIVATE_KEY")
        raise HTTPException(500, "Server misconfiguration: missing developer credentials")

    try:
        body = await request.json()
    except ValueError:
        logger.error("Error signing intent: request body is not JSON")
        raise HTTPException(500, "Failed to sign intent")

    params = validate_sign_request(body)
    try:
        signed = sign_intent(params, config)
    except ValueError as exc:
        logger.error(f"Error signing intent: {exc}", exc_info=True)
        raise HTTPException(500, "Failed to sign intent")
    return signed.to_wire()
