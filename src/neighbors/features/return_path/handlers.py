"""API handler for issuing continuation tokens."""

import logging

from fastapi import APIRouter, Depends, Request

from src.neighbors.features.onboarding.dependencies import get_return_path_router
from src.neighbors.features.return_path.models import ContinuationRequest, ContinuationResponse
from src.neighbors.features.return_path.router import ReturnPathRouter
from src.neighbors.services.rate_limiter import public_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/continuation", response_model=ContinuationResponse)
@public_rate_limit
async def create_continuation(
    request: Request,
    body: ContinuationRequest,
    return_paths: ReturnPathRouter = Depends(get_return_path_router),
) -> ContinuationResponse:
    """
    Issue a continuation token before the visitor leaves to authenticate.

    The client passes the token through the auth redirect and hands it back
    to /auth/callback (or the signup form). Invalid return paths are dropped;
    the rest of the payload is still carried.
    """
    token = return_paths.store_return_path(
        body.return_path,
        pending_invite_code=body.pending_invite_code,
        pending_inviter_id=body.pending_inviter_id,
        prefill_address=body.prefill_address,
        selected_community=body.selected_community,
    )
    accepted = bool(body.return_path) and return_paths.is_valid_return_path(body.return_path)
    return ContinuationResponse(
        continuation=token,
        expires_in=return_paths.continuations.ttl_seconds,
        return_path_accepted=accepted,
    )
