"""
Combined pacing auto-selection endpoint.

Endpoints:
- POST /auto-select-pacing - Run merchant and category auto-selection together
"""

import logging
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status

from budgenudge.auth.dependencies import get_authenticated_user, AuthenticatedUser
from budgenudge.db.client import get_supabase_client
from budgenudge.services.pacing_service import run_pacing_auto_selection
from budgenudge.schemas.pacing import PacingAutoSelectResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pacing"])


@router.post(
    "/auto-select-pacing",
    response_model=PacingAutoSelectResponse,
    status_code=status.HTTP_200_OK,
    summary="Auto-select merchants and categories for pacing",
    description="""
    Called after a user connects a bank account. Runs merchant and category
    auto-selection in turn; either half is skipped if the user already has
    tracking for it. If no account is connected yet, nothing runs.
    """
)
async def auto_select_pacing(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> PacingAutoSelectResponse:
    logger.info(f"Starting pacing auto-selection for user {auth_user.user_id}")

    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        result = await run_pacing_auto_selection(supabase_client, auth_user.user_id)
        return PacingAutoSelectResponse(**result)

    except Exception as e:
        logger.error(f"Pacing auto-selection failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "auto_select_error", "details": "Pacing auto-selection failed"}
        )
