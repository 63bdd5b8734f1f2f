"""
AI merchant tagging endpoints.

Endpoints:
- GET /ai-tagging-status - Tagging coverage for the authenticated user
- POST /cron/auto-ai-tag - Scheduler job that tags untagged transactions (cron secret)
"""

import logging
from datetime import datetime, timezone
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status

from budgenudge.auth.dependencies import get_authenticated_user, verify_cron_secret, AuthenticatedUser
from budgenudge.db.client import get_service_role_client, get_supabase_client
from budgenudge.schemas.tagging import AutoTaggingResponse, TaggingStatusResponse
from budgenudge.services.tagging_service import get_tagging_status, run_auto_tagging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tagging"])


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get(
    "/ai-tagging-status",
    response_model=TaggingStatusResponse,
    status_code=status.HTTP_200_OK,
    summary="AI tagging coverage",
    description="""
    Share of the caller's latest 1000 transactions that carry both an AI
    merchant name and category, with a health rating, recent untagged
    samples, tag cache stats, a 7-day trend and recommendations.
    """
)
async def ai_tagging_status(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> TaggingStatusResponse:
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        report = await get_tagging_status(supabase_client, auth_user.user_id)
        return TaggingStatusResponse(success=True, timestamp=_now_iso(), **report)

    except Exception as e:
        logger.error(f"AI tagging status check failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "status_error", "details": "Status check failed"}
        )


@router.post(
    "/cron/auto-ai-tag",
    response_model=AutoTaggingResponse,
    status_code=status.HTTP_200_OK,
    summary="Run AI auto-tagging (cron)",
    description="""
    Tag up to 500 untagged transactions from the last 90 days across all
    users. Requires `Authorization: Bearer <CRON_SECRET>`.
    """,
    dependencies=[Depends(verify_cron_secret)]
)
async def cron_auto_ai_tag() -> AutoTaggingResponse:
    logger.info("Cron: auto AI tagging started")

    try:
        summary = await run_auto_tagging(get_service_role_client())
        return AutoTaggingResponse(timestamp=_now_iso(), **summary)

    except Exception as e:
        logger.error(f"Auto AI tagging failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "tagging_error", "details": "Auto AI tagging failed"}
        )
