"""
Merchant pacing tracking endpoints.

Endpoints:
- GET /merchant-pacing-tracking - List tracked merchants
- POST /merchant-pacing-tracking - Track (or re-enable) a merchant
- PUT /merchant-pacing-tracking - Toggle tracking by id or merchant name
- DELETE /merchant-pacing-tracking - Stop tracking by id or merchant name
- GET /merchant-pacing-tracking/auto-select - Does the user need auto-selection?
- POST /merchant-pacing-tracking/auto-select - Pick the top 3 merchants
"""

import logging
from typing import Annotated, Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from budgenudge.auth.dependencies import get_authenticated_user, AuthenticatedUser
from budgenudge.db.client import get_supabase_client
from budgenudge.services.pacing_service import (
    auto_select_merchants,
    delete_tracking,
    get_auto_selection_status,
    list_tracking,
    update_tracking,
    upsert_tracking,
)
from budgenudge.schemas.pacing import (
    AutoSelectionStatusResponse,
    AutoSelectResponse,
    MerchantTrackingListResponse,
    MerchantTrackingMutationResponse,
    MerchantTrackingResponse,
    MerchantTrackingUpdateRequest,
    MerchantTrackingUpsertRequest,
    TrackingDeleteResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/merchant-pacing-tracking", tags=["pacing"])


def _to_response(row: Dict[str, Any]) -> MerchantTrackingResponse:
    return MerchantTrackingResponse(
        id=str(row.get("id", "")),
        user_id=str(row.get("user_id", "")),
        ai_merchant_name=str(row.get("ai_merchant_name", "")),
        is_active=bool(row.get("is_active", True)),
        auto_selected=bool(row.get("auto_selected", False)),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def _server_error(error: str, details: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": error, "details": details}
    )


@router.get(
    "",
    response_model=MerchantTrackingListResponse,
    status_code=status.HTTP_200_OK,
    summary="List tracked merchants"
)
async def list_tracked_merchants(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> MerchantTrackingListResponse:
    """List the merchants included in the user's merchant pacing SMS."""
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        rows = await list_tracking(supabase_client, auth_user.user_id, "merchant")
        merchants = [_to_response(r) for r in rows]
        return MerchantTrackingListResponse(tracked_merchants=merchants, count=len(merchants))

    except Exception as e:
        logger.error(f"Failed to fetch tracked merchants: {e}", exc_info=True)
        raise _server_error("fetch_error", "Failed to fetch tracked merchants")


@router.post(
    "",
    response_model=MerchantTrackingMutationResponse,
    status_code=status.HTTP_200_OK,
    summary="Track a merchant",
    description="""
    Add a merchant to pacing tracking, or update its active flag if it is
    already tracked. Manually added merchants are never marked auto_selected.
    """
)
async def track_merchant(
    request: MerchantTrackingUpsertRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> MerchantTrackingMutationResponse:
    """Upsert merchant tracking."""
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        row = await upsert_tracking(
            supabase_client,
            auth_user.user_id,
            "merchant",
            request.ai_merchant_name,
            is_active=request.is_active
        )
        state = "enabled" if request.is_active else "disabled"
        return MerchantTrackingMutationResponse(
            merchant_tracking=_to_response(row),
            message=f"Merchant tracking {state} for {request.ai_merchant_name}"
        )

    except Exception as e:
        logger.error(f"Failed to upsert merchant tracking: {e}", exc_info=True)
        raise _server_error("update_error", "Failed to update merchant tracking")


@router.put(
    "",
    response_model=MerchantTrackingMutationResponse,
    status_code=status.HTTP_200_OK,
    summary="Toggle merchant tracking"
)
async def update_tracked_merchant(
    request: MerchantTrackingUpdateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> MerchantTrackingMutationResponse:
    """Enable or disable tracking for an already tracked merchant."""
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        row = await update_tracking(
            supabase_client,
            auth_user.user_id,
            "merchant",
            is_active=request.is_active,
            tracking_id=request.id,
            name=request.ai_merchant_name
        )

        if not row:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"error": "not_found", "details": "Tracked merchant not found"}
            )

        return MerchantTrackingMutationResponse(
            merchant_tracking=_to_response(row),
            message=f"Merchant tracking updated for {row.get('ai_merchant_name')}"
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update merchant tracking: {e}", exc_info=True)
        raise _server_error("update_error", "Failed to update merchant tracking")


@router.delete(
    "",
    response_model=TrackingDeleteResponse,
    status_code=status.HTTP_200_OK,
    summary="Stop tracking a merchant"
)
async def untrack_merchant(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    id: Annotated[Optional[str], Query(description="Tracking row UUID")] = None,
    ai_merchant_name: Annotated[Optional[str], Query(description="Merchant name")] = None
) -> TrackingDeleteResponse:
    """Remove merchant tracking by id or merchant name."""
    if not id and not ai_merchant_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "validation_error",
                "details": "Either id or ai_merchant_name is required"
            }
        )

    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        await delete_tracking(
            supabase_client,
            auth_user.user_id,
            "merchant",
            tracking_id=id,
            name=ai_merchant_name
        )
        return TrackingDeleteResponse(
            message=f"Merchant tracking removed for {ai_merchant_name or 'selected merchant'}"
        )

    except Exception as e:
        logger.error(f"Failed to delete merchant tracking: {e}", exc_info=True)
        raise _server_error("delete_error", "Failed to delete merchant tracking")


@router.get(
    "/auto-select",
    response_model=AutoSelectionStatusResponse,
    status_code=status.HTTP_200_OK,
    summary="Check whether merchant auto-selection is needed"
)
async def merchant_auto_selection_status(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> AutoSelectionStatusResponse:
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        result = await get_auto_selection_status(supabase_client, auth_user.user_id, "merchant")
        return AutoSelectionStatusResponse(**result)

    except Exception as e:
        logger.error(f"Failed to check merchant auto-selection status: {e}", exc_info=True)
        raise _server_error("fetch_error", "Failed to check auto-selection status")


@router.post(
    "/auto-select",
    response_model=AutoSelectResponse,
    status_code=status.HTTP_200_OK,
    summary="Auto-select merchants for pacing",
    description="""
    Pick up to three high-activity merchants and start tracking them.

    A merchant qualifies with at least $50 average monthly spend, a
    transaction at least every 30 days on average and 3+ transactions.
    Does nothing (success=false) if the user already tracks merchants.
    """
)
async def auto_select_merchant_tracking(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> AutoSelectResponse:
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        result = await auto_select_merchants(supabase_client, auth_user.user_id)
        return AutoSelectResponse(**result)

    except Exception as e:
        logger.error(f"Merchant auto-selection failed: {e}", exc_info=True)
        raise _server_error("auto_select_error", "Failed to save auto-selected merchants")
