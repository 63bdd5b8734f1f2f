"""
Category pacing tracking endpoints.

Endpoints:
- GET /category-pacing-tracking - List tracked categories
- POST /category-pacing-tracking - Track (or re-enable) a category
- PUT /category-pacing-tracking - Toggle tracking by id or category
- DELETE /category-pacing-tracking - Stop tracking by id or category
- GET /category-pacing-tracking/auto-select - Does the user need auto-selection?
- POST /category-pacing-tracking/auto-select - Pick the top 5 categories
"""

import logging
from typing import Annotated, Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from budgenudge.auth.dependencies import get_authenticated_user, AuthenticatedUser
from budgenudge.db.client import get_supabase_client
from budgenudge.services.pacing_service import (
    auto_select_categories,
    delete_tracking,
    get_auto_selection_status,
    list_tracking,
    update_tracking,
    upsert_tracking,
)
from budgenudge.schemas.pacing import (
    AutoSelectionStatusResponse,
    AutoSelectResponse,
    CategoryTrackingListResponse,
    CategoryTrackingMutationResponse,
    CategoryTrackingResponse,
    CategoryTrackingUpdateRequest,
    CategoryTrackingUpsertRequest,
    TrackingDeleteResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/category-pacing-tracking", tags=["pacing"])


def _to_response(row: Dict[str, Any]) -> CategoryTrackingResponse:
    return CategoryTrackingResponse(
        id=str(row.get("id", "")),
        user_id=str(row.get("user_id", "")),
        ai_category=str(row.get("ai_category", "")),
        is_active=bool(row.get("is_active", True)),
        auto_selected=bool(row.get("auto_selected", False)),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


@router.get(
    "",
    response_model=CategoryTrackingListResponse,
    status_code=status.HTTP_200_OK,
    summary="List tracked categories"
)
async def list_tracked_categories(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> CategoryTrackingListResponse:
    """List the categories included in the user's category pacing SMS."""
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        rows = await list_tracking(supabase_client, auth_user.user_id, "category")
        categories = [_to_response(r) for r in rows]
        return CategoryTrackingListResponse(tracked_categories=categories, count=len(categories))

    except Exception as e:
        logger.error(f"Failed to fetch tracked categories: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "fetch_error", "details": "Failed to fetch tracked categories"}
        )


@router.post(
    "",
    response_model=CategoryTrackingMutationResponse,
    status_code=status.HTTP_200_OK,
    summary="Track a category"
)
async def track_category(
    request: CategoryTrackingUpsertRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> CategoryTrackingMutationResponse:
    """Upsert category tracking."""
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        row = await upsert_tracking(
            supabase_client,
            auth_user.user_id,
            "category",
            request.ai_category,
            is_active=request.is_active
        )
        return CategoryTrackingMutationResponse(
            category_tracking=_to_response(row),
            message=f"Now tracking {request.ai_category} for pacing"
        )

    except Exception as e:
        logger.error(f"Failed to add category to tracking: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "update_error", "details": "Failed to add category to tracking"}
        )


@router.put(
    "",
    response_model=CategoryTrackingMutationResponse,
    status_code=status.HTTP_200_OK,
    summary="Toggle category tracking"
)
async def update_tracked_category(
    request: CategoryTrackingUpdateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> CategoryTrackingMutationResponse:
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        row = await update_tracking(
            supabase_client,
            auth_user.user_id,
            "category",
            is_active=request.is_active,
            tracking_id=request.id,
            name=request.ai_category
        )

        if not row:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"error": "not_found", "details": "Tracked category not found"}
            )

        return CategoryTrackingMutationResponse(
            category_tracking=_to_response(row),
            message=f"Category tracking updated for {row.get('ai_category')}"
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update category tracking: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "update_error", "details": "Failed to update category tracking"}
        )


@router.delete(
    "",
    response_model=TrackingDeleteResponse,
    status_code=status.HTTP_200_OK,
    summary="Stop tracking a category"
)
async def untrack_category(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    id: Annotated[Optional[str], Query(description="Tracking row UUID")] = None,
    ai_category: Annotated[Optional[str], Query(description="Category name")] = None
) -> TrackingDeleteResponse:
    if not id and not ai_category:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "validation_error", "details": "Either id or ai_category is required"}
        )

    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        await delete_tracking(
            supabase_client,
            auth_user.user_id,
            "category",
            tracking_id=id,
            name=ai_category
        )
        return TrackingDeleteResponse(
            message=f"Stopped tracking {ai_category or 'selected category'}"
        )

    except Exception as e:
        logger.error(f"Failed to remove category from tracking: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "delete_error", "details": "Failed to remove category from tracking"}
        )


@router.get(
    "/auto-select",
    response_model=AutoSelectionStatusResponse,
    status_code=status.HTTP_200_OK,
    summary="Check whether category auto-selection is needed"
)
async def category_auto_selection_status(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> AutoSelectionStatusResponse:
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        result = await get_auto_selection_status(supabase_client, auth_user.user_id, "category")
        return AutoSelectionStatusResponse(**result)

    except Exception as e:
        logger.error(f"Failed to check category auto-selection status: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "fetch_error", "details": "Failed to check auto-selection status"}
        )


@router.post(
    "/auto-select",
    response_model=AutoSelectResponse,
    status_code=status.HTTP_200_OK,
    summary="Auto-select categories for pacing",
    description="""
    Pick up to five high-activity categories from the last three months and
    start tracking them. Income, Transfer and Uncategorized are never picked.
    """
)
async def auto_select_category_tracking(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> AutoSelectResponse:
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        result = await auto_select_categories(supabase_client, auth_user.user_id)
        return AutoSelectResponse(**result)

    except Exception as e:
        logger.error(f"Category auto-selection failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "auto_select_error", "details": "Failed to auto-select categories"}
        )
