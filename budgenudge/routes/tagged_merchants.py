"""
Recurring bill (tagged merchant) endpoints.

Endpoints:
- GET /tagged-merchants - List recurring bills
- POST /tagged-merchants - Tag a merchant as a recurring bill
- GET /tagged-merchants/upcoming - Bills due after today with 7/14/30-day totals
- POST /tagged-merchants/update-predictions - Re-anchor predictions on latest transactions
- POST /tagged-merchants/auto-detect - Detect and tag recurring bills
- PATCH /tagged-merchants/{id} - Update a recurring bill
- DELETE /tagged-merchants/{id} - Remove a recurring bill
"""

import logging
from typing import Annotated, Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Path, status
from postgrest.exceptions import APIError

from budgenudge.auth.dependencies import get_authenticated_user, AuthenticatedUser
from budgenudge.db.client import get_supabase_client
from budgenudge.services.recurring_bill_service import (
    auto_detect_recurring_bills,
    create_tagged_merchant,
    delete_tagged_merchant,
    get_tagged_merchants,
    get_upcoming_bills,
    update_predictions,
    update_tagged_merchant,
)
from budgenudge.schemas.recurring_bills import (
    AutoDetectRequest,
    AutoDetectResponse,
    TaggedMerchantCreateRequest,
    TaggedMerchantCreateResponse,
    TaggedMerchantDeleteResponse,
    TaggedMerchantListResponse,
    TaggedMerchantResponse,
    TaggedMerchantUpdateRequest,
    TaggedMerchantUpdateResponse,
    UpcomingBillsResponse,
    UpdatePredictionsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tagged-merchants", tags=["recurring-bills"])


def _as_float(v: Any) -> float:
    try:
        return float(v) if v is not None else 0.0
    except (ValueError, TypeError):
        return 0.0


def _as_int(v: Any) -> int:
    try:
        return int(v) if v is not None else 0
    except (ValueError, TypeError):
        return 0


def _to_response(row: Dict[str, Any]) -> TaggedMerchantResponse:
    return TaggedMerchantResponse(
        id=str(row.get("id", "")),
        user_id=str(row.get("user_id", "")),
        merchant_name=str(row.get("merchant_name", "")),
        expected_amount=_as_float(row.get("expected_amount")),
        prediction_frequency=str(row.get("prediction_frequency") or "monthly"),
        next_predicted_date=row.get("next_predicted_date"),
        last_transaction_date=row.get("last_transaction_date"),
        confidence_score=_as_int(row.get("confidence_score")),
        is_active=bool(row.get("is_active", True)),
        auto_detected=bool(row.get("auto_detected", False)),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


@router.get(
    "",
    response_model=TaggedMerchantListResponse,
    status_code=status.HTTP_200_OK,
    summary="List recurring bills"
)
async def list_tagged_merchants(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> TaggedMerchantListResponse:
    """List the user's tagged merchants, most confident first."""
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        rows = await get_tagged_merchants(supabase_client, auth_user.user_id)
        merchants = [_to_response(r) for r in rows]
        return TaggedMerchantListResponse(tagged_merchants=merchants, count=len(merchants))

    except Exception as e:
        logger.error(f"Failed to fetch tagged merchants: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "fetch_error", "details": "Failed to fetch tagged merchants"}
        )


@router.post(
    "",
    response_model=TaggedMerchantCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Tag a recurring bill",
    description="""
    Tag a merchant as a recurring bill. The first prediction is one period
    after today. Returns 409 if the merchant is already tagged.
    """
)
async def create_new_tagged_merchant(
    request: TaggedMerchantCreateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> TaggedMerchantCreateResponse:
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        created = await create_tagged_merchant(
            supabase_client=supabase_client,
            user_id=auth_user.user_id,
            merchant_name=request.merchant_name,
            expected_amount=request.expected_amount,
            prediction_frequency=request.prediction_frequency,
            confidence_score=request.confidence_score
        )

        return TaggedMerchantCreateResponse(
            status="CREATED",
            tagged_merchant=_to_response(created),
            message=f"Successfully tagged {request.merchant_name} as recurring"
        )

    except APIError as e:
        if e.code == "23505":  # unique_violation
            logger.warning(f"Merchant already tagged for user {auth_user.user_id}: {request.merchant_name}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"error": "conflict", "details": "Merchant already tagged"}
            )
        logger.error(f"Database error creating tagged merchant: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "create_error", "details": "Failed to create tagged merchant"}
        )
    except Exception as e:
        logger.error(f"Failed to create tagged merchant: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "create_error", "details": "Failed to create tagged merchant"}
        )


@router.get(
    "/upcoming",
    response_model=UpcomingBillsResponse,
    status_code=status.HTTP_200_OK,
    summary="Upcoming recurring bills"
)
async def list_upcoming_bills(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> UpcomingBillsResponse:
    """Active bills predicted after today, soonest first, with window totals."""
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        result = await get_upcoming_bills(supabase_client, auth_user.user_id)
        return UpcomingBillsResponse(
            bills=[_to_response(b) for b in result["bills"]],
            count=result["count"],
            total_next_7_days=result["total_next_7_days"],
            total_next_14_days=result["total_next_14_days"],
            total_next_30_days=result["total_next_30_days"],
        )

    except Exception as e:
        logger.error(f"Failed to fetch upcoming bills: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "fetch_error", "details": "Failed to fetch upcoming bills"}
        )


@router.post(
    "/update-predictions",
    response_model=UpdatePredictionsResponse,
    status_code=status.HTTP_200_OK,
    summary="Refresh bill predictions",
    description="""
    For each active recurring bill, take the most recent matching
    transaction as the new anchor and predict the next charge after today.
    """
)
async def refresh_predictions(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> UpdatePredictionsResponse:
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        result = await update_predictions(supabase_client, auth_user.user_id)
        return UpdatePredictionsResponse(**result)

    except Exception as e:
        logger.error(f"Failed to update predictions: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "update_error", "details": "Failed to update predictions"}
        )


@router.post(
    "/auto-detect",
    response_model=AutoDetectResponse,
    status_code=status.HTTP_200_OK,
    summary="Detect recurring bills",
    description="""
    Analyse the last 90 days of settled transactions over $5 and tag every
    merchant whose charges look recurring with at least the given confidence.
    Merchants that are already tagged are skipped.
    """
)
async def detect_recurring_bills(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    request: Optional[AutoDetectRequest] = None
) -> AutoDetectResponse:
    threshold = request.confidence_threshold if request else 85
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        result = await auto_detect_recurring_bills(
            supabase_client,
            auth_user.user_id,
            confidence_threshold=threshold
        )
        return AutoDetectResponse(confidence_threshold=threshold, **result)

    except Exception as e:
        logger.error(f"Recurring bill detection failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "detection_error", "details": "Failed to detect recurring bills"}
        )


@router.patch(
    "/{merchant_id}",
    response_model=TaggedMerchantUpdateResponse,
    status_code=status.HTTP_200_OK,
    summary="Update a recurring bill"
)
async def update_existing_tagged_merchant(
    merchant_id: Annotated[str, Path(description="Tagged merchant UUID")],
    request: TaggedMerchantUpdateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> TaggedMerchantUpdateResponse:
    updates = request.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "validation_error",
                "details": "At least one field must be provided for update"
            }
        )

    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        updated = await update_tagged_merchant(
            supabase_client,
            auth_user.user_id,
            merchant_id,
            **updates
        )

        if not updated:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"error": "not_found", "details": "Tagged merchant not found"}
            )

        return TaggedMerchantUpdateResponse(
            status="UPDATED",
            tagged_merchant=_to_response(updated),
            message=f"Successfully updated {updated.get('merchant_name')}"
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update tagged merchant {merchant_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "update_error", "details": "Failed to update tagged merchant"}
        )


@router.delete(
    "/{merchant_id}",
    response_model=TaggedMerchantDeleteResponse,
    status_code=status.HTTP_200_OK,
    summary="Remove a recurring bill"
)
async def delete_existing_tagged_merchant(
    merchant_id: Annotated[str, Path(description="Tagged merchant UUID")],
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> TaggedMerchantDeleteResponse:
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        deleted = await delete_tagged_merchant(supabase_client, auth_user.user_id, merchant_id)

        if not deleted:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"error": "not_found", "details": "Tagged merchant not found"}
            )

        return TaggedMerchantDeleteResponse(
            status="DELETED",
            merchant_id=merchant_id,
            message=f"Successfully removed {deleted.get('merchant_name') or 'merchant'} from recurring bills"
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete tagged merchant {merchant_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "delete_error", "details": "Failed to delete tagged merchant"}
        )
