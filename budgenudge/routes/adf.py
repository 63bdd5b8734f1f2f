"""
ADF classification endpoint.

Endpoints:
- POST /adf/classify - Classify transactions as fixed or discretionary and summarize
"""

import logging
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status

from budgenudge.auth.dependencies import get_authenticated_user, AuthenticatedUser
from budgenudge.schemas.adf import (
    ADFClassificationModel,
    ADFClassifyRequest,
    ADFClassifyResponse,
    ADFSummary,
)
from budgenudge.services.adf_service import classify_multiple_for_adf, summarize_adf

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/adf", tags=["adf"])


@router.post(
    "/classify",
    response_model=ADFClassifyResponse,
    status_code=status.HTTP_200_OK,
    summary="Classify transactions for ADF",
    description="""
    Classify up to 100 transactions as fixed_expense or discretionary.

    Gemini is used when configured; otherwise (or on any model error) keyword
    rules decide. The summary spreads discretionary spending over `days`.
    """
)
async def classify_transactions(
    request: ADFClassifyRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> ADFClassifyResponse:
    logger.info(f"ADF classification of {len(request.transactions)} transactions for user {auth_user.user_id}")

    try:
        transactions = [t.model_dump() for t in request.transactions]
        results = await classify_multiple_for_adf(transactions)
        summary = summarize_adf(transactions, results, days=request.days)

        return ADFClassifyResponse(
            results=[ADFClassificationModel(**r) for r in results],
            summary=ADFSummary(**summary)
        )

    except Exception as e:
        logger.error(f"ADF classification failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "classification_error", "details": "Failed to classify transactions"}
        )
