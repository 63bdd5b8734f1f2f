"""
SMS endpoints.

Endpoints:
- POST /sms/preview - Render a template for the authenticated user
- POST /sms/send-template - Render, dedup-check and queue a template
- POST /sms/dedup-check - Has this template already gone to my phone today?
- GET /sms/history - Sends logged for my phone number
- GET /sms/preferences - Per-type SMS preferences (defaults created on first read)
- PUT /sms/preferences - Update preferences
- GET /sms/scheduled - List queued messages
- POST /sms/scheduled - Queue a message for later
- DELETE /sms/scheduled/{id} - Cancel a pending message

Every endpoint acts on the caller's own phone number (from their
preferences); a phone number is never taken from the request for sends.
"""

import logging
from typing import Annotated, Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from budgenudge.auth.dependencies import get_authenticated_user, AuthenticatedUser
from budgenudge.db.client import get_service_role_client, get_supabase_client
from budgenudge.services.scheduled_sms_service import (
    SCHEDULED_SMS_STATUSES,
    cancel_scheduled_sms,
    enqueue_sms_now,
    list_scheduled_sms,
    schedule_sms,
)
from budgenudge.services.sms_dedup_service import (
    SMSSendRecord,
    can_send_sms,
    check_and_log_sms,
    get_sms_send_history,
)
from budgenudge.services.sms_preferences_service import (
    get_sms_preferences,
    get_user_phone_number,
    update_sms_preferences,
)
from budgenudge.services.sms_template_service import generate_sms_message
from budgenudge.schemas.sms import (
    CancelScheduledSMSResponse,
    ScheduledSMSListResponse,
    ScheduledSMSResponse,
    ScheduleSMSRequest,
    ScheduleSMSResponse,
    SMSDedupCheckRequest,
    SMSDedupCheckResponse,
    SMSHistoryResponse,
    SMSPreferenceListResponse,
    SMSPreferenceResponse,
    SMSPreferencesUpdateRequest,
    SMSPreferencesUpdateResponse,
    SMSPreviewRequest,
    SMSPreviewResponse,
    SMSSendTemplateRequest,
    SMSSendTemplateResponse,
)
from budgenudge.utils.logging import mask_phone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sms", tags=["sms"])


def _to_preference(row: Dict[str, Any]) -> SMSPreferenceResponse:
    return SMSPreferenceResponse(
        id=str(row["id"]) if row.get("id") is not None else None,
        sms_type=str(row.get("sms_type", "")),
        enabled=row.get("enabled") is not False,
        frequency=str(row.get("frequency") or "daily"),
        phone_number=row.get("phone_number"),
    )


def _to_scheduled(row: Dict[str, Any]) -> ScheduledSMSResponse:
    return ScheduledSMSResponse(
        id=str(row.get("id", "")),
        phone_number=str(row.get("phone_number", "")),
        message=str(row.get("message", "")),
        scheduled_time=str(row.get("scheduled_time", "")),
        status=str(row.get("status") or "pending"),
        sent_at=row.get("sent_at"),
        error_message=row.get("error_message"),
        created_at=row.get("created_at"),
    )


async def _require_phone_number(supabase_client: Any, user_id: str) -> str:
    phone_number = await get_user_phone_number(supabase_client, user_id)
    if not phone_number:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "no_phone_number",
                "details": "No phone number on file. Add one in SMS preferences."
            }
        )
    return phone_number


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

@router.post(
    "/preview",
    response_model=SMSPreviewResponse,
    status_code=status.HTTP_200_OK,
    summary="Preview an SMS template",
    description="""
    Render the recurring, recent, merchant-pacing or category-pacing
    template with the caller's current data. Nothing is sent or logged.
    """
)
async def preview_sms(
    request: SMSPreviewRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> SMSPreviewResponse:
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        message = await generate_sms_message(supabase_client, auth_user.user_id, request.template_type)
        return SMSPreviewResponse(
            template_type=request.template_type,
            message=message,
            length=len(message)
        )

    except Exception as e:
        logger.error(f"Failed to render {request.template_type} SMS: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "template_error", "details": "Failed to generate SMS message"}
        )


@router.post(
    "/send-template",
    response_model=SMSSendTemplateResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Send an SMS template now",
    description="""
    Render a template, claim today's send slot in the SMS log, and queue the
    message for immediate delivery.

    Returns 409 if this template already went to the caller's phone today.
    """
)
async def send_template_sms(
    request: SMSSendTemplateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> SMSSendTemplateResponse:
    supabase_client = get_supabase_client(auth_user.access_token)
    phone_number = await _require_phone_number(supabase_client, auth_user.user_id)

    try:
        message = await generate_sms_message(supabase_client, auth_user.user_id, request.template_type)

        dedup = await check_and_log_sms(
            get_service_role_client(),
            SMSSendRecord(
                phone_number=phone_number,
                template_type=request.template_type,
                user_id=auth_user.user_id,
                source_endpoint="manual",
            )
        )

        if not dedup.can_send:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"error": "already_sent", "details": dedup.reason or "SMS already sent today"}
            )

        queued = await enqueue_sms_now(supabase_client, auth_user.user_id, phone_number, message)
        logger.info(f"Queued {request.template_type} SMS to {mask_phone(phone_number)}")

        return SMSSendTemplateResponse(
            template_type=request.template_type,
            scheduled_sms_id=str(queued.get("id", "")),
            log_id=dedup.log_id,
            length=len(message),
            message="SMS queued for delivery"
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to send {request.template_type} SMS: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "send_error", "details": "Failed to queue SMS"}
        )


# ---------------------------------------------------------------------------
# Deduplication
# ---------------------------------------------------------------------------

@router.post(
    "/dedup-check",
    response_model=SMSDedupCheckResponse,
    status_code=status.HTTP_200_OK,
    summary="Check SMS deduplication",
    description="""
    Report whether a template may still be sent to the caller's phone on
    the given day. If the check itself fails the answer is "yes" with a
    reason explaining why.
    """
)
async def dedup_check(
    request: SMSDedupCheckRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> SMSDedupCheckResponse:
    supabase_client = get_supabase_client(auth_user.access_token)
    phone_number = await _require_phone_number(supabase_client, auth_user.user_id)

    try:
        result = await can_send_sms(
            get_service_role_client(),
            phone_number,
            request.template_type,
            check_date=request.check_date
        )
        return SMSDedupCheckResponse(can_send=result.can_send, reason=result.reason)

    except Exception as e:
        logger.error(f"SMS dedup check failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "dedup_error", "details": "Failed to check SMS deduplication"}
        )


@router.get(
    "/history",
    response_model=SMSHistoryResponse,
    status_code=status.HTTP_200_OK,
    summary="SMS send history"
)
async def sms_history(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    days: Annotated[int, Query(ge=1, le=90, description="Look-back window in days")] = 7
) -> SMSHistoryResponse:
    supabase_client = get_supabase_client(auth_user.access_token)
    phone_number = await _require_phone_number(supabase_client, auth_user.user_id)

    try:
        history = await get_sms_send_history(get_service_role_client(), phone_number, days=days)
        return SMSHistoryResponse(history=history, count=len(history), days=days)

    except Exception as e:
        logger.error(f"Failed to fetch SMS history: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "fetch_error", "details": "Failed to fetch SMS history"}
        )


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------

@router.get(
    "/preferences",
    response_model=SMSPreferenceListResponse,
    status_code=status.HTTP_200_OK,
    summary="Get SMS preferences"
)
async def read_sms_preferences(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> SMSPreferenceListResponse:
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        rows = await get_sms_preferences(supabase_client, auth_user.user_id)
        return SMSPreferenceListResponse(preferences=[_to_preference(r) for r in rows])

    except Exception as e:
        logger.error(f"Failed to fetch SMS preferences: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "fetch_error", "details": "Failed to fetch preferences"}
        )


@router.put(
    "/preferences",
    response_model=SMSPreferencesUpdateResponse,
    status_code=status.HTTP_200_OK,
    summary="Update SMS preferences"
)
async def write_sms_preferences(
    request: SMSPreferencesUpdateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> SMSPreferencesUpdateResponse:
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        rows = await update_sms_preferences(
            supabase_client,
            auth_user.user_id,
            [p.model_dump() for p in request.preferences]
        )
        return SMSPreferencesUpdateResponse(
            status="UPDATED",
            preferences=[_to_preference(r) for r in rows],
            message="Preferences updated successfully"
        )

    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "validation_error", "details": str(e)}
        )
    except Exception as e:
        logger.error(f"Failed to update SMS preferences: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "update_error", "details": "Failed to update preferences"}
        )


# ---------------------------------------------------------------------------
# Scheduled SMS
# ---------------------------------------------------------------------------

@router.get(
    "/scheduled",
    response_model=ScheduledSMSListResponse,
    status_code=status.HTTP_200_OK,
    summary="List scheduled SMS"
)
async def read_scheduled_sms(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    status_filter: Annotated[
        Optional[str],
        Query(alias="status", description="pending, sent, failed or cancelled")
    ] = None
) -> ScheduledSMSListResponse:
    if status_filter is not None and status_filter not in SCHEDULED_SMS_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "validation_error", "details": f"Unknown status: {status_filter}"}
        )

    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        rows = await list_scheduled_sms(supabase_client, auth_user.user_id, status=status_filter)
        messages = [_to_scheduled(r) for r in rows]
        return ScheduledSMSListResponse(messages=messages, count=len(messages))

    except Exception as e:
        logger.error(f"Failed to fetch scheduled SMS: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "fetch_error", "details": "Failed to fetch scheduled messages"}
        )


@router.post(
    "/scheduled",
    response_model=ScheduleSMSResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Schedule an SMS",
    description="""
    Queue a message to the caller's phone for a future time. Returns 400 if
    scheduled_time is not in the future.
    """
)
async def create_scheduled_sms(
    request: ScheduleSMSRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> ScheduleSMSResponse:
    supabase_client = get_supabase_client(auth_user.access_token)
    phone_number = await _require_phone_number(supabase_client, auth_user.user_id)

    try:
        row = await schedule_sms(
            supabase_client,
            auth_user.user_id,
            phone_number,
            request.message,
            request.scheduled_time
        )
        scheduled = _to_scheduled(row)
        return ScheduleSMSResponse(
            status="SCHEDULED",
            scheduled_sms=scheduled,
            message=f"SMS scheduled for {scheduled.scheduled_time}"
        )

    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "validation_error", "details": str(e)}
        )
    except Exception as e:
        logger.error(f"Failed to schedule SMS: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "create_error", "details": "Failed to schedule SMS"}
        )


@router.delete(
    "/scheduled/{message_id}",
    response_model=CancelScheduledSMSResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel a scheduled SMS"
)
async def delete_scheduled_sms(
    message_id: Annotated[str, Path(description="scheduled_sms row id")],
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
) -> CancelScheduledSMSResponse:
    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        row = await cancel_scheduled_sms(supabase_client, auth_user.user_id, message_id)

        if not row:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"error": "not_found", "details": "Message not found or already processed"}
            )

        return CancelScheduledSMSResponse(
            status="CANCELLED",
            scheduled_sms=_to_scheduled(row),
            message="Scheduled message cancelled successfully"
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to cancel scheduled SMS {message_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "delete_error", "details": "Failed to cancel scheduled message"}
        )
