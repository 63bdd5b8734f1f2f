"""
Pydantic schemas for SMS endpoints: templates, deduplication, preferences
and the scheduled SMS queue.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from budgenudge.utils.constants import (
    RENDERABLE_TEMPLATE_TYPES,
    SMS_PREFERENCE_TYPES,
    SMS_TEMPLATE_TYPES,
)

RenderableTemplateType = Literal[RENDERABLE_TEMPLATE_TYPES]

SMSTemplateType = Literal[SMS_TEMPLATE_TYPES]

SMSPreferenceType = Literal[SMS_PREFERENCE_TYPES]


# --- Templates -------------------------------------------------------------

class SMSPreviewRequest(BaseModel):
    template_type: RenderableTemplateType


class SMSPreviewResponse(BaseModel):
    template_type: RenderableTemplateType
    message: str = Field(..., description="Rendered SMS body")
    length: int = Field(..., description="Character count (limit 918)")


class SMSSendTemplateRequest(BaseModel):
    template_type: RenderableTemplateType


class SMSSendTemplateResponse(BaseModel):
    status: Literal["QUEUED"] = "QUEUED"
    template_type: RenderableTemplateType
    scheduled_sms_id: str = Field(..., description="Row id in the scheduled_sms queue")
    log_id: Optional[int] = Field(None, description="sms_send_log row id")
    length: int
    message: str = Field(..., description="Human readable status")


# --- Deduplication ---------------------------------------------------------

class SMSDedupCheckRequest(BaseModel):
    template_type: SMSTemplateType
    check_date: Optional[date] = Field(None, description="Defaults to today (UTC)")


class SMSDedupCheckResponse(BaseModel):
    can_send: bool
    reason: Optional[str] = None


class SMSHistoryResponse(BaseModel):
    history: List[Dict[str, Any]]
    count: int
    days: int


# --- Preferences -----------------------------------------------------------

class SMSPreferenceResponse(BaseModel):
    id: Optional[str] = None
    sms_type: str
    enabled: bool
    frequency: str
    phone_number: Optional[str] = None


class SMSPreferenceListResponse(BaseModel):
    preferences: List[SMSPreferenceResponse]


class SMSPreferenceUpdate(BaseModel):
    sms_type: SMSPreferenceType
    enabled: bool = True
    frequency: str = Field("daily", min_length=1)
    phone_number: Optional[str] = Field(None, description="Any format; stored as digits only")


class SMSPreferencesUpdateRequest(BaseModel):
    preferences: List[SMSPreferenceUpdate] = Field(..., min_length=1)


class SMSPreferencesUpdateResponse(BaseModel):
    status: Literal["UPDATED"] = "UPDATED"
    preferences: List[SMSPreferenceResponse]
    message: str


# --- Scheduled SMS ---------------------------------------------------------

class ScheduledSMSResponse(BaseModel):
    id: str
    phone_number: str
    message: str
    scheduled_time: str
    status: str
    sent_at: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[str] = None


class ScheduledSMSListResponse(BaseModel):
    messages: List[ScheduledSMSResponse]
    count: int


class ScheduleSMSRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=918)
    scheduled_time: datetime = Field(..., description="ISO-8601; naive values are taken as UTC")


class ScheduleSMSResponse(BaseModel):
    status: Literal["SCHEDULED"] = "SCHEDULED"
    scheduled_sms: ScheduledSMSResponse
    message: str


class CancelScheduledSMSResponse(BaseModel):
    status: Literal["CANCELLED"] = "CANCELLED"
    scheduled_sms: ScheduledSMSResponse
    message: str
