"""
Pydantic schemas for recurring bill (tagged merchant) endpoints.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

PredictionFrequency = Literal["weekly", "bi-weekly", "monthly", "bi-monthly", "quarterly", "irregular"]


class TaggedMerchantResponse(BaseModel):
    """A recurring bill the user expects."""
    id: str
    user_id: str
    merchant_name: str
    expected_amount: float = Field(..., description="Expected charge amount")
    prediction_frequency: str = Field(..., description="weekly, bi-weekly, monthly, bi-monthly, quarterly or irregular")
    next_predicted_date: Optional[str] = Field(None, description="Next expected charge (YYYY-MM-DD)")
    last_transaction_date: Optional[str] = None
    confidence_score: int = Field(..., ge=0, le=100)
    is_active: bool
    auto_detected: bool = Field(False, description="Created by recurring bill detection")
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class TaggedMerchantListResponse(BaseModel):
    tagged_merchants: List[TaggedMerchantResponse]
    count: int


class TaggedMerchantCreateRequest(BaseModel):
    merchant_name: str = Field(..., min_length=1)
    expected_amount: float = Field(..., gt=0)
    prediction_frequency: PredictionFrequency
    confidence_score: int = Field(75, ge=0, le=100)

    @field_validator("merchant_name")
    @classmethod
    def strip_merchant_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("merchant_name must not be blank")
        return v


class TaggedMerchantCreateResponse(BaseModel):
    status: Literal["CREATED"] = "CREATED"
    tagged_merchant: TaggedMerchantResponse
    message: str


class TaggedMerchantUpdateRequest(BaseModel):
    """Partial update. Changing the frequency re-predicts the next date."""
    expected_amount: Optional[float] = Field(None, gt=0)
    prediction_frequency: Optional[PredictionFrequency] = None
    confidence_score: Optional[int] = Field(None, ge=0, le=100)
    is_active: Optional[bool] = None
    next_predicted_date: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$")


class TaggedMerchantUpdateResponse(BaseModel):
    status: Literal["UPDATED"] = "UPDATED"
    tagged_merchant: TaggedMerchantResponse
    message: str


class TaggedMerchantDeleteResponse(BaseModel):
    status: Literal["DELETED"] = "DELETED"
    merchant_id: str
    message: str


class UpcomingBillsResponse(BaseModel):
    bills: List[TaggedMerchantResponse]
    count: int
    total_next_7_days: float
    total_next_14_days: float
    total_next_30_days: float


class PredictionUpdate(BaseModel):
    merchant_name: str
    old_next_date: Optional[str] = None
    new_next_date: str
    last_transaction_date: str
    frequency: Optional[str] = None
    expected_amount: float
    days_until_next: int


class UpdatePredictionsResponse(BaseModel):
    message: str
    updated_count: int
    updates: List[PredictionUpdate]


class AutoDetectRequest(BaseModel):
    confidence_threshold: float = Field(85, ge=0, le=100)


class DetectedBillModel(BaseModel):
    merchant_name: str
    expected_amount: float
    next_predicted_date: str
    confidence_score: int
    prediction_frequency: str
    transaction_count: int


class AutoDetectResponse(BaseModel):
    message: str
    bills_detected: int
    total_monthly_amount: float
    confidence_threshold: float
    analysis_period_days: int = 90
    bills: List[DetectedBillModel]
