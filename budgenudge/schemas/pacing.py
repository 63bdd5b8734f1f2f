"""
Pydantic schemas for merchant and category pacing tracking endpoints.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class MerchantTrackingResponse(BaseModel):
    id: str
    user_id: str
    ai_merchant_name: str = Field(..., description="AI-normalized merchant name being paced")
    is_active: bool
    auto_selected: bool = Field(..., description="Chosen by auto-selection rather than the user")
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CategoryTrackingResponse(BaseModel):
    id: str
    user_id: str
    ai_category: str = Field(..., description="AI category tag being paced")
    is_active: bool
    auto_selected: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class MerchantTrackingListResponse(BaseModel):
    tracked_merchants: List[MerchantTrackingResponse]
    count: int


class CategoryTrackingListResponse(BaseModel):
    tracked_categories: List[CategoryTrackingResponse]
    count: int


class MerchantTrackingUpsertRequest(BaseModel):
    ai_merchant_name: str = Field(..., min_length=1)
    is_active: bool = True


class CategoryTrackingUpsertRequest(BaseModel):
    ai_category: str = Field(..., min_length=1)
    is_active: bool = True


class MerchantTrackingUpdateRequest(BaseModel):
    """Identify the row by id or by merchant name."""
    id: Optional[str] = None
    ai_merchant_name: Optional[str] = None
    is_active: bool

    @model_validator(mode="after")
    def require_identifier(self) -> "MerchantTrackingUpdateRequest":
        if not self.id and not self.ai_merchant_name:
            raise ValueError("Either id or ai_merchant_name is required")
        return self


class CategoryTrackingUpdateRequest(BaseModel):
    """Identify the row by id or by category name."""
    id: Optional[str] = None
    ai_category: Optional[str] = None
    is_active: bool

    @model_validator(mode="after")
    def require_identifier(self) -> "CategoryTrackingUpdateRequest":
        if not self.id and not self.ai_category:
            raise ValueError("Either id or ai_category is required")
        return self


class MerchantTrackingMutationResponse(BaseModel):
    merchant_tracking: MerchantTrackingResponse
    message: str


class CategoryTrackingMutationResponse(BaseModel):
    category_tracking: CategoryTrackingResponse
    message: str


class TrackingDeleteResponse(BaseModel):
    status: str = "DELETED"
    message: str


class AutoSelectionStatusResponse(BaseModel):
    needs_auto_selection: bool
    has_tracking: bool
    total_tracked: int
    auto_selected_count: int


class AutoSelectResponse(BaseModel):
    """
    Outcome of one auto-selection run.

    success is False (with a reason in message) when the run was skipped:
    tracking already configured, no accounts, or nothing qualified.
    """
    success: bool
    message: str
    auto_selected: List[Dict[str, Any]] = Field(default_factory=list)
    analysis: List[Dict[str, Any]] = Field(default_factory=list)


class PacingAutoSelectSummary(BaseModel):
    merchants_selected: int
    categories_selected: int
    total_selected: int


class PacingAutoSelectResponse(BaseModel):
    success: bool
    message: str
    merchant_result: Optional[AutoSelectResponse] = None
    category_result: Optional[AutoSelectResponse] = None
    summary: PacingAutoSelectSummary
