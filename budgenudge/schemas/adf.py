"""
Pydantic schemas for ADF (Available Discretionary Funds) classification.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class ADFTransactionInput(BaseModel):
    name: str = Field(..., min_length=1, description="Raw Plaid transaction name")
    amount: float = Field(..., description="Plaid amount; positive is money out")
    merchant_name: Optional[str] = None
    category: Optional[List[str]] = Field(None, description="Plaid category hierarchy")
    subcategory: Optional[str] = None
    ai_merchant_name: Optional[str] = None
    ai_category_tag: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be blank")
        return v


class ADFClassifyRequest(BaseModel):
    transactions: List[ADFTransactionInput] = Field(..., min_length=1, max_length=100)
    days: int = Field(30, ge=1, le=365, description="Period the transactions cover, for daily ADF")


class ADFClassificationModel(BaseModel):
    merchant_name: str
    category_tag: str
    expense_type: Literal["fixed_expense", "discretionary"]
    adf_eligible: bool
    confidence: int = Field(..., ge=0, le=100)
    reasoning: str


class ADFMerchantTotal(BaseModel):
    merchant: str
    total: float
    daily_adf: float


class ADFCategoryTotal(BaseModel):
    category: str
    total: float
    daily_adf: float


class ADFSummary(BaseModel):
    total_spending: float
    adf_total: float
    fixed_total: float
    adf_count: int
    fixed_count: int
    adf_percentage: float
    fixed_percentage: float
    days: int
    daily_adf: float = Field(..., description="ADF total divided by days")
    top_merchants: List[ADFMerchantTotal]
    top_categories: List[ADFCategoryTotal]


class ADFClassifyResponse(BaseModel):
    results: List[ADFClassificationModel]
    summary: ADFSummary
