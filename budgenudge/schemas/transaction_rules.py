"""
Pydantic schemas for transaction rule endpoints.

Rules normalize raw merchant strings and/or override categories. Cross-field
requirements (normalized name for normalize rules, override category for
override rules, compilable regex) are checked by
rule_engine.validate_rule_definition in the route layer.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

RuleType = Literal["merchant_normalize", "category_override", "combined"]
PatternType = Literal["exact", "contains", "starts_with", "ends_with", "regex"]


class TransactionRuleResponse(BaseModel):
    """A stored transaction rule."""
    id: str = Field(..., description="Rule UUID")
    user_id: str = Field(..., description="Owner user UUID")
    rule_name: str = Field(..., description="Unique (per user) rule name")
    rule_type: RuleType = Field(..., description="What the rule changes")
    pattern_type: PatternType = Field(..., description="How pattern_value is matched")
    pattern_value: str = Field(..., description="Text or regex to match against the merchant")
    normalized_merchant_name: Optional[str] = Field(
        None, description="Replacement merchant name; regex rules may use $1, $2, ..."
    )
    override_category: Optional[str] = Field(None, description="Replacement category")
    priority: int = Field(..., description="Higher priority rules are evaluated first")
    is_active: bool = Field(..., description="Inactive rules are ignored")
    auto_generated: bool = Field(False, description="Created by the system rather than the user")
    description: Optional[str] = Field(None, description="Free-text note")
    created_at: str = Field(..., description="ISO-8601 creation timestamp")
    updated_at: str = Field(..., description="ISO-8601 last update timestamp")


class TransactionRuleListResponse(BaseModel):
    rules: List[TransactionRuleResponse]
    count: int = Field(..., description="Number of rules returned")


class TransactionRuleCreateRequest(BaseModel):
    """Request body for creating a rule."""
    rule_name: str = Field(..., min_length=1, description="Rule name (unique per user)")
    rule_type: RuleType
    pattern_type: PatternType
    pattern_value: str = Field(..., min_length=1)
    normalized_merchant_name: Optional[str] = None
    override_category: Optional[str] = None
    priority: Optional[int] = Field(None, ge=0, description="Defaults to 100")
    description: Optional[str] = None


class TransactionRuleCreateResponse(BaseModel):
    status: Literal["CREATED"] = "CREATED"
    rule: TransactionRuleResponse
    message: str


class TransactionRuleUpdateRequest(BaseModel):
    """Partial update. Only provided fields are changed."""
    rule_name: Optional[str] = Field(None, min_length=1)
    rule_type: Optional[RuleType] = None
    pattern_type: Optional[PatternType] = None
    pattern_value: Optional[str] = Field(None, min_length=1)
    normalized_merchant_name: Optional[str] = None
    override_category: Optional[str] = None
    priority: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class TransactionRuleUpdateResponse(BaseModel):
    status: Literal["UPDATED"] = "UPDATED"
    rule: TransactionRuleResponse
    message: str


class TransactionRuleDeleteResponse(BaseModel):
    status: Literal["DELETED"] = "DELETED"
    rule_id: str
    message: str


class RuleTestRequest(BaseModel):
    """Dry-run a rule definition against a sample merchant string."""
    merchant_name: str = Field(..., min_length=1)
    pattern_type: PatternType
    pattern_value: str = Field(..., min_length=1)
    normalized_merchant_name: Optional[str] = None
    override_category: Optional[str] = None


class RuleTestResultModel(BaseModel):
    matches: bool
    result_merchant: Optional[str] = None
    result_category: Optional[str] = None
    error: Optional[str] = None


class RuleTestResponse(BaseModel):
    test_result: RuleTestResultModel
    input: RuleTestRequest


class RuleSuggestionModel(BaseModel):
    type: Literal["normalize", "categorize", "combined"]
    pattern_type: PatternType
    pattern_value: str
    action: str
    category: Optional[str] = None
    description: str
    confidence: int = Field(..., ge=0, le=100)


class RuleSuggestionsResponse(BaseModel):
    merchant_name: str
    suggestions: List[RuleSuggestionModel]


class RulePreviewTransaction(BaseModel):
    """Minimal transaction shape the rule engine understands."""
    id: Optional[str] = None
    merchant_name: Optional[str] = None
    name: str = Field(..., description="Raw transaction description")
    subcategory: Optional[str] = None
    amount: Optional[float] = None


class RulePreviewRequest(BaseModel):
    transactions: List[RulePreviewTransaction] = Field(..., min_length=1, max_length=500)


class RulePreviewResponse(BaseModel):
    transactions: List[Dict[str, Any]]
    rules_evaluated: int
    transactions_changed: int
