"""
Pydantic schemas for AI merchant tagging status and the tagging cron job.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class TaggingOverallStats(BaseModel):
    total_transactions_checked: int
    tagged_transactions: int
    untagged_transactions: int
    tagging_percentage: int = Field(..., ge=0, le=100)
    health_status: Literal["EXCELLENT", "GOOD", "NEEDS_ATTENTION", "CRITICAL"]


class UntaggedSample(BaseModel):
    name: Optional[str] = None
    merchant: Optional[str] = None
    amount: Optional[float] = None
    date: Optional[str] = None


class RecentUntagged(BaseModel):
    count: int
    sample: List[UntaggedSample]


class CachedTagSample(BaseModel):
    pattern: Optional[str] = None
    merchant_name: Optional[str] = None
    category: Optional[str] = None
    created: Optional[str] = None


class TagCacheStats(BaseModel):
    total_cached_merchants: int
    manual_overrides: int
    recent_additions: List[CachedTagSample]


class DailyTaggingTrend(BaseModel):
    date: str
    total: int
    tagged: int
    percentage: int


class TaggingStatusResponse(BaseModel):
    success: bool = True
    timestamp: str = Field(..., description="ISO-8601 UTC")
    overall_stats: TaggingOverallStats
    recent_untagged: RecentUntagged
    cache_stats: TagCacheStats
    daily_trends: List[DailyTaggingTrend]
    recommendations: List[str]


class AutoTaggingStats(BaseModel):
    total_untagged_found: int
    processed: int
    cached: int = Field(..., description="Transactions resolved from merchant_ai_tags")
    api_calls: int
    new_merchants_cached: int


class AutoTaggingResponse(BaseModel):
    success: bool
    message: str
    stats: AutoTaggingStats
    timestamp: str
