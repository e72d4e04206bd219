"""Analytics report models."""

from typing import List, Optional
from pydantic import BaseModel


class CategoryRollup(BaseModel):
    """Request count and summed amount of one category."""

    category: str
    count: int = 0
    amount: float = 0.0


class MonthlyTrend(BaseModel):
    """Request count and summed amount of one calendar month."""

    month: str  # YYYY-MM
    label: str  # e.g. "Mar 2024"
    count: int = 0
    amount: float = 0.0


class StatusShare(BaseModel):
    """Share of the requests in one status."""

    status: str
    count: int = 0
    percentage: float = 0.0


class RequesterRollup(BaseModel):
    """Request count and summed amount of one requester."""

    user_id: str
    name: str = "Unknown"
    email: str = ""
    count: int = 0
    amount: float = 0.0


class AnalyticsReport(BaseModel):
    """Aggregated view of a set of liquidation requests."""

    total_requests: int = 0
    total_amount: float = 0.0
    average_amount: float = 0.0
    pending_requests: int = 0
    approved_requests: int = 0
    rejected_requests: int = 0
    processing_requests: int = 0
    top_categories: List[CategoryRollup] = []
    monthly_trends: List[MonthlyTrend] = []
    status_breakdown: List[StatusShare] = []
    top_requesters: List[RequesterRollup] = []
    days: Optional[int] = None
    category: Optional[str] = None
    generated_at: Optional[str] = None
