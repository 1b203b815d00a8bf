from pydantic import ConfigDict, Field, field_validator
from typing import Dict, Optional
from datetime import datetime, timezone

from donation_ledger.schemas.base import LedgerSchema


class UpsertGoalRequest(LedgerSchema):
    """Create or update the fundraising goal of an association"""
    target_amount: int = Field(..., gt=0, description="Amount to collect")
    title: str = Field(..., min_length=1, description="Goal title")
    description: Optional[str] = Field(None, description="Goal description")
    end_date: Optional[datetime] = Field(None, description="Optional deadline")

    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "targetAmount": 500,
                "title": "Winter meals",
                "description": "Hot meals for the winter season",
                "endDate": "2026-12-31T23:59:59Z"
            }
        }
    )

    @field_validator("end_date")
    @classmethod
    def to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class GoalResponse(LedgerSchema):
    id: str
    association_id: str
    target_amount: int
    title: Optional[str]
    description: Optional[str]
    end_date: Optional[datetime]
    created_at: datetime
    updated_at: Optional[datetime]
    completed: bool
    completed_at: Optional[datetime]
    completed_by: Optional[str]


class GoalProgressResponse(LedgerSchema):
    """Amount collected toward the current goal since it was created"""
    association_id: str
    goal_id: str
    target_amount: int
    collected_amount: int
    percentage: float
    completed: bool
    completed_at: Optional[datetime]
    completed_by: Optional[str]


class AssociationSummaryResponse(LedgerSchema):
    association_id: str
    total_amount: int
    donation_count: int
    totals_by_year: Dict[int, int]
    active_recurrent_count: int
