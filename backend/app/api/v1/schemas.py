"""
schemas.py — Shared Response Schemas

Purpose:
- Base model that reads ORM objects / dataclasses (from_attributes) and
  serializes field names in camelCase.
- Schemas returned by more than one router (snapshots, tasks, batch counts).
"""

import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class SnapshotOut(ApiModel):
    """One persisted valuation computation."""
    id: int
    company_id: int
    adjusted_ebitda: float
    industry_multiple_low: float
    industry_multiple_high: float
    multiple_match_level: Optional[str] = None
    core_score: float
    bri_score: float
    bri_financial: float
    bri_transferability: float
    bri_operational: float
    bri_market: float
    bri_legal_tax: float
    bri_personal: float
    base_multiple: float
    discount_fraction: float
    final_multiple: float
    current_value: float
    potential_value: float
    value_gap: float
    alpha_constant: float
    snapshot_reason: str
    created_by_user_id: Optional[str] = None
    created_at: datetime.datetime


class TaskOut(ApiModel):
    id: int
    company_id: int
    title: str
    category: str
    raw_impact: float
    normalized_value: Optional[float] = None
    priority_rank: int
    impact_level: Optional[str] = None
    difficulty_level: Optional[str] = None
    status: str
    in_action_plan: bool
    due_date: Optional[datetime.date] = None
    primary_assignee_id: Optional[str] = None
    completed_value: Optional[float] = None
    completed_at: Optional[datetime.datetime] = None
    origin: str
    linked_question_id: Optional[int] = None


class RefillOut(ApiModel):
    added: int
    total: int
    queue_remaining: int


class BatchOut(ApiModel):
    """Counts from recalculating many companies."""
    total: int
    successful: int
    failed: int
