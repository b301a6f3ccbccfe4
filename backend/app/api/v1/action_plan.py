"""
action_plan.py — Action-Plan Endpoints

Endpoints:
- POST /api/v1/companies/{company_id}/action-plan/generate - Build a plan for a due date
- POST /api/v1/companies/{company_id}/action-plan/refill   - Top up to capacity
- GET  /api/v1/companies/{company_id}/action-plan/status   - Capacity & queue counts
- GET  /api/v1/companies/{company_id}/action-plan          - Current plan members
"""

import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.v1.schemas import ApiModel, RefillOut, TaskOut
from app.core.database import get_db
from app.core.errors import ValuationError, http_status_for
from app.core.logging import get_logger
from app.services.tasks.action_plan import ActionPlanScheduler

logger = get_logger(__name__)

router = APIRouter(
    prefix="/companies",
    tags=["action-plan"]
)

# -----------------------------------------------------------------------------
# Request/Response Schemas
# -----------------------------------------------------------------------------

class GenerateRequest(ApiModel):
    due_date: datetime.date
    carry_forward: bool = True
    default_assignee_id: Optional[str] = None


class GenerateOut(ApiModel):
    tasks_in_plan: int
    tasks_carried_forward: int
    new_tasks_added: int


class ActionPlanStatusOut(ApiModel):
    action_plan_count: int
    queue_count: int
    max_capacity: int
    slots_available: int
    can_refresh: bool


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------

@router.post("/{company_id}/action-plan/generate", response_model=GenerateOut)
def generate_action_plan(company_id: int, request: GenerateRequest, db: Session = Depends(get_db)):
    """
    Rebuild the plan. The due date must fall within the planning horizon
    (today .. today + ACTION_PLAN_MAX_HORIZON_DAYS).
    """
    try:
        result = ActionPlanScheduler(db).generate(
            company_id,
            due_date=request.due_date,
            carry_forward=request.carry_forward,
            default_assignee_id=request.default_assignee_id,
        )
        return GenerateOut.model_validate(result)
    except ValuationError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc))
    except Exception as exc:
        logger.exception("Error generating action plan: %s", exc)
        raise HTTPException(status_code=500, detail=f"Error generating action plan: {str(exc)}")


@router.post("/{company_id}/action-plan/refill", response_model=RefillOut)
def refill_action_plan(company_id: int, db: Session = Depends(get_db)):
    try:
        return RefillOut.model_validate(ActionPlanScheduler(db).refill(company_id))
    except ValuationError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc))
    except Exception as exc:
        logger.exception("Error refilling action plan: %s", exc)
        raise HTTPException(status_code=500, detail=f"Error refilling action plan: {str(exc)}")


@router.get("/{company_id}/action-plan/status", response_model=ActionPlanStatusOut)
def action_plan_status(company_id: int, db: Session = Depends(get_db)):
    try:
        return ActionPlanStatusOut.model_validate(ActionPlanScheduler(db).status(company_id))
    except ValuationError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc))


@router.get("/{company_id}/action-plan", response_model=List[TaskOut])
def list_action_plan(company_id: int, db: Session = Depends(get_db)):
    try:
        return ActionPlanScheduler(db).list_plan(company_id)
    except ValuationError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc))
