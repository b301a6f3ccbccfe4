"""
tasks.py — Task Endpoints

Endpoints:
- POST  /api/v1/companies/{company_id}/tasks - Add a backlog task (rank from the priority matrix)
- GET   /api/v1/companies/{company_id}/tasks - All tasks for a company
- PATCH /api/v1/tasks/{task_id}/status       - Status transition (+ completion effects, plan refill)
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.v1.schemas import ApiModel, RefillOut, TaskOut
from app.core.database import get_db
from app.core.errors import ValuationError, http_status_for
from app.core.logging import get_logger
from app.models.enums import BriCategory, TaskOrigin, TaskStatus
from app.models.task import Task
from app.services.tasks.priority import DifficultyLevel, ImpactLevel, create_task
from app.services.tasks.status import update_task_status
from app.services.valuation.recalculate import get_company

logger = get_logger(__name__)

router = APIRouter(tags=["tasks"])

# -----------------------------------------------------------------------------
# Request/Response Schemas
# -----------------------------------------------------------------------------

class TaskCreateRequest(ApiModel):
    title: str
    category: BriCategory
    raw_impact: float = 0.0
    impact_level: Optional[ImpactLevel] = None
    difficulty_level: Optional[DifficultyLevel] = None
    origin: TaskOrigin = TaskOrigin.MANUAL
    linked_question_id: Optional[int] = None
    upgrades_from_option_id: Optional[int] = None
    upgrades_to_option_id: Optional[int] = None
    bri_improvement: Optional[float] = None


class TaskStatusRequest(ApiModel):
    status: TaskStatus
    user_id: Optional[str] = None


class TaskStatusOut(ApiModel):
    task: TaskOut
    previous_status: str
    snapshot_id: Optional[int] = None
    refill: Optional[RefillOut] = None


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------

@router.post("/companies/{company_id}/tasks", response_model=TaskOut, status_code=201)
def add_task(company_id: int, request: TaskCreateRequest, db: Session = Depends(get_db)):
    try:
        task = create_task(
            db,
            company_id,
            title=request.title,
            category=request.category.value,
            raw_impact=request.raw_impact,
            impact_level=request.impact_level.value if request.impact_level else None,
            difficulty_level=request.difficulty_level.value if request.difficulty_level else None,
            origin=request.origin.value,
            linked_question_id=request.linked_question_id,
            upgrades_from_option_id=request.upgrades_from_option_id,
            upgrades_to_option_id=request.upgrades_to_option_id,
            bri_improvement=request.bri_improvement,
        )
        db.commit()
        db.refresh(task)
        return task
    except ValuationError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc))
    except Exception as exc:
        logger.exception("Error creating task: %s", exc)
        raise HTTPException(status_code=500, detail=f"Error creating task: {str(exc)}")


@router.get("/companies/{company_id}/tasks", response_model=List[TaskOut])
def list_tasks(company_id: int, db: Session = Depends(get_db)):
    try:
        get_company(db, company_id)
    except ValuationError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc))
    return (
        db.query(Task)
        .filter(Task.company_id == company_id)
        .order_by(Task.priority_rank.asc(), Task.raw_impact.desc(), Task.id.asc())
        .all()
    )


@router.patch("/tasks/{task_id}/status", response_model=TaskStatusOut)
def change_task_status(task_id: int, request: TaskStatusRequest, db: Session = Depends(get_db)):
    """
    Move a task to a new status.

    Completing a task upgrades its linked answer (or applies its onboarding
    lift), writes a snapshot + ledger entry and freezes completed_value.
    Leaving the active set frees its plan slot and refills the plan.
    """
    try:
        result = update_task_status(db, task_id, request.status.value, user_id=request.user_id)
        return TaskStatusOut(
            task=TaskOut.model_validate(result.task),
            previous_status=result.previous_status,
            snapshot_id=result.snapshot.id if result.snapshot is not None else None,
            refill=RefillOut.model_validate(result.refill) if result.refill is not None else None,
        )
    except ValuationError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc))
    except Exception as exc:
        logger.exception("Error updating task %s status: %s", task_id, exc)
        raise HTTPException(status_code=500, detail=f"Error updating task status: {str(exc)}")
