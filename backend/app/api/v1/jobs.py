"""
jobs.py — Bulk Run Metadata & Status Endpoints (API Layer)

Purpose:
- Provide visibility into multi-company recalculation runs.
- There are no async workers: "jobs" are records of synchronous runs
  started by industry multiple edits and imports:
    * status: "running" → "completed" or "failed"
    * details: {"total": 40, "successful": 39, "failed": 1}

Key Interactions:
- app.models.job → ORM entity representing run records.
- app.services.jobs → helpers for recording and reading run status.

This API module should NOT:
- Execute recalculations itself.
"""

import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.v1.schemas import ApiModel
from app.core.database import get_db
from app.services.jobs import get_job_by_id, list_jobs

router = APIRouter(
    prefix="/jobs",
    tags=["jobs"]
)

# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------

class JobOut(ApiModel):
    """
    Reported run status.
    """
    id: int
    job_type: str
    status: str
    started_at: Optional[datetime.datetime] = None
    finished_at: Optional[datetime.datetime] = None
    message: Optional[str] = None
    details: Optional[dict] = None
    duration_seconds: Optional[float] = None


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------

@router.get("", response_model=List[JobOut])
def read_jobs(
    job_type: Optional[str] = Query(None, alias="jobType"),
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """
    GET /jobs?jobType=recalculate-all

    Newest runs first.
    """
    return list_jobs(db, job_type=job_type, limit=limit)


@router.get("/{job_id}", response_model=JobOut)
def read_job(job_id: int, db: Session = Depends(get_db)):
    job = get_job_by_id(job_id, db)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return job
