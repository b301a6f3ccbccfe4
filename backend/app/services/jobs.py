"""
jobs.py — Utilities for Recording and Inspecting Bulk Run Status

Purpose:
- Provide helper functions to:
    * Create job records
    * Update job status
    * Retrieve job summaries for admin views or debugging
- Keeps job bookkeeping out of API and recalculation layers.

This module does NOT:
- Execute recalculation steps.
- Contain any business workflow logic.

It simply encapsulates DB queries for the Job model.
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.job import Job


def get_job_by_id(job_id: int, db: Session) -> Optional[Job]:
    """
    Retrieve a single job.
    """
    return db.query(Job).filter(Job.id == job_id).first()


def list_jobs(db: Session, job_type: Optional[str] = None, limit: int = 20) -> List[Job]:
    """
    Return job run history, newest first.
    """
    query = db.query(Job)
    if job_type:
        query = query.filter(Job.job_type == job_type)
    return query.order_by(Job.started_at.desc(), Job.id.desc()).limit(limit).all()


def create_job(job_type: str, db: Session) -> Job:
    """
    Create and persist a new job record marked as 'running'.
    """
    job = Job(job_type=job_type, status="running")
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def complete_job(job: Job, message: Optional[str], details: Optional[dict], db: Session) -> None:
    """
    Mark job as completed and commit.
    """
    job.mark_completed(message=message, details=details)
    db.add(job)
    db.commit()


def fail_job(job: Job, error_message: str, details: Optional[dict], db: Session) -> None:
    """
    Mark job as failed and commit.
    """
    job.mark_failed(error_message, details)
    db.add(job)
    db.commit()
