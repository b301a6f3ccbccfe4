"""
job.py — ORM Model for Bulk Recalculation Runs

One row per multi-company recalculation:
- "recalculate-all": after a CSV import replaced the industry multiple table
- "recalculate-affected": after a single multiple row was created or edited

Runs are synchronous and request-scoped; the row is an audit record, not a
queue entry. A run where at least one company succeeded is "completed" even
with per-company failures; a run where every company failed is "failed".
details always carries {"total", "successful", "failed"}.
"""

from typing import Optional

from sqlalchemy import Column, DateTime, Integer, JSON, String

from app.core.database import Base, utcnow


class Job(Base):
    __tablename__ = "job"

    id = Column(Integer, primary_key=True, index=True)
    job_type = Column(String, nullable=False)

    # "running" → "completed" | "failed"
    status = Column(String, nullable=False, default="running")

    started_at = Column(DateTime, default=utcnow)
    finished_at = Column(DateTime, nullable=True)

    # e.g. "Recalculated 39/40 companies"
    message = Column(String, nullable=True)
    details = Column(JSON, nullable=True)

    def _finish(self, status: str, message: Optional[str], details: Optional[dict]):
        self.status = status
        self.finished_at = utcnow()
        if message:
            self.message = message
        if details is not None:
            self.details = details

    def mark_completed(self, message: Optional[str] = None, details: Optional[dict] = None):
        self._finish("completed", message, details)

    def mark_failed(self, message: str, details: Optional[dict] = None):
        self._finish("failed", message, details)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def __repr__(self):
        return f"<Job {self.job_type} | {self.status}>"
