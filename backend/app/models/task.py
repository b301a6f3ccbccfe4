"""
task.py — ORM Model for Recommended Work Items

Purpose:
- Represent a unit of recommended work that closes part of the value gap.
- Carry the fields the action-plan scheduler orders by (priority_rank,
  raw_impact) and the membership flag (in_action_plan).

Key Points:
- Action plan membership is derived: tasks with in_action_plan = True and a
  status outside INACTIVE_TASK_STATUSES.
- completed_value is written once, on the transition into COMPLETED, and
  never recomputed afterward.
- A task either links to an assessment question (completion upgrades the
  effective answer) or originates from onboarding (completion applies a
  direct category lift).
"""

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from app.core.database import Base, utcnow
from app.models.enums import INACTIVE_TASK_STATUSES, TaskOrigin, TaskStatus


class Task(Base):
    __tablename__ = "task"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("company.id"), nullable=False)

    title = Column(String, nullable=False)
    category = Column(String, nullable=False)  # one of BriCategory

    # Dollar impact estimated by the assessor, and the same impact scaled to
    # the company's current value gap
    raw_impact = Column(Float, nullable=False, default=0.0)
    normalized_value = Column(Float, nullable=True)

    # 1 (most urgent) .. 25 (least urgent)
    priority_rank = Column(Integer, nullable=False, default=25)
    impact_level = Column(String, nullable=True)
    difficulty_level = Column(String, nullable=True)

    status = Column(String, nullable=False, default=TaskStatus.PENDING.value)
    in_action_plan = Column(Boolean, nullable=False, default=False)
    due_date = Column(Date, nullable=True)
    primary_assignee_id = Column(String, nullable=True)

    completed_value = Column(Float, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    # Origin: assessment-linked tasks upgrade an answer on completion
    origin = Column(String, nullable=False, default=TaskOrigin.MANUAL.value)
    linked_question_id = Column(Integer, ForeignKey("assessment_question.id"), nullable=True)
    upgrades_from_option_id = Column(Integer, ForeignKey("assessment_option.id"), nullable=True)
    upgrades_to_option_id = Column(Integer, ForeignKey("assessment_option.id"), nullable=True)

    # Onboarding tasks: category lift on completion (settings default when null)
    bri_improvement = Column(Float, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    company = relationship("Company", backref="tasks")

    __table_args__ = (
        Index("idx_task_company_plan", "company_id", "in_action_plan", "status"),
        Index("idx_task_company_priority", "company_id", "priority_rank"),
    )

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_TASK_STATUSES

    def __repr__(self):
        return f"<Task {self.id} | {self.category} | rank {self.priority_rank} | {self.status}>"
