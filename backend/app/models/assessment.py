"""
assessment.py — ORM Models for Buyer-Readiness Assessments

Purpose:
- Questions grouped into the six BRI categories, each with scored options.
- Company responses, keeping the user's literal selection separate from the
  effective option a completed task may have upgraded it to.
- Direct category adjustments produced by onboarding-generated tasks.

Answer upgrade rule:
- `selected_option_id` is only ever written by the user.
- `effective_option_id` is only ever written by task completion; scoring uses
  it when present, otherwise the selection. Clearing it restores the user's
  answer.
"""

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.database import Base, utcnow


class AssessmentQuestion(Base):
    __tablename__ = "assessment_question"

    id = Column(Integer, primary_key=True, index=True)
    bri_category = Column(String, nullable=False)
    prompt = Column(String, nullable=False)

    # Weight of this question inside its category
    max_impact_points = Column(Float, nullable=False, default=10.0)

    options = relationship(
        "AssessmentOption",
        back_populates="question",
        order_by="AssessmentOption.score_value",
    )

    def __repr__(self):
        return f"<AssessmentQuestion {self.id} | {self.bri_category}>"


class AssessmentOption(Base):
    __tablename__ = "assessment_option"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("assessment_question.id"), nullable=False, index=True)
    label = Column(String, nullable=False)

    # 0-1 readiness credit for choosing this option
    score_value = Column(Float, nullable=False)

    question = relationship("AssessmentQuestion", back_populates="options")

    def __repr__(self):
        return f"<AssessmentOption {self.id} | q{self.question_id} | {self.score_value}>"


class AssessmentResponse(Base):
    __tablename__ = "assessment_response"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("company.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("assessment_question.id"), nullable=False)

    # Null selection = "don't know" / not applicable
    selected_option_id = Column(Integer, ForeignKey("assessment_option.id"), nullable=True)
    effective_option_id = Column(Integer, ForeignKey("assessment_option.id"), nullable=True)
    upgraded_by_task_id = Column(Integer, ForeignKey("task.id"), nullable=True)

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    question = relationship("AssessmentQuestion")
    selected_option = relationship("AssessmentOption", foreign_keys=[selected_option_id])
    effective_option = relationship("AssessmentOption", foreign_keys=[effective_option_id])

    __table_args__ = (
        UniqueConstraint("company_id", "question_id", name="uq_response_company_question"),
    )

    def __repr__(self):
        return f"<AssessmentResponse {self.company_id} | q{self.question_id}>"


class BriCategoryAdjustment(Base):
    __tablename__ = "bri_category_adjustment"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("company.id"), nullable=False, index=True)
    category = Column(String, nullable=False)
    delta = Column(Float, nullable=False)
    task_id = Column(Integer, ForeignKey("task.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<BriCategoryAdjustment {self.company_id} | {self.category} {self.delta:+.3f}>"
