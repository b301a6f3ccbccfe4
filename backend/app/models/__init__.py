"""
models — SQLAlchemy ORM entities.

Importing this package registers every table on `app.core.database.Base`.
"""

from app.models.company import Company, CoreFactors, EbitdaAdjustment
from app.models.industry_multiple import IndustryMultiple
from app.models.assessment import (
    AssessmentOption,
    AssessmentQuestion,
    AssessmentResponse,
    BriCategoryAdjustment,
)
from app.models.task import Task
from app.models.valuation_snapshot import ValuationSnapshot, ValueLedgerEntry
from app.models.job import Job

__all__ = [
    "Company",
    "CoreFactors",
    "EbitdaAdjustment",
    "IndustryMultiple",
    "AssessmentOption",
    "AssessmentQuestion",
    "AssessmentResponse",
    "BriCategoryAdjustment",
    "Task",
    "ValuationSnapshot",
    "ValueLedgerEntry",
    "Job",
]
