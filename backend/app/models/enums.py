"""
enums.py — Shared Status & Category Vocabularies

Stored as plain strings in the database; the str mixin lets ORM values compare
equal to the enum members directly.
"""

from enum import Enum


class BriCategory(str, Enum):
    FINANCIAL = "FINANCIAL"
    TRANSFERABILITY = "TRANSFERABILITY"
    OPERATIONAL = "OPERATIONAL"
    MARKET = "MARKET"
    LEGAL_TAX = "LEGAL_TAX"
    PERSONAL = "PERSONAL"


BRI_CATEGORIES = [c.value for c in BriCategory]


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DEFERRED = "DEFERRED"
    NOT_APPLICABLE = "NOT_APPLICABLE"
    BLOCKED = "BLOCKED"


# Statuses that take a task out of the action plan and out of the backlog
INACTIVE_TASK_STATUSES = frozenset({
    TaskStatus.COMPLETED.value,
    TaskStatus.CANCELLED.value,
    TaskStatus.DEFERRED.value,
    TaskStatus.NOT_APPLICABLE.value,
})


class TaskOrigin(str, Enum):
    ASSESSMENT = "ASSESSMENT"
    ONBOARDING = "ONBOARDING"
    MANUAL = "MANUAL"


class LedgerEventType(str, Enum):
    ONBOARDING = "ONBOARDING"
    TASK_COMPLETED = "TASK_COMPLETED"
    ASSESSMENT_COMPLETED = "ASSESSMENT_COMPLETED"
    MULTIPLES_UPDATED = "MULTIPLES_UPDATED"
    DRIFT_DETECTED = "DRIFT_DETECTED"
    MANUAL = "MANUAL"


class AdjustmentType(str, Enum):
    ADD_BACK = "ADD_BACK"
    DEDUCTION = "DEDUCTION"
