"""
priority.py — Task Priority Matrix & Task Creation

Purpose:
- Rank tasks 1..25 from a 5×5 impact × difficulty matrix:
      rank = impact_index × 5 + difficulty_index + 1
  so CRITICAL/TRIVIAL is 1 (most urgent) and MINIMAL/VERY_HARD is 25.
- Create backlog tasks with a validated category and a computed rank.

Rank is the first action-plan ordering key; raw_impact breaks ties.
"""

from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from app.core.errors import InvalidInputError, NotFoundError
from app.models.assessment import AssessmentOption, AssessmentQuestion
from app.models.company import Company
from app.models.enums import BRI_CATEGORIES, TaskOrigin, TaskStatus
from app.models.task import Task


class ImpactLevel(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    MINIMAL = "MINIMAL"


class DifficultyLevel(str, Enum):
    TRIVIAL = "TRIVIAL"
    EASY = "EASY"
    MODERATE = "MODERATE"
    HARD = "HARD"
    VERY_HARD = "VERY_HARD"


IMPACT_ORDER = [level.value for level in ImpactLevel]
DIFFICULTY_ORDER = [level.value for level in DifficultyLevel]

LOWEST_PRIORITY_RANK = len(IMPACT_ORDER) * len(DIFFICULTY_ORDER)


def calculate_priority_rank(impact_level: str, difficulty_level: str) -> int:
    """
    Matrix rank for an impact/difficulty pair.

    Raises:
        InvalidInputError: Unknown impact or difficulty level
    """
    try:
        impact_idx = IMPACT_ORDER.index(ImpactLevel(impact_level).value)
        difficulty_idx = DIFFICULTY_ORDER.index(DifficultyLevel(difficulty_level).value)
    except ValueError:
        raise InvalidInputError(
            f"Unknown impact/difficulty combination: {impact_level}/{difficulty_level}"
        )
    return impact_idx * len(DIFFICULTY_ORDER) + difficulty_idx + 1


def _check_answer_link(
    db: Session,
    question_id: Optional[int],
    from_option_id: Optional[int],
    to_option_id: Optional[int],
) -> None:
    if question_id is None:
        if from_option_id is not None or to_option_id is not None:
            raise InvalidInputError("Upgrade options require linked_question_id")
        return
    if db.get(AssessmentQuestion, question_id) is None:
        raise NotFoundError("AssessmentQuestion", question_id)
    for option_id in (from_option_id, to_option_id):
        if option_id is None:
            continue
        option = db.get(AssessmentOption, option_id)
        if option is None or option.question_id != question_id:
            raise InvalidInputError(
                f"Option {option_id} is not an option of question {question_id}"
            )


def create_task(
    db: Session,
    company_id: int,
    title: str,
    category: str,
    raw_impact: float = 0.0,
    impact_level: Optional[str] = None,
    difficulty_level: Optional[str] = None,
    origin: str = TaskOrigin.MANUAL.value,
    linked_question_id: Optional[int] = None,
    upgrades_from_option_id: Optional[int] = None,
    upgrades_to_option_id: Optional[int] = None,
    bri_improvement: Optional[float] = None,
) -> Task:
    """
    Add a PENDING backlog task (not yet in the action plan). Flushes, does not commit.
    """
    if db.get(Company, company_id) is None:
        raise NotFoundError("Company", company_id)
    if not title or not title.strip():
        raise InvalidInputError("Task title is required")
    if category not in BRI_CATEGORIES:
        raise InvalidInputError(f"Unknown BRI category: {category}")
    if raw_impact is None or raw_impact < 0:
        raise InvalidInputError("raw_impact must be a non-negative amount")
    try:
        origin = TaskOrigin(origin).value
    except ValueError:
        raise InvalidInputError(f"Unknown task origin: {origin}")
    if bri_improvement is not None and not 0 < bri_improvement <= 1:
        raise InvalidInputError("bri_improvement must be in (0, 1]")
    _check_answer_link(db, linked_question_id, upgrades_from_option_id, upgrades_to_option_id)

    if impact_level and difficulty_level:
        rank = calculate_priority_rank(impact_level, difficulty_level)
    else:
        rank = LOWEST_PRIORITY_RANK

    task = Task(
        company_id=company_id,
        title=title.strip(),
        category=category,
        raw_impact=float(raw_impact),
        priority_rank=rank,
        impact_level=impact_level,
        difficulty_level=difficulty_level,
        status=TaskStatus.PENDING.value,
        in_action_plan=False,
        origin=origin,
        linked_question_id=linked_question_id,
        upgrades_from_option_id=upgrades_from_option_id,
        upgrades_to_option_id=upgrades_to_option_id,
        bri_improvement=bri_improvement,
    )
    db.add(task)
    db.flush()
    return task
