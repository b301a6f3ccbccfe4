"""
status.py — Task Status Transitions

Purpose:
- Apply a status change to a task and everything that follows from it, in
  one commit:
    * COMPLETED: apply the completion effect, recalculate the valuation
      (snapshot + ledger entry), then freeze completed_value
    * any inactive status: drop out of the action plan and refill it

Completion effects:
- Assessment-linked task: the effective answer for its question moves to
  the task's target option (or the next better option). The user's own
  selection is left untouched.
- Onboarding task (no linked question): a direct lift on its BRI category,
  task.bri_improvement or ONBOARDING_TASK_BRI_LIFT.

COMPLETED is final; completed_value is written once and never recomputed.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import utcnow
from app.core.errors import InvalidInputError, NotFoundError
from app.core.logging import get_logger
from app.models.assessment import AssessmentOption, AssessmentQuestion, AssessmentResponse, BriCategoryAdjustment
from app.models.enums import LedgerEventType, TaskOrigin, TaskStatus
from app.models.task import Task
from app.models.valuation_snapshot import ValuationSnapshot
from app.services.tasks.action_plan import ActionPlanScheduler, RefillResult
from app.services.valuation.narratives import NarrativeClient
from app.services.valuation.recalculate import recalculate_company
from app.services.valuation.types import ValuationConfig

logger = get_logger(__name__)


@dataclass
class StatusChangeResult:
    task: Task
    previous_status: str
    snapshot: Optional[ValuationSnapshot] = None
    refill: Optional[RefillResult] = None


# -----------------------------------------------------------------------------
# Completion effects
# -----------------------------------------------------------------------------

def _next_better_option(question: AssessmentQuestion, current: Optional[AssessmentOption]) -> Optional[AssessmentOption]:
    options = sorted(question.options, key=lambda o: (o.score_value, o.id))
    if current is None:
        return options[-1] if options else None
    for option in options:
        if option.score_value > current.score_value:
            return option
    return None


def upgrade_linked_answer(db: Session, task: Task) -> Optional[AssessmentResponse]:
    """
    Point the effective answer of the task's question at a better option.

    Returns the upgraded response, or None when no better option exists.
    """
    question = db.get(AssessmentQuestion, task.linked_question_id)
    if question is None:
        raise NotFoundError("AssessmentQuestion", task.linked_question_id)

    response = (
        db.query(AssessmentResponse)
        .filter(
            AssessmentResponse.company_id == task.company_id,
            AssessmentResponse.question_id == question.id,
        )
        .one_or_none()
    )
    if response is None:
        response = AssessmentResponse(company_id=task.company_id, question_id=question.id)
        db.add(response)

    current = response.effective_option or response.selected_option

    target = None
    if task.upgrades_to_option_id is not None:
        target = db.get(AssessmentOption, task.upgrades_to_option_id)
        if target is None or target.question_id != question.id:
            raise InvalidInputError(
                f"Task {task.id} upgrades to option {task.upgrades_to_option_id}, "
                f"which does not belong to question {question.id}"
            )
    else:
        target = _next_better_option(question, current)

    if target is None or (current is not None and target.score_value <= current.score_value):
        logger.info("Task %s: no better answer for question %s; effective answer unchanged", task.id, question.id)
        return None

    response.effective_option = target
    response.upgraded_by_task_id = task.id
    response.updated_at = utcnow()
    return response


def apply_onboarding_lift(db: Session, task: Task, config: ValuationConfig) -> BriCategoryAdjustment:
    delta = task.bri_improvement if task.bri_improvement is not None else config.onboarding_task_bri_lift
    adjustment = BriCategoryAdjustment(
        company_id=task.company_id,
        category=task.category,
        delta=delta,
        task_id=task.id,
    )
    db.add(adjustment)
    return adjustment


def apply_completion_effect(db: Session, task: Task, config: ValuationConfig) -> None:
    if task.linked_question_id is not None:
        upgrade_linked_answer(db, task)
    elif task.origin == TaskOrigin.ONBOARDING.value or task.bri_improvement is not None:
        apply_onboarding_lift(db, task, config)


# -----------------------------------------------------------------------------
# Transition
# -----------------------------------------------------------------------------

def update_task_status(
    db: Session,
    task_id: int,
    new_status: str,
    user_id: Optional[str] = None,
    scheduler: Optional[ActionPlanScheduler] = None,
    config: Optional[ValuationConfig] = None,
    narrative_client: Optional[NarrativeClient] = None,
) -> StatusChangeResult:
    """
    Change a task's status and commit every consequence together.

    Raises:
        NotFoundError: Unknown task
        InvalidInputError: Unknown status, or moving a completed task
    """
    task = db.get(Task, task_id)
    if task is None:
        raise NotFoundError("Task", task_id)

    try:
        status = TaskStatus(new_status).value
    except ValueError:
        raise InvalidInputError(f"Unknown task status: {new_status}")

    previous = task.status
    if previous == status:
        return StatusChangeResult(task=task, previous_status=previous)
    if previous == TaskStatus.COMPLETED.value:
        raise InvalidInputError(f"Task {task_id} is completed; its status can no longer change")

    config = config or ValuationConfig.from_settings(settings)
    scheduler = scheduler or ActionPlanScheduler(db)

    task.status = status
    snapshot = None
    try:
        if status == TaskStatus.COMPLETED.value:
            apply_completion_effect(db, task, config)
            snapshot = recalculate_company(
                db,
                task.company_id,
                event_type=LedgerEventType.TASK_COMPLETED,
                reason=f"Task completed: {task.title}",
                created_by_user_id=user_id,
                task=task,
                config=config,
                narrative_client=narrative_client,
                commit=False,
            )
            task.completed_value = task.normalized_value if task.normalized_value is not None else task.raw_impact
            task.completed_at = utcnow()

        refill = scheduler.on_status_change(task, previous)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(task)
    logger.info("Task %s: %s -> %s", task_id, previous, status)
    return StatusChangeResult(task=task, previous_status=previous, snapshot=snapshot, refill=refill)
