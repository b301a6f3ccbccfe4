"""
action_plan.py — Action-Plan Scheduler

Purpose:
- Maintain a bounded, ranked working set of tasks (the action plan) drawn
  from a company's backlog.

Definitions:
- Active task: status not in INACTIVE_TASK_STATUSES
  (COMPLETED, CANCELLED, DEFERRED, NOT_APPLICABLE).
- Plan member: active task with in_action_plan = True.
- Backlog: active tasks with in_action_plan = False, ordered by
  (priority_rank asc, raw_impact desc, id asc).

Operations:
- generate: rebuild the plan for a due date (carry members forward or clear
  them first), then top up to capacity.
- refill: top up to capacity; never removes members; no-op when full.
- on_status_change: hook for every task status transition. A task leaving
  the active set drops out of the plan and a refill runs in the same
  transaction.

Concurrency:
- Every top-up locks the company row (SELECT ... FOR UPDATE on databases
  that support it) and recounts members under that lock before selecting
  backlog tasks, so two concurrent refills cannot exceed capacity.
"""

import datetime
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Query, Session

from app.core.config import settings
from app.core.errors import InvalidInputError, NotFoundError
from app.core.logging import get_logger
from app.models.company import Company
from app.models.enums import INACTIVE_TASK_STATUSES
from app.models.task import Task

logger = get_logger(__name__)


@dataclass
class GenerateResult:
    tasks_in_plan: int
    tasks_carried_forward: int
    new_tasks_added: int


@dataclass
class RefillResult:
    added: int
    total: int
    queue_remaining: int


@dataclass
class ActionPlanStatus:
    action_plan_count: int
    queue_count: int
    max_capacity: int
    slots_available: int
    can_refresh: bool


class ActionPlanScheduler:
    """
    Scheduler bound to one session and one capacity.

    Args:
        db: Session
        max_tasks: Plan capacity (MAX_ACTION_PLAN_TASKS when omitted)
        horizon_days: Latest allowed due date, in days from today
    """

    def __init__(self, db: Session, max_tasks: Optional[int] = None, horizon_days: Optional[int] = None):
        self.db = db
        self.max_tasks = settings.MAX_ACTION_PLAN_TASKS if max_tasks is None else max_tasks
        self.horizon_days = settings.ACTION_PLAN_MAX_HORIZON_DAYS if horizon_days is None else horizon_days
        if self.max_tasks < 0:
            raise InvalidInputError("Action plan capacity must not be negative")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _active(self, company_id: int) -> Query:
        return self.db.query(Task).filter(
            Task.company_id == company_id,
            Task.status.notin_(INACTIVE_TASK_STATUSES),
        )

    def plan_query(self, company_id: int) -> Query:
        return self._active(company_id).filter(Task.in_action_plan.is_(True))

    def backlog_query(self, company_id: int) -> Query:
        return (
            self._active(company_id)
            .filter(Task.in_action_plan.is_(False))
            .order_by(Task.priority_rank.asc(), Task.raw_impact.desc(), Task.id.asc())
        )

    def _get_company(self, company_id: int, lock: bool = False) -> Company:
        query = self.db.query(Company).filter(Company.id == company_id)
        if lock:
            query = query.with_for_update()
        company = query.one_or_none()
        if company is None:
            raise NotFoundError("Company", company_id)
        return company

    # ------------------------------------------------------------------
    # Top-up
    # ------------------------------------------------------------------

    def _top_up(
        self,
        company_id: int,
        due_date: Optional[datetime.date] = None,
        default_assignee_id: Optional[str] = None,
    ) -> int:
        """
        Move the best backlog tasks into the plan until it is full.

        Caller holds the company lock. Returns the number of tasks added.
        """
        self.db.flush()
        slots = self.max_tasks - self.plan_query(company_id).count()
        if slots <= 0:
            return 0

        candidates = self.backlog_query(company_id).limit(slots).all()
        for task in candidates:
            task.in_action_plan = True
            if due_date is not None:
                task.due_date = due_date
            if default_assignee_id and not task.primary_assignee_id:
                task.primary_assignee_id = default_assignee_id

        self.db.flush()
        return len(candidates)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def validate_due_date(self, due_date: datetime.date, today: Optional[datetime.date] = None) -> None:
        today = today or datetime.date.today()
        latest = today + datetime.timedelta(days=self.horizon_days)
        if due_date < today or due_date > latest:
            raise InvalidInputError(
                f"Due date must be between {today.isoformat()} and {latest.isoformat()}"
            )

    def generate(
        self,
        company_id: int,
        due_date: datetime.date,
        carry_forward: bool = True,
        default_assignee_id: Optional[str] = None,
        today: Optional[datetime.date] = None,
    ) -> GenerateResult:
        """
        Build a fresh plan for `due_date` and commit.

        carry_forward=True keeps current members (their due date moves to
        `due_date`); False returns them to the backlog first. Either way the
        plan is then topped up to capacity from the backlog.

        Raises:
            InvalidInputError: due_date outside [today, today + horizon]
            NotFoundError: Unknown company
        """
        self.validate_due_date(due_date, today)
        self._get_company(company_id, lock=True)

        members = self.plan_query(company_id).all()
        if carry_forward:
            for task in members:
                task.due_date = due_date
                if default_assignee_id and not task.primary_assignee_id:
                    task.primary_assignee_id = default_assignee_id
            carried = len(members)
        else:
            for task in members:
                task.in_action_plan = False
                task.due_date = None
            carried = 0

        added = self._top_up(company_id, due_date, default_assignee_id)
        total = self.plan_query(company_id).count()
        self.db.commit()

        logger.info(
            "Generated action plan for company %s: %d tasks (%d carried, %d added)",
            company_id, total, carried, added,
        )
        return GenerateResult(tasks_in_plan=total, tasks_carried_forward=carried, new_tasks_added=added)

    def refill(self, company_id: int, commit: bool = True) -> RefillResult:
        """
        Top up the plan to capacity. Idempotent; never removes members.
        """
        self._get_company(company_id, lock=True)
        added = self._top_up(company_id)
        total = self.plan_query(company_id).count()
        queue_remaining = self.backlog_query(company_id).count()
        if commit:
            self.db.commit()

        if added:
            logger.info(
                "Refilled action plan for company %s: +%d (total %d, queue %d)",
                company_id, added, total, queue_remaining,
            )
        return RefillResult(added=added, total=total, queue_remaining=queue_remaining)

    def list_plan(self, company_id: int) -> List[Task]:
        """Current members in plan order."""
        self._get_company(company_id)
        return (
            self.plan_query(company_id)
            .order_by(Task.priority_rank.asc(), Task.raw_impact.desc(), Task.id.asc())
            .all()
        )

    def status(self, company_id: int) -> ActionPlanStatus:
        self._get_company(company_id)
        count = self.plan_query(company_id).count()
        queue = self.backlog_query(company_id).count()
        slots = max(0, self.max_tasks - count)
        return ActionPlanStatus(
            action_plan_count=count,
            queue_count=queue,
            max_capacity=self.max_tasks,
            slots_available=slots,
            can_refresh=slots > 0 and queue > 0,
        )

    def on_status_change(self, task: Task, previous_status: Optional[str] = None, commit: bool = False) -> Optional[RefillResult]:
        """
        Re-evaluate plan membership after `task` changed status.

        A task entering an inactive status leaves the plan and frees its slot;
        the refill runs in the caller's transaction unless commit=True.
        Returns the refill result, or None when nothing was freed.
        """
        if task.status not in INACTIVE_TASK_STATUSES:
            return None
        if previous_status is not None and previous_status in INACTIVE_TASK_STATUSES:
            return None

        task.in_action_plan = False
        return self.refill(task.company_id, commit=commit)
