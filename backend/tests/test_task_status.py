"""
Tests for task status transitions and completion effects (services/tasks/status.py).
"""

import pytest

from app.core.errors import InvalidInputError, NotFoundError
from app.models.assessment import AssessmentResponse, BriCategoryAdjustment
from app.models.valuation_snapshot import ValueLedgerEntry
from app.services.tasks.action_plan import ActionPlanScheduler
from app.services.tasks.priority import calculate_priority_rank, create_task
from app.services.tasks.status import update_task_status
from app.services.valuation.recalculate import recalculate_company


def _option(question, score):
    return next(o for o in question.options if o.score_value == score)


def test_linked_task_upgrades_effective_answer(db, make_company, make_question, answer, make_task):
    company = make_company()
    question = make_question(category="FINANCIAL")
    answer(company, question, 0.0)
    task = make_task(
        company,
        category="FINANCIAL",
        origin="ASSESSMENT",
        linked_question_id=question.id,
        upgrades_to_option_id=_option(question, 1.0).id,
    )

    result = update_task_status(db, task.id, "COMPLETED", user_id="user-1")

    response = db.query(AssessmentResponse).filter(AssessmentResponse.company_id == company.id).one()
    assert response.selected_option.score_value == 0.0
    assert response.effective_option.score_value == 1.0
    assert response.upgraded_by_task_id == task.id
    assert result.snapshot.bri_financial == pytest.approx(1.0)
    assert result.snapshot.created_by_user_id == "user-1"
    assert result.snapshot.snapshot_reason == f"Task completed: {task.title}"


def test_linked_task_without_target_moves_one_step(db, make_company, make_question, answer, make_task):
    company = make_company()
    question = make_question(category="MARKET")
    answer(company, question, 0.0)
    task = make_task(company, category="MARKET", origin="ASSESSMENT", linked_question_id=question.id)

    update_task_status(db, task.id, "COMPLETED")

    response = db.query(AssessmentResponse).filter(AssessmentResponse.company_id == company.id).one()
    assert response.effective_option.score_value == 0.5


def test_target_option_must_belong_to_question(db, make_company, make_question, make_task):
    company = make_company()
    question = make_question()
    other = make_question(prompt="Is there a second-in-command?")
    task = make_task(
        company,
        origin="ASSESSMENT",
        linked_question_id=question.id,
        upgrades_to_option_id=_option(other, 1.0).id,
    )

    with pytest.raises(InvalidInputError):
        update_task_status(db, task.id, "COMPLETED")

    db.refresh(task)
    assert task.status == "PENDING"


def test_onboarding_task_applies_category_lift(db, make_company, make_task):
    company = make_company()
    task = make_task(company, category="OPERATIONAL", origin="ONBOARDING")

    result = update_task_status(db, task.id, "COMPLETED")

    adjustment = db.query(BriCategoryAdjustment).one()
    assert adjustment.delta == pytest.approx(0.02)
    assert adjustment.task_id == task.id
    assert result.snapshot.bri_operational == pytest.approx(0.72)


def test_onboarding_task_uses_own_improvement(db, make_company, make_task):
    company = make_company()
    task = make_task(company, category="PERSONAL", origin="ONBOARDING", bri_improvement=0.1)

    result = update_task_status(db, task.id, "COMPLETED")

    assert result.snapshot.bri_personal == pytest.approx(0.8)


def test_completion_writes_ledger_entry(db, make_company, make_task):
    company = make_company()
    recalculate_company(db, company.id, event_type="ONBOARDING")
    task = make_task(company, category="OPERATIONAL", origin="ONBOARDING", title="Write the ops manual")

    result = update_task_status(db, task.id, "COMPLETED")

    entry = db.query(ValueLedgerEntry).filter(ValueLedgerEntry.snapshot_id == result.snapshot.id).one()
    assert entry.event_type == "TASK_COMPLETED"
    assert entry.task_id == task.id
    assert entry.title == "Write the ops manual"
    assert entry.category == "OPERATIONAL"
    assert entry.delta_value_recovered > 0
    assert "Write the ops manual" in entry.narrative


def test_completed_value_is_frozen(db, make_company, make_task):
    company = make_company()
    task = make_task(company, raw_impact=100)
    recalculate_company(db, company.id)
    db.refresh(task)
    captured = task.normalized_value
    assert captured > 0

    update_task_status(db, task.id, "COMPLETED")
    recalculate_company(db, company.id)

    db.refresh(task)
    assert task.completed_value == captured
    assert task.completed_at is not None


def test_completed_value_falls_back_to_raw_impact(db, make_company, make_task):
    company = make_company()
    task = make_task(company, raw_impact=4_200)

    result = update_task_status(db, task.id, "COMPLETED")

    assert result.task.completed_value == 4_200


def test_completed_is_final(db, make_company, make_task):
    company = make_company()
    task = make_task(company)
    update_task_status(db, task.id, "COMPLETED")

    with pytest.raises(InvalidInputError):
        update_task_status(db, task.id, "PENDING")

    unchanged = update_task_status(db, task.id, "COMPLETED")
    assert unchanged.snapshot is None


def test_unknown_task_or_status(db, make_company, make_task):
    with pytest.raises(NotFoundError):
        update_task_status(db, 999, "COMPLETED")

    task = make_task(make_company())
    with pytest.raises(InvalidInputError):
        update_task_status(db, task.id, "FINISHED")


def test_active_transition_has_no_side_effects(db, make_company, make_task):
    company = make_company()
    task = make_task(company, in_action_plan=True)

    result = update_task_status(db, task.id, "IN_PROGRESS")

    assert result.snapshot is None
    assert result.refill is None
    assert result.task.in_action_plan is True


def test_cancelling_member_refills_plan(db, make_company, make_task):
    company = make_company()
    member = make_task(company, priority_rank=1, in_action_plan=True)
    waiting = make_task(company, priority_rank=2)
    scheduler = ActionPlanScheduler(db, max_tasks=1)

    result = update_task_status(db, member.id, "CANCELLED", scheduler=scheduler)

    assert result.snapshot is None
    assert result.refill.added == 1
    assert result.task.in_action_plan is False
    db.refresh(waiting)
    assert waiting.in_action_plan is True


def test_priority_rank_grid():
    assert calculate_priority_rank("CRITICAL", "TRIVIAL") == 1
    assert calculate_priority_rank("CRITICAL", "VERY_HARD") == 5
    assert calculate_priority_rank("HIGH", "TRIVIAL") == 6
    assert calculate_priority_rank("MINIMAL", "VERY_HARD") == 25
    with pytest.raises(InvalidInputError):
        calculate_priority_rank("HUGE", "EASY")


def test_create_task_ranks_from_levels(db, make_company):
    company = make_company()

    task = create_task(db, company.id, "Sign key-customer contracts", "MARKET",
                       raw_impact=50_000, impact_level="HIGH", difficulty_level="MODERATE")
    unranked = create_task(db, company.id, "Tidy the data room", "LEGAL_TAX")
    db.commit()

    assert task.priority_rank == 8
    assert unranked.priority_rank == 25
    assert task.in_action_plan is False

    with pytest.raises(InvalidInputError):
        create_task(db, company.id, "Bad", "NOT_A_CATEGORY")


def test_create_task_checks_linked_question(db, make_company, make_question):
    company = make_company()
    question = make_question()
    other = make_question(prompt="Is there a second-in-command?")

    with pytest.raises(NotFoundError):
        create_task(db, company.id, "Clean up the books", "FINANCIAL", linked_question_id=9999)
    with pytest.raises(InvalidInputError):
        create_task(db, company.id, "Clean up the books", "FINANCIAL",
                    linked_question_id=question.id, upgrades_to_option_id=_option(other, 1.0).id)
    with pytest.raises(InvalidInputError):
        create_task(db, company.id, "Clean up the books", "FINANCIAL",
                    linked_question_id=question.id, upgrades_from_option_id=9999)
    with pytest.raises(InvalidInputError):
        create_task(db, company.id, "Clean up the books", "FINANCIAL",
                    upgrades_to_option_id=_option(question, 1.0).id)

    task = create_task(db, company.id, "Clean up the books", "FINANCIAL",
                       linked_question_id=question.id,
                       upgrades_from_option_id=_option(question, 0.0).id,
                       upgrades_to_option_id=_option(question, 1.0).id)
    assert task.linked_question_id == question.id


@pytest.mark.parametrize("lift", [-0.5, 0.0, 1.5])
def test_create_task_rejects_bri_improvement_out_of_range(db, make_company, lift):
    company = make_company()

    with pytest.raises(InvalidInputError):
        create_task(db, company.id, "Write the ops manual", "OPERATIONAL",
                    origin="ONBOARDING", bri_improvement=lift)

    assert create_task(db, company.id, "Write the ops manual", "OPERATIONAL",
                       origin="ONBOARDING", bri_improvement=1.0).bri_improvement == 1.0
