"""
assessments.py — Assessment Responses & Completion

Purpose:
- Record a company's answer to an assessment question.
- Trigger the ASSESSMENT_COMPLETED recalculation.

Recording an answer resets any task-driven upgrade on that question: the
user's new selection becomes the effective answer again.
"""

from typing import Optional

from sqlalchemy.orm import Session

from app.core.database import utcnow
from app.core.errors import InvalidInputError, NotFoundError
from app.core.logging import get_logger
from app.models.assessment import AssessmentOption, AssessmentQuestion, AssessmentResponse
from app.models.company import Company
from app.models.enums import LedgerEventType
from app.models.valuation_snapshot import ValuationSnapshot
from app.services.valuation.narratives import NarrativeClient
from app.services.valuation.recalculate import recalculate_company

logger = get_logger(__name__)


def record_response(
    db: Session,
    company_id: int,
    question_id: int,
    option_id: Optional[int] = None,
) -> AssessmentResponse:
    """
    Upsert the company's answer to a question and commit.

    option_id=None records "don't know / not applicable".

    Raises:
        NotFoundError: Unknown company, question or option
        InvalidInputError: Option belongs to another question
    """
    if db.get(Company, company_id) is None:
        raise NotFoundError("Company", company_id)
    question = db.get(AssessmentQuestion, question_id)
    if question is None:
        raise NotFoundError("AssessmentQuestion", question_id)

    option = None
    if option_id is not None:
        option = db.get(AssessmentOption, option_id)
        if option is None:
            raise NotFoundError("AssessmentOption", option_id)
        if option.question_id != question.id:
            raise InvalidInputError(f"Option {option_id} does not belong to question {question_id}")

    response = (
        db.query(AssessmentResponse)
        .filter(
            AssessmentResponse.company_id == company_id,
            AssessmentResponse.question_id == question_id,
        )
        .one_or_none()
    )
    if response is None:
        response = AssessmentResponse(company_id=company_id, question_id=question_id)
        db.add(response)

    response.selected_option = option
    response.effective_option = None
    response.upgraded_by_task_id = None
    response.updated_at = utcnow()

    db.commit()
    db.refresh(response)
    return response


def complete_assessment(
    db: Session,
    company_id: int,
    user_id: Optional[str] = None,
    narrative_client: Optional[NarrativeClient] = None,
) -> ValuationSnapshot:
    """
    Recalculate from the current answers. Unanswered categories score the
    configured default, so completing with few answers is allowed.
    """
    snapshot = recalculate_company(
        db,
        company_id,
        event_type=LedgerEventType.ASSESSMENT_COMPLETED,
        created_by_user_id=user_id,
        narrative_client=narrative_client,
    )
    logger.info("Assessment completed for company %s (snapshot %s)", company_id, snapshot.id)
    return snapshot
