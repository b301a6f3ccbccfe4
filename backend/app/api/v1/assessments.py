"""
assessments.py — Assessment Endpoints

Endpoints:
- PUT  /api/v1/companies/{company_id}/assessment/responses - Record an answer
- POST /api/v1/companies/{company_id}/assessment/complete  - Recalculate from current answers
"""

import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.v1.schemas import ApiModel, SnapshotOut
from app.core.database import get_db
from app.core.errors import ValuationError, http_status_for
from app.core.logging import get_logger
from app.services.assessments import complete_assessment, record_response

logger = get_logger(__name__)

router = APIRouter(
    prefix="/companies",
    tags=["assessments"]
)

# -----------------------------------------------------------------------------
# Request/Response Schemas
# -----------------------------------------------------------------------------

class ResponseRequest(ApiModel):
    question_id: int
    option_id: Optional[int] = None  # null = don't know / not applicable


class ResponseOut(ApiModel):
    id: int
    company_id: int
    question_id: int
    selected_option_id: Optional[int] = None
    effective_option_id: Optional[int] = None
    updated_at: datetime.datetime


class CompleteRequest(ApiModel):
    user_id: Optional[str] = None


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------

@router.put("/{company_id}/assessment/responses", response_model=ResponseOut)
def put_response(company_id: int, request: ResponseRequest, db: Session = Depends(get_db)):
    try:
        return record_response(db, company_id, request.question_id, request.option_id)
    except ValuationError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc))
    except Exception as exc:
        logger.exception("Error recording assessment response: %s", exc)
        raise HTTPException(status_code=500, detail=f"Error recording response: {str(exc)}")


@router.post("/{company_id}/assessment/complete", response_model=SnapshotOut)
def post_complete(company_id: int, request: Optional[CompleteRequest] = None, db: Session = Depends(get_db)):
    try:
        return complete_assessment(db, company_id, user_id=request.user_id if request else None)
    except ValuationError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc))
    except Exception as exc:
        logger.exception("Error completing assessment: %s", exc)
        raise HTTPException(status_code=500, detail=f"Error completing assessment: {str(exc)}")
