"""
industry_multiples.py — Industry Multiple Admin Endpoints

Endpoints:
- GET  /api/v1/industry-multiples          - All rows
- POST /api/v1/industry-multiples          - Create a row, recalculate affected companies
- PUT  /api/v1/industry-multiples/{id}     - Update a row, recalculate affected companies
- POST /api/v1/industry-multiples/import   - Replace all rows from a CSV body, recalculate every company

Recalculation counts are returned as {total, successful, failed}; a company
that fails to recalculate never fails the request.
"""

import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.api.v1.schemas import ApiModel, BatchOut
from app.core.database import get_db
from app.core.errors import ValuationError, http_status_for
from app.core.logging import get_logger
from app.services.industry_multiples import (
    create_industry_multiple,
    import_multiples_csv,
    list_industry_multiples,
    update_industry_multiple,
)

logger = get_logger(__name__)

router = APIRouter(
    prefix="/industry-multiples",
    tags=["industry-multiples"]
)

# -----------------------------------------------------------------------------
# Request/Response Schemas
# -----------------------------------------------------------------------------

class IndustryMultipleIn(ApiModel):
    icb_industry: str
    icb_super_sector: Optional[str] = None
    icb_sector: Optional[str] = None
    icb_sub_sector: Optional[str] = None
    ebitda_multiple_low: float
    ebitda_multiple_high: float
    revenue_multiple_low: float
    revenue_multiple_high: float
    ebitda_margin_low: Optional[float] = None
    ebitda_margin_high: Optional[float] = None
    effective_date: Optional[datetime.date] = None
    source: Optional[str] = None


class IndustryMultipleOut(IndustryMultipleIn):
    id: int
    effective_date: datetime.date


class MultipleChangeOut(ApiModel):
    multiple: IndustryMultipleOut
    recalculation: BatchOut


class ImportOut(ApiModel):
    imported: int
    total: int
    successful: int
    failed: int


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------

@router.get("", response_model=List[IndustryMultipleOut])
def read_industry_multiples(db: Session = Depends(get_db)):
    return list_industry_multiples(db)


@router.post("", response_model=MultipleChangeOut, status_code=201)
def post_industry_multiple(request: IndustryMultipleIn, db: Session = Depends(get_db)):
    try:
        row, batch = create_industry_multiple(db, request.model_dump())
        return MultipleChangeOut(
            multiple=IndustryMultipleOut.model_validate(row),
            recalculation=BatchOut.model_validate(batch),
        )
    except ValuationError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc))
    except Exception as exc:
        logger.exception("Error creating industry multiple: %s", exc)
        raise HTTPException(status_code=500, detail=f"Error creating industry multiple: {str(exc)}")


@router.put("/{multiple_id}", response_model=MultipleChangeOut)
def put_industry_multiple(multiple_id: int, request: IndustryMultipleIn, db: Session = Depends(get_db)):
    try:
        row, batch = update_industry_multiple(db, multiple_id, request.model_dump())
        return MultipleChangeOut(
            multiple=IndustryMultipleOut.model_validate(row),
            recalculation=BatchOut.model_validate(batch),
        )
    except ValuationError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc))
    except Exception as exc:
        logger.exception("Error updating industry multiple %s: %s", multiple_id, exc)
        raise HTTPException(status_code=500, detail=f"Error updating industry multiple: {str(exc)}")


@router.post("/import", response_model=ImportOut)
async def import_industry_multiples(request: Request, db: Session = Depends(get_db)):
    """
    Body is the raw CSV text (Content-Type: text/csv). Every row is
    validated before the table is touched.
    """
    try:
        text = (await request.body()).decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV body must be UTF-8 text")

    try:
        result = await run_in_threadpool(import_multiples_csv, db, text)
        return ImportOut.model_validate(result.as_dict())
    except ValuationError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc))
    except Exception as exc:
        logger.exception("Error importing industry multiples: %s", exc)
        raise HTTPException(status_code=500, detail=f"Error importing industry multiples: {str(exc)}")
