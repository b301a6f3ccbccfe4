"""
valuation.py — Valuation, Snapshot & Value Ledger Endpoints

Endpoints:
- GET  /api/v1/companies/{company_id}/valuation          - Snapshot-free preview
- POST /api/v1/companies/{company_id}/recalculate        - Recalculate and return the new snapshot
- GET  /api/v1/companies/{company_id}/snapshots/latest   - Most recent snapshot
- GET  /api/v1/companies/{company_id}/snapshots          - Snapshot history (newest first)
- GET  /api/v1/companies/{company_id}/ledger             - Value ledger (newest first)

This API module should NOT:
- Compute valuations itself; everything goes through services/valuation.
"""

import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.v1.schemas import ApiModel, SnapshotOut
from app.core.database import get_db
from app.core.errors import ValuationError, http_status_for
from app.core.logging import get_logger
from app.models.enums import LedgerEventType
from app.services.valuation.recalculate import build_valuation_preview, get_company, recalculate_company
from app.services.valuation.snapshots import get_latest_snapshot, list_ledger_entries, list_snapshots

logger = get_logger(__name__)

router = APIRouter(
    prefix="/companies",
    tags=["valuation"]
)

# -----------------------------------------------------------------------------
# Request/Response Schemas
# -----------------------------------------------------------------------------

class ValuationPreviewOut(ApiModel):
    valuation_low: float
    valuation_high: float
    adjusted_ebitda: float
    ebitda_margin_percent: float
    multiple_low: float
    multiple_high: float
    industry_name: str
    has_industry_multiple: bool


class RecalculateRequest(ApiModel):
    reason: Optional[str] = None
    event_type: LedgerEventType = LedgerEventType.MANUAL
    user_id: Optional[str] = None


class LedgerEntryOut(ApiModel):
    id: int
    snapshot_id: int
    event_type: str
    category: Optional[str] = None
    task_id: Optional[int] = None
    title: Optional[str] = None
    delta_value_recovered: float
    delta_value_at_risk: float
    bri_score_before: Optional[float] = None
    bri_score_after: float
    narrative: str
    narrative_source: str
    created_at: datetime.datetime


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------

@router.get("/{company_id}/valuation", response_model=ValuationPreviewOut)
def get_valuation_preview(company_id: int, db: Session = Depends(get_db)):
    """
    Industry-range valuation from adjusted EBITDA, available before any
    assessment exists.
    """
    try:
        preview = build_valuation_preview(db, company_id)
        return ValuationPreviewOut.model_validate(preview)
    except ValuationError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc))
    except Exception as exc:
        logger.exception("Error building valuation preview: %s", exc)
        raise HTTPException(status_code=500, detail=f"Error building valuation preview: {str(exc)}")


@router.post("/{company_id}/recalculate", response_model=SnapshotOut)
def recalculate(company_id: int, request: Optional[RecalculateRequest] = None, db: Session = Depends(get_db)):
    """
    Recalculate after a collaborator changed an upstream input.
    """
    request = request or RecalculateRequest()
    try:
        return recalculate_company(
            db,
            company_id,
            event_type=request.event_type,
            reason=request.reason,
            created_by_user_id=request.user_id,
        )
    except ValuationError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc))
    except Exception as exc:
        logger.exception("Error recalculating company %s: %s", company_id, exc)
        raise HTTPException(status_code=500, detail=f"Error recalculating valuation: {str(exc)}")


@router.get("/{company_id}/snapshots/latest", response_model=SnapshotOut)
def read_latest_snapshot(company_id: int, db: Session = Depends(get_db)):
    try:
        get_company(db, company_id)
        snapshot = get_latest_snapshot(db, company_id)
        if snapshot is None:
            raise HTTPException(status_code=404, detail=f"No valuation snapshot for company {company_id}")
        return snapshot
    except HTTPException:
        raise
    except ValuationError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc))


@router.get("/{company_id}/snapshots", response_model=List[SnapshotOut])
def read_snapshots(company_id: int, limit: int = Query(50, ge=1, le=500), db: Session = Depends(get_db)):
    try:
        get_company(db, company_id)
        return list_snapshots(db, company_id, limit)
    except ValuationError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc))


@router.get("/{company_id}/ledger", response_model=List[LedgerEntryOut])
def read_ledger(company_id: int, limit: int = Query(50, ge=1, le=500), db: Session = Depends(get_db)):
    try:
        get_company(db, company_id)
        return list_ledger_entries(db, company_id, limit)
    except ValuationError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc))
