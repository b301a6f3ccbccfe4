"""
snapshots.py — Append-Only Valuation Snapshot Store

Purpose:
- Persist each valuation computation as an immutable ValuationSnapshot.
- Answer "latest by company", history and value ledger queries.

This module does NOT:
- Update or delete snapshots. A newer snapshot supersedes an older one.
- Commit. Callers commit the snapshot together with its ledger entry and
  any task side-effects.
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.models.valuation_snapshot import ValuationSnapshot, ValueLedgerEntry
from app.services.valuation.types import (
    BriResult,
    MultipleResult,
    ValuationResult,
)

logger = get_logger(__name__)


def create_snapshot(
    db: Session,
    company_id: int,
    adjusted_ebitda: float,
    multiples: MultipleResult,
    core_score: float,
    bri: BriResult,
    valuation: ValuationResult,
    alpha: float,
    reason: str,
    created_by_user_id: Optional[str] = None,
) -> ValuationSnapshot:
    """
    Append a snapshot and flush so it has an id.
    """
    categories = bri.categories
    snapshot = ValuationSnapshot(
        company_id=company_id,
        adjusted_ebitda=adjusted_ebitda,
        industry_multiple_low=multiples.ebitda_multiple_low,
        industry_multiple_high=multiples.ebitda_multiple_high,
        multiple_match_level=multiples.match_level,
        core_score=core_score,
        bri_score=bri.score,
        bri_financial=categories["FINANCIAL"],
        bri_transferability=categories["TRANSFERABILITY"],
        bri_operational=categories["OPERATIONAL"],
        bri_market=categories["MARKET"],
        bri_legal_tax=categories["LEGAL_TAX"],
        bri_personal=categories["PERSONAL"],
        base_multiple=valuation.base_multiple,
        discount_fraction=valuation.discount_fraction,
        final_multiple=valuation.final_multiple,
        current_value=valuation.current_value,
        potential_value=valuation.potential_value,
        value_gap=valuation.value_gap,
        alpha_constant=alpha,
        snapshot_reason=reason,
        created_by_user_id=created_by_user_id,
    )
    db.add(snapshot)
    db.flush()

    logger.info(
        "Snapshot %s for company %s: current=%.0f potential=%.0f BRI=%.3f (%s)",
        snapshot.id, company_id, valuation.current_value, valuation.potential_value, bri.score, reason,
    )
    return snapshot


def get_latest_snapshot(db: Session, company_id: int) -> Optional[ValuationSnapshot]:
    """Most recent snapshot by timestamp (id breaks ties)."""
    return (
        db.query(ValuationSnapshot)
        .filter(ValuationSnapshot.company_id == company_id)
        .order_by(ValuationSnapshot.created_at.desc(), ValuationSnapshot.id.desc())
        .first()
    )


def list_snapshots(db: Session, company_id: int, limit: int = 50) -> List[ValuationSnapshot]:
    """Newest-first history for trend charts."""
    return (
        db.query(ValuationSnapshot)
        .filter(ValuationSnapshot.company_id == company_id)
        .order_by(ValuationSnapshot.created_at.desc(), ValuationSnapshot.id.desc())
        .limit(limit)
        .all()
    )


def list_ledger_entries(db: Session, company_id: int, limit: int = 50) -> List[ValueLedgerEntry]:
    """Newest-first value ledger for a company."""
    return (
        db.query(ValueLedgerEntry)
        .filter(ValueLedgerEntry.company_id == company_id)
        .order_by(ValueLedgerEntry.created_at.desc(), ValueLedgerEntry.id.desc())
        .limit(limit)
        .all()
    )
