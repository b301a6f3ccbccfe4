"""
recalculate.py — Valuation Recalculation Pipeline

Purpose:
- Re-run the valuation for a company whenever an upstream input changes
  (onboarding, task completion, assessment completion, industry multiple
  edits, drift detection, manual request).
- Each run:
    1. reads the company's classification and CoreFactors
    2. re-resolves multiples
    3. recomputes adjusted EBITDA
    4. recomputes Core Score and BRI from the current effective answers
    5. runs the valuation engine
    6. appends a ValuationSnapshot tagged with a reason
    7. appends a ValueLedgerEntry with the delta versus the preceding snapshot
    8. re-allocates the new value gap across open tasks (normalized_value)
- Build the snapshot-free preview shown before any assessment exists.
- Recalculate many companies at once with per-company failure isolation.

This module does NOT:
- Change task status or plan membership (see services/tasks).
- Decide which companies an admin edit affects (see multiples.find_affected_companies).
"""

from typing import Iterable, Optional, Union

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import InvalidInputError, NotFoundError
from app.core.logging import get_logger
from app.models.company import Company
from app.models.enums import INACTIVE_TASK_STATUSES, LedgerEventType
from app.models.task import Task
from app.models.valuation_snapshot import ValuationSnapshot, ValueLedgerEntry
from app.services import jobs
from app.services.valuation.ebitda import calculate_adjusted_ebitda
from app.services.valuation.engine import calculate_valuation
from app.services.valuation.multiples import classification_label, resolve_for_company
from app.services.valuation.narratives import (
    NarrativeClient,
    NarrativeContext,
    NarrativeParams,
    generate_ledger_narrative,
)
from app.services.valuation.scoring import calculate_core_score, compute_company_bri
from app.services.valuation.snapshots import create_snapshot, get_latest_snapshot
from app.services.valuation.types import (
    BatchResult,
    ValuationConfig,
    ValuationInputs,
    ValuationPreview,
    round_currency,
)

logger = get_logger(__name__)

DEFAULT_REASONS = {
    LedgerEventType.ONBOARDING.value: "Onboarding complete",
    LedgerEventType.TASK_COMPLETED.value: "Task completed",
    LedgerEventType.ASSESSMENT_COMPLETED.value: "Assessment completed",
    LedgerEventType.MULTIPLES_UPDATED.value: "Industry multiples updated",
    LedgerEventType.DRIFT_DETECTED.value: "Signal drift detected",
    LedgerEventType.MANUAL.value: "Manual recalculation",
}


def _event_value(event_type: Union[str, LedgerEventType]) -> str:
    try:
        return LedgerEventType(event_type).value
    except ValueError:
        raise InvalidInputError(f"Unknown ledger event type: {event_type}")


def get_company(db: Session, company_id: int) -> Company:
    company = db.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company", company_id)
    return company


# -----------------------------------------------------------------------------
# Preview
# -----------------------------------------------------------------------------

def build_valuation_preview(
    db: Session,
    company_id: int,
    config: Optional[ValuationConfig] = None,
) -> ValuationPreview:
    """
    Industry-range valuation from adjusted EBITDA alone (no Core Score, no BRI).

    Uses the same resolver and EBITDA function as the snapshot path so the
    preview and the first snapshot agree on adjusted EBITDA.
    """
    config = config or ValuationConfig.from_settings(settings)
    company = get_company(db, company_id)

    multiples = resolve_for_company(db, company)
    adjusted = calculate_adjusted_ebitda(company, multiples, config.implied_margin_cap)

    revenue = company.annual_revenue or 0.0
    margin_percent = round(adjusted / revenue * 100, 1) if revenue > 0 else 0.0

    return ValuationPreview(
        valuation_low=round_currency(adjusted * multiples.ebitda_multiple_low),
        valuation_high=round_currency(adjusted * multiples.ebitda_multiple_high),
        adjusted_ebitda=adjusted,
        ebitda_margin_percent=margin_percent,
        multiple_low=multiples.ebitda_multiple_low,
        multiple_high=multiples.ebitda_multiple_high,
        industry_name=multiples.industry_name or classification_label(company.icb_industry),
        has_industry_multiple=not multiples.is_default,
    )


# -----------------------------------------------------------------------------
# Ledger & task values
# -----------------------------------------------------------------------------

def record_ledger_entry(
    db: Session,
    company: Company,
    snapshot: ValuationSnapshot,
    previous: Optional[ValuationSnapshot],
    event_type: str,
    reason: str,
    task: Optional[Task] = None,
    narrative_client: Optional[NarrativeClient] = None,
) -> ValueLedgerEntry:
    """
    Append the ledger entry for `snapshot`, diffed against `previous`.

    With no previous snapshot both deltas are zero and bri_score_before is None.
    """
    if previous is not None:
        diff = snapshot.current_value - previous.current_value
        bri_before = previous.bri_score
    else:
        diff = 0.0
        bri_before = None

    params = NarrativeParams(
        event_type=event_type,
        title=task.title if task is not None else reason,
        category=task.category if task is not None else None,
        delta_value_recovered=max(diff, 0.0),
        delta_value_at_risk=max(-diff, 0.0),
        bri_score_before=bri_before,
        bri_score_after=snapshot.bri_score,
    )
    context = NarrativeContext(
        company_name=company.name,
        industry=classification_label(
            company.icb_industry, company.icb_super_sector, company.icb_sector, company.icb_sub_sector
        ),
        current_value=snapshot.current_value,
        value_gap=snapshot.value_gap,
        bri_score=snapshot.bri_score,
    )
    narrative = generate_ledger_narrative(params, context, client=narrative_client)

    entry = ValueLedgerEntry(
        company_id=company.id,
        snapshot_id=snapshot.id,
        event_type=event_type,
        category=params.category,
        task_id=task.id if task is not None else None,
        title=params.title,
        delta_value_recovered=params.delta_value_recovered,
        delta_value_at_risk=params.delta_value_at_risk,
        bri_score_before=bri_before,
        bri_score_after=snapshot.bri_score,
        narrative=narrative.narrative,
        narrative_source=narrative.source,
    )
    db.add(entry)
    return entry


def refresh_task_values(db: Session, company_id: int, value_gap: float) -> int:
    """
    Spread the value gap across the company's open tasks by raw impact.

    Returns the number of tasks updated. Completed tasks keep their frozen
    completed_value and are not touched.
    """
    open_tasks = (
        db.query(Task)
        .filter(Task.company_id == company_id, Task.status.notin_(INACTIVE_TASK_STATUSES))
        .all()
    )
    total_impact = sum(max(0.0, t.raw_impact or 0.0) for t in open_tasks)

    for task in open_tasks:
        if total_impact <= 0:
            task.normalized_value = 0.0
        else:
            share = max(0.0, task.raw_impact or 0.0) / total_impact
            task.normalized_value = round_currency(value_gap * share)

    return len(open_tasks)


# -----------------------------------------------------------------------------
# Pipeline
# -----------------------------------------------------------------------------

def recalculate_company(
    db: Session,
    company_id: int,
    event_type: Union[str, LedgerEventType] = LedgerEventType.MANUAL,
    reason: Optional[str] = None,
    created_by_user_id: Optional[str] = None,
    task: Optional[Task] = None,
    config: Optional[ValuationConfig] = None,
    narrative_client: Optional[NarrativeClient] = None,
    commit: bool = True,
) -> ValuationSnapshot:
    """
    Recompute and persist a company's valuation.

    Args:
        db: Session
        company_id: Company to value
        event_type: LedgerEventType of the trigger
        reason: Snapshot reason (defaults per event type)
        created_by_user_id: Actor recorded on the snapshot
        task: Task whose completion triggered the run, if any
        config: Engine constants (settings when omitted)
        narrative_client: Injected narrative client (tests)
        commit: Commit snapshot, ledger entry and task values together.
                Callers that bundle further writes pass False and commit themselves.

    Returns:
        The new ValuationSnapshot

    Raises:
        NotFoundError: Unknown company
        InvalidInputError: Unusable classification or negative revenue
    """
    event = _event_value(event_type)
    reason = reason or DEFAULT_REASONS[event]
    config = config or ValuationConfig.from_settings(settings)

    # Pending writes from the caller (answer upgrades, adjustments) must be visible
    db.flush()
    company = get_company(db, company_id)
    previous = get_latest_snapshot(db, company_id)

    multiples = resolve_for_company(db, company)
    adjusted = calculate_adjusted_ebitda(company, multiples, config.implied_margin_cap)
    core_score = calculate_core_score(company.core_factors, config.default_core_score)
    bri = compute_company_bri(db, company, config)

    valuation = calculate_valuation(
        ValuationInputs(
            adjusted_ebitda=adjusted,
            multiple_low=multiples.ebitda_multiple_low,
            multiple_high=multiples.ebitda_multiple_high,
            core_score=core_score,
            bri_score=bri.score,
        ),
        config.alpha,
    )

    snapshot = create_snapshot(
        db,
        company_id=company.id,
        adjusted_ebitda=adjusted,
        multiples=multiples,
        core_score=core_score,
        bri=bri,
        valuation=valuation,
        alpha=config.alpha,
        reason=reason,
        created_by_user_id=created_by_user_id,
    )
    record_ledger_entry(db, company, snapshot, previous, event, reason, task, narrative_client)
    refresh_task_values(db, company.id, valuation.value_gap)

    if commit:
        db.commit()
        db.refresh(snapshot)
    return snapshot


def recalculate_companies(
    db: Session,
    company_ids: Iterable[int],
    event_type: Union[str, LedgerEventType] = LedgerEventType.MULTIPLES_UPDATED,
    reason: Optional[str] = None,
    job_type: str = "recalculate-all",
    config: Optional[ValuationConfig] = None,
) -> BatchResult:
    """
    Recalculate each company independently, recording the run as a Job.

    A failing company is rolled back, logged and counted; the batch continues.
    The job is marked failed only when no company succeeded.
    """
    company_ids = list(company_ids)
    job = jobs.create_job(job_type, db)
    result = BatchResult(total=len(company_ids))

    for company_id in company_ids:
        try:
            recalculate_company(db, company_id, event_type=event_type, reason=reason, config=config)
            result.successful += 1
        except Exception:
            db.rollback()
            logger.exception("Recalculation failed for company %s", company_id)
            result.failed += 1
            result.failed_company_ids.append(company_id)

    message = f"Recalculated {result.successful}/{result.total} companies"
    if result.total and not result.successful:
        jobs.fail_job(job, message, result.as_dict(), db)
    else:
        jobs.complete_job(job, message, result.as_dict(), db)
    logger.info("%s: %s (%d failed)", job_type, message, result.failed)
    return result
