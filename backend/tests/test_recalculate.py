"""
Tests for the recalculation pipeline, snapshot store and value ledger.
"""

import pytest

from app.core.errors import NotFoundError
from app.models.job import Job
from app.models.valuation_snapshot import ValuationSnapshot, ValueLedgerEntry
from app.services.valuation.recalculate import (
    build_valuation_preview,
    recalculate_companies,
    recalculate_company,
)
from app.services.valuation.snapshots import get_latest_snapshot, list_snapshots
from app.services.valuation.types import ValuationConfig


@pytest.fixture
def widget_company(make_company, make_multiple):
    """$2M revenue, no reported EBITDA, 3.0-5.0x / 1.0-1.5x sub-sector multiples."""
    make_multiple(icb_sub_sector="Widgets", ebitda=(3.0, 5.0), revenue=(1.0, 1.5))
    return make_company()


def test_preview_from_industry_multiple(db, widget_company):
    preview = build_valuation_preview(db, widget_company.id)

    assert preview.adjusted_ebitda == 700_000
    assert preview.valuation_low == 2_100_000
    assert preview.valuation_high == 3_500_000
    assert preview.ebitda_margin_percent == 35.0
    assert preview.industry_name == "Widgets"
    assert preview.has_industry_multiple is True


def test_preview_with_default_multiples(db, make_company):
    company = make_company(icb_industry="Utilities", icb_super_sector=None, icb_sector=None, icb_sub_sector=None)
    preview = build_valuation_preview(db, company.id)

    assert preview.has_industry_multiple is False
    assert preview.adjusted_ebitda == 200_000
    assert (preview.multiple_low, preview.multiple_high) == (3.5, 5.5)
    assert preview.valuation_low == 700_000
    assert preview.ebitda_margin_percent == 10.0


def test_preview_unknown_company(db):
    with pytest.raises(NotFoundError):
        build_valuation_preview(db, 404)


def test_first_snapshot_and_ledger_entry(db, widget_company):
    snapshot = recalculate_company(db, widget_company.id, event_type="ONBOARDING")

    # core 1.0 → base 5.0; no answers → BRI 0.7 → discount 0.12
    assert snapshot.adjusted_ebitda == 700_000
    assert snapshot.base_multiple == pytest.approx(5.0)
    assert snapshot.bri_score == pytest.approx(0.7)
    assert snapshot.discount_fraction == pytest.approx(0.12)
    assert snapshot.current_value == 3_080_000
    assert snapshot.potential_value == 3_500_000
    assert snapshot.value_gap == 420_000
    assert snapshot.alpha_constant == 0.4
    assert snapshot.multiple_match_level == "subsector"
    assert snapshot.snapshot_reason == "Onboarding complete"

    entry = db.query(ValueLedgerEntry).filter(ValueLedgerEntry.snapshot_id == snapshot.id).one()
    assert entry.event_type == "ONBOARDING"
    assert entry.delta_value_recovered == 0
    assert entry.delta_value_at_risk == 0
    assert entry.bri_score_before is None
    assert entry.narrative_source == "template"


def test_ledger_records_delta_against_previous(db, widget_company, make_question, answer):
    recalculate_company(db, widget_company.id, event_type="ONBOARDING")
    answer(widget_company, make_question(category="FINANCIAL"), 1.0)

    snapshot = recalculate_company(db, widget_company.id, event_type="ASSESSMENT_COMPLETED")

    # FINANCIAL 1.0 → BRI 0.775 → final 4.55x
    assert snapshot.current_value == 3_185_000
    entry = db.query(ValueLedgerEntry).filter(ValueLedgerEntry.snapshot_id == snapshot.id).one()
    assert entry.delta_value_recovered == 105_000
    assert entry.delta_value_at_risk == 0
    assert entry.bri_score_before == pytest.approx(0.7)
    assert entry.bri_score_after == pytest.approx(0.775)


def test_value_at_risk_when_value_drops(db, widget_company, make_question, answer):
    question = make_question(category="FINANCIAL")
    response = answer(widget_company, question, 1.0)
    recalculate_company(db, widget_company.id)

    response.selected_option = next(o for o in question.options if o.score_value == 0.0)
    db.commit()
    snapshot = recalculate_company(db, widget_company.id)

    entry = db.query(ValueLedgerEntry).filter(ValueLedgerEntry.snapshot_id == snapshot.id).one()
    assert entry.delta_value_recovered == 0
    assert entry.delta_value_at_risk > 0


def test_snapshots_are_appended(db, widget_company):
    first = recalculate_company(db, widget_company.id)
    second = recalculate_company(db, widget_company.id, reason="Second look")

    assert db.query(ValuationSnapshot).count() == 2
    assert get_latest_snapshot(db, widget_company.id).id == second.id
    assert [s.id for s in list_snapshots(db, widget_company.id)] == [second.id, first.id]
    assert second.current_value == first.current_value


def test_alpha_is_injected(db, widget_company):
    snapshot = recalculate_company(db, widget_company.id, config=ValuationConfig(alpha=0.0))
    assert snapshot.discount_fraction == 0
    assert snapshot.current_value == snapshot.potential_value
    assert snapshot.alpha_constant == 0.0


def test_value_gap_spread_across_open_tasks(db, widget_company, make_task):
    big = make_task(widget_company, raw_impact=300)
    small = make_task(widget_company, raw_impact=100)
    done = make_task(widget_company, raw_impact=500, status="COMPLETED", completed_value=12_345)

    recalculate_company(db, widget_company.id)
    db.refresh(big)
    db.refresh(small)
    db.refresh(done)

    assert big.normalized_value == 315_000
    assert small.normalized_value == 105_000
    assert done.normalized_value is None
    assert done.completed_value == 12_345


def test_bulk_recalculation_isolates_failures(db, widget_company, make_company):
    broken = make_company(name="Broken Co", annual_revenue=-5)

    result = recalculate_companies(db, [widget_company.id, broken.id, 9999])

    assert result.total == 3
    assert result.successful == 1
    assert result.failed == 2
    assert result.failed_company_ids == [broken.id, 9999]
    assert get_latest_snapshot(db, widget_company.id) is not None
    assert get_latest_snapshot(db, broken.id) is None

    job = db.query(Job).one()
    assert job.job_type == "recalculate-all"
    assert job.status == "completed"
    assert job.details == {"total": 3, "successful": 1, "failed": 2}


def test_bulk_run_with_no_success_is_failed_job(db, make_company):
    broken = make_company(annual_revenue=-1)

    result = recalculate_companies(db, [broken.id], job_type="recalculate-affected")

    assert (result.successful, result.failed) == (0, 1)
    job = db.query(Job).one()
    assert job.status == "failed"
    assert job.message == "Recalculated 0/1 companies"
    assert job.duration_seconds is not None
