"""
Tests for industry multiple administration (services/industry_multiples.py).
"""

import datetime

import pytest

from app.core.errors import InvalidInputError, NotFoundError
from app.models.industry_multiple import IndustryMultiple
from app.models.job import Job
from app.models.valuation_snapshot import ValueLedgerEntry
from app.services.industry_multiples import (
    create_industry_multiple,
    import_multiples_csv,
    parse_multiples_csv,
    update_industry_multiple,
    validate_multiple_values,
)
from app.services.valuation.snapshots import get_latest_snapshot

HEADER = (
    "icb_industry,icb_super_sector,icb_sector,icb_sub_sector,"
    "ebitda_multiple_low,ebitda_multiple_high,revenue_multiple_low,revenue_multiple_high,"
    "ebitda_margin_low,ebitda_margin_high,effective_date,source\n"
)

VALID_ROW = {
    "icb_industry": "Industrials",
    "icb_sub_sector": "Widgets",
    "ebitda_multiple_low": "3.0",
    "ebitda_multiple_high": "5.0",
    "revenue_multiple_low": "1.0",
    "revenue_multiple_high": "1.5",
    "effective_date": "2025-02-01",
    "source": "broker survey",
}


def test_validate_cleans_values():
    clean = validate_multiple_values(VALID_ROW)
    assert clean["ebitda_multiple_low"] == 3.0
    assert clean["icb_sector"] is None
    assert clean["effective_date"] == datetime.date(2025, 2, 1)
    assert clean["ebitda_margin_low"] is None


def test_validate_defaults_effective_date_to_today():
    clean = validate_multiple_values({**VALID_ROW, "effective_date": ""})
    assert clean["effective_date"] == datetime.date.today()


@pytest.mark.parametrize("override", [
    {"icb_industry": "  "},
    {"ebitda_multiple_low": "6.0"},
    {"revenue_multiple_high": "-1"},
    {"ebitda_multiple_high": "lots"},
    {"ebitda_multiple_low": ""},
    {"ebitda_margin_low": "0.1"},
    {"ebitda_margin_low": "0.2", "ebitda_margin_high": "1.5"},
    {"effective_date": "01/02/2025"},
])
def test_validate_rejects_bad_rows(override):
    with pytest.raises(InvalidInputError):
        validate_multiple_values({**VALID_ROW, **override})


def test_csv_reports_line_number():
    text = HEADER + (
        "Industrials,,,,3.5,5.5,0.4,0.8,,,2025-01-01,survey\n"
        "Technology,,,,8.0,5.0,1.0,2.5,,,2025-01-01,survey\n"
    )
    with pytest.raises(InvalidInputError, match="Line 3"):
        parse_multiples_csv(text)


def test_csv_missing_columns():
    with pytest.raises(InvalidInputError, match="ebitda_multiple_low"):
        parse_multiples_csv("icb_industry,source\nIndustrials,survey\n")


def test_csv_with_bom():
    rows = parse_multiples_csv("\ufeff" + HEADER + "Industrials,,,,3.5,5.5,0.4,0.8,,,2025-01-01,survey\n")
    assert rows[0]["icb_industry"] == "Industrials"


def test_invalid_import_leaves_table_untouched(db, make_multiple):
    existing = make_multiple(icb_sub_sector="Widgets")
    text = HEADER + (
        "Industrials,,,,3.5,5.5,0.4,0.8,,,2025-01-01,survey\n"
        "Industrials,,,,3.5,,0.4,0.8,,,2025-01-01,survey\n"
    )

    with pytest.raises(InvalidInputError):
        import_multiples_csv(db, text)

    assert [r.id for r in db.query(IndustryMultiple).all()] == [existing.id]
    assert db.query(Job).count() == 0


def test_import_replaces_table_and_recalculates(db, make_company, make_multiple):
    make_multiple(icb_sub_sector="Widgets", ebitda=(9.0, 12.0))
    good = make_company()
    broken = make_company(name="Broken Co", annual_revenue=-1)
    text = HEADER + (
        "Industrials,,,,3.0,5.0,1.0,1.5,,,2025-01-01,survey\n"
        "Technology,,,,5.0,8.0,1.0,2.5,,,2025-01-01,survey\n"
    )

    result = import_multiples_csv(db, text)

    assert result.as_dict() == {"imported": 2, "total": 2, "successful": 1, "failed": 1}
    assert db.query(IndustryMultiple).count() == 2
    assert db.query(IndustryMultiple).filter(IndustryMultiple.ebitda_multiple_low == 9.0).count() == 0

    snapshot = get_latest_snapshot(db, good.id)
    assert snapshot.multiple_match_level == "industry"
    assert snapshot.industry_multiple_low == 3.0
    assert get_latest_snapshot(db, broken.id) is None

    entry = db.query(ValueLedgerEntry).filter(ValueLedgerEntry.company_id == good.id).one()
    assert entry.event_type == "MULTIPLES_UPDATED"

    job = db.query(Job).one()
    assert job.job_type == "recalculate-all"
    assert job.details == {"total": 2, "successful": 1, "failed": 1}


def test_create_recalculates_affected_companies(db, make_company):
    widgets = make_company()
    software = make_company(name="Software Co", icb_industry="Technology", icb_super_sector="Technology",
                            icb_sector="Software and Computer Services", icb_sub_sector="Software")

    row, batch = create_industry_multiple(db, VALID_ROW)

    assert row.id is not None
    assert (batch.total, batch.successful) == (1, 1)
    assert get_latest_snapshot(db, widgets.id).multiple_match_level == "subsector"
    assert get_latest_snapshot(db, software.id) is None
    assert db.query(Job).one().job_type == "recalculate-affected"


def test_update_recalculates_old_and_new_path(db, make_company, make_multiple):
    widgets = make_company()
    gadgets = make_company(name="Gadget Co", icb_industry="Consumer Discretionary", icb_super_sector=None,
                           icb_sector=None, icb_sub_sector="Gadgets")
    row = make_multiple(icb_sub_sector="Widgets")

    updated, batch = update_industry_multiple(
        db, row.id, {**VALID_ROW, "icb_industry": "Consumer Discretionary", "icb_sub_sector": "Gadgets"}
    )

    assert updated.icb_sub_sector == "Gadgets"
    assert batch.total == 2
    assert get_latest_snapshot(db, widgets.id).multiple_match_level == "default"
    assert get_latest_snapshot(db, gadgets.id).multiple_match_level == "subsector"


def test_update_unknown_row(db):
    with pytest.raises(NotFoundError):
        update_industry_multiple(db, 77, VALID_ROW)
