"""
Unit tests for EBITDA estimation and adjusted EBITDA (services/valuation/ebitda.py).
"""

import pytest

from app.core.errors import InvalidInputError
from app.models.company import Company, CoreFactors, EbitdaAdjustment
from app.services.valuation.ebitda import (
    calculate_adjusted_ebitda,
    estimate_ebitda_from_revenue,
    get_market_salary,
)
from app.services.valuation.types import MultipleResult


def _multiples(ebitda=(3.0, 5.0), revenue=(1.0, 1.5), margin=None) -> MultipleResult:
    return MultipleResult(
        ebitda_multiple_low=ebitda[0],
        ebitda_multiple_high=ebitda[1],
        revenue_multiple_low=revenue[0],
        revenue_multiple_high=revenue[1],
        ebitda_margin_low=margin[0] if margin else None,
        ebitda_margin_high=margin[1] if margin else None,
        match_level="industry",
        is_default=False,
    )


def test_implied_margin_scenario():
    """400k / 1.0M implied range → 700k midpoint."""
    assert estimate_ebitda_from_revenue(2_000_000, _multiples()) == 700_000


def test_explicit_margin_range_uses_midpoint():
    # 1,234,000 × 15% = 185,100 → nearest 100k
    assert estimate_ebitda_from_revenue(1_234_000, _multiples(margin=(0.10, 0.20))) == 200_000


def test_implied_margin_is_capped():
    # implied midpoint 666,667 exceeds the cap; 250,000 rounds half-up
    multiples = _multiples(ebitda=(2.0, 3.0), revenue=(1.0, 2.0))
    assert estimate_ebitda_from_revenue(1_000_000, multiples, margin_cap=0.25) == 300_000
    assert estimate_ebitda_from_revenue(1_000_000, multiples, margin_cap=None) == 700_000


def test_zero_or_missing_revenue():
    assert estimate_ebitda_from_revenue(0, _multiples()) == 0
    assert estimate_ebitda_from_revenue(None, _multiples()) == 0


def test_negative_revenue_rejected():
    with pytest.raises(InvalidInputError):
        estimate_ebitda_from_revenue(-1, _multiples())


def test_estimate_is_idempotent():
    multiples = _multiples(ebitda=(3.3, 6.1), revenue=(0.7, 1.9))
    first = estimate_ebitda_from_revenue(3_456_789, multiples)
    second = estimate_ebitda_from_revenue(3_456_789, multiples)
    assert first == second


def test_market_salary_buckets():
    assert get_market_salary("UNDER_500K") == 80_000
    assert get_market_salary("OVER_25M") == 400_000
    assert get_market_salary(None) == 150_000
    assert get_market_salary("SOMETHING_ELSE") == 150_000


def test_adjusted_ebitda_with_normalizations():
    company = Company(
        name="Acme",
        icb_industry="Industrials",
        annual_revenue=2_000_000,
        annual_ebitda=500_000,
        owner_compensation=250_000,
    )
    company.core_factors = CoreFactors(revenue_size_category="FROM_1M_TO_3M")
    company.ebitda_adjustments = [
        EbitdaAdjustment(adjustment_type="ADD_BACK", amount=50_000),
        EbitdaAdjustment(adjustment_type="DEDUCTION", amount=20_000),
    ]

    # 500k + 50k − 20k + (250k − 150k market salary)
    assert calculate_adjusted_ebitda(company, _multiples()) == 630_000


def test_adjusted_ebitda_falls_back_to_estimate():
    company = Company(name="Acme", icb_industry="Industrials", annual_revenue=2_000_000, annual_ebitda=None)
    assert calculate_adjusted_ebitda(company, _multiples()) == 700_000


def test_adjusted_ebitda_never_negative():
    company = Company(name="Acme", icb_industry="Industrials", annual_revenue=0, annual_ebitda=None)
    company.ebitda_adjustments = [EbitdaAdjustment(adjustment_type="DEDUCTION", amount=80_000)]
    assert calculate_adjusted_ebitda(company, _multiples()) == 0
