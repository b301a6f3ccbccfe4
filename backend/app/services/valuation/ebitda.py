"""
ebitda.py — Adjusted EBITDA Estimation

Purpose:
- Single source of truth for the EBITDA figure every valuation path uses
  (preview, onboarding snapshot, recalculation).
- Estimate EBITDA from revenue when the company reports none:
    * explicit margin range → revenue × midpoint(margin_low, margin_high)
    * otherwise the EV identity revenue × revenue multiple = EBITDA × EBITDA
      multiple, taken at both ends of the range:
          ebitda_low  = revenue × revenue_multiple_low  / ebitda_multiple_high
          ebitda_high = revenue × revenue_multiple_high / ebitda_multiple_low
      blended at the midpoint and capped at a maximum implied margin.
  Both branches round to the nearest $100,000.
- Normalize the base with add-backs, deductions and owner compensation above
  a market-salary benchmark.
"""

from typing import Iterable, Optional

from app.core.errors import InvalidInputError
from app.models.company import Company, EbitdaAdjustment
from app.models.enums import AdjustmentType
from app.services.valuation.types import MultipleResult, round_currency, round_half_up

ESTIMATE_ROUNDING_STEP = 100_000

# Market salary for an owner/CEO by revenue size bucket
MARKET_SALARY_BY_REVENUE = {
    "UNDER_500K": 80_000,
    "FROM_500K_TO_1M": 120_000,
    "FROM_1M_TO_3M": 150_000,
    "FROM_3M_TO_10M": 200_000,
    "FROM_10M_TO_25M": 300_000,
    "OVER_25M": 400_000,
}
DEFAULT_MARKET_SALARY = 150_000


def get_market_salary(revenue_size_category: Optional[str]) -> float:
    if not revenue_size_category:
        return DEFAULT_MARKET_SALARY
    return MARKET_SALARY_BY_REVENUE.get(revenue_size_category, DEFAULT_MARKET_SALARY)


def estimate_ebitda_from_revenue(
    revenue: Optional[float],
    multiples: MultipleResult,
    margin_cap: Optional[float] = 0.35,
) -> float:
    """
    Estimate EBITDA from annual revenue using the resolved multiples.

    Args:
        revenue: Annual revenue (None or 0 → 0)
        multiples: Resolved multiple range (may carry an explicit margin range)
        margin_cap: Maximum margin the implied (multiple-derived) estimate may reach

    Returns:
        Estimated EBITDA rounded to the nearest $100,000

    Raises:
        InvalidInputError: If revenue is negative
    """
    if revenue is None or revenue == 0:
        return 0.0
    if revenue < 0:
        raise InvalidInputError(f"Revenue must not be negative (got {revenue})")

    if multiples.has_margin_range:
        midpoint = (multiples.ebitda_margin_low + multiples.ebitda_margin_high) / 2
        return round_half_up(revenue * midpoint, ESTIMATE_ROUNDING_STEP)

    if multiples.ebitda_multiple_low <= 0 or multiples.ebitda_multiple_high <= 0:
        return 0.0

    implied_low = revenue * (multiples.revenue_multiple_low / multiples.ebitda_multiple_high)
    implied_high = revenue * (multiples.revenue_multiple_high / multiples.ebitda_multiple_low)
    blended = (implied_low + implied_high) / 2

    if margin_cap is not None:
        blended = min(blended, revenue * margin_cap)

    return round_half_up(blended, ESTIMATE_ROUNDING_STEP)


def sum_adjustments(adjustments: Iterable[EbitdaAdjustment]) -> float:
    """Net of add-backs minus deductions."""
    total = 0.0
    for adjustment in adjustments:
        if adjustment.adjustment_type == AdjustmentType.ADD_BACK.value:
            total += float(adjustment.amount)
        elif adjustment.adjustment_type == AdjustmentType.DEDUCTION.value:
            total -= float(adjustment.amount)
    return total


def calculate_adjusted_ebitda(
    company: Company,
    multiples: MultipleResult,
    margin_cap: Optional[float] = 0.35,
) -> float:
    """
    Adjusted EBITDA for a company, in whole currency units (never negative).

    Base is the reported EBITDA when positive, otherwise the revenue-based
    estimate; add-backs, deductions and excess owner compensation follow.
    """
    revenue = company.annual_revenue or 0.0
    if revenue < 0:
        raise InvalidInputError(f"Revenue must not be negative (got {revenue})")

    reported = company.annual_ebitda or 0.0
    if reported > 0:
        base = float(reported)
    else:
        base = estimate_ebitda_from_revenue(revenue, multiples, margin_cap)

    revenue_size = company.core_factors.revenue_size_category if company.core_factors else None
    owner_comp = float(company.owner_compensation or 0.0)
    excess_comp = max(0.0, owner_comp - get_market_salary(revenue_size))

    adjusted = base + sum_adjustments(company.ebitda_adjustments) + excess_comp
    return round_currency(max(0.0, adjusted))
