"""
engine.py — Valuation Engine

Pure function of (adjusted EBITDA, multiple range, Core Score, BRI):

    base_multiple     = low + core_score × (high − low)
    potential_value   = adjusted_ebitda × base_multiple
    discount_fraction = ALPHA × (1 − bri_score)            clamped to [0, 1]
    final_multiple    = base_multiple × (1 − discount)     clamped to [low, high]
    current_value     = adjusted_ebitda × final_multiple
    value_gap         = potential_value − current_value    (≥ 0)

Inputs are clamped rather than rejected: scores into [0, 1], multiples to
non-negative and ordered, EBITDA to non-negative. Monetary outputs are rounded
half-up to whole currency units so two computations on identical inputs agree
exactly.
"""

from app.services.valuation.types import ValuationInputs, ValuationResult, clamp, round_currency


def calculate_base_multiple(multiple_low: float, multiple_high: float, core_score: float) -> float:
    """Interpolate within the industry range by Core Score."""
    base = multiple_low + clamp(core_score) * (multiple_high - multiple_low)
    return clamp(base, multiple_low, multiple_high)


def calculate_discount_fraction(bri_score: float, alpha: float) -> float:
    """Share of the base multiple forfeited to readiness gaps."""
    return clamp(alpha * (1.0 - clamp(bri_score)))


def calculate_valuation(inputs: ValuationInputs, alpha: float) -> ValuationResult:
    """
    Run the valuation formula on one set of inputs.

    Args:
        inputs: adjusted EBITDA, multiple range, Core Score, BRI
        alpha: discount strength (configuration, see ValuationConfig.alpha)

    Returns:
        ValuationResult with rounded monetary outputs
    """
    low, high = sorted((max(0.0, inputs.multiple_low), max(0.0, inputs.multiple_high)))
    ebitda = max(0.0, inputs.adjusted_ebitda)

    base_multiple = calculate_base_multiple(low, high, inputs.core_score)
    discount_fraction = calculate_discount_fraction(inputs.bri_score, alpha)

    if discount_fraction == 0:
        final_multiple = base_multiple
    else:
        final_multiple = clamp(base_multiple * (1.0 - discount_fraction), low, high)

    potential_value = round_currency(ebitda * base_multiple)
    current_value = round_currency(ebitda * final_multiple)
    value_gap = max(0.0, potential_value - current_value)

    return ValuationResult(
        base_multiple=base_multiple,
        discount_fraction=discount_fraction,
        final_multiple=final_multiple,
        current_value=current_value,
        potential_value=potential_value,
        value_gap=value_gap,
    )
